"""Pydantic models for declarative build descriptors.

``build.yaml`` files are validated against ``DescriptorSchema`` before they
are turned into ``BaseImage`` instances.
"""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from imagechain.descriptors.image import BaseImage


class DescriptorSchema(BaseModel):
    """Schema for a YAML build descriptor.

    Attributes:
        from_: Parent image reference (``from`` in YAML).
        assets: Asset paths relative to the image directory.
        projects: Source repository URLs.
        install_targets: Directories needing dependency installation.
        instructions: Instructions as token lists, keyword first.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_: str = Field(alias="from", min_length=1, description="Parent image")
    assets: list[str] = Field(default_factory=list)
    projects: list[str] = Field(default_factory=list)
    install_targets: list[str] = Field(default_factory=list)
    instructions: list[Annotated[list[str], Field(min_length=1)]] = Field(
        default_factory=list
    )

    @field_validator("from_")
    @classmethod
    def validate_from(cls, v: str) -> str:
        """Reject references containing whitespace."""
        if any(ch.isspace() for ch in v):
            raise ValueError(f"from must not contain whitespace, got '{v}'")
        return v

    @field_validator("instructions")
    @classmethod
    def validate_instructions(cls, v: list[list[str]]) -> list[list[str]]:
        """Reject explicit FROM instructions."""
        for tokens in v:
            if tokens[0].strip().upper() == "FROM":
                raise ValueError("use 'from' instead of a FROM instruction")
        return v

    def to_image(self) -> BaseImage:
        """Convert to a mutable ``BaseImage``."""
        image = BaseImage(
            parent_reference=self.from_,
            assets=list(self.assets),
            projects=list(self.projects),
            install_targets=list(self.install_targets),
        )
        for tokens in self.instructions:
            image.append_instruction(tokens)
        return image


__all__ = ["DescriptorSchema"]
