"""Tests for descriptors/loader.py module.

Builds small images trees under tmp_path with Python and YAML build files.
"""

from pathlib import Path

import pytest

from imagechain.descriptors.image import BaseImage
from imagechain.descriptors.loader import (
    LoadError,
    discover_entry_points,
    evaluate_descriptor,
    image_key,
    load_descriptors,
)
from imagechain.planning.dependencies import classify

PY_TEMPLATE = """\
from imagechain.descriptors.image import BaseImage

image = BaseImage({parent!r}).run(["true"])
"""


def write_py(images_dir: Path, key: str, parent: str) -> Path:
    path = images_dir / key / "build.py"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(PY_TEMPLATE.format(parent=parent), encoding="utf-8")
    return path


def write_yaml(
    images_dir: Path, key: str, parent: str, name: str = "build.yaml"
) -> Path:
    path = images_dir / key / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"from: '{parent}'\nassets: []\n", encoding="utf-8")
    return path


@pytest.fixture
def images_dir(tmp_path) -> Path:
    """Images tree matching the canonical five-image example."""
    root = tmp_path / "images"
    write_py(root, "example/image4", "example/image2")
    write_py(root, "example/image2", "example/image1")
    write_yaml(root, "example/image1", "ubuntu:20.04")
    write_py(root, "example/image3", "example/image2")
    write_yaml(root, "example/image5", "debian", name="build.yml")
    return root


class TestImageKey:
    """Tests for image_key function."""

    def test_nested_key(self, tmp_path):
        """Key is the directory path relative to the root."""
        entry = tmp_path / "images" / "example" / "image1" / "build.py"
        assert image_key(tmp_path / "images", entry) == "example/image1"


class TestDiscoverEntryPoints:
    """Tests for discover_entry_points function."""

    def test_parents_before_children(self, tmp_path):
        """Parent directory build files should be found before nested ones."""
        root = tmp_path / "images"
        write_py(root, "b/child", "a")
        write_py(root, "b", "ubuntu")
        write_py(root, "a", "ubuntu")

        keys = [key for key, _ in discover_entry_points(root)]

        assert keys == ["a", "b", "b/child"]

    def test_depth_first(self, tmp_path):
        """A subtree is finished before its next sibling is visited."""
        root = tmp_path / "images"
        write_py(root, "a/x/deep", "ubuntu")
        write_py(root, "b", "ubuntu")
        write_py(root, "a/y", "ubuntu")

        keys = [key for key, _ in discover_entry_points(root)]

        assert keys == ["a/x/deep", "a/y", "b"]

    def test_ignores_other_files(self, tmp_path):
        """Only build files define images."""
        root = tmp_path / "images"
        (root / "docs").mkdir(parents=True)
        (root / "docs" / "README.md").write_text("hi")

        assert discover_entry_points(root) == []

    def test_ambiguous_entry_point(self, tmp_path):
        """Two build files in one directory is an error."""
        root = tmp_path / "images"
        write_py(root, "dup", "ubuntu")
        write_yaml(root, "dup", "ubuntu")

        with pytest.raises(LoadError) as exc_info:
            discover_entry_points(root)

        assert exc_info.value.code == "ambiguous_entry_point"
        assert exc_info.value.key == "dup"


class TestEvaluateDescriptor:
    """Tests for evaluate_descriptor function."""

    def test_python_image_variable(self, tmp_path):
        """build.py binding ``image`` should be used."""
        path = write_py(tmp_path, "img", "ubuntu:22.04")

        descriptor = evaluate_descriptor(path)

        assert isinstance(descriptor, BaseImage)
        assert descriptor.parent_reference == "ubuntu:22.04"

    def test_python_build_function(self, tmp_path):
        """build.py exposing ``build()`` should be called."""
        path = tmp_path / "build.py"
        path.write_text(
            "from imagechain.descriptors.image import BaseImage\n"
            "def build():\n"
            "    return BaseImage('alpine')\n",
            encoding="utf-8",
        )

        assert evaluate_descriptor(path).parent_reference == "alpine"

    def test_python_exception(self, tmp_path):
        """An exception while evaluating should become a LoadError."""
        path = tmp_path / "build.py"
        path.write_text("raise RuntimeError('boom')\n", encoding="utf-8")

        with pytest.raises(LoadError) as exc_info:
            evaluate_descriptor(path, key="broken")

        assert exc_info.value.code == "evaluation_error"
        assert "broken" in str(exc_info.value)

    def test_python_without_descriptor(self, tmp_path):
        """A build file yielding nothing usable is invalid."""
        path = tmp_path / "build.py"
        path.write_text("image = 'ubuntu'\n", encoding="utf-8")

        with pytest.raises(LoadError) as exc_info:
            evaluate_descriptor(path)

        assert exc_info.value.code == "invalid_descriptor"

    def test_yaml_descriptor(self, tmp_path):
        """YAML build files should be validated and converted."""
        path = write_yaml(tmp_path, "img", "example/base:2")

        assert evaluate_descriptor(path).parent_reference == "example/base:2"

    def test_yaml_validation_error(self, tmp_path):
        """Schema violations should be reported as invalid descriptors."""
        path = tmp_path / "build.yaml"
        path.write_text("assets: [a]\n", encoding="utf-8")

        with pytest.raises(LoadError) as exc_info:
            evaluate_descriptor(path)

        assert exc_info.value.code == "invalid_descriptor"

    def test_yaml_not_mapping(self, tmp_path):
        """A YAML list is not a descriptor."""
        path = tmp_path / "build.yaml"
        path.write_text("- ubuntu\n", encoding="utf-8")

        with pytest.raises(LoadError) as exc_info:
            evaluate_descriptor(path)

        assert exc_info.value.code == "evaluation_error"


class TestLoadDescriptors:
    """Tests for load_descriptors function."""

    def test_loads_all(self, images_dir):
        """Should load every image keyed by its directory."""
        batch = load_descriptors(images_dir)

        assert list(batch) == [
            "example/image1",
            "example/image2",
            "example/image3",
            "example/image4",
            "example/image5",
        ]
        assert batch["example/image2"].parent_reference == "example/image1"

    def test_missing_root(self, tmp_path):
        """A missing images root is fatal."""
        with pytest.raises(LoadError) as exc_info:
            load_descriptors(tmp_path / "images")

        assert exc_info.value.code == "images_root_missing"

    def test_skipped_image_not_evaluated(self, images_dir):
        """Skipped build files should never be executed."""
        bomb = images_dir / "example" / "image3" / "build.py"
        bomb.write_text("raise RuntimeError('must not run')\n", encoding="utf-8")

        batch = load_descriptors(images_dir, frozenset({"example/image3"}))

        assert "example/image3" not in batch

    def test_skipping_parent_reclassifies_children(self, images_dir):
        """Children of a skipped image become external."""
        batch = load_descriptors(images_dir, frozenset({"example/image2"}))

        partition = classify(batch)

        assert "example/image2" not in batch
        assert "example/image4" in partition.external
        assert "example/image3" in partition.external

    def test_failure_is_fatal(self, images_dir):
        """One broken build file fails the whole load."""
        broken = images_dir / "example" / "image5" / "build.yml"
        broken.write_text("from: [not, a, string]\n", encoding="utf-8")

        with pytest.raises(LoadError):
            load_descriptors(images_dir)
