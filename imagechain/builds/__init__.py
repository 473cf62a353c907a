"""Build orchestration module.

This module handles:
- Project checkouts
- Asset staging
- Credential and installer injection
- Running the image builder and saving archives
- The sequential build pipeline
"""

from imagechain.builds.pipeline import BuildPipeline, PipelineResult

__all__ = ["BuildPipeline", "PipelineResult"]

# Access the collaborators via imagechain.builds.runner, .checkout, etc.
