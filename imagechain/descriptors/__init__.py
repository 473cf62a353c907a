"""Build descriptor module.

This module handles:
- The build descriptor contract and Dockerfile rendering
- Declarative (YAML) descriptor validation
- Ignore list parsing
- Discovery and evaluation of build files
"""

from imagechain.descriptors.image import BaseImage, BuildDescriptor, Instruction

__all__ = ["BaseImage", "BuildDescriptor", "Instruction"]
