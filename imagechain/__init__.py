"""imagechain - build batches of interdependent container images.

This package loads per-image build descriptors, works out which images are
built on top of other images in the same batch, orders the batch so that
parents are always built before their children, and drives the sequential
checkout/render/build/save pipeline.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
