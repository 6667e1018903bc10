"""Object storage for exported tables."""

from trailcov.storage.minio import ObjectStorage

__all__ = ["ObjectStorage"]
