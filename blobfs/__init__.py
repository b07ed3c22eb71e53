"""blobfs - filesystem-backed blob storage adapter."""

from blobfs.components.adapter import FSAdapter, create_adapter

__all__ = ["FSAdapter", "create_adapter"]
