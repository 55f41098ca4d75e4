"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .storage import LocalBlobStore, get_blob_store

__all__ = ['LocalBlobStore', 'get_blob_store']
