"""Blob store adapters."""

from .blob_store import DEFAULT_SIGNED_URL_TTL_SECONDS, BlobStore, LocalBlobStore
from .supabase import SupabaseBlobStore

__all__ = [
    "DEFAULT_SIGNED_URL_TTL_SECONDS",
    "BlobStore",
    "LocalBlobStore",
    "SupabaseBlobStore",
]
