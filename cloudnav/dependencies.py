"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging

from .config import get_settings
from .kv import EdgeOneKVClient, FileKVStore, InMemoryKVStore, KVStore, KVStoreError

logger = logging.getLogger(__name__)

_kv_store: KVStore | None = None


def get_kv_store() -> KVStore:
    """
    Return a singleton KV store so every request sees the same backend.
    """
    global _kv_store
    if _kv_store:
        return _kv_store

    settings = get_settings()
    backend = settings.kv_backend.lower()
    if backend == "edgeone":
        if not settings.edgeone_kv_namespace or not settings.edgeone_api_key:
            raise KVStoreError(
                "EDGEONE_KV_NAMESPACE and EDGEONE_API_KEY are required for the edgeone backend"
            )
        _kv_store = EdgeOneKVClient(
            namespace=settings.edgeone_kv_namespace,
            api_key=settings.edgeone_api_key,
            api_secret=settings.edgeone_api_secret or "",
            timeout=settings.http_timeout,
        )
    elif backend == "memory":
        _kv_store = InMemoryKVStore()
    elif backend == "file":
        _kv_store = FileKVStore(settings.data_file)
    else:
        raise KVStoreError(f"Unknown KV backend: {settings.kv_backend}")

    logger.info("Using %s KV backend", backend)
    return _kv_store
