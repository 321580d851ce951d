"""Common helpers shared by the line sheet catalog and its tools."""

from .config import CatalogConfig, load_catalog_config
from .logging_config import setup_logging
from .storage import EncryptedJsonDocumentStore, JsonDocumentStore, StoreError  # noqa: F401

__all__ = [
    "CatalogConfig",
    "load_catalog_config",
    "setup_logging",
    "JsonDocumentStore",
    "EncryptedJsonDocumentStore",
    "StoreError",
]
