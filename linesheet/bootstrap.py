"""Construction of a catalog session from configuration."""

from __future__ import annotations

import logging

from commonlib.config import CatalogConfig
from commonlib.firebase import init_firestore
from commonlib.storage import EncryptedJsonDocumentStore, JsonDocumentStore, StoreError

from .catalog import CatalogStore
from .services.documents import DocumentStore, FirestoreDocumentStore, LocalDocumentStore
from .services.images import PillowImageEncoder
from .services.project_repository import ProjectRepository

logger = logging.getLogger(__name__)


def create_document_store(config: CatalogConfig) -> DocumentStore:
    """Pick the document backend named by ``config.backend``.

    ``auto`` uses Firestore when credentials are available and falls back to
    the local JSON file otherwise.
    """

    if config.backend in ("auto", "firestore"):
        client = init_firestore(config.base_dir, config.env)
        if client is not None:
            logger.info("Using Firestore collection '%s'", config.collection)
            return FirestoreDocumentStore(client, config.collection)
        if config.backend == "firestore":
            raise StoreError("Firestore backend requested but no Firebase credentials were found")

    if config.encrypted:
        store = EncryptedJsonDocumentStore(config.store_path, config.store_secret)
    else:
        store = JsonDocumentStore(config.store_path)
    logger.info("Using local document store at %s", config.store_path)
    return LocalDocumentStore(store)


def create_catalog_store(config: CatalogConfig) -> CatalogStore:
    repository = ProjectRepository(create_document_store(config))
    encoder = PillowImageEncoder(config.image_max_dimension, config.image_quality)
    return CatalogStore(repository, encoder)
