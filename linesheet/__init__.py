"""Line sheet catalog editing with Firestore synchronisation."""

from .catalog import CatalogStore
from .models import LineSheetProject, Product, ProductUpdate, ProjectDetailsUpdate
from .services.project_repository import ProjectRepository

__all__ = [
    "CatalogStore",
    "LineSheetProject",
    "Product",
    "ProductUpdate",
    "ProjectDetailsUpdate",
    "ProjectRepository",
]
