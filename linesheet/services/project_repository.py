"""Persistence of line sheet projects in a remote document store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from commonlib.timestamps import NativeTimestamp, from_native, to_native

from ..models import LineSheetProject
from .documents import DocumentStore

logger = logging.getLogger(__name__)

CREATED_AT_FIELD = "createdAt"


def convert_timestamps(data: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Return a shallow copy with the store timestamp turned into a datetime."""

    if not data:
        return data
    result = dict(data)
    value = result.get(CREATED_AT_FIELD)
    if isinstance(value, NativeTimestamp):
        result[CREATED_AT_FIELD] = from_native(value)
    return result


def prepare_document(data: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
    """Return a shallow copy with datetimes turned into store timestamps."""

    if not data:
        return data
    result = dict(data)
    value = result.get(CREATED_AT_FIELD)
    if isinstance(value, datetime):
        result[CREATED_AT_FIELD] = to_native(value)
    return result


@dataclass(slots=True)
class ProjectRepository:
    """List, fetch, upsert and delete project documents.

    Remote failures never escape this class. ``list_all``/``get_by_id`` fold
    them into "nothing there", while ``try_list_all``/``lookup`` report them
    so callers that care can tell the two apart.
    """

    documents: DocumentStore

    def _to_project(self, doc_id: str, data: dict[str, Any]) -> Optional[LineSheetProject]:
        try:
            return LineSheetProject.from_document(doc_id, convert_timestamps(data) or {})
        except ValidationError as exc:
            logger.warning("Skipping malformed project document %s: %s", doc_id, exc)
            return None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def try_list_all(self) -> Optional[list[LineSheetProject]]:
        try:
            rows = await self.documents.list_documents(CREATED_AT_FIELD, descending=True)
        except Exception:
            logger.exception("Error fetching projects")
            return None
        projects = []
        for doc_id, data in rows:
            project = self._to_project(doc_id, data)
            if project is not None:
                projects.append(project)
        logger.debug("Fetched %d project(s)", len(projects))
        return projects

    async def list_all(self) -> list[LineSheetProject]:
        return await self.try_list_all() or []

    async def lookup(self, project_id: str) -> tuple[Optional[LineSheetProject], bool]:
        try:
            data = await self.documents.get_document(project_id)
        except Exception:
            logger.exception("Error fetching project %s", project_id)
            return None, False
        if data is None:
            return None, True
        return self._to_project(project_id, data), True

    async def get_by_id(self, project_id: str) -> Optional[LineSheetProject]:
        project, _ = await self.lookup(project_id)
        return project

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def put(self, project: LineSheetProject) -> bool:
        try:
            await self.documents.set_document(project.id, prepare_document(project.to_document()))
        except Exception:
            logger.exception("Error saving project %s", project.id)
            return False
        logger.debug("Saved project %s", project.id)
        return True

    async def delete_by_id(self, project_id: str) -> bool:
        try:
            await self.documents.delete_document(project_id)
        except Exception:
            logger.exception("Error deleting project %s", project_id)
            return False
        logger.info("Deleted project %s", project_id)
        return True
