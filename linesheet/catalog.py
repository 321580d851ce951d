"""In-memory catalog state and its editing operations.

``CatalogStore`` caches the projects of one session, tracks the current
project and applies edits. Every edit that changes stored data ends with an
explicit save of the whole project document; there are no field-level
remote updates. Edits to one project are serialized with a per-project
``asyncio.Lock`` so a slow save cannot be overtaken by a later one, and a
failed save restores the project to its state before the edit. A full
reload waits for in-flight edits and holds new ones back until the cache
has been replaced.

Observers register with :meth:`CatalogStore.subscribe` and are called with
the store after each state change. Edits notify once their save has
resolved.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Iterable, Literal, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from .csv_import import parse_product_csv
from .models import (
    DEFAULT_PRODUCT_NAME,
    LineSheetProject,
    Product,
    ProductUpdate,
    ProjectDetailsUpdate,
    new_id,
)
from .services.images import (
    MAX_ENCODED_BYTES,
    ImageEncoder,
    ImageEncodingError,
    ImageSource,
    is_base64_too_large,
)
from .services.project_repository import ProjectRepository

logger = logging.getLogger(__name__)

Listener = Callable[["CatalogStore"], None]
Direction = Literal["up", "down"]
Mutator = Callable[[LineSheetProject], bool]


class CatalogStore:
    """Projects of one editing session and the operations on them."""

    def __init__(
        self,
        repository: ProjectRepository,
        encoder: ImageEncoder,
        *,
        max_image_bytes: int = MAX_ENCODED_BYTES,
    ) -> None:
        self._repository = repository
        self._encoder = encoder
        self._max_image_bytes = max_image_bytes
        self._projects: list[LineSheetProject] = []
        self._current_project_id: Optional[str] = None
        self._loading = False
        self._error: Optional[str] = None
        self._listeners: list[Listener] = []
        self._locks: dict[str, asyncio.Lock] = {}
        # Edits and full reloads exclude each other; see _edit_slot.
        self._cache_changed = asyncio.Condition()
        self._active_edits = 0
        self._reloading = False

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def projects(self) -> tuple[LineSheetProject, ...]:
        return tuple(self._projects)

    @property
    def current_project_id(self) -> Optional[str]:
        return self._current_project_id

    @property
    def current_project(self) -> Optional[LineSheetProject]:
        if self._current_project_id is None:
            return None
        return self._find(self._current_project_id)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(store)`` after every state change.

        Returns a callable that removes the listener again.
        """

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear_error(self) -> None:
        if self._error is not None:
            self._error = None
            self._notify()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def _record_error(self, message: str) -> None:
        logger.warning(message)
        self._error = message

    def _find(self, project_id: str) -> Optional[LineSheetProject]:
        for project in self._projects:
            if project.id == project_id:
                return project
        return None

    def _index_of(self, project_id: str) -> int:
        for index, project in enumerate(self._projects):
            if project.id == project_id:
                return index
        return -1

    def _lock_for(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = self._locks[project_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def _edit_slot(self):
        """Hold off ``load_all`` while an edit talks to the remote store.

        Any number of edits may run together; a reload waits until none are
        in flight and new edits wait until the reload has swapped the cache.
        """

        async with self._cache_changed:
            await self._cache_changed.wait_for(lambda: not self._reloading)
            self._active_edits += 1
        try:
            yield
        finally:
            async with self._cache_changed:
                self._active_edits -= 1
                self._cache_changed.notify_all()

    def _restore(self, snapshot: LineSheetProject) -> None:
        index = self._index_of(snapshot.id)
        if index >= 0:
            self._projects[index] = snapshot

    async def _mutate(self, project_id: str, mutate: Mutator) -> bool:
        """Apply ``mutate`` to a cached project and save the result.

        ``mutate`` returns ``False`` when its precondition no longer holds, in
        which case nothing is saved. A failed save puts the pre-edit copy
        back into the cache. Listeners hear about the edit once the save has
        resolved.
        """

        async with self._edit_slot(), self._lock_for(project_id):
            index = self._index_of(project_id)
            if index < 0:
                return False
            project = self._projects[index]
            snapshot = project.model_copy(deep=True)
            try:
                if mutate(project) is False:
                    return False
                saved = await self._repository.put(project)
            except Exception:
                self._restore(snapshot)
                raise
            if not saved:
                self._restore(snapshot)
                self._record_error(f"Failed to save project '{snapshot.name}'")
        self._notify()
        return saved

    async def _encode_image(self, source: ImageSource, label: str) -> Optional[str]:
        try:
            encoded = await self._encoder.encode(source)
        except ImageEncodingError as exc:
            self._record_error(f"Could not process {label}: {exc}")
            return None
        if is_base64_too_large(encoded, self._max_image_bytes):
            self._record_error(f"{label.capitalize()} is too large even after compression")
            return None
        return encoded

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------
    async def load_all(self) -> bool:
        """Replace the cache with every stored project.

        Waits for in-flight edits to finish so their saves are part of what
        gets loaded.
        """

        async with self._cache_changed:
            await self._cache_changed.wait_for(
                lambda: not self._reloading and self._active_edits == 0
            )
            self._reloading = True
        try:
            self._loading = True
            self._notify()
            projects = await self._repository.try_list_all()
            if projects is not None:
                self._projects = projects
        finally:
            self._loading = False
            async with self._cache_changed:
                self._reloading = False
                self._cache_changed.notify_all()
        if projects is None:
            self._record_error("Failed to load projects")
            self._notify()
            return False
        if self._current_project_id is not None and self._find(self._current_project_id) is None:
            self._current_project_id = None
        logger.info("Loaded %d project(s)", len(projects))
        self._notify()
        return True

    async def create_project(self, name: str) -> Optional[str]:
        """Create, save and select a project. Returns its id, or ``None``."""

        project = LineSheetProject(name=name)
        async with self._edit_slot():
            if not await self._repository.put(project):
                self._record_error(f"Failed to create project '{name}'")
                self._notify()
                return None
            self._projects.append(project)
            self._current_project_id = project.id
        logger.info("Created project %s (%s)", project.id, name)
        self._notify()
        return project.id

    async def select_project(self, project_id: str) -> bool:
        if self._find(project_id) is not None:
            self._current_project_id = project_id
            self._notify()
            return True

        project, reachable = await self._repository.lookup(project_id)
        if project is None:
            self._current_project_id = None
            if reachable:
                self._record_error(f"Project {project_id} not found")
            else:
                self._record_error(f"Failed to load project {project_id}")
            self._notify()
            return False
        if self._find(project_id) is None:
            self._projects.append(project)
        self._current_project_id = project_id
        self._notify()
        return True

    async def delete_project(self, project_id: str) -> bool:
        """Delete remotely, then drop the project from the cache."""

        async with self._edit_slot(), self._lock_for(project_id):
            if not await self._repository.delete_by_id(project_id):
                self._record_error(f"Failed to delete project {project_id}")
                self._notify()
                return False
            index = self._index_of(project_id)
            if index >= 0:
                del self._projects[index]
            if self._current_project_id == project_id:
                self._current_project_id = self._projects[0].id if self._projects else None
        self._locks.pop(project_id, None)
        self._notify()
        return True

    async def update_project_details(
        self, details: Union[Mapping[str, Any], ProjectDetailsUpdate]
    ) -> bool:
        project = self.current_project
        if project is None:
            return False
        try:
            update = (
                details
                if isinstance(details, ProjectDetailsUpdate)
                else ProjectDetailsUpdate.model_validate(dict(details))
            )
        except ValidationError as exc:
            self._record_error(f"Invalid project details: {exc.error_count()} error(s)")
            self._notify()
            return False
        changes = update.changes()
        if not changes:
            return False

        def apply(target: LineSheetProject) -> bool:
            for key, value in changes.items():
                setattr(target, key, value)
            return True

        return await self._mutate(project.id, apply)

    async def update_logo(self, logo: Optional[ImageSource]) -> bool:
        """Set the project logo from an image file, or clear it with ``None``."""

        project = self.current_project
        if project is None:
            return False
        encoded = ""
        if logo is not None:
            encoded = await self._encode_image(logo, "logo")
            if encoded is None:
                self._notify()
                return False

        def apply(target: LineSheetProject) -> bool:
            target.logo_url = encoded
            return True

        return await self._mutate(project.id, apply)

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------
    async def import_csv(self, text: str) -> bool:
        """Replace every product of the current project with the CSV rows."""

        project = self.current_project
        if project is None:
            return False
        products = parse_product_csv(text)

        def apply(target: LineSheetProject) -> bool:
            target.products = products
            return True

        return await self._mutate(project.id, apply)

    async def add_images_to_product(self, product_id: str, files: Iterable[ImageSource]) -> bool:
        project = self.current_project
        if project is None or project.find_product(product_id) is None:
            return False

        accepted: list[str] = []
        rejected = 0
        for source in files:
            encoded = await self._encode_image(source, "image")
            if encoded is None:
                rejected += 1
                continue
            accepted.append(encoded)
        if rejected:
            self._notify()
        if not accepted:
            return False

        def apply(target: LineSheetProject) -> bool:
            product = target.find_product(product_id)
            if product is None:
                return False
            product.images = [*product.images, *accepted]
            return True

        return await self._mutate(project.id, apply)

    async def remove_image_from_product(self, product_id: str, index: int) -> bool:
        project = self.current_project
        if project is None:
            return False

        def apply(target: LineSheetProject) -> bool:
            product = target.find_product(product_id)
            if product is None or not 0 <= index < len(product.images):
                return False
            del product.images[index]
            return True

        return await self._mutate(project.id, apply)

    async def add_product(self) -> Optional[str]:
        """Append a blank product and return its id."""

        project = self.current_project
        if project is None:
            return None
        product = Product(id=new_id(), product_name=DEFAULT_PRODUCT_NAME)

        def apply(target: LineSheetProject) -> bool:
            target.products.append(product)
            return True

        if not await self._mutate(project.id, apply):
            return None
        return product.id

    async def update_product(
        self, product_id: str, fields: Union[Mapping[str, Any], ProductUpdate]
    ) -> bool:
        project = self.current_project
        if project is None or project.find_product(product_id) is None:
            return False
        try:
            update = fields if isinstance(fields, ProductUpdate) else ProductUpdate.model_validate(dict(fields))
        except ValidationError as exc:
            self._record_error(f"Invalid product fields: {exc.error_count()} error(s)")
            self._notify()
            return False
        changes = update.changes()
        if not changes:
            return False

        def apply(target: LineSheetProject) -> bool:
            product = target.find_product(product_id)
            if product is None:
                return False
            for key, value in changes.items():
                setattr(product, key, value)
            return True

        return await self._mutate(project.id, apply)

    async def delete_product(self, product_id: str) -> bool:
        project = self.current_project
        if project is None:
            return False

        def apply(target: LineSheetProject) -> bool:
            remaining = [product for product in target.products if product.id != product_id]
            if len(remaining) == len(target.products):
                return False
            target.products = remaining
            return True

        return await self._mutate(project.id, apply)

    async def reorder_products(self, products: Sequence[Product]) -> bool:
        """Replace the product list with ``products``, a permutation of it."""

        project = self.current_project
        if project is None:
            return False
        ordered = list(products)

        def apply(target: LineSheetProject) -> bool:
            target.products = ordered
            return True

        return await self._mutate(project.id, apply)

    async def move_product(self, index: int, direction: Direction) -> bool:
        """Swap the product at ``index`` with its neighbour in ``direction``."""

        if direction not in ("up", "down"):
            raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
        project = self.current_project
        if project is None:
            return False
        other = index - 1 if direction == "up" else index + 1

        def apply(target: LineSheetProject) -> bool:
            items = target.products
            if not (0 <= index < len(items) and 0 <= other < len(items)):
                return False
            items[index], items[other] = items[other], items[index]
            return True

        return await self._mutate(project.id, apply)
