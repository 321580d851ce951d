"""Command line front-end for editing line sheet catalogs.

Each invocation is one editing session: it loads every project, selects the
one named on the command line and runs a single operation. Results are
printed as JSON; failures go to stderr with exit status 1.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
import os
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

from commonlib.config import load_catalog_config
from commonlib.logging_config import setup_logging
from commonlib.storage import StoreError

from .bootstrap import create_catalog_store
from .catalog import CatalogStore
from .models import LineSheetProject
from .services.images import ImageEncodingError, decode_data_uri

Handler = Callable[[CatalogStore, argparse.Namespace], Awaitable[int]]


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def _fail(store: CatalogStore, fallback: str = "nothing changed") -> int:
    print(f"error: {store.error or fallback}", file=sys.stderr)
    return 1


def _summary(project: LineSheetProject) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "createdAt": project.created_at.isoformat(),
        "products": len(project.products),
    }


def _details(project: LineSheetProject) -> dict[str, Any]:
    doc = project.to_document()
    doc["createdAt"] = project.created_at.isoformat()
    doc["logoUrl"] = bool(project.logo_url)
    for product in doc["products"]:
        product["images"] = len(product["images"])
        product.pop("logoUrl", None)
    return doc


def _image_suffix(mime_type: str) -> str:
    if mime_type == "image/jpeg":
        return ".jpg"
    return mimetypes.guess_extension(mime_type) or ".bin"


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------
async def cmd_projects(store: CatalogStore, args: argparse.Namespace) -> int:
    _emit([_summary(project) for project in store.projects])
    return 0


async def cmd_create(store: CatalogStore, args: argparse.Namespace) -> int:
    project_id = await store.create_project(args.name)
    if project_id is None:
        return _fail(store)
    _emit(_summary(store.current_project))
    return 0


async def cmd_show(store: CatalogStore, args: argparse.Namespace) -> int:
    _emit(_details(store.current_project))
    return 0


async def cmd_delete(store: CatalogStore, args: argparse.Namespace) -> int:
    if not await store.delete_project(args.project):
        return _fail(store)
    _emit({"deleted": args.project})
    return 0


async def cmd_details(store: CatalogStore, args: argparse.Namespace) -> int:
    fields = {
        "name": args.name,
        "designer_name": args.designer,
        "collection": args.collection,
        "phone": args.phone,
        "email": args.email,
    }
    if not await store.update_project_details(fields):
        return _fail(store)
    _emit(_summary(store.current_project))
    return 0


async def cmd_logo(store: CatalogStore, args: argparse.Namespace) -> int:
    if args.clear == bool(args.file):
        print("error: give a logo file or --clear", file=sys.stderr)
        return 2
    if not await store.update_logo(None if args.clear else Path(args.file)):
        return _fail(store)
    _emit({"logo": bool(store.current_project.logo_url)})
    return 0


async def cmd_import_csv(store: CatalogStore, args: argparse.Namespace) -> int:
    text = Path(args.file).read_text(encoding="utf-8-sig")
    if not await store.import_csv(text):
        return _fail(store)
    _emit(_summary(store.current_project))
    return 0


async def cmd_add_product(store: CatalogStore, args: argparse.Namespace) -> int:
    product_id = await store.add_product()
    if product_id is None:
        return _fail(store)
    _emit({"id": product_id})
    return 0


async def cmd_update_product(store: CatalogStore, args: argparse.Namespace) -> int:
    fields = {
        "product_code": args.code,
        "product_name": args.name,
        "content": args.content,
        "size": args.size,
        "price": args.price,
        "tax": args.tax,
    }
    if not await store.update_product(args.product, fields):
        return _fail(store)
    _emit(_details(store.current_project)["products"])
    return 0


async def cmd_delete_product(store: CatalogStore, args: argparse.Namespace) -> int:
    if not await store.delete_product(args.product):
        return _fail(store)
    _emit(_summary(store.current_project))
    return 0


async def cmd_move_product(store: CatalogStore, args: argparse.Namespace) -> int:
    if not await store.move_product(args.index, args.direction):
        return _fail(store)
    _emit([product.id for product in store.current_project.products])
    return 0


async def cmd_add_images(store: CatalogStore, args: argparse.Namespace) -> int:
    added = await store.add_images_to_product(args.product, [Path(name) for name in args.files])
    if store.error:
        print(f"warning: {store.error}", file=sys.stderr)
    if not added:
        return _fail(store)
    product = store.current_project.find_product(args.product)
    _emit({"id": product.id, "images": len(product.images)})
    return 0


async def cmd_remove_image(store: CatalogStore, args: argparse.Namespace) -> int:
    if not await store.remove_image_from_product(args.product, args.index):
        return _fail(store)
    product = store.current_project.find_product(args.product)
    _emit({"id": product.id, "images": len(product.images)})
    return 0


async def cmd_export_images(store: CatalogStore, args: argparse.Namespace) -> int:
    target = Path(args.directory)
    target.mkdir(parents=True, exist_ok=True)
    project = store.current_project
    written: list[str] = []
    for position, product in enumerate(project.products, start=1):
        stem = product.product_code or f"product-{position}"
        for number, data_uri in enumerate(product.images, start=1):
            try:
                mime_type, payload = decode_data_uri(data_uri)
            except ImageEncodingError as exc:
                print(f"warning: skipping image {number} of {stem}: {exc}", file=sys.stderr)
                continue
            path = target / f"{stem}-{number}{_image_suffix(mime_type)}"
            path.write_bytes(payload)
            written.append(str(path))
    _emit(written)
    return 0


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="linesheet", description="Edit line sheet catalogs.")
    parser.add_argument("--base-dir", default=None, help="directory holding .env and credentials (default: cwd)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log debug output to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    def command(name: str, handler: Handler, help_text: str, *, project: bool = True) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        if project:
            p.add_argument("project", help="project id")
        p.set_defaults(handler=handler, needs_project=project)
        return p

    command("projects", cmd_projects, "list projects, newest first", project=False)

    p = command("create", cmd_create, "create a project", project=False)
    p.add_argument("name")

    command("show", cmd_show, "show a project")
    # The store deletes uncached ids too, so no selection is needed.
    command("delete", cmd_delete, "delete a project").set_defaults(needs_project=False)

    p = command("details", cmd_details, "update project header details")
    p.add_argument("--name")
    p.add_argument("--designer")
    p.add_argument("--collection")
    p.add_argument("--phone")
    p.add_argument("--email")

    p = command("logo", cmd_logo, "set or clear the project logo")
    p.add_argument("file", nargs="?")
    p.add_argument("--clear", action="store_true")

    p = command("import-csv", cmd_import_csv, "replace all products from a CSV file")
    p.add_argument("file")

    command("add-product", cmd_add_product, "append a blank product")

    p = command("update-product", cmd_update_product, "edit product fields")
    p.add_argument("product", help="product id")
    for flag in ("--code", "--name", "--content", "--size", "--price", "--tax"):
        p.add_argument(flag)

    p = command("delete-product", cmd_delete_product, "delete a product")
    p.add_argument("product", help="product id")

    p = command("move-product", cmd_move_product, "move a product up or down")
    p.add_argument("index", type=int)
    p.add_argument("direction", choices=("up", "down"))

    p = command("add-images", cmd_add_images, "attach image files to a product")
    p.add_argument("product", help="product id")
    p.add_argument("files", nargs="+")

    p = command("remove-image", cmd_remove_image, "remove a product image by position")
    p.add_argument("product", help="product id")
    p.add_argument("index", type=int)

    p = command("export-images", cmd_export_images, "write product images to a directory")
    p.add_argument("directory")

    return parser


async def run_session(store: CatalogStore, args: argparse.Namespace) -> int:
    if not await store.load_all():
        return _fail(store)
    if args.needs_project and not await store.select_project(args.project):
        return _fail(store)
    return await args.handler(store, args)


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    base_dir = Path(args.base_dir or os.getcwd())
    try:
        config = load_catalog_config(base_dir)
    except ValueError as exc:
        parser.error(str(exc))
    setup_logging("DEBUG" if args.verbose else config.log_level, stream=sys.stderr)
    try:
        store = create_catalog_store(config)
    except StoreError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return asyncio.run(run_session(store, args))


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
