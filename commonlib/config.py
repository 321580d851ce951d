"""Configuration helpers for catalog sessions.

Values come from the process environment, optionally primed by a ``.env``
file in the base directory. Keeping the lookup in one place lets the command
line and the tests build a configuration without touching module globals.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
import os

from dotenv import load_dotenv

BACKENDS = ("auto", "firestore", "local")


@dataclass(frozen=True)
class CatalogConfig:
    """Strongly typed configuration for a catalog session."""

    base_dir: Path
    backend: str
    collection: str
    store_path: Path
    store_secret: str
    image_max_dimension: int
    image_quality: int
    log_level: str
    env: Mapping[str, str]

    @property
    def encrypted(self) -> bool:
        return bool(self.store_secret)


def _int_setting(env_map: Mapping[str, str], name: str, default: int, minimum: int, maximum: int) -> int:
    raw = (env_map.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if not minimum <= value <= maximum:
        raise ValueError(f"{name} must be between {minimum} and {maximum}")
    return value


def load_catalog_config(base_dir: Path, env: Mapping[str, str] | None = None) -> CatalogConfig:
    """Load catalog configuration from ``base_dir`` and an env mapping."""

    base_dir = Path(base_dir)
    load_dotenv(base_dir / ".env")
    env_map = dict(os.environ if env is None else env)

    backend = (env_map.get("LINESHEET_BACKEND") or "auto").strip().lower()
    if backend not in BACKENDS:
        raise ValueError(f"LINESHEET_BACKEND must be one of {', '.join(BACKENDS)}")

    store_path = (env_map.get("LINESHEET_STORE_PATH") or "").strip()

    return CatalogConfig(
        base_dir=base_dir,
        backend=backend,
        collection=(env_map.get("LINESHEET_COLLECTION") or "projects").strip(),
        store_path=Path(store_path) if store_path else base_dir / "linesheet.json",
        store_secret=env_map.get("LINESHEET_STORE_SECRET", ""),
        image_max_dimension=_int_setting(env_map, "LINESHEET_IMAGE_MAX_DIMENSION", 600, 16, 10000),
        image_quality=_int_setting(env_map, "LINESHEET_IMAGE_QUALITY", 70, 1, 95),
        log_level=(env_map.get("LINESHEET_LOG_LEVEL") or "WARNING").strip().upper(),
        env=env_map,
    )
