"""File-backed document storage for offline catalog sessions.

The helpers here keep a whole collection of documents in one JSON file keyed
by document id. Writes are atomic (temp file plus ``os.replace``) and the
previous versions are kept as rotating ``.bakN`` files. When the primary file
is unreadable the newest readable backup is used instead, which keeps a
working copy around after abrupt shutdowns.

Firestore's native timestamp values are stored losslessly as
``{"__timestamp__": <microseconds since epoch>}`` so documents read back from
disk look exactly like documents read from Firestore.
"""
from __future__ import annotations

import base64
import datetime as _dt
import hashlib
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken

from .timestamps import from_epoch_micros, to_epoch_micros

logger = logging.getLogger(__name__)

TIMESTAMP_KEY = "__timestamp__"


class StoreError(RuntimeError):
    """Raised when a persistence operation fails."""


def _encode_value(value: Any) -> Any:
    if isinstance(value, _dt.datetime):
        return {TIMESTAMP_KEY: to_epoch_micros(value)}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _decode_object(obj: Dict[str, Any]) -> Any:
    if len(obj) == 1 and TIMESTAMP_KEY in obj:
        return from_epoch_micros(int(obj[TIMESTAMP_KEY]))
    return obj


def dumps_documents(data: Dict[str, Any]) -> str:
    return json.dumps(data, indent=2, default=_encode_value)


def loads_documents(raw: str) -> Dict[str, Any] | None:
    try:
        data = json.loads(raw, object_hook=_decode_object)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


class JsonDocumentStore:
    """JSON document collection keyed by identifier.

    All public methods take an internal lock around the read-modify-write
    cycle, so the store may be driven from worker threads.
    """

    def __init__(self, path: Path | str, backups: int = 2):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.backups = max(0, backups)
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------
    def _candidate_paths(self) -> list[Path]:
        paths = [self.path]
        for idx in range(1, self.backups + 1):
            paths.append(self.path.with_suffix(self.path.suffix + f".bak{idx}"))
        return paths

    def _read_json(self, path: Path) -> Dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:  # pragma: no cover - propagated for visibility
            raise StoreError(str(exc)) from exc
        if not raw:
            return {}
        return loads_documents(raw)

    def _write_bytes(self, path: Path, payload: bytes) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            with tmp_path.open("wb") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:  # pragma: no cover - bubbled up to callers
            raise StoreError(str(exc)) from exc
        finally:
            tmp_path.unlink(missing_ok=True)

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:
        self._write_bytes(path, dumps_documents(data).encode("utf-8"))

    def _rotate_backups(self) -> None:
        if self.backups <= 0:
            return
        for idx in range(self.backups, 0, -1):
            if idx == 1:
                src = self.path
            else:
                src = self.path.with_suffix(self.path.suffix + f".bak{idx - 1}")
            dest = self.path.with_suffix(self.path.suffix + f".bak{idx}")
            if src.exists():
                try:
                    os.replace(src, dest)
                except OSError:
                    # Keep going; the new write must still land.
                    continue

    def _load(self) -> Dict[str, Any]:
        for candidate in self._candidate_paths():
            data = self._read_json(candidate)
            if data is not None:
                if candidate != self.path:
                    logger.warning("Recovered document store from backup %s", candidate.name)
                return data
        return {}

    def _dump(self, data: Dict[str, Any]) -> None:
        self._rotate_backups()
        self._write_json(self.path, data)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def get(self, key: str, default: Any | None = None) -> Any:
        with self._lock:
            return self._load().get(key, default)

    def put(self, key: str, value: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            data = self._load()
            data[key] = value
            self._dump(data)
        return value

    def remove(self, key: str) -> bool:
        with self._lock:
            data = self._load()
            if key not in data:
                return False
            del data[key]
            self._dump(data)
            return True

    def all(self) -> Dict[str, Any]:
        with self._lock:
            return self._load()


def _derive_key(secret: str) -> bytes:
    if not secret:
        secret = "linesheet-dev-secret"
    digest = hashlib.sha256(secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


class EncryptedJsonDocumentStore(JsonDocumentStore):
    """Document store that encrypts the whole file with Fernet."""

    def __init__(self, path: Path | str, secret: str, backups: int = 2):
        super().__init__(path, backups=backups)
        self._fernet = Fernet(_derive_key(secret))

    def _read_json(self, path: Path) -> Dict[str, Any] | None:  # type: ignore[override]
        if not path.exists():
            return None
        try:
            blob = path.read_bytes()
        except OSError as exc:  # pragma: no cover - unlikely in tests
            raise StoreError(str(exc)) from exc
        if not blob:
            return {}
        try:
            decrypted = self._fernet.decrypt(blob)
        except InvalidToken:
            return None
        return loads_documents(decrypted.decode("utf-8"))

    def _write_json(self, path: Path, data: Dict[str, Any]) -> None:  # type: ignore[override]
        payload = dumps_documents(data).encode("utf-8")
        self._write_bytes(path, self._fernet.encrypt(payload))
