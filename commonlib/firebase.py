"""Firebase credential discovery and Firestore client setup."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional
import json
import logging

import firebase_admin
from firebase_admin import credentials, firestore_async

logger = logging.getLogger(__name__)

CREDENTIAL_FILENAMES = ("firebase-auth.json", "clientSecret.json")
DEFAULT_APP_NAME = "linesheet"


def _load_service_account_file(path: Path) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.warning("Ignoring unreadable credentials file %s", path)
        return None
    if not isinstance(data, dict) or data.get("type") != "service_account":
        return None
    return data


def load_service_account(base_dir: Path, env: Mapping[str, str] | None = None) -> Optional[dict[str, Any]]:
    """Load Firebase service account credentials.

    Lookup order: the file named by ``FIREBASE_CREDENTIALS_FILE``, then the
    well-known file names in ``base_dir``, then the ``FIREBASE_PROJECT_ID`` /
    ``FIREBASE_PRIVATE_KEY`` / ``FIREBASE_CLIENT_EMAIL`` variables.
    """

    base_dir = Path(base_dir)
    env_map = dict(env or {})

    explicit = (env_map.get("FIREBASE_CREDENTIALS_FILE") or "").strip()
    candidates = [Path(explicit)] if explicit else []
    candidates.extend(base_dir / name for name in CREDENTIAL_FILENAMES)
    for candidate in candidates:
        data = _load_service_account_file(candidate)
        if data:
            return data

    project_id = (env_map.get("FIREBASE_PROJECT_ID") or "").strip()
    private_key = (env_map.get("FIREBASE_PRIVATE_KEY") or "").strip()
    client_email = (env_map.get("FIREBASE_CLIENT_EMAIL") or "").strip()

    if project_id and private_key and client_email:
        return {
            "type": "service_account",
            "project_id": project_id,
            "private_key": private_key.replace("\\n", "\n"),
            "client_email": client_email,
            "token_uri": "https://oauth2.googleapis.com/token",
        }

    return None


def init_firestore(
    base_dir: Path,
    env: Mapping[str, str] | None = None,
    *,
    app_name: str = DEFAULT_APP_NAME,
):
    """Return an async Firestore client, or ``None`` without credentials.

    The Firebase app is created once per ``app_name`` and reused afterwards.
    """

    service_account = load_service_account(base_dir, env)
    if service_account is None:
        logger.info("No Firebase credentials found; Firestore disabled")
        return None
    try:
        app = firebase_admin.get_app(app_name)
    except ValueError:
        app = firebase_admin.initialize_app(
            credentials.Certificate(service_account),
            name=app_name,
        )
    return firestore_async.client(app)
