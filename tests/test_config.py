from pathlib import Path

import pytest

from commonlib.config import load_catalog_config
from commonlib.timestamps import from_native, to_native, utcnow


def test_defaults(tmp_path):
    config = load_catalog_config(tmp_path, {})
    assert config.backend == "auto"
    assert config.collection == "projects"
    assert config.store_path == tmp_path / "linesheet.json"
    assert config.image_max_dimension == 600
    assert config.image_quality == 70
    assert config.log_level == "WARNING"
    assert config.encrypted is False


def test_explicit_values(tmp_path):
    env = {
        "LINESHEET_BACKEND": "Local",
        "LINESHEET_COLLECTION": "linesheets",
        "LINESHEET_STORE_PATH": str(tmp_path / "data" / "store.json"),
        "LINESHEET_STORE_SECRET": "k",
        "LINESHEET_IMAGE_MAX_DIMENSION": "800",
        "LINESHEET_IMAGE_QUALITY": "85",
        "LINESHEET_LOG_LEVEL": "debug",
    }
    config = load_catalog_config(tmp_path, env)
    assert config.backend == "local"
    assert config.collection == "linesheets"
    assert config.store_path == Path(tmp_path / "data" / "store.json")
    assert config.encrypted is True
    assert (config.image_max_dimension, config.image_quality) == (800, 85)
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "env",
    [
        {"LINESHEET_BACKEND": "mongo"},
        {"LINESHEET_IMAGE_QUALITY": "high"},
        {"LINESHEET_IMAGE_QUALITY": "150"},
    ],
)
def test_invalid_values(tmp_path, env):
    with pytest.raises(ValueError):
        load_catalog_config(tmp_path, env)


def test_dotenv_file_is_loaded(tmp_path, monkeypatch):
    monkeypatch.delenv("LINESHEET_COLLECTION", raising=False)
    (tmp_path / ".env").write_text("LINESHEET_COLLECTION=from-dotenv\n")
    try:
        assert load_catalog_config(tmp_path).collection == "from-dotenv"
    finally:
        monkeypatch.delenv("LINESHEET_COLLECTION", raising=False)


def test_native_timestamp_round_trip():
    now = utcnow()
    assert from_native(to_native(now)) == now
    naive = now.replace(tzinfo=None)
    assert to_native(naive) == now
