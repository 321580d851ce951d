import json
from io import BytesIO

import pytest
from PIL import Image

from linesheet import cli


@pytest.fixture
def local_backend(tmp_path, monkeypatch):
    monkeypatch.setenv("LINESHEET_BACKEND", "local")
    monkeypatch.setenv("LINESHEET_STORE_PATH", str(tmp_path / "catalog.json"))
    monkeypatch.delenv("LINESHEET_STORE_SECRET", raising=False)
    return tmp_path


def invoke(capsys, base_dir, *argv):
    code = cli.main(["--base-dir", str(base_dir), *argv])
    captured = capsys.readouterr()
    payload = json.loads(captured.out) if code == 0 and captured.out.strip() else None
    return code, payload, captured.err


def test_project_lifecycle(local_backend, capsys):
    code, created, _ = invoke(capsys, local_backend, "create", "Autumn")
    assert code == 0
    project_id = created["id"]

    csv_file = local_backend / "products.csv"
    csv_file.write_text("code,name,content,size,price,tax\nA1,Shirt,Cotton,M,100,18\nA2,Skirt,Linen,S,80,18\n")
    code, summary, _ = invoke(capsys, local_backend, "import-csv", project_id, str(csv_file))
    assert code == 0 and summary["products"] == 2

    code, details, _ = invoke(capsys, local_backend, "details", project_id, "--designer", "Ada")
    assert code == 0

    code, order, _ = invoke(capsys, local_backend, "move-product", project_id, "1", "up")
    assert code == 0

    code, shown, _ = invoke(capsys, local_backend, "show", project_id)
    assert code == 0
    assert shown["designerName"] == "Ada"
    assert [p["productCode"] for p in shown["products"]] == ["A2", "A1"]
    assert [p["id"] for p in shown["products"]] == order

    code, listed, _ = invoke(capsys, local_backend, "projects")
    assert [p["id"] for p in listed] == [project_id]

    code, deleted, _ = invoke(capsys, local_backend, "delete", project_id)
    assert code == 0 and deleted == {"deleted": project_id}
    code, listed, _ = invoke(capsys, local_backend, "projects")
    assert listed == []


def test_images_are_attached_and_exported(local_backend, capsys):
    image_path = local_backend / "photo.png"
    buffer = BytesIO()
    Image.new("RGB", (900, 900), (10, 120, 200)).save(buffer, format="PNG")
    image_path.write_bytes(buffer.getvalue())

    _, created, _ = invoke(capsys, local_backend, "create", "Photos")
    project_id = created["id"]
    _, product, _ = invoke(capsys, local_backend, "add-product", project_id)
    invoke(capsys, local_backend, "update-product", project_id, product["id"], "--code", "P1")

    code, result, _ = invoke(capsys, local_backend, "add-images", project_id, product["id"], str(image_path))
    assert code == 0 and result["images"] == 1

    export_dir = local_backend / "export"
    code, written, _ = invoke(capsys, local_backend, "export-images", project_id, str(export_dir))
    assert code == 0
    assert [path.split("/")[-1] for path in written] == ["P1-1.jpg"]
    with Image.open(export_dir / "P1-1.jpg") as img:
        assert img.size == (600, 600)

    code, result, _ = invoke(capsys, local_backend, "remove-image", project_id, product["id"], "0")
    assert code == 0 and result["images"] == 0


def test_unknown_project_fails(local_backend, capsys):
    code, _, err = invoke(capsys, local_backend, "show", "missing")
    assert code == 1
    assert "Project missing not found" in err


def test_noop_reports_failure(local_backend, capsys):
    _, created, _ = invoke(capsys, local_backend, "create", "Empty")
    code, _, err = invoke(capsys, local_backend, "move-product", created["id"], "0", "up")
    assert code == 1
    assert "nothing changed" in err


def test_encrypted_local_store(local_backend, capsys, monkeypatch):
    monkeypatch.setenv("LINESHEET_STORE_SECRET", "s3cret")
    _, created, _ = invoke(capsys, local_backend, "create", "Private")
    raw = (local_backend / "catalog.json").read_bytes()
    assert b"Private" not in raw
    _, listed, _ = invoke(capsys, local_backend, "projects")
    assert [p["id"] for p in listed] == [created["id"]]
