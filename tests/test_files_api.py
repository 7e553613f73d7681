"""HTTP surface of the files API."""
import uuid
from io import BytesIO
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from secure_uploader.errors import StoreUnavailable
from secure_uploader.main import create_app
from tests.conftest import PDF_BYTES, PNG_BYTES


async def _upload(client, filename="passport.png", data=PNG_BYTES, content_type="image/png", **form):
    return await client.post(
        "/files/upload",
        data=form,
        files={"file": (filename, BytesIO(data), content_type)},
    )


@pytest.mark.asyncio
async def test_upload_single_file(client):
    resp = await _upload(client, category="passport", description="Main page")

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "File uploaded successfully"
    file = body["file"]
    assert file["originalName"] == "passport.png"
    assert file["mimeType"] == "image/png"
    assert file["size"] == len(PNG_BYTES)
    assert file["category"] == "passport"
    assert file["description"] == "Main page"
    assert file["sizeFormatted"] == "72 Bytes"
    assert "uploadDate" in file
    assert "blobId" not in file and "blob_id" not in file


@pytest.mark.asyncio
async def test_upload_without_file(client):
    resp = await client.post("/files/upload", data={"category": "passport"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert resp.json()["message"] == "No file uploaded"


@pytest.mark.asyncio
async def test_upload_disallowed_type(client):
    resp = await _upload(client, filename="tool", data=b"\x7fELF", content_type="application/x-executable")

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert body["message"].startswith("Invalid file type: application/x-executable")

    listing = (await client.get("/files")).json()
    assert listing["count"] == 0


@pytest.mark.asyncio
async def test_upload_too_large(client, settings):
    resp = await _upload(client, data=b"x" * (settings.MAX_FILE_SIZE + 10))
    assert resp.status_code == 400
    assert resp.json()["message"] == "File too large. Maximum size is 1MB"


@pytest.mark.asyncio
async def test_upload_multiple_partial_success(client):
    files = [
        ("files", ("front.png", BytesIO(PNG_BYTES), "image/png")),
        ("files", ("back.png", BytesIO(PNG_BYTES), "image/png")),
        ("files", ("bill.pdf", BytesIO(PDF_BYTES), "application/pdf")),
        ("files", ("run.exe", BytesIO(b"MZ"), "application/x-msdownload")),
    ]
    resp = await client.post("/files/upload-multiple", data={"category": "id_front"}, files=files)

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "3 file(s) uploaded successfully"
    assert [f["originalName"] for f in body["files"]] == ["front.png", "back.png", "bill.pdf"]
    assert all(f["category"] == "id_front" for f in body["files"])
    assert len(body["errors"]) == 1
    assert body["errors"][0]["filename"] == "run.exe"

    for f in body["files"]:
        detail = await client.get(f"/files/{f['id']}")
        assert detail.status_code == 200


@pytest.mark.asyncio
async def test_upload_multiple_omits_errors_when_all_succeed(client):
    files = [("files", ("a.txt", BytesIO(b"a"), "text/plain"))]
    body = (await client.post("/files/upload-multiple", files=files)).json()
    assert "errors" not in body
    assert len(body["files"]) == 1


@pytest.mark.asyncio
async def test_upload_multiple_without_files(client):
    resp = await client.post("/files/upload-multiple", data={"category": "other"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "No files uploaded"


@pytest.mark.asyncio
async def test_upload_multiple_too_many_files(client):
    files = [("files", (f"{i}.txt", BytesIO(b"x"), "text/plain")) for i in range(11)]
    resp = await client.post("/files/upload-multiple", files=files)
    assert resp.status_code == 400
    assert (await client.get("/files")).json()["count"] == 0


@pytest.mark.asyncio
async def test_list_and_filter_by_category(client):
    await _upload(client, filename="p.png", category="passport")
    await _upload(client, filename="b.pdf", data=PDF_BYTES, content_type="application/pdf", category="bank_statement")

    listing = (await client.get("/files")).json()
    assert listing["success"] is True
    assert listing["count"] == 2
    assert "category" not in listing

    filtered = (await client.get("/files/category/bank_statement")).json()
    assert filtered["category"] == "bank_statement"
    assert filtered["count"] == 1
    assert filtered["files"][0]["originalName"] == "b.pdf"

    empty = await client.get("/files/category/selfie")
    assert empty.status_code == 200
    assert empty.json()["count"] == 0


@pytest.mark.asyncio
async def test_get_file_metadata(client):
    file_id = (await _upload(client)).json()["file"]["id"]

    resp = await client.get(f"/files/{file_id}")
    assert resp.status_code == 200
    assert resp.json()["file"]["id"] == file_id


@pytest.mark.asyncio
@pytest.mark.parametrize("file_id", [str(uuid.uuid4()), "507f1f77bcf86cd799439011"])
async def test_unknown_id_is_404(client, file_id):
    for path in (f"/files/{file_id}", f"/files/{file_id}/download", f"/files/{file_id}/view"):
        resp = await client.get(path)
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "File not found", "error": "File not found"}
    resp = await client.delete(f"/files/{file_id}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_download_and_view(client):
    file_id = (await _upload(client, filename="bank statement.pdf", data=PDF_BYTES, content_type="application/pdf")).json()["file"]["id"]

    download = await client.get(f"/files/{file_id}/download")
    assert download.status_code == 200
    assert download.content == PDF_BYTES
    assert download.headers["content-type"] == "application/pdf"
    assert download.headers["content-length"] == str(len(PDF_BYTES))
    assert download.headers["content-disposition"] == 'attachment; filename="bank%20statement.pdf"'

    view = await client.get(f"/files/{file_id}/view")
    assert view.status_code == 200
    assert view.content == PDF_BYTES
    assert view.headers["content-disposition"] == 'inline; filename="bank%20statement.pdf"'


@pytest.mark.asyncio
async def test_delete(client):
    file_id = (await _upload(client)).json()["file"]["id"]

    resp = await client.delete(f"/files/{file_id}")
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "File deleted successfully"}

    assert (await client.get(f"/files/{file_id}")).status_code == 404
    assert (await client.get(f"/files/{file_id}/download")).status_code == 404
    assert (await client.delete(f"/files/{file_id}")).status_code == 404


@pytest.mark.asyncio
async def test_store_unavailable_is_503(app, client):
    app.state.file_service.repository.find_all = AsyncMock(side_effect=StoreUnavailable("database down"))

    resp = await client.get("/files")
    assert resp.status_code == 503
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "database down"


@pytest.mark.asyncio
async def test_unexpected_error_is_500(app):
    app.state.file_service.repository.find_all = AsyncMock(side_effect=RuntimeError("boom"))

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as c:
        resp = await c.get("/files")

    assert resp.status_code == 500
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_production_hides_error_detail(settings):
    app = create_app(settings.model_copy(update={"ENVIRONMENT": "production"}))
    await app.state.database.create_all()
    try:
        app.state.file_service.repository.find_all = AsyncMock(side_effect=StoreUnavailable("secret dsn"))
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
            missing = await c.get(f"/files/{uuid.uuid4()}")
            unavailable = await c.get("/files")
    finally:
        await app.state.database.dispose()

    assert missing.json() == {"success": False, "message": "File not found"}
    assert unavailable.status_code == 503
    assert "error" not in unavailable.json()
