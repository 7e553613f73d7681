"""FileRecordRepository against SQLite."""
import asyncio
import uuid

import pytest

from secure_uploader.errors import NotFound, ValidationError
from secure_uploader.models.file_record import FileCategory


async def _create(repository, name="doc.pdf", category="other", **kwargs):
    return await repository.create(
        original_name=name,
        mime_type=kwargs.pop("mime_type", "application/pdf"),
        size=kwargs.pop("size", 42),
        blob_id=kwargs.pop("blob_id", uuid.uuid4().hex),
        category=category,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_create_then_find_by_id(repository):
    created = await _create(repository, name="  bill.pdf ", category="utility_bill", description=" March ")

    assert created.id is not None
    assert created.upload_date is not None

    found = await repository.find_by_id(created.id)
    assert found.original_name == "bill.pdf"
    assert found.mime_type == "application/pdf"
    assert found.size == 42
    assert found.category == "utility_bill"
    assert found.description == "March"
    assert found.blob_id == created.blob_id


@pytest.mark.asyncio
async def test_find_by_id_accepts_string_ids(repository):
    created = await _create(repository)
    found = await repository.find_by_id(str(created.id))
    assert found.id == created.id


@pytest.mark.asyncio
async def test_category_defaults_to_other(repository):
    created = await _create(repository, category=None)
    assert created.category == FileCategory.OTHER.value
    created = await _create(repository, category="selfie")
    assert created.category == FileCategory.OTHER.value


@pytest.mark.asyncio
async def test_create_reports_every_invalid_field(repository):
    with pytest.raises(ValidationError) as exc_info:
        await repository.create(
            original_name="   ",
            mime_type="",
            size=-1,
            blob_id="abc",
            description="x" * 1001,
        )
    assert exc_info.value.fields == ["originalName", "mimeType", "size", "description"]


@pytest.mark.asyncio
async def test_create_rejects_long_name(repository):
    with pytest.raises(ValidationError) as exc_info:
        await _create(repository, name="a" * 501)
    assert exc_info.value.fields == ["originalName"]


@pytest.mark.asyncio
async def test_create_requires_blob_reference(repository):
    with pytest.raises(ValidationError) as exc_info:
        await _create(repository, blob_id="")
    assert exc_info.value.fields == ["blobId"]


@pytest.mark.asyncio
async def test_find_by_id_unknown_or_malformed(repository):
    with pytest.raises(NotFound):
        await repository.find_by_id(uuid.uuid4())
    with pytest.raises(NotFound):
        await repository.find_by_id("not-a-uuid")


@pytest.mark.asyncio
async def test_find_all_newest_first_with_category_filter(repository):
    first = await _create(repository, name="a.png", category="passport")
    await asyncio.sleep(0.01)
    await _create(repository, name="b.pdf", category="bank_statement")
    await asyncio.sleep(0.01)
    third = await _create(repository, name="c.png", category="passport")

    everything = await repository.find_all()
    assert [r.original_name for r in everything] == ["c.png", "b.pdf", "a.png"]

    passports = await repository.find_all("passport")
    assert [r.id for r in passports] == [third.id, first.id]

    assert await repository.find_all(FileCategory.ID_BACK) == []
    assert await repository.find_all("unknown") == []


@pytest.mark.asyncio
async def test_find_by_blob_id(repository):
    created = await _create(repository, blob_id="a" * 32)
    await _create(repository, blob_id="b" * 32)

    found = await repository.find_by_blob_id("a" * 32)
    assert found.id == created.id
    assert await repository.find_by_blob_id("c" * 32) is None


@pytest.mark.asyncio
async def test_delete_by_id(repository):
    created = await _create(repository)
    await repository.delete_by_id(created.id)

    with pytest.raises(NotFound):
        await repository.find_by_id(created.id)
    with pytest.raises(NotFound):
        await repository.delete_by_id(created.id)


@pytest.mark.asyncio
async def test_ping(repository):
    await repository.ping()
