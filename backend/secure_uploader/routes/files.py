"""Files API routes."""
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response

from secure_uploader.config import Settings
from secure_uploader.errors import ValidationError
from secure_uploader.schemas.file import (
    DeleteResponse,
    FileDetailResponse,
    FileListResponse,
    FileOut,
    FileUploadResponse,
    MultiUploadResponse,
    UploadError,
)
from secure_uploader.services.file_service import FileService, UploadPayload
from secure_uploader.utils import content_disposition

router = APIRouter(prefix="/files", tags=["files"])


def get_file_service(request: Request) -> FileService:
    return request.app.state.file_service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def _read_upload(file: UploadFile, settings: Settings, category, description) -> UploadPayload:
    # Read one byte past the limit so oversized uploads are caught without buffering them whole.
    data = await file.read(settings.MAX_FILE_SIZE + 1)
    return UploadPayload(
        filename=file.filename or "",
        content_type=file.content_type or "",
        data=data,
        category=category,
        description=description,
    )


@router.post("/upload", response_model=FileUploadResponse, status_code=201)
async def upload_file(
    file: Optional[UploadFile] = File(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    service: FileService = Depends(get_file_service),
    settings: Settings = Depends(get_settings),
):
    """Upload a single file (multipart field `file`)."""
    if file is None:
        raise ValidationError("No file uploaded", fields=["file"])
    payload = await _read_upload(file, settings, category, description)
    record = await service.upload(payload)
    return FileUploadResponse(file=FileOut.model_validate(record))


@router.post(
    "/upload-multiple",
    response_model=MultiUploadResponse,
    response_model_exclude_none=True,
    status_code=201,
)
async def upload_multiple_files(
    files: Optional[list[UploadFile]] = File(None),
    category: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    service: FileService = Depends(get_file_service),
    settings: Settings = Depends(get_settings),
):
    """Upload up to MAX_FILES_PER_UPLOAD files (multipart field `files`)."""
    if not files:
        raise ValidationError("No files uploaded", fields=["files"])
    if len(files) > settings.MAX_FILES_PER_UPLOAD:
        raise ValidationError(
            f"Too many files. Maximum is {settings.MAX_FILES_PER_UPLOAD} per upload",
            fields=["files"],
        )

    payloads = [await _read_upload(f, settings, category, description) for f in files]
    result = await service.upload_many(payloads)

    return MultiUploadResponse(
        message=f"{len(result.files)} file(s) uploaded successfully",
        files=[FileOut.model_validate(r) for r in result.files],
        errors=[UploadError(filename=e.filename, error=e.error) for e in result.errors] or None,
    )


@router.get("", response_model=FileListResponse, response_model_exclude_none=True)
async def list_files(service: FileService = Depends(get_file_service)):
    """List all files, newest first."""
    records = await service.list()
    return FileListResponse(count=len(records), files=[FileOut.model_validate(r) for r in records])


@router.get("/category/{category}", response_model=FileListResponse)
async def list_files_by_category(category: str, service: FileService = Depends(get_file_service)):
    """List files of one category, newest first. Unknown categories give an empty list."""
    records = await service.list(category)
    return FileListResponse(
        category=category,
        count=len(records),
        files=[FileOut.model_validate(r) for r in records],
    )


@router.get("/{file_id}", response_model=FileDetailResponse)
async def get_file_metadata(file_id: str, service: FileService = Depends(get_file_service)):
    """Get file metadata by ID."""
    record = await service.get(file_id)
    return FileDetailResponse(file=FileOut.model_validate(record))


async def _file_response(service: FileService, file_id: str, disposition: str) -> Response:
    record, data = await service.read(file_id)
    return Response(
        content=data,
        media_type=record.mime_type,
        headers={
            "Content-Disposition": content_disposition(disposition, record.original_name),
            "Content-Length": str(len(data)),
        },
    )


@router.get("/{file_id}/download")
async def download_file(file_id: str, service: FileService = Depends(get_file_service)):
    """Download a file as an attachment."""
    return await _file_response(service, file_id, "attachment")


@router.get("/{file_id}/view")
async def view_file(file_id: str, service: FileService = Depends(get_file_service)):
    """Serve a file inline for preview in the browser."""
    return await _file_response(service, file_id, "inline")


@router.delete("/{file_id}", response_model=DeleteResponse)
async def delete_file(file_id: str, service: FileService = Depends(get_file_service)):
    """Delete a file and its record."""
    await service.delete(file_id)
    return DeleteResponse()
