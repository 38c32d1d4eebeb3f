"""File store REST API endpoints."""
import asyncio
import base64
import binascii
from urllib.parse import quote

from fastapi import APIRouter, File, Query, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from drive.storage import (
    CopyFolderResult,
    CopyResult,
    CreateFileResult,
    CreateFolderResult,
    DeleteResult,
    EditResult,
    ErrorResponse,
    FileStore,
    InvalidInput,
    MoveResult,
    PaginatedItems,
    RenameRequest,
    RenameResult,
    TransferRequest,
    UploadFolderResult,
    UploadResult,
    guess_mime_type,
)

router = APIRouter(prefix="/files", tags=["files"])

ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    415: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


class FolderDownload(BaseModel):
    """Every readable file of a folder, base64 encoded."""

    path: str
    files: dict[str, str] = Field(description="Folder-relative path to base64 content")
    skipped: list[str] = Field(default_factory=list)


class FolderUpload(BaseModel):
    """Batch of files to write into one folder."""

    files: dict[str, str] = Field(description="Folder-relative path to base64 content")


def _store(request: Request) -> FileStore:
    return request.app.state.file_store


def _decode_files(files: dict[str, str]) -> dict[str, bytes]:
    decoded: dict[str, bytes] = {}
    for name, content in files.items():
        try:
            decoded[name] = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidInput("Invalid base64 content", debug=f"name={name!r}") from e
    return decoded


def _content_disposition(name: str) -> str:
    """Build an attachment header that survives non-latin-1 file names.

    Header values are encoded as latin-1, so the real name travels in the
    RFC 5987 ``filename*`` parameter with an ASCII-only ``filename`` fallback.
    """
    fallback = name.encode("ascii", "ignore").decode("ascii").replace('"', "") or "download"
    encoded = quote(name, safe="")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{encoded}"


# === Queries ===


@router.get(
    "",
    response_model=PaginatedItems,
    responses=ERROR_RESPONSES,
    summary="List the root directory",
)
async def list_root(
    request: Request,
    page: int = Query(default=1, description="1-based page number"),
    limit: int = Query(default=50, description="Page size, clamped to [10, 100]"),
) -> PaginatedItems:
    """List the immediate entries of the root directory.

    Args:
        request: FastAPI request object.
        page: Requested page.
        limit: Requested page size.

    Returns:
        One page of entries, directories first.
    """
    return await asyncio.to_thread(_store(request).list_items, None, page, limit)


@router.get(
    "/search",
    response_model=PaginatedItems,
    responses=ERROR_RESPONSES,
    summary="Search entries by name",
)
async def search(
    request: Request,
    q: str = Query(default="", description="Case-insensitive name substring"),
    page: int = Query(default=1),
    limit: int = Query(default=50, description="Page size, clamped to [10, 500]"),
) -> PaginatedItems:
    """Search every entry below the root by name.

    Args:
        request: FastAPI request object.
        q: Substring to look for, 1-255 characters.
        page: Requested page.
        limit: Requested page size.

    Returns:
        One page of matching entries.
    """
    return await asyncio.to_thread(_store(request).search, q, page, limit)


@router.get(
    "/download/{path:path}",
    responses=ERROR_RESPONSES,
    summary="Download a file",
)
async def download(request: Request, path: str) -> Response:
    """Return a file's raw bytes with a media type guessed from its name.

    Args:
        request: FastAPI request object.
        path: File relative to the root.

    Returns:
        Raw file response.
    """
    data = await asyncio.to_thread(_store(request).download, path)
    name = path.rstrip("/").rsplit("/", 1)[-1]
    return Response(
        content=data,
        media_type=guess_mime_type(name),
        headers={"Content-Disposition": _content_disposition(name)},
    )


@router.get(
    "/download-folder/{path:path}",
    response_model=FolderDownload,
    responses=ERROR_RESPONSES,
    summary="Download a folder",
)
async def download_folder(request: Request, path: str) -> FolderDownload:
    """Return every readable file below a folder.

    Args:
        request: FastAPI request object.
        path: Folder relative to the root.

    Returns:
        Base64 encoded contents keyed by folder-relative path.
    """
    contents = await asyncio.to_thread(_store(request).download_folder, path)
    return FolderDownload(
        path=contents.path,
        files={
            name: base64.b64encode(data).decode("ascii")
            for name, data in contents.files.items()
        },
        skipped=contents.skipped,
    )


@router.get(
    "/{path:path}",
    response_model=PaginatedItems,
    responses=ERROR_RESPONSES,
    summary="List a directory",
)
async def list_directory(
    request: Request,
    path: str,
    page: int = Query(default=1),
    limit: int = Query(default=50),
) -> PaginatedItems:
    """List the immediate entries of a directory.

    Args:
        request: FastAPI request object.
        path: Directory relative to the root.
        page: Requested page.
        limit: Requested page size.

    Returns:
        One page of entries, directories first.
    """
    return await asyncio.to_thread(_store(request).list_items, path, page, limit)


# === Mutations ===


@router.post(
    "/upload/{path:path}",
    response_model=UploadResult,
    responses=ERROR_RESPONSES,
    summary="Upload a file",
)
async def upload(
    request: Request,
    path: str,
    file: UploadFile = File(..., description="File content"),
) -> UploadResult:
    """Stream a multipart upload into a file, replacing any existing one.

    Args:
        request: FastAPI request object.
        path: Destination file relative to the root.
        file: Uploaded file part.

    Returns:
        Upload result with size, media type and etag.
    """
    try:
        return await asyncio.to_thread(_store(request).upload, path, file.file)
    finally:
        await file.close()


@router.post(
    "/upload-folder/{path:path}",
    response_model=UploadFolderResult,
    responses=ERROR_RESPONSES,
    summary="Upload a batch of files into a folder",
)
async def upload_folder(
    request: Request,
    path: str,
    body: FolderUpload,
) -> UploadFolderResult:
    """Write base64 encoded files into a folder, best effort.

    Args:
        request: FastAPI request object.
        path: Target folder relative to the root.
        body: Files keyed by folder-relative path.

    Returns:
        Count of written files and the names that failed.

    Raises:
        InvalidInput: If any content is not valid base64.
    """
    files = _decode_files(body.files)
    return await asyncio.to_thread(_store(request).upload_folder, path, files)


@router.post(
    "/mkdir/{path:path}",
    response_model=CreateFolderResult,
    responses=ERROR_RESPONSES,
    summary="Create a folder",
)
async def create_folder(request: Request, path: str) -> CreateFolderResult:
    """Create a directory and any missing parents."""
    return await asyncio.to_thread(_store(request).create_folder, path)


@router.post(
    "/create-file/{path:path}",
    response_model=CreateFileResult,
    responses=ERROR_RESPONSES,
    summary="Create an empty file",
)
async def create_file(request: Request, path: str) -> CreateFileResult:
    """Create an empty file and any missing parents."""
    return await asyncio.to_thread(_store(request).create_file, path)


@router.put(
    "/edit/{path:path}",
    response_model=EditResult,
    responses=ERROR_RESPONSES,
    summary="Overwrite a text file",
)
async def edit(request: Request, path: str) -> EditResult:
    """Replace an existing text file with the raw request body.

    Args:
        request: FastAPI request object; the body is UTF-8 text.
        path: File relative to the root.

    Returns:
        Edit result with the new size and etag.

    Raises:
        InvalidInput: If the body is not valid UTF-8.
    """
    raw = await request.body()
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidInput("Content must be UTF-8 text", debug=str(e)) from e
    return await asyncio.to_thread(_store(request).edit, path, content)


@router.delete(
    "/{path:path}",
    response_model=DeleteResult,
    responses=ERROR_RESPONSES,
    summary="Delete a file or folder",
)
async def delete(request: Request, path: str) -> DeleteResult:
    """Delete a file, or a folder with everything below it."""
    return await asyncio.to_thread(_store(request).delete, path)


@router.post("/rename", response_model=RenameResult, responses=ERROR_RESPONSES)
async def rename(request: Request, body: RenameRequest) -> RenameResult:
    """Rename a file within the root."""
    return await asyncio.to_thread(_store(request).rename, body.old_path, body.new_path)


@router.post("/rename-folder", response_model=RenameResult, responses=ERROR_RESPONSES)
async def rename_folder(request: Request, body: RenameRequest) -> RenameResult:
    """Rename a folder within the root."""
    return await asyncio.to_thread(
        _store(request).rename_folder, body.old_path, body.new_path,
    )


@router.post("/move", response_model=MoveResult, responses=ERROR_RESPONSES)
async def move(request: Request, body: TransferRequest) -> MoveResult:
    """Move a file, creating destination parents."""
    return await asyncio.to_thread(_store(request).move, body.source, body.destination)


@router.post("/move-folder", response_model=MoveResult, responses=ERROR_RESPONSES)
async def move_folder(request: Request, body: TransferRequest) -> MoveResult:
    """Move a folder, creating destination parents."""
    return await asyncio.to_thread(
        _store(request).move_folder, body.source, body.destination,
    )


@router.post("/copy", response_model=CopyResult, responses=ERROR_RESPONSES)
async def copy(request: Request, body: TransferRequest) -> CopyResult:
    """Duplicate a single file."""
    return await asyncio.to_thread(_store(request).copy, body.source, body.destination)


@router.post("/copy-folder", response_model=CopyFolderResult, responses=ERROR_RESPONSES)
async def copy_folder(request: Request, body: TransferRequest) -> CopyFolderResult:
    """Duplicate a folder tree."""
    return await asyncio.to_thread(
        _store(request).copy_folder, body.source, body.destination,
    )
