"""Pydantic schemas for file store payloads."""

from typing import Literal

from pydantic import BaseModel, Field


class FileSystemItem(BaseModel):
    """A single file or directory entry below the root."""

    id: str = Field(description="UUIDv5 of the relative path")
    name: str
    path: str = Field(description="Relative path from root, '/' separated")
    size: int
    is_dir: bool
    created_at: int | None = None
    modified_at: int | None = None
    mime_type: str | None = None
    etag: str


class PaginatedItems(BaseModel):
    """One page of a sorted or filtered result set."""

    items: list[FileSystemItem]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    timestamp: str = Field(description="RFC 3339 UTC timestamp")
    request_id: str
    debug: str | None = None


class DeleteResult(BaseModel):
    """Result of deleting a file or directory."""

    success: bool = True
    path: str


class EditResult(BaseModel):
    """Result of overwriting an existing text file."""

    success: bool = True
    path: str
    size: int
    modified_at: int
    etag: str


class UploadResult(BaseModel):
    """Result of streaming an upload to disk."""

    success: bool = True
    path: str
    size_bytes: int
    mime_type: str | None
    modified_at: int
    etag: str
    upload_id: str


class CreateFolderResult(BaseModel):
    """Result of creating a directory."""

    success: bool = True
    path: str
    type: Literal["directory"] = "directory"
    created_at: int


class CreateFileResult(BaseModel):
    """Result of creating an empty file."""

    success: bool = True
    path: str
    type: Literal["file"] = "file"
    size_bytes: int = 0
    created_at: int
    etag: str


class RenameResult(BaseModel):
    """Result of renaming a file or directory."""

    success: bool = True
    message: str
    old_path: str
    new_path: str


class MoveResult(BaseModel):
    """Result of moving a file or directory."""

    success: bool = True
    message: str
    source: str
    destination: str
    size: int
    modified_at: int


class CopyResult(BaseModel):
    """Result of copying a single file."""

    success: bool = True
    message: str
    source: str
    destination: str
    size: int
    bytes_copied: int
    modified_at: int


class CopyFolderResult(BaseModel):
    """Result of recursively copying a directory."""

    success: bool = True
    message: str
    source: str
    destination: str
    size: int
    files_copied: int
    modified_at: int


class UploadFolderResult(BaseModel):
    """Result of a best-effort batch upload into one directory."""

    success: bool = True
    path: str
    type: Literal["directory"] = "directory"
    files_count: int
    failed: list[str] = Field(default_factory=list)
    created_at: int


class FolderContents(BaseModel):
    """Every readable file below a directory, keyed by relative path."""

    path: str
    files: dict[str, bytes]
    skipped: list[str] = Field(default_factory=list)


class RenameRequest(BaseModel):
    """Request body for rename endpoints."""

    old_path: str
    new_path: str


class TransferRequest(BaseModel):
    """Request body for move and copy endpoints."""

    source: str
    destination: str
