"""File store confined to a single root directory."""

from drive.storage.schemas import (
    CopyFolderResult,
    CopyResult,
    CreateFileResult,
    CreateFolderResult,
    DeleteResult,
    EditResult,
    ErrorResponse,
    FileSystemItem,
    FolderContents,
    MoveResult,
    PaginatedItems,
    RenameRequest,
    RenameResult,
    TransferRequest,
    UploadFolderResult,
    UploadResult,
)
from drive.storage.errors import (
    AlreadyExists,
    InvalidInput,
    InvalidTarget,
    IOFailure,
    NotFound,
    PathViolation,
    SizeLimitExceeded,
    StoreError,
    UnsupportedType,
)
from drive.storage.paths import PathResolver, is_hidden
from drive.storage.store import FileStore, Notifier, generate_etag, generate_id, guess_mime_type

__all__ = [
    "AlreadyExists",
    "CopyFolderResult",
    "CopyResult",
    "CreateFileResult",
    "CreateFolderResult",
    "DeleteResult",
    "EditResult",
    "ErrorResponse",
    "FileStore",
    "FileSystemItem",
    "FolderContents",
    "IOFailure",
    "InvalidInput",
    "InvalidTarget",
    "MoveResult",
    "NotFound",
    "Notifier",
    "PaginatedItems",
    "PathResolver",
    "PathViolation",
    "RenameRequest",
    "RenameResult",
    "SizeLimitExceeded",
    "StoreError",
    "TransferRequest",
    "UnsupportedType",
    "UploadFolderResult",
    "UploadResult",
    "generate_etag",
    "generate_id",
    "guess_mime_type",
    "is_hidden",
]
