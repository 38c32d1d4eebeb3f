"""File and folder operations confined to the root directory."""

import hashlib
import math
import mimetypes
import os
import shutil
import tempfile
import time
import uuid
from collections.abc import Iterable, Iterator, Mapping
from pathlib import Path
from typing import BinaryIO, Protocol

import structlog

from drive.events.types import (
    Event,
    FileCopied,
    FileCreated,
    FileDeleted,
    FileMoved,
    FileRenamed,
    FileUpdated,
    FolderCopied,
    FolderCreated,
    FolderUploaded,
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
from drive.storage.schemas import (
    CopyFolderResult,
    CopyResult,
    CreateFileResult,
    CreateFolderResult,
    DeleteResult,
    EditResult,
    FileSystemItem,
    FolderContents,
    MoveResult,
    PaginatedItems,
    RenameResult,
    UploadFolderResult,
    UploadResult,
)

logger = structlog.get_logger()

MIB = 1024 * 1024

DEFAULT_CHUNK_SIZE = 10 * MIB
DEFAULT_MAX_UPLOAD_SIZE = 1024 * 1024 * MIB  # 1 TiB
DEFAULT_MAX_EDIT_SIZE = 10 * MIB

MIN_LIMIT = 10
MAX_LIST_LIMIT = 100
MAX_SEARCH_LIMIT = 500
MAX_QUERY_LENGTH = 255

ROOT_ALIASES: frozenset[str] = frozenset({"", "/", "*"})

EDITABLE_EXTENSIONS: frozenset[str] = frozenset({
    "txt", "md", "json", "yaml", "yml", "toml",
    "html", "css", "js", "ts", "jsx", "tsx", "xml",
    "csv", "ini", "env", "sql", "rs", "py", "go",
    "java", "cpp", "h", "hpp", "c",
})

FALLBACK_MIME_TYPE = "application/octet-stream"


class Notifier(Protocol):
    """Receives one event per completed mutation."""

    def broadcast(self, event: Event) -> bool: ...


def generate_id(relative_path: str) -> str:
    """Derive a stable identifier from a relative path.

    Args:
        relative_path: Path relative to the root.

    Returns:
        UUIDv5 string, identical for identical paths.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_URL, relative_path))


def generate_etag(relative_path: str, mtime_ns: int, size: int) -> str:
    """Derive an opaque change token from path, modification time and size.

    Args:
        relative_path: Path relative to the root.
        mtime_ns: Modification time in nanoseconds.
        size: Size in bytes.

    Returns:
        Quoted hex digest.
    """
    digest = hashlib.sha256(f"{relative_path}:{mtime_ns}:{size}".encode()).hexdigest()
    return f'"{digest[:32]}"'


def guess_mime_type(name: str) -> str:
    """Guess a file's media type from its extension.

    Args:
        name: File name or path.

    Returns:
        Media type, or application/octet-stream when unknown.
    """
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or FALLBACK_MIME_TYPE


def paginate(
    items: list[FileSystemItem],
    page: int,
    limit: int,
    max_limit: int,
) -> PaginatedItems:
    """Clamp paging arguments and slice a full result set.

    Args:
        items: Sorted or filtered full result set.
        page: Requested 1-based page, clamped to at least 1.
        limit: Requested page size, clamped to [10, max_limit].
        max_limit: Upper bound for the page size.

    Returns:
        The requested page with totals and navigation flags.
    """
    page = max(page, 1)
    limit = min(max(limit, MIN_LIMIT), max_limit)

    total = len(items)
    total_pages = math.ceil(total / limit)
    start = (page - 1) * limit

    return PaginatedItems(
        items=items[start:start + limit],
        total=total,
        page=page,
        limit=limit,
        total_pages=total_pages,
        has_next=page < total_pages,
        has_prev=page > 1,
    )


class FileStore:
    """Listing, search and mutation of files below a single root.

    Every path argument is relative to the root and validated by the
    PathResolver before the filesystem is touched. Each successful mutation
    hands exactly one event to the notifier; reads never notify. Failures
    are raised as a single StoreError subclass, never as a raw OSError.

    There is no per-path locking: concurrent operations on the same path
    may interleave.

    Attributes:
        resolver: Path validator bound to the root.
    """

    def __init__(
        self,
        root: str | Path,
        notifier: Notifier | None = None,
        max_upload_size: int = DEFAULT_MAX_UPLOAD_SIZE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_edit_size: int = DEFAULT_MAX_EDIT_SIZE,
    ) -> None:
        """Initialize file store.

        Args:
            root: Directory all operations are confined to.
            notifier: Hub receiving mutation events, None to disable.
            max_upload_size: Cumulative byte cap for a single upload.
            chunk_size: Maximum bytes read from an upload stream per call.
            max_edit_size: Byte cap for edit content.
        """
        Path(root).mkdir(parents=True, exist_ok=True)
        self.resolver = PathResolver(root)
        self._notifier = notifier
        self._max_upload_size = max_upload_size
        self._chunk_size = min(chunk_size, DEFAULT_CHUNK_SIZE)
        self._max_edit_size = max_edit_size

    @property
    def root(self) -> Path:
        """Canonical root directory."""
        return self.resolver.root

    # === Queries ===

    def list_items(
        self,
        path: str | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> PaginatedItems:
        """List the immediate, non-hidden entries of a directory.

        Directories sort before files, then names compare case-insensitively.

        Args:
            path: Directory relative to the root; None, '', '/' or '*'
                lists the root.
            page: Requested page.
            limit: Requested page size, clamped to [10, 100].

        Returns:
            One page of entries.

        Raises:
            PathViolation: If the path is rejected.
            NotFound: If the directory does not exist.
            InvalidTarget: If the path is a file.
            IOFailure: If the directory cannot be read.
        """
        self._ensure_root()
        if path is None or path in ROOT_ALIASES:
            base = self.root
        else:
            base = self.resolver.resolve_for_read(path)

        if not base.is_dir():
            raise InvalidTarget(
                "Path is not a directory",
                debug=f"Path is not a directory: {self.resolver.relative(base)}",
            )

        items: list[FileSystemItem] = []
        try:
            with os.scandir(base) as entries:
                for entry in entries:
                    if is_hidden(entry.name):
                        continue
                    if entry.is_symlink() and not self.resolver.contains(Path(entry.path).resolve()):
                        continue
                    item = self._try_build_item(Path(entry.path))
                    if item is not None:
                        items.append(item)
        except OSError as e:
            raise IOFailure.from_os_error("read directory", e) from e

        items.sort(key=lambda item: (not item.is_dir, item.name.lower()))
        return paginate(items, page, limit, MAX_LIST_LIMIT)

    def search(self, query: str, page: int = 1, limit: int = 50) -> PaginatedItems:
        """Find entries anywhere below the root whose name contains a query.

        Matching is a case-insensitive substring test on names, not paths.
        Collection stops once page*limit matches are gathered; pagination
        is then applied to the collected set.

        Args:
            query: Substring to match, 1-255 characters.
            page: Requested page.
            limit: Requested page size, clamped to [10, 500].

        Returns:
            One page of matching entries.

        Raises:
            InvalidInput: If the query is empty or too long.
        """
        if not query or len(query) > MAX_QUERY_LENGTH:
            raise InvalidInput(
                "Search query must be 1-255 characters",
                debug=f"Query length: {len(query)}",
            )

        self._ensure_root()
        needle = query.lower()
        cap = max(page, 1) * min(max(limit, MIN_LIMIT), MAX_SEARCH_LIMIT)
        results: list[FileSystemItem] = []
        self._collect_matches(self.root, needle, cap, results)
        return paginate(results, page, limit, MAX_SEARCH_LIMIT)

    def _collect_matches(
        self,
        directory: Path,
        needle: str,
        cap: int,
        results: list[FileSystemItem],
    ) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logger.debug("search_scan_failed", path=str(directory), error=str(e))
            return

        for entry in entries:
            if len(results) >= cap:
                return
            if is_hidden(entry.name):
                continue
            if entry.is_symlink() and not self.resolver.contains(Path(entry.path).resolve()):
                continue

            if needle in entry.name.lower():
                item = self._try_build_item(Path(entry.path))
                if item is not None:
                    results.append(item)

            try:
                descend = entry.is_dir(follow_symlinks=False)
            except OSError:
                descend = False
            if descend:
                self._collect_matches(Path(entry.path), needle, cap, results)

    def download(self, path: str) -> bytes:
        """Read the full contents of a file.

        Args:
            path: File relative to the root.

        Returns:
            File bytes.

        Raises:
            PathViolation: If the path is rejected.
            NotFound: If the file does not exist.
            InvalidTarget: If the path is a directory.
            IOFailure: If the file cannot be read.
        """
        target = self.resolver.resolve_for_read(path)
        if target.is_dir():
            raise InvalidTarget(
                "Path is a directory",
                debug=f"Expected a file: {self.resolver.relative(target)}",
            )

        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise NotFound("File not found", debug=str(e)) from e
        except OSError as e:
            raise IOFailure.from_os_error("read file", e) from e

    def download_folder(self, path: str) -> FolderContents:
        """Collect every readable file below a directory.

        Hidden entries and symlinks are skipped; unreadable files are
        reported in ``skipped`` instead of failing the call.

        Args:
            path: Directory relative to the root.

        Returns:
            Mapping of folder-relative paths to file bytes.

        Raises:
            PathViolation: If the path is rejected.
            NotFound: If the directory does not exist.
            InvalidTarget: If the path is a file.
        """
        folder = self.resolver.resolve_for_read(path)
        if not folder.is_dir():
            raise InvalidTarget(
                "Folder not found or is not a directory",
                debug=f"Not a directory: {self.resolver.relative(folder)}",
            )

        files: dict[str, bytes] = {}
        skipped: list[str] = []
        for dirpath, dirnames, filenames in os.walk(folder):
            dirnames[:] = sorted(
                d for d in dirnames
                if not is_hidden(d) and not os.path.islink(os.path.join(dirpath, d))
            )
            for name in sorted(filenames):
                file_path = Path(dirpath) / name
                if is_hidden(name) or file_path.is_symlink():
                    continue
                rel = file_path.relative_to(folder).as_posix()
                try:
                    files[rel] = file_path.read_bytes()
                except OSError as e:
                    logger.debug("folder_download_skipped", path=rel, error=str(e))
                    skipped.append(rel)

        return FolderContents(
            path=self.resolver.relative(folder),
            files=files,
            skipped=skipped,
        )

    # === Mutations ===

    def delete(self, path: str) -> DeleteResult:
        """Remove a file, or a directory and everything below it.

        Args:
            path: Entry relative to the root.

        Returns:
            Delete result with the removed path.

        Raises:
            PathViolation: If the path is rejected or names the root.
            NotFound: If the entry does not exist.
            IOFailure: If removal fails.
        """
        target = self.resolver.resolve_for_read(path)
        if target == self.root:
            raise PathViolation("cannot delete the root directory", debug=f"input={path!r}")

        # Remove a symlink itself rather than what it points to.
        link = self.root / path.replace("\\", "/").strip("/")
        if link.is_symlink():
            target = link

        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except FileNotFoundError as e:
            raise NotFound("File not found", debug=str(e)) from e
        except OSError as e:
            raise IOFailure.from_os_error("delete item", e) from e

        rel = self.resolver.relative(target)
        self._notify(FileDeleted(path=rel, deleted_at=int(time.time())))
        logger.info("item_deleted", path=rel)
        return DeleteResult(path=rel)

    def edit(self, path: str, content: str) -> EditResult:
        """Overwrite an existing text file.

        The new content is written to a temporary file beside the target
        and swapped in with os.replace.

        Args:
            path: File relative to the root; must already exist.
            content: New file content.

        Returns:
            Edit result with the new size, mtime and etag.

        Raises:
            PathViolation: If the path is rejected.
            NotFound: If the file does not exist.
            InvalidTarget: If the path is a directory.
            UnsupportedType: If the extension is not editable text.
            SizeLimitExceeded: If the encoded content exceeds the cap.
            IOFailure: If writing fails.
        """
        target = self.resolver.resolve_for_write(path)
        if not target.exists():
            raise NotFound("File not found", debug=f"File does not exist: {path}")
        if target.is_dir():
            raise InvalidTarget("Path is a directory", debug=f"Expected a file: {path}")

        ext = target.suffix.lower().lstrip(".")
        if ext not in EDITABLE_EXTENSIONS:
            raise UnsupportedType(
                f"File type not editable: .{ext}",
                debug=f"Unsupported extension: {ext}",
            )

        data = content.encode("utf-8")
        if len(data) > self._max_edit_size:
            raise SizeLimitExceeded(
                f"File content too large (maximum {self._max_edit_size // MIB}MB)",
                debug=f"Content size: {len(data)} bytes",
            )

        self._atomic_write(target, [data])

        rel = self.resolver.relative(target)
        stat = self._stat(target)
        etag = generate_etag(rel, stat.st_mtime_ns, stat.st_size)
        modified_at = int(stat.st_mtime)

        self._notify(FileUpdated(path=rel, size=stat.st_size, modified_at=modified_at, etag=etag))
        logger.info("file_edited", path=rel, size=stat.st_size)
        return EditResult(path=rel, size=stat.st_size, modified_at=modified_at, etag=etag)

    def upload(self, path: str, stream: BinaryIO) -> UploadResult:
        """Stream bytes into a file, creating parent directories.

        The stream is read in bounded chunks into a hidden temporary file
        which replaces the target only after the whole stream was read.
        On any failure the temporary file is removed.

        Args:
            path: Destination file relative to the root.
            stream: Binary stream to read until EOF.

        Returns:
            Upload result including a fresh upload identifier.

        Raises:
            PathViolation: If the path is rejected.
            InvalidTarget: If the destination is a directory.
            SizeLimitExceeded: If the stream exceeds the cumulative cap.
            IOFailure: If reading or writing fails.
        """
        target = self.resolver.resolve_for_write(path)
        if target.is_dir():
            raise InvalidTarget("Path is a directory", debug=f"Expected a file: {path}")
        created = self._make_parents(target)

        upload_id = str(uuid.uuid4())
        try:
            total = self._atomic_write(target, self._read_chunks(stream))
        except StoreError:
            self._discard_dirs(created)
            raise

        rel = self.resolver.relative(target)
        stat = self._stat(target)
        mime_type = guess_mime_type(target.name)
        etag = generate_etag(rel, stat.st_mtime_ns, stat.st_size)
        modified_at = int(stat.st_mtime)

        self._notify(
            FileCreated(
                path=rel,
                size=total,
                mime_type=mime_type,
                modified_at=modified_at,
                etag=etag,
            )
        )
        logger.info("file_uploaded", path=rel, size=total, upload_id=upload_id)
        return UploadResult(
            path=rel,
            size_bytes=total,
            mime_type=mime_type,
            modified_at=modified_at,
            etag=etag,
            upload_id=upload_id,
        )

    def _read_chunks(self, stream: BinaryIO) -> Iterator[bytes]:
        total = 0
        while True:
            try:
                chunk = stream.read(self._chunk_size)
            except OSError as e:
                raise IOFailure.from_os_error("read chunk", e) from e
            if not chunk:
                return
            total += len(chunk)
            if total > self._max_upload_size:
                raise SizeLimitExceeded(
                    f"File size exceeds maximum limit ({self._max_upload_size} bytes)",
                    debug=f"Total bytes: {total}",
                )
            yield chunk

    def create_folder(self, path: str) -> CreateFolderResult:
        """Create a directory, creating missing parents.

        Args:
            path: Directory relative to the root.

        Returns:
            Folder creation result.

        Raises:
            PathViolation: If the path is rejected.
            AlreadyExists: If the directory or a file of that name exists.
            IOFailure: If creation fails.
        """
        target = self.resolver.resolve_for_write(path)
        self._make_parents(target)
        try:
            target.mkdir()
        except FileExistsError as e:
            raise AlreadyExists("Directory already exists", debug=str(e)) from e
        except OSError as e:
            raise IOFailure.from_os_error("create folder", e) from e

        rel = self.resolver.relative(target)
        created_at = int(time.time())
        self._notify(FolderCreated(path=rel, created_at=created_at))
        logger.info("folder_created", path=rel)
        return CreateFolderResult(path=rel, created_at=created_at)

    def create_file(self, path: str) -> CreateFileResult:
        """Create an empty file, creating missing parents.

        Args:
            path: File relative to the root.

        Returns:
            File creation result with size 0.

        Raises:
            PathViolation: If the path is rejected.
            AlreadyExists: If an entry of that name exists.
            IOFailure: If creation fails.
        """
        target = self.resolver.resolve_for_write(path)
        self._make_parents(target)
        try:
            with open(target, "xb"):
                pass
        except FileExistsError as e:
            raise AlreadyExists("File already exists", debug=str(e)) from e
        except OSError as e:
            raise IOFailure.from_os_error("create file", e) from e

        rel = self.resolver.relative(target)
        stat = self._stat(target)
        created_at = int(time.time())
        etag = generate_etag(rel, stat.st_mtime_ns, 0)

        self._notify(
            FileCreated(
                path=rel,
                size=0,
                mime_type=guess_mime_type(target.name),
                modified_at=int(stat.st_mtime),
                etag=etag,
                created_at=created_at,
            )
        )
        logger.info("file_created", path=rel)
        return CreateFileResult(path=rel, created_at=created_at, etag=etag)

    def rename(self, old_path: str, new_path: str) -> RenameResult:
        """Rename a file or directory in one atomic step.

        Args:
            old_path: Existing entry relative to the root.
            new_path: New location; its parent must already exist.

        Returns:
            Rename result with both relative paths.

        Raises:
            PathViolation: If either path is rejected.
            NotFound: If the source does not exist.
            AlreadyExists: If the destination exists.
            IOFailure: If the rename fails.
        """
        source, destination = self._prepare_transfer(old_path, new_path)
        try:
            os.rename(source, destination)
        except OSError as e:
            raise IOFailure.from_os_error("rename item", e) from e

        old_rel = self.resolver.relative(source)
        new_rel = self.resolver.relative(destination)
        self._notify(FileRenamed(old_path=old_rel, new_path=new_rel, timestamp=int(time.time())))
        logger.info("item_renamed", old_path=old_rel, new_path=new_rel)
        return RenameResult(
            message="File renamed successfully",
            old_path=old_rel,
            new_path=new_rel,
        )

    rename_folder = rename

    def move(self, source: str, destination: str) -> MoveResult:
        """Move a file or directory, creating destination parents.

        Args:
            source: Existing entry relative to the root.
            destination: New location relative to the root.

        Returns:
            Move result with the moved entry's size and mtime.

        Raises:
            PathViolation: If either path is rejected.
            NotFound: If the source does not exist.
            AlreadyExists: If the destination exists.
            IOFailure: If the move fails.
        """
        source_path, destination_path = self._prepare_transfer(source, destination)
        created = self._make_parents(destination_path)
        try:
            os.rename(source_path, destination_path)
        except OSError as e:
            self._discard_dirs(created)
            raise IOFailure.from_os_error("move item", e) from e

        stat = self._stat(destination_path)
        source_rel = self.resolver.relative(source_path)
        destination_rel = self.resolver.relative(destination_path)
        modified_at = int(stat.st_mtime)

        self._notify(
            FileMoved(
                source_path=source_rel,
                destination_path=destination_rel,
                size=stat.st_size,
                modified_at=modified_at,
                timestamp=int(time.time()),
            )
        )
        logger.info("item_moved", source=source_rel, destination=destination_rel)
        return MoveResult(
            message="File moved successfully",
            source=source_rel,
            destination=destination_rel,
            size=stat.st_size,
            modified_at=modified_at,
        )

    move_folder = move

    def copy(self, source: str, destination: str) -> CopyResult:
        """Duplicate a file byte for byte.

        Args:
            source: Existing file relative to the root.
            destination: New file relative to the root.

        Returns:
            Copy result including the number of bytes copied.

        Raises:
            PathViolation: If either path is rejected.
            NotFound: If the source does not exist.
            InvalidTarget: If the source is a directory.
            AlreadyExists: If the destination exists.
            IOFailure: If reading or writing fails.
        """
        source_path, destination_path = self._prepare_transfer(source, destination)
        if source_path.is_dir():
            raise InvalidTarget(
                "Source is a directory",
                debug=f"Use copy_folder for directories: {source}",
            )
        created = self._make_parents(destination_path)

        try:
            data = source_path.read_bytes()
            self._write_new(destination_path, data)
        except OSError as e:
            self._discard_dirs(created)
            raise IOFailure.from_os_error("copy file", e) from e
        except StoreError:
            self._discard_dirs(created)
            raise

        stat = self._stat(destination_path)
        source_rel = self.resolver.relative(source_path)
        destination_rel = self.resolver.relative(destination_path)
        modified_at = int(stat.st_mtime)

        self._notify(
            FileCopied(
                source_path=source_rel,
                destination_path=destination_rel,
                size=stat.st_size,
                modified_at=modified_at,
                timestamp=int(time.time()),
            )
        )
        logger.info("file_copied", source=source_rel, destination=destination_rel, size=len(data))
        return CopyResult(
            message="File copied successfully",
            source=source_rel,
            destination=destination_rel,
            size=stat.st_size,
            bytes_copied=len(data),
            modified_at=modified_at,
        )

    def copy_folder(self, source: str, destination: str) -> CopyFolderResult:
        """Recursively duplicate a directory tree.

        Directories are recreated and every regular file is copied byte
        for byte; symlinks are not followed. A failed copy removes the
        partially written destination.

        Args:
            source: Existing directory relative to the root.
            destination: New directory relative to the root.

        Returns:
            Copy result with the number of files duplicated.

        Raises:
            PathViolation: If either path is rejected.
            NotFound: If the source does not exist.
            InvalidTarget: If the source is a file.
            AlreadyExists: If the destination exists.
            IOFailure: If any read or write fails.
        """
        source_path, destination_path = self._prepare_transfer(source, destination)
        if not source_path.is_dir():
            raise InvalidTarget(
                "Source is not a directory",
                debug=f"Use copy for files: {source}",
            )
        if destination_path.is_relative_to(source_path.resolve()):
            raise InvalidTarget(
                "Cannot copy a folder into itself",
                debug=f"{source} -> {destination}",
            )
        created = self._make_parents(destination_path)
        try:
            destination_path.mkdir()
        except FileExistsError as e:
            self._discard_dirs(created)
            raise AlreadyExists("Destination already exists", debug=str(e)) from e
        except OSError as e:
            self._discard_dirs(created)
            raise IOFailure.from_os_error("copy folder", e) from e

        # Only the tree created above is removed on failure.
        try:
            files_copied = self._copy_tree(source_path, destination_path)
        except OSError as e:
            shutil.rmtree(destination_path, ignore_errors=True)
            self._discard_dirs(created)
            raise IOFailure.from_os_error("copy folder", e) from e

        stat = self._stat(destination_path)
        source_rel = self.resolver.relative(source_path)
        destination_rel = self.resolver.relative(destination_path)
        modified_at = int(stat.st_mtime)

        self._notify(
            FolderCopied(
                source_path=source_rel,
                destination_path=destination_rel,
                size=stat.st_size,
                modified_at=modified_at,
                timestamp=int(time.time()),
            )
        )
        logger.info("folder_copied", source=source_rel, destination=destination_rel, files=files_copied)
        return CopyFolderResult(
            message="Folder copied successfully",
            source=source_rel,
            destination=destination_rel,
            size=stat.st_size,
            files_copied=files_copied,
            modified_at=modified_at,
        )

    def _copy_tree(self, source: Path, destination: Path) -> int:
        copied = 0
        with os.scandir(source) as it:
            entries = list(it)
        for entry in entries:
            if entry.is_symlink():
                continue
            target = destination / entry.name
            if entry.is_dir():
                target.mkdir()
                copied += self._copy_tree(Path(entry.path), target)
            elif entry.is_file():
                target.write_bytes(Path(entry.path).read_bytes())
                copied += 1
        return copied

    def upload_folder(self, path: str, files: Mapping[str, bytes]) -> UploadFolderResult:
        """Write a batch of files into a directory, best effort.

        Each name is validated as a path below the target directory. A file
        that is rejected or fails to write is recorded in ``failed`` and
        does not abort the batch.

        Args:
            path: Target directory relative to the root, created if missing.
            files: Mapping of directory-relative names to contents.

        Returns:
            Upload result with the count of written files.

        Raises:
            PathViolation: If the directory path is rejected.
            InvalidTarget: If the target exists as a file.
            IOFailure: If the directory cannot be created.
        """
        folder = self.resolver.resolve_for_write(path)
        if folder.exists() and not folder.is_dir():
            raise InvalidTarget("Path is not a directory", debug=f"Expected a directory: {path}")
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure.from_os_error("create folder", e) from e

        rel = self.resolver.relative(folder)
        uploaded = 0
        failed: list[str] = []
        for name, data in files.items():
            try:
                target = self.resolver.resolve_for_write(f"{rel}/{name}")
                if not target.is_relative_to(folder):
                    raise PathViolation("path escape attempt detected", debug=f"name={name!r}")
                self._make_parents(target)
                target.write_bytes(data)
            except StoreError as e:
                logger.debug("folder_upload_item_rejected", folder=rel, name=name, error=e.message)
                failed.append(name)
                continue
            except OSError as e:
                logger.debug("folder_upload_item_failed", folder=rel, name=name, error=str(e))
                failed.append(name)
                continue
            uploaded += 1

        created_at = int(time.time())
        self._notify(FolderUploaded(path=rel, files_count=uploaded, created_at=created_at))
        logger.info("folder_uploaded", path=rel, files_count=uploaded, failed=len(failed))
        return UploadFolderResult(
            path=rel,
            files_count=uploaded,
            failed=failed,
            created_at=created_at,
        )

    # === Helpers ===

    def _ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailure.from_os_error("create root directory", e) from e

    def _notify(self, event: Event) -> None:
        if self._notifier is not None:
            self._notifier.broadcast(event)

    def _prepare_transfer(self, source: str, destination: str) -> tuple[Path, Path]:
        source_path = self.resolver.resolve_for_write(source)
        destination_path = self.resolver.resolve_for_write(destination)

        if not source_path.exists() and not source_path.is_symlink():
            raise NotFound("Source does not exist", debug=f"Source does not exist: {source}")
        if destination_path.exists() or destination_path.is_symlink():
            raise AlreadyExists(
                "Destination already exists",
                debug=f"Destination already exists: {destination}",
            )
        return source_path, destination_path

    def _make_parents(self, target: Path) -> list[Path]:
        """Create missing parent directories of a target.

        Returns:
            The directories this call created, outermost first.
        """
        missing: list[Path] = []
        parent = target.parent
        while not parent.exists() and parent != self.root:
            missing.append(parent)
            parent = parent.parent
        missing.reverse()

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._discard_dirs(missing)
            raise IOFailure.from_os_error("create parent directories", e) from e
        return missing

    def _discard_dirs(self, created: list[Path]) -> None:
        # Innermost first; directories another operation filled in stay.
        for directory in reversed(created):
            try:
                directory.rmdir()
            except OSError:
                logger.debug("parent_cleanup_skipped", path=str(directory))
                return

    def _stat(self, target: Path) -> os.stat_result:
        try:
            return target.stat()
        except OSError as e:
            raise IOFailure.from_os_error("stat file", e) from e

    def _write_new(self, target: Path, data: bytes) -> None:
        try:
            with open(target, "xb") as f:
                f.write(data)
        except FileExistsError as e:
            raise AlreadyExists("Destination already exists", debug=str(e)) from e
        except OSError as e:
            target.unlink(missing_ok=True)
            raise IOFailure.from_os_error("write file", e) from e

    def _atomic_write(self, target: Path, chunks: Iterable[bytes]) -> int:
        try:
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".tmp-", suffix=".part")
        except OSError as e:
            raise IOFailure.from_os_error("create temporary file", e) from e
        tmp_path = Path(tmp_name)
        written = 0
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
                    written += len(chunk)
            tmp_path.chmod(0o644)
            os.replace(tmp_path, target)
        except StoreError:
            tmp_path.unlink(missing_ok=True)
            raise
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise IOFailure.from_os_error("write file", e) from e
        return written

    def _try_build_item(self, path: Path) -> FileSystemItem | None:
        try:
            stat = path.stat()
        except OSError:
            return None

        rel = self.resolver.relative(path)
        is_dir = path.is_dir()
        birth = getattr(stat, "st_birthtime", None)
        return FileSystemItem(
            id=generate_id(rel),
            name=path.name,
            path=rel,
            size=stat.st_size,
            is_dir=is_dir,
            created_at=int(birth) if birth is not None else None,
            modified_at=int(stat.st_mtime),
            mime_type=None if is_dir else guess_mime_type(path.name),
            etag=generate_etag(rel, stat.st_mtime_ns, stat.st_size),
        )
