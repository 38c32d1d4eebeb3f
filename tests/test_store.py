"""File store operation tests."""

import io
from pathlib import Path

import pytest

from drive.storage import (
    AlreadyExists,
    FileStore,
    InvalidInput,
    IOFailure,
    InvalidTarget,
    NotFound,
    PathViolation,
    SizeLimitExceeded,
    UnsupportedType,
    generate_id,
)

from conftest import RecordingNotifier


def _touch(root: Path, rel: str, data: bytes = b"") -> Path:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


class TestListItems:
    def test_pagination(self, store: FileStore, root: Path) -> None:
        for i in range(14):
            _touch(root, f"file{i:02d}.txt")

        page = store.list_items(None, page=2, limit=10)

        assert [item.name for item in page.items] == [f"file{i:02d}.txt" for i in range(10, 14)]
        assert page.total == 14
        assert page.total_pages == 2
        assert page.has_prev is True
        assert page.has_next is False

    def test_limit_and_page_are_clamped(self, store: FileStore, root: Path) -> None:
        _touch(root, "a.txt")

        page = store.list_items("/", page=0, limit=1000)

        assert page.page == 1
        assert page.limit == 100
        assert store.list_items("*", limit=1).limit == 10

    def test_directories_first_then_case_insensitive(self, store: FileStore, root: Path) -> None:
        _touch(root, "b.txt")
        _touch(root, "A.txt")
        (root / "zdir").mkdir()
        (root / "Adir").mkdir()

        names = [item.name for item in store.list_items().items]

        assert names == ["Adir", "zdir", "A.txt", "b.txt"]

    def test_hidden_entries_skipped(self, store: FileStore, root: Path) -> None:
        _touch(root, ".secret")
        _touch(root, "visible.txt")

        assert [item.name for item in store.list_items().items] == ["visible.txt"]

    def test_ids_and_etags_are_stable(self, store: FileStore, root: Path) -> None:
        _touch(root, "docs/a.txt", b"hello")

        first = store.list_items("docs").items[0]
        second = store.list_items("docs").items[0]

        assert first.id == second.id == generate_id("docs/a.txt")
        assert first.etag == second.etag
        assert first.path == "docs/a.txt"
        assert first.mime_type == "text/plain"
        assert first.size == 5

    def test_listing_a_file_is_invalid(self, store: FileStore, root: Path) -> None:
        _touch(root, "a.txt")
        with pytest.raises(InvalidTarget):
            store.list_items("a.txt")

    def test_missing_directory(self, store: FileStore) -> None:
        with pytest.raises(NotFound):
            store.list_items("nope")


class TestSearch:
    def test_matches_names_case_insensitively(self, store: FileStore, root: Path) -> None:
        _touch(root, "report.txt")
        _touch(root, "sub/Report-2.md")
        _touch(root, ".report")
        _touch(root, "other.txt")

        result = store.search("REPORT")

        assert [item.path for item in result.items] == ["report.txt", "sub/Report-2.md"]
        assert result.total == 2

    def test_hidden_subtrees_skipped(self, store: FileStore, root: Path) -> None:
        _touch(root, ".cache/report.txt")
        assert store.search("report").total == 0

    @pytest.mark.parametrize("query", ["", "x" * 256])
    def test_query_length_validated(self, store: FileStore, query: str) -> None:
        with pytest.raises(InvalidInput):
            store.search(query)

    def test_collection_stops_at_page_times_limit(self, store: FileStore, root: Path) -> None:
        for i in range(30):
            _touch(root, f"match{i:02d}.txt")

        result = store.search("match", page=1, limit=10)

        assert result.total == 10
        assert len(result.items) == 10


class TestReads:
    def test_download(self, store: FileStore, root: Path) -> None:
        _touch(root, "a.bin", b"\x00\x01")
        assert store.download("a.bin") == b"\x00\x01"

    def test_download_directory_is_invalid(self, store: FileStore, root: Path) -> None:
        (root / "docs").mkdir()
        with pytest.raises(InvalidTarget):
            store.download("docs")

    def test_download_folder(self, store: FileStore, root: Path) -> None:
        _touch(root, "docs/a.txt", b"a")
        _touch(root, "docs/sub/b.txt", b"b")
        _touch(root, "docs/.hidden", b"h")

        contents = store.download_folder("docs")

        assert contents.path == "docs"
        assert contents.files == {"a.txt": b"a", "sub/b.txt": b"b"}
        assert contents.skipped == []

    def test_reads_never_notify(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        _touch(root, "docs/a.txt", b"a")

        store.list_items()
        store.search("a")
        store.download("docs/a.txt")
        store.download_folder("docs")

        assert notifier.events == []


class TestCreate:
    def test_edit_scenario(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        created = store.create_file("notes.txt")
        edited = store.edit("notes.txt", "hello")

        assert created.size_bytes == 0
        assert edited.size == 5
        assert store.download("notes.txt") == b"hello"
        assert notifier.types == ["file_created", "file_updated"]
        assert edited.etag != created.etag

    def test_create_file_is_exclusive(self, store: FileStore) -> None:
        store.create_file("a.txt")
        with pytest.raises(AlreadyExists):
            store.create_file("a.txt")

    def test_create_file_makes_parents(self, store: FileStore, root: Path) -> None:
        result = store.create_file("deep/nested/a.md")
        assert result.path == "deep/nested/a.md"
        assert (root / "deep" / "nested" / "a.md").is_file()

    def test_create_folder(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        result = store.create_folder("a/b")

        assert result.path == "a/b"
        assert result.type == "directory"
        assert (root / "a" / "b").is_dir()
        assert notifier.types == ["folder_created"]

        with pytest.raises(AlreadyExists):
            store.create_folder("a/b")


class TestEdit:
    def test_unsupported_extension(self, store: FileStore) -> None:
        store.create_file("image.png")
        with pytest.raises(UnsupportedType):
            store.edit("image.png", "text")

    def test_missing_file(self, store: FileStore) -> None:
        with pytest.raises(NotFound):
            store.edit("missing.txt", "text")

    def test_content_cap(self, root: Path, notifier: RecordingNotifier) -> None:
        store = FileStore(root, notifier=notifier, max_edit_size=4)
        store.create_file("a.txt")

        with pytest.raises(SizeLimitExceeded):
            store.edit("a.txt", "hello")

        assert (root / "a.txt").read_bytes() == b""
        assert notifier.types == ["file_created"]


class TestUpload:
    def test_upload(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        result = store.upload("docs/a.txt", io.BytesIO(b"data"))

        assert result.size_bytes == 4
        assert result.mime_type == "text/plain"
        assert (root / "docs" / "a.txt").read_bytes() == b"data"
        assert notifier.types == ["file_created"]

    def test_upload_replaces_existing(self, store: FileStore, root: Path) -> None:
        _touch(root, "a.txt", b"old content")
        store.upload("a.txt", io.BytesIO(b"new"))
        assert (root / "a.txt").read_bytes() == b"new"

    def test_upload_over_cap_leaves_nothing(
        self, root: Path, notifier: RecordingNotifier,
    ) -> None:
        store = FileStore(root, notifier=notifier, max_upload_size=10, chunk_size=4)

        with pytest.raises(SizeLimitExceeded):
            store.upload("big.bin", io.BytesIO(b"x" * 20))

        assert list(root.iterdir()) == []
        assert notifier.events == []

    def test_failed_upload_removes_created_parents(
        self, root: Path, notifier: RecordingNotifier,
    ) -> None:
        store = FileStore(root, notifier=notifier, max_upload_size=10, chunk_size=4)
        (root / "keep").mkdir()

        with pytest.raises(SizeLimitExceeded):
            store.upload("keep/new/deeper/big.bin", io.BytesIO(b"x" * 20))

        assert [p.name for p in root.iterdir()] == ["keep"]
        assert list((root / "keep").iterdir()) == []

    def test_upload_onto_directory(self, store: FileStore, root: Path) -> None:
        (root / "docs").mkdir()
        with pytest.raises(InvalidTarget):
            store.upload("docs", io.BytesIO(b"x"))

    def test_upload_folder_collects_failures(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        result = store.upload_folder(
            "batch",
            {
                "a.txt": b"1",
                "sub/b.txt": b"2",
                "../x.txt": b"3",
                ".hidden": b"4",
            },
        )

        assert result.files_count == 2
        assert sorted(result.failed) == ["../x.txt", ".hidden"]
        assert (root / "batch" / "sub" / "b.txt").read_bytes() == b"2"
        assert not (root / "x.txt").exists()
        assert notifier.types == ["folder_uploaded"]


class TestDelete:
    def test_delete_folder_recursively(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        _touch(root, "docs/sub/a.txt")

        result = store.delete("docs")

        assert result.path == "docs"
        assert not (root / "docs").exists()
        assert notifier.types == ["file_deleted"]

    @pytest.mark.parametrize("path", ["", "/"])
    def test_root_cannot_be_deleted(self, store: FileStore, root: Path, path: str) -> None:
        _touch(root, "keep.txt")
        with pytest.raises(PathViolation):
            store.delete(path)
        assert (root / "keep.txt").exists()

    def test_delete_missing(self, store: FileStore) -> None:
        with pytest.raises(NotFound):
            store.delete("missing.txt")

    def test_delete_symlink_keeps_target(self, store: FileStore, root: Path) -> None:
        _touch(root, "real/a.txt", b"a")
        (root / "alias").symlink_to(root / "real", target_is_directory=True)

        store.delete("alias")

        assert not (root / "alias").exists()
        assert (root / "real" / "a.txt").exists()


class TestTransfer:
    def test_rename(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        _touch(root, "old.txt", b"x")

        result = store.rename("old.txt", "new.txt")

        assert (result.old_path, result.new_path) == ("old.txt", "new.txt")
        assert not (root / "old.txt").exists()
        assert (root / "new.txt").read_bytes() == b"x"
        assert notifier.types == ["file_renamed"]

    def test_rename_onto_existing_changes_nothing(self, store: FileStore, root: Path) -> None:
        _touch(root, "a.txt", b"a")
        _touch(root, "b.txt", b"b")

        with pytest.raises(AlreadyExists):
            store.rename("a.txt", "b.txt")

        assert (root / "a.txt").read_bytes() == b"a"
        assert (root / "b.txt").read_bytes() == b"b"

    def test_rename_missing_source(self, store: FileStore) -> None:
        with pytest.raises(NotFound):
            store.rename("missing.txt", "new.txt")

    def test_rename_folder(self, store: FileStore, root: Path) -> None:
        _touch(root, "dir/a.txt")
        store.rename_folder("dir", "renamed")
        assert (root / "renamed" / "a.txt").exists()

    def test_move_creates_parents(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        _touch(root, "a.txt", b"abc")

        result = store.move("a.txt", "archive/2024/a.txt")

        assert result.destination == "archive/2024/a.txt"
        assert result.size == 3
        assert (root / "archive" / "2024" / "a.txt").exists()
        assert notifier.types == ["file_moved"]

    def test_copy(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        _touch(root, "a.bin", b"\x00payload")

        result = store.copy("a.bin", "copies/b.bin")

        assert result.bytes_copied == 8
        assert store.download("copies/b.bin") == store.download("a.bin")
        assert notifier.types == ["file_copied"]

    def test_copy_directory_is_invalid(self, store: FileStore, root: Path) -> None:
        (root / "docs").mkdir()
        with pytest.raises(InvalidTarget):
            store.copy("docs", "docs2")

    def test_copy_onto_existing(self, store: FileStore, root: Path) -> None:
        _touch(root, "a.txt")
        _touch(root, "b.txt")
        with pytest.raises(AlreadyExists):
            store.copy("a.txt", "b.txt")

    def test_copy_folder(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        _touch(root, "src/a.txt", b"a")
        _touch(root, "src/sub/b.txt", b"b")

        result = store.copy_folder("src", "dst")

        assert result.files_copied == 2
        assert result.destination == "dst"
        assert (root / "dst" / "sub" / "b.txt").read_bytes() == b"b"
        assert (root / "src" / "a.txt").exists()
        assert notifier.types == ["folder_copied"]
        assert notifier.events[0].destination_path == "dst"

    def test_copy_folder_into_itself(self, store: FileStore, root: Path) -> None:
        _touch(root, "src/a.txt")
        with pytest.raises(InvalidTarget):
            store.copy_folder("src", "src/inner")

    def test_copy_folder_from_file(self, store: FileStore, root: Path) -> None:
        _touch(root, "a.txt")
        with pytest.raises(InvalidTarget):
            store.copy_folder("a.txt", "b")

    def test_failed_move_removes_created_parents(
        self, store: FileStore, root: Path, notifier: RecordingNotifier,
    ) -> None:
        _touch(root, "a/file.txt", b"x")

        # A directory cannot be renamed into its own subtree.
        with pytest.raises(IOFailure):
            store.move("a", "a/sub/a")

        assert sorted(p.name for p in (root / "a").iterdir()) == ["file.txt"]
        assert notifier.events == []

    def test_copy_folder_keeps_destination_created_concurrently(
        self, store: FileStore, root: Path, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        _touch(root, "src/a.txt", b"a")
        _touch(root, "dst/theirs.txt", b"theirs")
        canonical = root.resolve()
        # Another writer creates the destination after the existence check.
        monkeypatch.setattr(
            store,
            "_prepare_transfer",
            lambda source, destination: (canonical / source, canonical / destination),
        )

        with pytest.raises(AlreadyExists):
            store.copy_folder("src", "dst")

        assert (root / "dst" / "theirs.txt").read_bytes() == b"theirs"
        assert not (root / "dst" / "a.txt").exists()


def test_failed_mutations_do_not_notify(
    store: FileStore, root: Path, notifier: RecordingNotifier,
) -> None:
    _touch(root, "a.txt")

    for call in (
        lambda: store.create_file("a.txt"),
        lambda: store.rename("missing", "x"),
        lambda: store.delete("../etc"),
        lambda: store.edit("a.txt", "x" * (11 * 1024 * 1024)),
    ):
        with pytest.raises(Exception):
            call()

    assert notifier.events == []
