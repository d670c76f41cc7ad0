"""Tests for filesystem attachment storage."""

import pytest

from taskboard.services.storage import FileStorage, InvalidFilenameError, sanitize_filename


class TestSanitizeFilename:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("report.pdf", "report.pdf"),
            ("dir/sub/report.pdf", "report.pdf"),
            ("C:\\Users\\me\\report.pdf", "report.pdf"),
            ("  spaced.txt  ", "spaced.txt"),
        ],
    )
    def test_keeps_base_name(self, raw, expected):
        assert sanitize_filename(raw) == expected

    @pytest.mark.parametrize("raw", ["", ".", "..", "a/..", "bad\x00name", "x" * 256])
    def test_rejects_unusable_names(self, raw):
        with pytest.raises(InvalidFilenameError):
            sanitize_filename(raw)


class TestFileStorage:
    def test_write_creates_task_directory(self, storage: FileStorage):
        path = storage.write("s1", 3, "a.txt", b"abc")
        assert path == storage.root / "s1" / "3" / "a.txt"
        assert path.read_bytes() == b"abc"

    def test_write_replaces_existing_object(self, storage: FileStorage):
        storage.write("s1", 1, "a.txt", b"old")
        path = storage.write("s1", 1, "a.txt", b"new")
        assert path.read_bytes() == b"new"
        # No temporary files are left behind
        assert [p.name for p in path.parent.iterdir()] == ["a.txt"]

    def test_staged_object_is_hidden_until_published(self, storage: FileStorage):
        staged = storage.stage("s1", 1, "a.txt", b"abc")
        assert not staged.target.exists()
        assert staged.temp_path.parent == staged.target.parent

        assert storage.publish(staged) == staged.target
        assert staged.target.read_bytes() == b"abc"
        assert not staged.temp_path.exists()

    def test_discard_keeps_existing_object(self, storage: FileStorage):
        existing = storage.write("s1", 1, "a.txt", b"keep")
        staged = storage.stage("s1", 1, "a.txt", b"drop")

        storage.discard(staged)

        assert existing.read_bytes() == b"keep"
        assert [p.name for p in existing.parent.iterdir()] == ["a.txt"]

    def test_session_key_cannot_escape_root(self, storage: FileStorage):
        with pytest.raises(InvalidFilenameError):
            storage.task_dir("..", 1)
        with pytest.raises(InvalidFilenameError):
            storage.task_dir("a/b", 1)

    def test_remove_missing_object(self, storage: FileStorage):
        assert storage.remove(storage.root / "nope.txt") is False

    def test_remove_objects_and_directories(self, storage: FileStorage):
        first = storage.write("s1", 1, "a.txt", b"a")
        second = storage.write("s1", 1, "b.txt", b"b")
        other = storage.write("s1", 2, "c.txt", b"c")

        removed = storage.remove_objects([first, second], storage.task_dir("s1", 1))

        assert removed == 2
        assert not storage.task_dir("s1", 1).exists()
        # The session directory still holds task 2
        assert other.exists()

    def test_remove_last_task_directory_removes_session_directory(self, storage: FileStorage):
        path = storage.write("s1", 1, "a.txt", b"a")
        storage.remove_objects([path], storage.task_dir("s1", 1))
        assert not (storage.root / "s1").exists()
