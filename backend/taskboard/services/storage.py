"""Attachment storage on the local filesystem.

Objects live at ``<root>/<session_key>/<task_number>/<filename>``. Writes are
staged in a temporary file in the target directory and moved into place with
``os.replace`` so a reader never observes a partially written object. Callers
that record objects in the database publish only after the row is accepted.
"""

import logging
import os
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from taskboard.config import settings

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 255


class StorageError(Exception):
    """Exception raised for attachment storage errors."""

    pass


class InvalidFilenameError(StorageError):
    """Raised when a filename or path segment cannot be stored safely."""


def sanitize_filename(filename: str) -> str:
    """Reduce a client-supplied filename to a safe base name.

    Raises:
        InvalidFilenameError: If nothing usable remains.
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name in ("", ".", "..") or "\x00" in name:
        raise InvalidFilenameError(f"Invalid filename: {filename!r}")
    if len(name) > MAX_FILENAME_LENGTH:
        raise InvalidFilenameError(f"Filename longer than {MAX_FILENAME_LENGTH} characters")
    return name


def _safe_segment(value: str) -> str:
    if value in ("", ".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise InvalidFilenameError(f"Invalid path segment: {value!r}")
    return value


@dataclass(frozen=True)
class StagedObject:
    temp_path: Path
    target: Path


@dataclass
class FileStorage:
    root: Path

    def task_dir(self, session_key: str, task_number: int) -> Path:
        return self.root / _safe_segment(session_key) / str(task_number)

    def object_path(self, session_key: str, task_number: int, filename: str) -> Path:
        return self.task_dir(session_key, task_number) / sanitize_filename(filename)

    def stage(
        self, session_key: str, task_number: int, filename: str, content: bytes
    ) -> StagedObject:
        """Write content to a temporary file beside its final path.

        Nothing is visible at the final path until ``publish``.
        """
        target = self.object_path(session_key, task_number, filename)
        target.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(content)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return StagedObject(temp_path=Path(tmp_name), target=target)

    def publish(self, staged: StagedObject) -> Path:
        """Atomically move a staged object to its final path."""
        try:
            os.replace(staged.temp_path, staged.target)
        except OSError:
            self.discard(staged)
            raise
        logger.debug(f"Stored object at {staged.target}")
        return staged.target

    def discard(self, staged: StagedObject) -> None:
        staged.temp_path.unlink(missing_ok=True)

    def write(self, session_key: str, task_number: int, filename: str, content: bytes) -> Path:
        """Atomically write an object and return its path."""
        return self.publish(self.stage(session_key, task_number, filename, content))

    def exists(self, path: str | Path) -> bool:
        return Path(path).is_file()

    def remove(self, path: str | Path) -> bool:
        """Best-effort removal of a single object. Returns True if it was removed."""
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to remove stored object {path}: {e!r}")
            return False
        return True

    def remove_dir(self, directory: str | Path) -> None:
        """Best-effort removal of a task directory and its now-empty session directory."""
        directory = Path(directory)
        shutil.rmtree(directory, ignore_errors=True)
        try:
            directory.parent.rmdir()
        except OSError:
            # Session directory still holds other tasks, or is already gone
            pass

    def remove_objects(
        self, paths: Iterable[str | Path], directory: str | Path | None = None
    ) -> int:
        """Remove several objects, then optionally their directory. Returns the removed count."""
        removed = sum(1 for path in paths if self.remove(path))
        if directory is not None:
            self.remove_dir(directory)
        logger.info(f"Removed {removed} stored object(s), directory={directory}")
        return removed


def get_storage() -> FileStorage:
    """FastAPI dependency returning storage rooted at the configured path."""
    return FileStorage(settings.files_base_path)
