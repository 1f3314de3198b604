"""Local staging of downloaded print documents."""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Union

from .errors import StageError

log = logging.getLogger(__name__)

_SEPARATOR_PATTERN = re.compile(r"[/\\]")


def safe_file_name(key: str) -> str:
    """Flatten an object key into a single file name.

    Path separators become ``_`` so a key never creates nested directories.
    Names that would still address the directory itself are prefixed.
    """
    flattened = _SEPARATOR_PATTERN.sub("_", key)
    if flattened in {"", ".", ".."}:
        flattened = f"_{flattened}"
    return flattened


class StagingArea:
    """Directory that holds staged documents until they are printed."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser()

    def path_for(self, key: str) -> Path:
        return self.root / safe_file_name(key)

    def stage(self, key: str, data: bytes) -> Path:
        """
        Write *data* for *key* into the staging root.

        Returns:
            Path of the staged file

        Raises:
            StageError: If the file cannot be written.
        """
        targetPath = self.path_for(key)
        temporaryPath = None
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            if targetPath.resolve().parent != self.root.resolve():
                raise StageError(key, str(targetPath), "target escapes the staging directory")
            fileDescriptor, temporaryName = tempfile.mkstemp(dir=self.root, prefix=".staging-")
            temporaryPath = Path(temporaryName)
            with os.fdopen(fileDescriptor, "wb") as handle:
                handle.write(data)
            os.replace(temporaryPath, targetPath)
            temporaryPath = None
        except OSError as error:
            raise StageError(key, str(targetPath), str(error)) from error
        finally:
            if temporaryPath is not None:
                temporaryPath.unlink(missing_ok=True)
        log.info("Saved %s locally (%d bytes).", targetPath.name, len(data))
        return targetPath

    def remove(self, path: Union[str, Path]) -> None:
        """Delete a staged file. ``OSError`` is left to the caller."""
        Path(path).unlink()
        log.info("Deleted local file: %s", path)


__all__ = ["StagingArea", "safe_file_name"]
