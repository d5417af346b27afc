"""Path-based access to a :class:`MountStorageContext`.

Translates the operations a filesystem adapter needs (listing, stat, open)
into lookups against the context's indices.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath
from typing import TYPE_CHECKING

from .context import Once

if TYPE_CHECKING:
    from ..models import StorageFile
    from .context import MountStorageContext


class StorageFileLayout(enum.Enum):
    # /<gnos_id>/<file_name>
    BUNDLE = "bundle"
    # /<object_id>
    OBJECT_ID = "object-id"


@dataclass(frozen=True)
class FileStat:
    is_dir: bool
    size: int = 0
    last_modified: datetime | None = None


class MountView:
    def __init__(
        self,
        context: MountStorageContext,
        layout: StorageFileLayout = StorageFileLayout.BUNDLE,
    ):
        self._context = context
        self._layout = layout
        self._groups = Once(
            lambda: tuple(sorted({file.gnos_id for file in context.files()}))
        )

    @property
    def layout(self) -> StorageFileLayout:
        return self._layout

    def list_dir(self, path: str) -> list[str]:
        self._context.increment_count("list_dir")
        parts = self._split(path)
        if not parts:
            if self._layout is StorageFileLayout.BUNDLE:
                return list(self._groups.get())
            return [file.object_id for file in self._context.files()]

        if self._layout is StorageFileLayout.BUNDLE and len(parts) == 1:
            files = self._context.get_files_by_group(parts[0])
            if files:
                return [file.file_name for file in files]

        if self.resolve(path) is not None:
            raise NotADirectoryError(path)
        raise FileNotFoundError(path)

    def stat(self, path: str) -> FileStat:
        self._context.increment_count("stat")
        parts = self._split(path)
        if not parts:
            return FileStat(is_dir=True)
        if (
            self._layout is StorageFileLayout.BUNDLE
            and len(parts) == 1
            and self._context.get_files_by_group(parts[0])
        ):
            return FileStat(is_dir=True)

        file = self.resolve(path)
        if file is None:
            raise FileNotFoundError(path)
        return FileStat(is_dir=False, size=file.size, last_modified=file.last_modified)

    def resolve(self, path: str) -> StorageFile | None:
        """Return the file at ``path``, or None for directories and unknown paths."""
        parts = self._split(path)
        if self._layout is StorageFileLayout.OBJECT_ID:
            if len(parts) != 1:
                return None
            return self._context.get_file(parts[0])

        if len(parts) != 2:
            return None
        gnos_id, file_name = parts
        for file in self._context.get_files_by_group(gnos_id):
            if file.file_name == file_name:
                return file
        return None

    def path_of(self, file: StorageFile) -> str:
        if self._layout is StorageFileLayout.OBJECT_ID:
            return f"/{file.object_id}"
        return f"/{file.gnos_id}/{file.file_name}"

    def url(self, path: str) -> str:
        """Return a presigned URL for reading the file at ``path``."""
        self._context.increment_count("url")
        file = self.resolve(path)
        if file is None:
            if self._split(path):
                self.stat(path)
            raise IsADirectoryError(path)
        return self._context.get_url(file.object_id)

    @staticmethod
    def _split(path: str) -> tuple[str, ...]:
        pure = PurePosixPath("/", path)
        return tuple(part for part in pure.parts[1:] if part not in {"", "."})
