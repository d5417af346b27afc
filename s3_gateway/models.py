from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


class Part(_CamelModel):
    """A contiguous byte range of an object, fetched through its own URL."""

    part_number: int
    part_size: int
    offset: int
    url: str | None = None
    md5: str | None = None
    source_md5: str | None = None

    @property
    def to_end(self) -> bool:
        return self.part_size < 0

    def byte_range(self) -> str:
        """Return the HTTP ``Range`` value for this part."""
        if self.to_end:
            return f"bytes={self.offset}-"
        return f"bytes={self.offset}-{self.offset + self.part_size - 1}"


class ObjectSpecification(_CamelModel):
    """Ordered parts describing how to retrieve an object.

    ``relocated`` is derived when the specification is resolved and is never
    written back to the store.
    """

    object_key: str
    object_id: str
    upload_id: str | None = None
    parts: list[Part]
    object_size: int
    object_md5: str | None = None
    relocated: bool = Field(default=False, exclude=True)

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ObjectInfo(_CamelModel):
    """One entry of the object store listing."""

    id: str
    last_modified: datetime
    size: int


class Entity(_CamelModel):
    """A metadata record describing one file."""

    id: str
    file_name: str
    gnos_id: str
    project_code: str | None = None
    access: str | None = None


class StorageFile(BaseModel):
    """A file of the mounted view: an entity joined to its listing entry."""

    model_config = ConfigDict(frozen=True)

    object_id: str
    file_name: str
    gnos_id: str
    last_modified: datetime
    size: int


class IndexFileType(enum.Enum):
    """Companion index files stored next to a data file."""

    BAI = "bai"
    TBI = "tbi"
    IDX = "idx"

    @property
    def extension(self) -> str:
        return self.value
