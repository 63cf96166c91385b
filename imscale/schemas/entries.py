from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

EntryType = Literal["directory", "image", "file"]


class Entry(BaseModel):
    """One row of a directory listing."""

    name: str
    type: EntryType
    size: int = Field(ge=0)
    modified: datetime


class EntryDetail(Entry):
    """A single non-directory entry, with its stored pixel dimensions."""

    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    download_url: str


class ResizeRequest(BaseModel):
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    preserve_aspect_ratio: bool = False

    @property
    def should_resize(self) -> bool:
        # Resizing needs both bounds; one alone leaves the image untouched.
        return self.width is not None and self.height is not None
