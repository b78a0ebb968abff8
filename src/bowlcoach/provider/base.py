"""Provider interfaces for remote video analysis."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Protocol, Sequence, Union

from pydantic import BaseModel


class FileState(str, Enum):
    STATE_UNSPECIFIED = "STATE_UNSPECIFIED"
    PROCESSING = "PROCESSING"
    ACTIVE = "ACTIVE"
    FAILED = "FAILED"

    @classmethod
    def parse(cls, value: object) -> "FileState":
        try:
            return cls(str(value).upper())
        except ValueError:
            return cls.STATE_UNSPECIFIED


class RemoteMediaHandle(BaseModel):
    """Snapshot of a video registered with the provider."""

    name: str
    uri: str = ""
    mime_type: str = "video/mp4"
    state: FileState = FileState.PROCESSING


class MediaPart(BaseModel):
    """Reference to an uploaded file inside a generation request."""

    uri: str
    mime_type: str

    @classmethod
    def from_handle(cls, handle: RemoteMediaHandle) -> "MediaPart":
        return cls(uri=handle.uri, mime_type=handle.mime_type)


Content = Union[MediaPart, str]


class MediaProvider(Protocol):
    def upload(self, path: Path, mime_type: str) -> RemoteMediaHandle:
        """Register a local video with the provider."""

    def get_status(self, name: str) -> RemoteMediaHandle:
        """Fetch the latest snapshot of an uploaded file."""

    def generate(self, model: str, contents: Sequence[Content]) -> Any:
        """Run the model over the given contents and return the raw response."""

    def delete(self, name: str) -> None:
        """Release the uploaded file."""


__all__ = ["Content", "FileState", "MediaPart", "MediaProvider", "RemoteMediaHandle"]
