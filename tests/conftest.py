from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pytest

from bowlcoach.analysis.sections import REQUIRED_SECTIONS
from bowlcoach.errors import ProviderUnavailable
from bowlcoach.provider.base import Content, FileState, MediaPart, RemoteMediaHandle

WELL_FORMED_REPORT = "\n\n".join(f"{heading}\n   - Observation for {heading[3:].lower()}." for heading in REQUIRED_SECTIONS)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """In-memory stand-in for the Gemini Files API that records every call."""

    def __init__(
        self,
        *,
        states: Iterable[str] = ("ACTIVE",),
        replies: Sequence[object] = (WELL_FORMED_REPORT,),
        fail_on: Optional[str] = None,
        fail_delete: bool = False,
    ) -> None:
        self.states = list(states)
        self.replies = list(replies)
        self.fail_on = fail_on
        self.fail_delete = fail_delete
        self.calls: List[str] = []
        self.generated: List[Sequence[Content]] = []
        self.deleted: List[str] = []

    def _maybe_fail(self, op: str) -> None:
        if self.fail_on == op:
            raise ProviderUnavailable(f"{op} exploded")

    def upload(self, path: Path, mime_type: str) -> RemoteMediaHandle:
        self.calls.append("upload")
        self._maybe_fail("upload")
        return RemoteMediaHandle(name="files/abc123", uri="https://upload/abc123", mime_type=mime_type)

    def get_status(self, name: str) -> RemoteMediaHandle:
        self.calls.append("get_status")
        self._maybe_fail("get_status")
        state = self.states.pop(0) if len(self.states) > 1 else self.states[0]
        return RemoteMediaHandle(
            name=name,
            uri="https://ready/abc123",
            mime_type="video/mp4",
            state=FileState.parse(state),
        )

    def generate(self, model: str, contents: Sequence[Content]) -> object:
        self.calls.append("generate")
        self.generated.append(contents)
        self._maybe_fail("generate")
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        return {"text": reply} if isinstance(reply, str) else reply

    def delete(self, name: str) -> None:
        self.calls.append("delete")
        self.deleted.append(name)
        if self.fail_delete:
            raise RuntimeError("delete exploded")

    @property
    def media_parts(self) -> List[MediaPart]:
        return [item for contents in self.generated for item in contents if isinstance(item, MediaPart)]


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def sample_video(tmp_path: Path) -> Path:
    path = tmp_path / "delivery.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 1024)
    return path
