"""Stream a multipart upload straight into the upload store, enforcing the size cap per chunk."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Collection, Dict, List, Mapping, Optional, Protocol

from python_multipart.multipart import MultipartParser, parse_options_header
from starlette.requests import ClientDisconnect

from ..errors import AnalysisCancelled, BowlCoachError, FileTooLarge, InvalidInput
from .state import UploadStore

VIDEO_FIELD = "video"
MAX_FIELD_BYTES = 64 * 1024


class StreamingRequest(Protocol):
    @property
    def headers(self) -> Mapping[str, str]: ...

    def stream(self) -> AsyncIterator[bytes]: ...


@dataclass
class UploadForm:
    fields: Dict[str, str] = field(default_factory=dict)
    video_path: Optional[Path] = None
    video_filename: Optional[str] = None
    video_content_type: Optional[str] = None


@dataclass
class _Part:
    name: str = ""
    filename: Optional[str] = None
    content_type: str = ""
    data: bytearray = field(default_factory=bytearray)
    sink: Optional[BinaryIO] = None


class _FormCollector:
    """python-multipart callbacks that route the video part to disk and small fields to memory."""

    def __init__(self, store: UploadStore, limit: int, max_mb: int, allowed_types: Collection[str]) -> None:
        self.store = store
        self.limit = limit
        self.max_mb = max_mb
        self.allowed_types = allowed_types
        self.form = UploadForm()
        self.written = 0
        self._part = _Part()
        self._headers: Dict[bytes, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()
        self._open: List[BinaryIO] = []

    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
        }

    def on_part_begin(self) -> None:
        self._part = _Part()
        self._headers = {}

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field = bytearray()
        self._header_value = bytearray()

    def on_headers_finished(self) -> None:
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        part = self._part
        part.name = options.get(b"name", b"").decode("latin-1")
        filename = options.get(b"filename")
        if filename is None:
            return

        if part.name != VIDEO_FIELD or self.form.video_path is not None:
            raise InvalidInput("Please upload a single video file in the \"video\" field.")
        part.filename = filename.decode("utf-8", errors="replace")
        part.content_type = self._headers.get(b"content-type", b"").decode("latin-1").strip()
        if part.content_type not in self.allowed_types:
            raise InvalidInput(f'Unsupported file type "{part.content_type}". Please upload a video.')

        path, sink = self.store.create(Path(part.filename).suffix)
        self._open.append(sink)
        part.sink = sink
        self.form.video_path = path
        self.form.video_filename = part.filename
        self.form.video_content_type = part.content_type

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        part = self._part
        chunk = data[start:end]
        if part.sink is None:
            part.data += chunk
            if len(part.data) > MAX_FIELD_BYTES:
                raise InvalidInput(f'Form field "{part.name}" is too large.')
            return
        self.written += len(chunk)
        if self.written > self.limit:
            raise FileTooLarge(f"File too large. Maximum size is {self.max_mb} MB.")
        part.sink.write(chunk)

    def on_part_end(self) -> None:
        part = self._part
        if part.sink is not None:
            part.sink.close()
        elif part.name:
            self.form.fields[part.name] = part.data.decode("utf-8", errors="replace")

    def close(self) -> None:
        for sink in self._open:
            sink.close()


async def read_upload_form(
    request: StreamingRequest,
    store: UploadStore,
    *,
    limit: int,
    max_mb: int,
    allowed_types: Collection[str],
) -> UploadForm:
    """Parse the request body chunk by chunk, aborting as soon as the video passes ``limit`` bytes.

    A partially written video is discarded on any failure.
    """
    content_type, params = parse_options_header(request.headers.get("content-type", ""))
    if content_type != b"multipart/form-data":
        return UploadForm()
    boundary = params.get(b"boundary")
    if not boundary:
        raise InvalidInput("Malformed upload: missing multipart boundary.")

    collector = _FormCollector(store, limit, max_mb, allowed_types)
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        async for chunk in request.stream():
            parser.write(chunk)
        parser.finalize()
    except Exception as exc:
        collector.close()
        if collector.form.video_path is not None:
            store.discard(collector.form.video_path)
        if isinstance(exc, BowlCoachError):
            raise
        if isinstance(exc, ClientDisconnect):
            raise AnalysisCancelled() from exc
        raise InvalidInput("Malformed upload: could not parse multipart body.") from exc
    collector.close()
    return collector.form


__all__ = ["UploadForm", "VIDEO_FIELD", "read_upload_form"]
