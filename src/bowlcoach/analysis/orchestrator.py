"""Drive one uploaded clip through upload, processing, generation and repair."""

from __future__ import annotations

import time
from functools import partial
from pathlib import Path
from typing import Callable, Optional

from pydantic import BaseModel, SecretStr

from ..provider.base import MediaPart, MediaProvider, RemoteMediaHandle
from ..provider.gemini import GeminiFilesClient
from ..settings import DEFAULT_MODEL
from ..util.logging import emit_event, get_logger
from .cancel import CancelToken
from .extract import extract_text
from .poller import POLL_INTERVAL_S, POLL_TIMEOUT_S, wait_until_ready
from .prompts import COACH_PROMPT, build_reformat_prompt
from .repair import AnalysisResult, RepairPipeline

logger = get_logger(__name__)

ProviderFactory = Callable[[str], MediaProvider]


class AnalysisRequest(BaseModel):
    local_file_path: Path
    mime_type: str = "video/mp4"
    model: str = DEFAULT_MODEL
    api_key: SecretStr


class AnalysisOrchestrator:
    """Sequence the provider calls for one request and always release the remote file."""

    def __init__(
        self,
        provider_factory: ProviderFactory = GeminiFilesClient,
        *,
        poll_interval: float = POLL_INTERVAL_S,
        poll_timeout: float = POLL_TIMEOUT_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._provider_factory = provider_factory
        self._poll_interval = poll_interval
        self._poll_timeout = poll_timeout
        self._clock = clock
        self._sleep = sleep

    def analyze(self, request: AnalysisRequest, cancel: Optional[CancelToken] = None) -> AnalysisResult:
        cancel = cancel or CancelToken()
        provider = self._provider_factory(request.api_key.get_secret_value())
        handle: Optional[RemoteMediaHandle] = None
        started = time.monotonic()

        try:
            cancel.check()
            emit_event(logger, "analysis.upload.start", path=request.local_file_path.name, mime_type=request.mime_type)
            handle = provider.upload(request.local_file_path, request.mime_type)

            cancel.check()
            ready = wait_until_ready(
                provider,
                handle.name,
                interval=self._poll_interval,
                timeout=self._poll_timeout,
                cancel=cancel,
                clock=self._clock,
                sleep=self._sleep,
            )

            cancel.check()
            response = provider.generate(request.model, [MediaPart.from_handle(ready), COACH_PROMPT])
            raw_text = extract_text(response).strip()

            pipeline = RepairPipeline(partial(self._reformat, provider, request.model, cancel))
            result = pipeline.run(raw_text)
            emit_event(
                logger,
                "analysis.complete",
                outcome=result.outcome.value,
                reformat_attempts=result.reformat_attempts,
                elapsed_s=round(time.monotonic() - started, 1),
            )
            return result
        finally:
            if handle is not None:
                self._release(provider, handle)

    @staticmethod
    def _reformat(provider: MediaProvider, model: str, cancel: CancelToken, text: str) -> str:
        cancel.check()
        emit_event(logger, "analysis.repair.reformat", model=model, chars=len(text))
        return extract_text(provider.generate(model, [build_reformat_prompt(text)]))

    @staticmethod
    def _release(provider: MediaProvider, handle: RemoteMediaHandle) -> None:
        """Delete the remote file; failures are logged and never replace the primary error."""
        try:
            provider.delete(handle.name)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to delete remote file %s: %s", handle.name, exc)
            emit_event(logger, "analysis.cleanup.failed", name=handle.name)


def analyze_video(
    request: AnalysisRequest,
    *,
    provider_factory: ProviderFactory = GeminiFilesClient,
    cancel: Optional[CancelToken] = None,
) -> str:
    """Convenience entrypoint returning only the structured report text."""
    return AnalysisOrchestrator(provider_factory).analyze(request, cancel).text


__all__ = ["AnalysisOrchestrator", "AnalysisRequest", "ProviderFactory", "analyze_video"]
