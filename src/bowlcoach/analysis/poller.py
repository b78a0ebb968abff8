"""Wait for an uploaded video to finish server-side processing."""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..errors import RemoteProcessingFailed, RemoteProcessingTimeout
from ..provider.base import FileState, MediaProvider, RemoteMediaHandle
from ..util.logging import emit_event, get_logger
from .cancel import CancelToken

logger = get_logger(__name__)

POLL_INTERVAL_S = 1.5
POLL_TIMEOUT_S = 180.0


def wait_until_ready(
    provider: MediaProvider,
    name: str,
    *,
    interval: float = POLL_INTERVAL_S,
    timeout: float = POLL_TIMEOUT_S,
    cancel: Optional[CancelToken] = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Optional[Callable[[float], None]] = None,
) -> RemoteMediaHandle:
    """Poll ``name`` until it leaves PROCESSING and return the latest snapshot.

    The returned handle may carry a different uri or mime type than the upload
    response did; callers must use it rather than the upload-time handle.
    """
    cancel = cancel or CancelToken()
    sleep = sleep or cancel.sleep

    handle = provider.get_status(name)
    started = clock()
    polls = 1

    while handle.state is FileState.PROCESSING:
        elapsed = clock() - started
        if elapsed > timeout:
            emit_event(logger, "analysis.poll.timeout", name=name, elapsed_s=round(elapsed, 1), polls=polls)
            raise RemoteProcessingTimeout()
        sleep(interval)
        cancel.check()
        handle = provider.get_status(handle.name)
        polls += 1
        logger.debug("Video processing state: %s", handle.state.value)

    if handle.state is FileState.FAILED:
        emit_event(logger, "analysis.poll.failed", name=name, polls=polls)
        raise RemoteProcessingFailed()

    emit_event(logger, "analysis.poll.ready", name=handle.name, state=handle.state.value, polls=polls)
    return handle
