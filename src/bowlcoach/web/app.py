"""FastAPI application exposing the analyze and health endpoints."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager, suppress
from typing import Dict, Optional

import anyio.to_thread
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse, Response

from ..analysis.cancel import CancelToken
from ..analysis.orchestrator import AnalysisOrchestrator, AnalysisRequest, ProviderFactory
from ..errors import (
    AnalysisCancelled,
    BowlCoachError,
    CredentialMissing,
    FileTooLarge,
    InvalidInput,
)
from ..provider.gemini import GeminiFilesClient
from ..settings import Settings, get_settings
from ..util.logging import emit_event, get_logger
from .state import RateLimiter, UploadStore
from .upload_form import read_upload_form

logger = get_logger(__name__)

ALLOWED_VIDEO_TYPES = frozenset(
    {
        "video/mp4",
        "video/quicktime",
        "video/x-msvideo",
        "video/webm",
        "video/x-matroska",
        "video/mpeg",
        "video/3gpp",
    }
)

# multipart boundaries and the confirmation field ride on top of the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024
DISCONNECT_POLL_S = 0.5


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


def client_key(request: Request, *, trust_proxy: bool = False) -> str:
    """Rate-limit key: the peer address, or the hop the proxy appended when one is trusted.

    Only the rightmost ``X-Forwarded-For`` entry is written by our own proxy; anything
    to its left comes from the client and is ignored.
    """
    if trust_proxy:
        forwarded = [hop.strip() for hop in request.headers.get("x-forwarded-for", "").split(",") if hop.strip()]
        if forwarded:
            return forwarded[-1]
    return request.client.host if request.client else "unknown"


async def _watch_disconnect(request: Request, cancel: CancelToken) -> None:
    while not cancel.cancelled:
        if await request.is_disconnected():
            emit_event(logger, "analysis.client.disconnected")
            cancel.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_S)


def create_app(
    settings: Optional[Settings] = None,
    *,
    provider_factory: ProviderFactory = GeminiFilesClient,
    rate_limiter: Optional[RateLimiter] = None,
    upload_store: Optional[UploadStore] = None,
) -> FastAPI:
    """Build the app with explicitly scoped state; nothing lives in module globals."""
    settings = settings or get_settings()
    limiter = rate_limiter or RateLimiter(settings.rate_limit)
    store = upload_store or UploadStore(settings.temp_dir)
    orchestrator = AnalysisOrchestrator(
        provider_factory,
        poll_interval=settings.poll_interval_s,
        poll_timeout=settings.poll_timeout_s,
    )

    async def _reset_rate_window() -> None:
        while True:
            await asyncio.sleep(settings.rate_window_s)
            limiter.reset()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store.open()
        # each analysis holds a worker thread while it polls the provider
        thread_limiter = anyio.to_thread.current_default_thread_limiter()
        thread_limiter.total_tokens = settings.worker_threads
        app.state.thread_limiter = thread_limiter
        reset_task = asyncio.create_task(_reset_rate_window())
        logger.info("Bowling analysis ready on http://%s:%s", settings.host, settings.port)
        try:
            yield
        finally:
            reset_task.cancel()
            with suppress(asyncio.CancelledError):
                await reset_task
            limiter.reset()
            store.close()
            logger.info("Shut down; temp uploads removed")

    app = FastAPI(title="Bowling Action Coach", lifespan=lifespan)
    app.state.settings = settings
    app.state.rate_limiter = limiter
    app.state.upload_store = store
    app.state.started_at = time.monotonic()

    @app.exception_handler(BowlCoachError)
    async def bowlcoach_error_handler(request: Request, exc: BowlCoachError) -> JSONResponse:
        return _error(exc.status_code, exc.message, exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return _error(404, "Not found.")
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return _error(500, "Internal server error.")

    @app.get("/api/health")
    async def health() -> dict:
        return {"ok": True, "uptime": int(time.monotonic() - app.state.started_at)}

    async def _run_analysis(request: Request, rate_headers: Dict[str, str]) -> Response:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > settings.max_file_bytes + MULTIPART_OVERHEAD_BYTES:
            raise FileTooLarge(f"File too large. Maximum size is {settings.max_file_mb} MB.")

        form = await read_upload_form(
            request,
            store,
            limit=settings.max_file_bytes,
            max_mb=settings.max_file_mb,
            allowed_types=ALLOWED_VIDEO_TYPES,
        )
        try:
            if form.video_path is None:
                raise InvalidInput("Please upload a video file.")

            if not settings.gemini_api_key:
                raise CredentialMissing()

            if form.fields.get("sideOnConfirmed", "false") != "true":
                raise InvalidInput("Please confirm the uploaded clip is side-on for reliable analysis.")

            analysis_request = AnalysisRequest(
                local_file_path=form.video_path,
                mime_type=form.video_content_type or "video/mp4",
                model=settings.gemini_model,
                api_key=settings.gemini_api_key,
            )
            cancel = CancelToken()
            watcher = asyncio.create_task(_watch_disconnect(request, cancel))
            try:
                result = await run_in_threadpool(orchestrator.analyze, analysis_request, cancel)
            except AnalysisCancelled:
                raise
            except BowlCoachError as exc:
                logger.error("Analysis failed: %s", exc.message)
                return _error(exc.status_code, f"Analysis failed: {exc.message}", rate_headers)
            except Exception:
                logger.exception("Analysis failed with an unexpected error")
                return _error(500, "Analysis failed: Unexpected error while analysing the video.", rate_headers)
            finally:
                watcher.cancel()
                with suppress(asyncio.CancelledError):
                    await watcher

            return JSONResponse({"analysis": result.text}, headers=rate_headers)
        finally:
            if form.video_path is not None:
                store.discard(form.video_path)

    @app.post("/api/analyze")
    async def analyze(request: Request) -> Response:
        rate_headers = limiter.hit(client_key(request, trust_proxy=settings.trust_proxy))
        try:
            return await _run_analysis(request, rate_headers)
        except AnalysisCancelled:
            logger.info("Client disconnected; analysis abandoned")
            return Response(status_code=AnalysisCancelled.status_code)
        except BowlCoachError as exc:
            if exc.headers is None:
                exc.headers = rate_headers
            raise

    if settings.static_dir and settings.static_dir.is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


__all__ = ["ALLOWED_VIDEO_TYPES", "client_key", "create_app"]
