"""Gemini REST client covering the file lifecycle and content generation."""

from __future__ import annotations

import random
import time
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import requests

from ..errors import CredentialMissing, ProviderUnavailable
from ..util.logging import emit_event, get_logger
from .base import Content, FileState, MediaPart, RemoteMediaHandle

logger = get_logger(__name__)


class GeminiFilesClient:
    """Call the Gemini Files and generateContent endpoints over plain HTTP."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    UPLOAD_URL = "https://generativelanguage.googleapis.com/upload/v1beta/files"

    RETRY_STATUSES = {429, 500, 502, 503, 504}

    def __init__(self, api_key: Optional[str], *, session: Optional[requests.Session] = None) -> None:
        if not api_key:
            raise CredentialMissing()
        self.api_key = api_key
        self.session = session or requests.Session()

    # ---------- file lifecycle ----------

    def upload(self, path: Path, mime_type: str) -> RemoteMediaHandle:
        num_bytes = path.stat().st_size
        emit_event(logger, "gemini.upload.start", size_mb=round(num_bytes / 1024 / 1024, 2), mime_type=mime_type)

        init_response = self._request(
            "POST",
            self.UPLOAD_URL,
            headers={
                "X-Goog-Upload-Protocol": "resumable",
                "X-Goog-Upload-Command": "start",
                "X-Goog-Upload-Header-Content-Length": str(num_bytes),
                "X-Goog-Upload-Header-Content-Type": mime_type,
                "Content-Type": "application/json",
            },
            json={"file": {"display_name": path.name}},
            timeout=30,
        )
        upload_url = init_response.headers.get("X-Goog-Upload-URL")
        if not upload_url:
            raise ProviderUnavailable("No upload URL returned from Gemini API.")

        with path.open("rb") as video_file:
            upload_response = self._request(
                "POST",
                upload_url,
                headers={
                    "Content-Length": str(num_bytes),
                    "X-Goog-Upload-Offset": "0",
                    "X-Goog-Upload-Command": "upload, finalize",
                },
                data=video_file,
                timeout=300,
                authenticated=False,
            )

        handle = self._handle_from_payload(self._json(upload_response).get("file") or {}, mime_type)
        emit_event(logger, "gemini.upload.complete", name=handle.name, state=handle.state.value)
        return handle

    def get_status(self, name: str) -> RemoteMediaHandle:
        response = self._request("GET", f"{self.BASE_URL}/{name}", timeout=30, max_attempts=3)
        return self._handle_from_payload(self._json(response), None)

    def delete(self, name: str) -> None:
        self._request("DELETE", f"{self.BASE_URL}/{name}", timeout=30, max_attempts=3)
        emit_event(logger, "gemini.delete.complete", name=name)

    # ---------- generation ----------

    def generate(self, model: str, contents: Sequence[Content]) -> Dict[str, Any]:
        parts = [self._to_part(item) for item in contents]
        emit_event(logger, "gemini.generate.start", model=model, parts=len(parts))
        response = self._request(
            "POST",
            f"{self.BASE_URL}/models/{model}:generateContent",
            headers={"Content-Type": "application/json"},
            json={"contents": [{"parts": parts}]},
            timeout=300,
        )
        return self._json(response)

    @staticmethod
    def _to_part(item: Content) -> Dict[str, Any]:
        if isinstance(item, MediaPart):
            return {"file_data": {"mime_type": item.mime_type, "file_uri": item.uri}}
        return {"text": str(item)}

    @staticmethod
    def _json(response: requests.Response) -> Dict[str, Any]:
        """Decode a success body, treating anything but a JSON object as a provider failure."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderUnavailable("Gemini API returned a response that is not valid JSON.") from exc
        if not isinstance(payload, dict):
            raise ProviderUnavailable("Gemini API returned an unexpected response shape.")
        return payload

    @staticmethod
    def _handle_from_payload(payload: Any, fallback_mime: Optional[str]) -> RemoteMediaHandle:
        if not isinstance(payload, dict):
            raise ProviderUnavailable("Gemini API returned an unexpected file description.")
        name = payload.get("name")
        if not name:
            raise ProviderUnavailable("Gemini returned a file without a name.")
        return RemoteMediaHandle(
            name=str(name),
            uri=str(payload.get("uri") or ""),
            mime_type=str(payload.get("mimeType") or fallback_mime or "video/mp4"),
            state=FileState.parse(payload.get("state") or "PROCESSING"),
        )

    # ---------- transport ----------

    def _request(
        self,
        method: str,
        url: str,
        *,
        max_attempts: int = 1,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> requests.Response:
        """Perform an HTTP request, retrying idempotent calls on retryable failures."""
        if authenticated:
            kwargs.setdefault("params", {})["key"] = self.api_key
        delay = 1.0
        for attempt in range(1, max_attempts + 1):
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.RequestException as exc:
                if attempt == max_attempts:
                    raise ProviderUnavailable(f"Could not reach Gemini API ({exc.__class__.__name__}).") from exc
                time.sleep(delay + random.uniform(0, 0.25))
                delay *= 2
                continue

            if response.ok:
                return response

            if response.status_code in self.RETRY_STATUSES and attempt < max_attempts:
                logger.debug("Retrying %s %s after HTTP %s", method, url, response.status_code)
                response.close()
                time.sleep(delay + random.uniform(0, 0.25))
                delay *= 2
                continue

            message = self._primary_error_message(response)
            response.close()
            raise ProviderUnavailable(f"Gemini API error {response.status_code}: {message}")

        raise ProviderUnavailable(f"Gemini API {method.upper()} failed after {max_attempts} attempts.")

    @staticmethod
    def _primary_error_message(response: requests.Response) -> str:
        """Pull ``error.message`` out of a Google error payload, never the raw body."""
        try:
            payload = response.json()
        except ValueError:
            return response.reason or "Unknown error"
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return response.reason or "Unknown error"


__all__ = ["GeminiFilesClient"]
