"""Error taxonomy shared by the analysis core and the HTTP layer."""

from __future__ import annotations

from typing import Dict, Optional, Sequence


class BowlCoachError(RuntimeError):
    """Base error carrying a short user-facing message and an HTTP status."""

    status_code = 500

    def __init__(self, message: str, *, headers: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.headers = headers


class InvalidInput(BowlCoachError):
    """User-correctable request problem (bad type, missing file or confirmation)."""

    status_code = 400


class FileTooLarge(InvalidInput):
    status_code = 413


class RateLimited(BowlCoachError):
    status_code = 429


class CredentialMissing(BowlCoachError):
    def __init__(self, message: str = "Server Gemini API key is not configured. Contact the administrator.") -> None:
        super().__init__(message)


class ProviderUnavailable(BowlCoachError):
    """The model provider rejected a call or could not be reached."""


class RemoteProcessingFailed(BowlCoachError):
    def __init__(self, message: str = "Gemini failed to process this video file.") -> None:
        super().__init__(message)


class RemoteProcessingTimeout(BowlCoachError):
    def __init__(self, message: str = "Video processing timed out. Try a shorter clip.") -> None:
        super().__init__(message)


class AnalysisCancelled(BowlCoachError):
    """The client went away; no further provider calls should be issued."""

    status_code = 499

    def __init__(self, message: str = "Analysis cancelled by client.") -> None:
        super().__init__(message)


class StructuralMismatch(BowlCoachError):
    """Model text is missing mandatory sections. Never leaves the repair pipeline."""

    def __init__(self, missing: Sequence[str]) -> None:
        super().__init__(f"Missing sections: {', '.join(missing)}")
        self.missing = list(missing)


__all__ = [
    "AnalysisCancelled",
    "BowlCoachError",
    "CredentialMissing",
    "FileTooLarge",
    "InvalidInput",
    "ProviderUnavailable",
    "RateLimited",
    "RemoteProcessingFailed",
    "RemoteProcessingTimeout",
    "StructuralMismatch",
]
