"""Application settings loaded from environment variables."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

DEFAULT_MODEL = "gemini-2.5-flash"
MB = 1024 * 1024


class Settings(BaseModel):
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_MODEL
    host: str = "0.0.0.0"
    port: int = 3000
    rate_limit: int = 10
    rate_window_s: float = 60.0
    trust_proxy: bool = False
    worker_threads: int = 100
    max_file_bytes: int = 250 * MB
    temp_dir: Path = Path(".tmp-uploads")
    static_dir: Optional[Path] = None
    poll_interval_s: float = 1.5
    poll_timeout_s: float = 180.0
    log_level: Optional[str] = None

    @property
    def max_file_mb(self) -> int:
        return self.max_file_bytes // MB

    @classmethod
    def from_env(cls) -> "Settings":
        static_dir = os.getenv("STATIC_DIR")
        return cls(
            gemini_api_key=(os.getenv("GEMINI_API_KEY") or "").strip() or None,
            gemini_model=(os.getenv("GEMINI_MODEL") or DEFAULT_MODEL).strip(),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
            rate_limit=int(os.getenv("RATE_LIMIT", "10")),
            trust_proxy=os.getenv("TRUST_PROXY", "0").lower() in {"1", "true", "yes"},
            worker_threads=int(os.getenv("WORKER_THREADS", "100")),
            max_file_bytes=int(os.getenv("MAX_FILE_MB", "250")) * MB,
            temp_dir=Path(os.getenv("UPLOAD_TMP_DIR", ".tmp-uploads")),
            static_dir=Path(static_dir) if static_dir else None,
            log_level=os.getenv("BOWLCOACH_LOG_LEVEL"),
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings.from_env()
