"""Process-scoped state owned by the web app: rate counters and the upload directory."""

from __future__ import annotations

import shutil
import tempfile
import threading
from collections import Counter
from pathlib import Path
from typing import BinaryIO, Dict, Tuple

from ..errors import RateLimited
from ..util.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Fixed-window hit counter per client key; the app lifespan calls ``reset`` every window."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._hits: Counter[str] = Counter()
        self._lock = threading.Lock()

    def hit(self, key: str) -> Dict[str, str]:
        """Count one request for ``key``; return rate headers or raise ``RateLimited``."""
        with self._lock:
            self._hits[key] += 1
            count = self._hits[key]
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.limit - count)),
        }
        if count > self.limit:
            raise RateLimited("Too many requests. Please wait before trying again.", headers=headers)
        return headers

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class UploadStore:
    """Temp directory holding in-flight uploads, one file per request."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def open(self) -> None:
        """Create the directory and purge leftovers from interrupted runs."""
        self.root.mkdir(parents=True, exist_ok=True)
        for stale in self.root.iterdir():
            if stale.is_file():
                self.discard(stale)

    def create(self, suffix: str = "") -> Tuple[Path, BinaryIO]:
        """Open a fresh temp file for one upload; the caller writes and closes it."""
        self.root.mkdir(parents=True, exist_ok=True)
        sink = tempfile.NamedTemporaryFile(dir=self.root, suffix=suffix, delete=False)
        return Path(sink.name), sink

    def discard(self, path: Path) -> None:
        try:
            Path(path).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Failed to remove temp upload %s: %s", path, exc)

    def close(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)


__all__ = ["RateLimiter", "UploadStore"]
