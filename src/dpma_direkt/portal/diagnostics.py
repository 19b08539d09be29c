from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Protocol, Union


logger = logging.getLogger(__name__)

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


class Diagnostics(Protocol):
    enabled: bool

    def save(self, name: str, content: Union[str, bytes]) -> None:
        ...


class NullDiagnostics:
    enabled = False

    def save(self, name: str, content: Union[str, bytes]) -> None:
        return None


class DirectoryDiagnostics:
    """
    Writes response bodies under `<debug_dir>/<run stamp>/` so a failed attempt can be replayed by hand.

    Best-effort: a failing write is logged at debug level and never interrupts the attempt.
    """

    enabled = True

    def __init__(self, debug_dir: Union[str, Path]) -> None:
        stamp = time.strftime("%Y%m%d_%H%M%S")
        self.root = Path(debug_dir) / f"run_{stamp}"
        self._counter = 0

    def save(self, name: str, content: Union[str, bytes]) -> None:
        self._counter += 1
        safe = _UNSAFE_NAME_RE.sub("_", name).strip("_") or "response"
        path = self.root / f"{self._counter:03d}_{safe}"
        if "." not in safe:
            path = path.with_suffix(".html" if isinstance(content, str) else ".bin")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(content, encoding="utf-8")
            logger.debug("Saved debug file %s", path)
        except Exception:
            logger.debug("Failed to save debug file %s", path, exc_info=True)
