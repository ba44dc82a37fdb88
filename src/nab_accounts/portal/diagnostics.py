from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Sequence

from .driver import BrowserDriver


logger = logging.getLogger(__name__)

SNAPSHOT_TIMEOUT_MS = 5_000


def _safe_reason(reason: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]+", "_", reason or "").strip("_")[:60] or "error"


class DiagnosticsCollector:
    """
    Best-effort failure snapshots (PNG of the current viewport) for offline debugging.

    `capture()` never raises: diagnostics must not mask or replace the error being diagnosed.
    Credential inputs are passed as `mask` and are painted over before the image is taken.
    """

    def __init__(
        self,
        output_dir: str,
        *,
        clock: Callable[[], datetime] = datetime.now,
        timeout_ms: int = SNAPSHOT_TIMEOUT_MS,
    ) -> None:
        self.output_dir = Path(output_dir)
        self._clock = clock
        self.timeout_ms = int(timeout_ms)

    def snapshot_path(self, reason: str) -> Path:
        stamp = self._clock().strftime("%Y%m%d_%H%M%S")
        return self.output_dir / f"nab_debug_{_safe_reason(reason)}_{stamp}.png"

    def capture(
        self,
        driver: Optional[BrowserDriver],
        reason: str,
        *,
        mask: Sequence[str] = (),
        timeout_ms: Optional[int] = None,
    ) -> Optional[Path]:
        if driver is None:
            logger.info("No live browser session; skipping diagnostics snapshot (reason=%s).", reason)
            return None

        path = self.snapshot_path(reason)
        try:
            png = driver.screenshot(
                mask=tuple(mask),
                timeout_ms=self.timeout_ms if timeout_ms is None else int(timeout_ms),
            )
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(png)
        except Exception:
            logger.warning("Failed to save diagnostics snapshot (reason=%s).", reason)
            logger.debug("Diagnostics snapshot error.", exc_info=True)
            return None

        logger.info("Screenshot captured: %s", path)
        return path
