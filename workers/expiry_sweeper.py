"""
Periodic removal of expired verification requests.

Purely storage hygiene: redemption already treats expired requests as
absent. Safe to run in any single worker; running it in several only
repeats idempotent deletes.
"""

from __future__ import annotations

import threading
from typing import Optional

from errors import StorageUnavailableError
from services.verification_service import VerificationService
from shared.logging import get_logger

log = get_logger(__name__)


class ExpirySweeper:
    def __init__(self, service: VerificationService, interval_seconds: int = 300) -> None:
        self._service = service
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def run_once(self) -> int:
        try:
            return self._service.sweep_expired()
        except StorageUnavailableError:
            # Next tick retries; the store already logged the cause
            log.warning("expiry_sweep_skipped")
            return 0

    def run_forever(self) -> None:
        log.info("expiry_sweeper_started", interval_seconds=self.interval_seconds)
        while not self._stop.is_set():
            self.run_once()
            self._stop.wait(self.interval_seconds)
        log.info("expiry_sweeper_stopped")

    def start(self) -> threading.Thread:
        """Run the loop on a daemon thread."""
        self._stop.clear()
        self._thread = threading.Thread(
            target=self.run_forever, name="expiry-sweeper", daemon=True
        )
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
