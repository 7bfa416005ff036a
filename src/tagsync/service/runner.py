"""Serialized execution of synchronization runs."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from tagsync.config import TagsyncConfig
from tagsync.sync import ProgressCallback, SyncEngine, SyncReport

LOGGER = logging.getLogger(__name__)

EngineFactory = Callable[[TagsyncConfig, Optional[ProgressCallback]], SyncEngine]


def _default_factory(config: TagsyncConfig, progress: Optional[ProgressCallback]) -> SyncEngine:
    return SyncEngine.from_config(config, progress=progress)


class SyncService:
    """Run the engine at most once at a time.

    Every trigger (CLI, scheduler, HTTP) goes through one service instance so
    that two runs never read and overwrite the caches concurrently.
    """

    def __init__(
        self,
        config: TagsyncConfig,
        *,
        engine_factory: EngineFactory = _default_factory,
    ) -> None:
        self._config = config
        self._engine_factory = engine_factory
        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._last_report: SyncReport | None = None
        self._last_error: str | None = None

    @property
    def config(self) -> TagsyncConfig:
        return self._config

    @property
    def running(self) -> bool:
        """Return True while a run holds the lock."""
        return self._lock.locked()

    @property
    def last_report(self) -> SyncReport | None:
        return self._last_report

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def run(self, progress: Optional[ProgressCallback] = None) -> SyncReport:
        """Run a sync, waiting for any in-flight run to finish first.

        Raises:
            CatalogError: If the catalog query fails.
        """
        with self._lock:
            return self._execute(progress)

    def start_background(self) -> bool:
        """Start a sync in a daemon thread unless one is already running.

        Returns:
            bool: True when a run was started.
        """
        if not self._lock.acquire(blocking=False):
            LOGGER.info("Sync already in progress; trigger ignored.")
            return False

        def _target() -> None:
            try:
                self._execute(None)
            except Exception:  # pragma: no cover - logged for the operator
                LOGGER.exception("Background sync failed")
            finally:
                self._lock.release()

        self._thread = threading.Thread(target=_target, name="tagsync-run", daemon=True)
        self._thread.start()
        return True

    def join(self, timeout: float | None = None) -> None:
        """Wait for the background run started last, if any."""
        if self._thread is not None:
            self._thread.join(timeout)

    def _execute(self, progress: Optional[ProgressCallback]) -> SyncReport:
        engine = self._engine_factory(self._config, progress)
        try:
            report = engine.run()
        except Exception as exc:
            self._last_error = f"{exc.__class__.__name__}: {exc}"
            raise
        finally:
            engine.close()
        self._last_report = report
        self._last_error = None
        return report


__all__ = ["EngineFactory", "SyncService"]
