"""Run serialization, scheduling, and HTTP trigger tests."""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Optional

import pytest
from apscheduler.schedulers.background import BackgroundScheduler

from tagsync.catalog import CatalogError
from tagsync.config import TagsyncConfig
from tagsync.service import DailyScheduler, SyncService, create_app, daily_trigger
from tagsync.service.scheduler import JOB_ID
from tagsync.sync import SyncReport, TagOutcome, TagResult


class _StubEngine:
    """Engine double that optionally blocks until released."""

    def __init__(self, *, gate: Optional[threading.Event] = None, error: Exception | None = None):
        self.gate = gate
        self.error = error
        self.started = threading.Event()
        self.closed = False

    def run(self) -> SyncReport:
        self.started.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        report = SyncReport(started_at=datetime.now(timezone.utc))
        report.results.append(TagResult(name="Foo Bar", outcome=TagOutcome.UPDATED))
        report.finished_at = datetime.now(timezone.utc)
        return report

    def close(self) -> None:
        self.closed = True


def _service(engine: _StubEngine) -> SyncService:
    def _factory(config: TagsyncConfig, progress: Any) -> Any:
        return engine

    return SyncService(TagsyncConfig(), engine_factory=_factory)


def test_run_records_report_and_closes_engine() -> None:
    engine = _StubEngine()
    service = _service(engine)

    report = service.run()

    assert report.counts()["updated"] == 1
    assert service.last_report is report
    assert service.last_error is None
    assert engine.closed
    assert not service.running


def test_run_failure_is_recorded_and_raised() -> None:
    engine = _StubEngine(error=CatalogError("down"))
    service = _service(engine)

    with pytest.raises(CatalogError):
        service.run()

    assert service.last_error == "CatalogError: down"
    assert engine.closed


def test_background_trigger_is_rejected_while_running() -> None:
    gate = threading.Event()
    engine = _StubEngine(gate=gate)
    service = _service(engine)

    assert service.start_background() is True
    assert engine.started.wait(timeout=5)
    assert service.running
    assert service.start_background() is False

    gate.set()
    service.join(timeout=5)
    assert not service.running
    assert service.last_report is not None


@pytest.mark.parametrize(
    ("now", "expected"),
    [
        (datetime(2024, 5, 1, 1, 0, tzinfo=timezone.utc), datetime(2024, 5, 1, 3, 15)),
        (datetime(2024, 5, 1, 4, 0, tzinfo=timezone.utc), datetime(2024, 5, 2, 3, 15)),
        (datetime(2024, 12, 31, 23, 59, tzinfo=timezone.utc), datetime(2025, 1, 1, 3, 15)),
    ],
)
def test_daily_trigger_fires_at_configured_time(now: datetime, expected: datetime) -> None:
    fire_time = daily_trigger("03:15", timezone.utc).get_next_fire_time(None, now)

    assert fire_time == expected.replace(tzinfo=timezone.utc)


def test_scheduler_registers_daily_job() -> None:
    service = _service(_StubEngine())
    background = BackgroundScheduler(timezone=timezone.utc)
    scheduler = DailyScheduler(service, "03:00", scheduler=background, timezone=timezone.utc)

    job = background.get_job(JOB_ID)

    assert job is not None
    assert job.func == scheduler.run_pending
    assert scheduler.next_run(datetime(2024, 5, 1, 2, 0, tzinfo=timezone.utc)) == datetime(
        2024, 5, 1, 3, 0, tzinfo=timezone.utc
    )


def test_scheduler_runs_pending_sync_and_stops() -> None:
    engine = _StubEngine()
    service = _service(engine)
    scheduler = DailyScheduler(service, "03:00", timezone=timezone.utc)

    scheduler.run_pending()
    assert service.last_report is not None

    scheduler.start()
    try:
        assert scheduler.running
        with pytest.raises(RuntimeError):
            scheduler.start()
    finally:
        scheduler.stop()
    assert not scheduler.running


def test_scheduled_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    service = _service(_StubEngine(error=CatalogError("down")))
    scheduler = DailyScheduler(service, "03:00", timezone=timezone.utc)

    with caplog.at_level(logging.ERROR, logger="tagsync.service.scheduler"):
        scheduler.run_pending()

    assert "Scheduled sync failed" in caplog.text
    assert service.last_error == "CatalogError: down"


def test_sync_endpoint_returns_summary() -> None:
    service = _service(_StubEngine())
    client = create_app(service).test_client()

    response = client.post("/sync")

    assert response.status_code == 200
    assert response.get_json()["counts"]["updated"] == 1


def test_sync_endpoint_reports_catalog_failure() -> None:
    service = _service(_StubEngine(error=CatalogError("down")))
    client = create_app(service).test_client()

    response = client.post("/sync")

    assert response.status_code == 502
    assert response.get_json()["error"]["code"] == "catalog_error"


def test_async_endpoint_and_health() -> None:
    gate = threading.Event()
    engine = _StubEngine(gate=gate)
    service = _service(engine)
    client = create_app(service).test_client()

    assert client.post("/sync/async").status_code == 202
    assert engine.started.wait(timeout=5)
    busy = client.post("/sync/async")
    assert busy.status_code == 409
    assert busy.get_json() == {"status": "busy"}
    assert client.get("/health").get_json()["running"] is True

    gate.set()
    service.join(timeout=5)
    health = client.get("/health").get_json()
    assert health["running"] is False
    assert health["last_finished_at"] is not None
    assert health["last_error"] is None
