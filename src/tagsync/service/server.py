"""HTTP trigger endpoints."""

from __future__ import annotations

import logging

from flask import Flask, jsonify

from tagsync.catalog import CatalogError

from .runner import SyncService

LOGGER = logging.getLogger(__name__)


def create_app(service: SyncService) -> Flask:
    """Build the trigger application around a shared service.

    Routes:
        ``POST /sync``: run a sync and return its summary once finished.
        ``POST /sync/async``: start a sync in the background.
        ``GET /health``: report whether a run is in progress.
    """
    app = Flask("tagsync")

    @app.post("/sync")
    def sync_blocking():
        try:
            report = service.run()
        except CatalogError as exc:
            LOGGER.error("Triggered sync failed: %s", exc)
            return jsonify({"error": {"code": "catalog_error", "message": str(exc)}}), 502
        return jsonify(report.to_payload())

    @app.post("/sync/async")
    def sync_background():
        if not service.start_background():
            return jsonify({"status": "busy"}), 409
        return jsonify({"status": "started"}), 202

    @app.get("/health")
    def health():
        last = service.last_report
        return jsonify(
            {
                "running": service.running,
                "last_finished_at": (
                    last.finished_at.isoformat() if last and last.finished_at else None
                ),
                "last_error": service.last_error,
            }
        )

    return app


__all__ = ["create_app"]
