"""
Integration tests for web/middleware.py

Runs the request and timeout middleware on a small app so slow routes and
report query strings can be exercised directly.
"""
import asyncio
import logging

import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient

from sales_engine.config import config
from sales_engine.observability import metrics
from web.middleware import ReportRequestMiddleware, ReportTimeoutMiddleware


@pytest.fixture
def report_app():
    app = FastAPI()

    @app.post("/api/reports/export")
    async def export():
        return PlainTextResponse(
            "period,total\n",
            headers={"Content-Disposition": 'attachment; filename="sales_report.csv"'},
        )

    @app.get("/api/live/sales")
    async def slow_sales():
        await asyncio.sleep(0.5)
        return {"buckets": []}

    @app.get("/api/health")
    async def health():
        return {"status": "healthy"}

    app.add_middleware(ReportTimeoutMiddleware)
    app.add_middleware(ReportRequestMiddleware)
    return app


@pytest.fixture
def client(report_app):
    metrics.reset()
    with TestClient(report_app) as client:
        yield client


class TestReportRequestMiddleware:

    def test_export_logged_with_report_context(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="web.middleware"):
            response = client.post(
                "/api/reports/export",
                params={"kind": "sales", "format": "csv", "filter": "pay_later"},
                headers={"X-Request-ID": "exp-1"},
            )

        assert response.headers["X-Request-ID"] == "exp-1"
        completed = [r for r in caplog.records if r.getMessage() == "POST /api/reports/export -> 200"]
        assert len(completed) == 1
        assert completed[0].kind == "sales"
        assert completed[0].format == "csv"
        assert completed[0].filter == "pay_later"
        assert completed[0].attachment == "sales_report.csv"

    def test_quiet_paths_counted_not_logged(self, client, caplog):
        with caplog.at_level(logging.INFO, logger="web.middleware"):
            client.get("/api/health")

        assert not [r for r in caplog.records if r.name == "web.middleware"]
        assert metrics.get_stats()["requests"]["GET /api/health"] == 1


class TestReportTimeoutMiddleware:

    def test_budgets_come_from_config(self):
        middleware = ReportTimeoutMiddleware(app=None)
        assert middleware.timeout_for("/api/reports/export") == config.web.bulk_request_timeout
        assert middleware.timeout_for("/api/live/snapshot") == config.web.bulk_request_timeout
        assert middleware.timeout_for("/api/analytics/sales") == config.web.request_timeout

    def test_slow_report_gets_504(self, client, monkeypatch):
        monkeypatch.setattr(ReportTimeoutMiddleware, "timeout_for", lambda self, path: 0.05)

        response = client.get(
            "/api/live/sales",
            params={"granularity": "weekly"},
            headers={"X-Request-ID": "slow-1"},
        )

        assert response.status_code == 504
        body = response.json()
        assert body["path"] == "/api/live/sales"
        assert body["correlation_id"] == "slow-1"
        assert metrics.get_stats()["errors"]["REQUEST_TIMEOUT"] == 1
