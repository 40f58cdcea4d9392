"""
Liveness, readiness and metrics endpoints.
Run: pytest services/api/tests/test_health.py -v
"""
import logging
import sys
from pathlib import Path
from unittest.mock import patch

_root = Path(__file__).resolve().parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

import pytest
from fastapi.testclient import TestClient

from gatekeep import metrics
from gatekeep.deps import get_store
from gatekeep.main import app
from gatekeep.request_context import RequestIdFilter, request_id_ctx
from gatekeep.routers import health
from gatekeep.store import StoreHandle

client = TestClient(app)


@pytest.fixture(autouse=True)
def _clear_overrides():
    yield
    app.dependency_overrides.clear()


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_ready_without_redis_is_ok(tmp_path):
    """REDIS_URL unset means rate limiting fails open; that alone is not a readiness failure."""
    app.dependency_overrides[get_store] = lambda: StoreHandle(None)
    with patch.object(health.settings, "CONTENT_ROOT", str(tmp_path)):
        r = client.get("/ready")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "checks": {"redis": "not_configured", "content_root": "ok"}}


def test_ready_with_redis_up(tmp_path, fake_store):
    app.dependency_overrides[get_store] = lambda: fake_store
    with patch.object(health.settings, "CONTENT_ROOT", str(tmp_path)):
        r = client.get("/ready")
    assert r.status_code == 200
    assert r.json()["checks"]["redis"] == "ok"


def test_ready_degraded_when_redis_down(tmp_path, fake_store, fake_redis):
    fake_redis.fail = True
    app.dependency_overrides[get_store] = lambda: fake_store
    with patch.object(health.settings, "CONTENT_ROOT", str(tmp_path)):
        r = client.get("/ready")
    assert r.status_code == 503
    body = r.json()
    assert body["status"] == "degraded"
    assert "refused" in body["checks"]["redis"]


def test_ready_degraded_when_content_root_missing(tmp_path):
    app.dependency_overrides[get_store] = lambda: StoreHandle(None)
    with patch.object(health.settings, "CONTENT_ROOT", str(tmp_path / "missing")):
        r = client.get("/ready")
    assert r.status_code == 503
    assert r.json()["checks"]["content_root"] == "missing"


def test_metrics_exposition():
    client.get("/health")
    metrics.record_rate_limit("lessons", admitted=False, degraded=False)
    r = client.get("/metrics")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/plain")
    body = r.text
    assert 'http_requests_total{method="GET",path="/health",status="2xx"}' in body
    assert 'rate_limit_decisions_total{scope="lessons",outcome="denied"}' in body
    assert "process_uptime_seconds" in body


def test_log_records_carry_request_id():
    record = logging.LogRecord("gatekeep", logging.INFO, __file__, 1, "msg", None, None)
    RequestIdFilter().filter(record)
    assert record.request_id == "-"
    token = request_id_ctx.set("req-42")
    try:
        RequestIdFilter().filter(record)
    finally:
        request_id_ctx.reset(token)
    assert record.request_id == "req-42"
