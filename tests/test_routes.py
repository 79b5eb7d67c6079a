import time
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from conftest import make_source
from linkguard.database import get_db, init_db
from linkguard.main import app

API = "/api/v1"


@pytest.fixture
def session_factory():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def client(service_factory, session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.analysis_service = service_factory(
        blacklist=["evil.com"],
        primary=make_source("PhiShark", score=0.6),
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    rv = client.get("/")
    assert rv.status_code == 200
    assert rv.json()["docs"] == "/docs"


def test_health(client):
    rv = client.get(f"{API}/health")
    assert rv.status_code == 200
    data = rv.json()
    assert data["status"] == "healthy"
    assert data["blacklist_entries"] == 1
    assert data["sources"] == ["PhiShark", "URLert", "WhoisFreak"]


def test_check_returns_report(client):
    rv = client.post(f"{API}/check", json={"url": "example.com"})

    assert rv.status_code == 200
    body = rv.json()
    assert body["success"] is True
    assert body["was_expanded"] is False
    assert body["original_input"] == "example.com"
    assert body["data"]["domain"] == "example.com"
    assert body["data"]["score"] == 45
    assert body["data"]["verdict"] == "SUSPICIOUS"
    assert body["data"]["breakdown"][0] == "PhiShark > 0.50 (+45)"
    assert len(body["data"]["sources"]) == 3
    assert body["scan_id"] is not None
    assert "processing_time" in body["metadata"]


def test_check_blacklisted(client):
    rv = client.post(f"{API}/check", json={"url": "https://evil.com/login"})
    assert rv.status_code == 200
    assert rv.json()["data"]["verdict"] == "BLACKLISTED"
    assert rv.json()["data"]["score"] == 100


@pytest.mark.parametrize("url", ["", "ftp://example.com", "two words.com"])
def test_check_invalid_url_is_400(client, url):
    rv = client.post(f"{API}/check", json={"url": url})
    assert rv.status_code == 400
    assert rv.json()["detail"]["success"] is False


def test_check_timeout_is_408(client, service_factory):
    resolver = MagicMock()
    resolver.resolve.side_effect = lambda url: time.sleep(0.5)
    app.state.analysis_service = service_factory(resolver=resolver)

    rv = client.post(f"{API}/check", json={"url": "https://example.com", "timeout": 0.05})

    assert rv.status_code == 408
    assert "timeout" in rv.json()["detail"]["error"].lower()


def test_check_unexpected_error_is_500(client):
    service = MagicMock()
    service.analyze = AsyncMock(side_effect=RuntimeError("engine exploded"))
    app.state.analysis_service = service

    rv = client.post(f"{API}/check", json={"url": "https://example.com"})

    assert rv.status_code == 500
    assert rv.json()["detail"]["details"] == "engine exploded"


def test_batch_rejects_more_than_ten(client):
    urls = [f"https://site{i}.example" for i in range(11)]
    rv = client.post(f"{API}/check/batch", json={"urls": urls})
    assert rv.status_code == 400


def test_batch_keeps_order_and_isolates_failures(client):
    urls = ["https://one.example", "ftp://broken", "https://evil.com"]

    rv = client.post(f"{API}/check/batch", json={"urls": urls})

    assert rv.status_code == 200
    body = rv.json()
    assert body["total"] == 3
    assert body["succeeded"] == 2
    assert body["failed"] == 1
    assert [r["url"] for r in body["results"]] == urls
    assert body["results"][1]["success"] is False
    assert body["results"][1]["error"]
    assert body["results"][2]["data"]["verdict"] == "BLACKLISTED"


def test_expand_url_for_ordinary_url(client):
    rv = client.post(f"{API}/expand-url", json={"url": "example.com/page"})

    assert rv.status_code == 200
    body = rv.json()
    assert body["expanded_url"] == "https://example.com/page"
    assert body["is_expanded"] is False
    assert body["attempts"] == []


def test_expand_url_invalid_is_400(client):
    assert client.post(f"{API}/expand-url", json={"url": "  "}).status_code == 400


def test_scan_history_lifecycle(client):
    client.post(f"{API}/check", json={"url": "https://example.com"})
    client.post(f"{API}/check", json={"url": "https://evil.com"})

    scans = client.get(f"{API}/scans").json()
    assert len(scans) == 2

    blacklisted = client.get(f"{API}/scans", params={"verdict": "blacklisted"}).json()
    assert len(blacklisted) == 1
    scan_id = blacklisted[0]["id"]

    detail = client.get(f"{API}/scans/{scan_id}").json()
    assert detail["domain"] == "evil.com"
    assert detail["blacklisted"] is True

    stats = client.get(f"{API}/statistics").json()
    assert stats["total_scans"] == 2
    assert stats["by_verdict"]["BLACKLISTED"] == 1
    assert stats["by_verdict"]["SUSPICIOUS"] == 1

    assert client.delete(f"{API}/scans/{scan_id}").status_code == 200
    assert client.get(f"{API}/scans/{scan_id}").status_code == 404
    assert client.delete(f"{API}/scans/{scan_id}").status_code == 404


def test_batch_results_are_stored(client):
    client.post(f"{API}/check/batch", json={"urls": ["https://one.example", "ftp://broken"]})
    assert len(client.get(f"{API}/scans").json()) == 1


def test_history_writes_run_off_the_event_loop(client, monkeypatch):
    from linkguard.api import routes

    offloaded = []
    original = routes.run_in_threadpool

    async def recording(func, *args, **kwargs):
        offloaded.append(func)
        return await original(func, *args, **kwargs)

    monkeypatch.setattr(routes, "run_in_threadpool", recording)

    client.post(f"{API}/check", json={"url": "https://example.com"})
    client.post(f"{API}/check/batch", json={"urls": ["https://one.example", "https://two.example"]})

    assert offloaded == [routes.store_report] * 3
    assert len(client.get(f"{API}/scans").json()) == 3


def test_debug_setting_reaches_app():
    from linkguard.config import settings
    assert app.debug is settings.DEBUG
