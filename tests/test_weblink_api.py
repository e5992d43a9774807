from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from server.weblink_api import create_app
from services.weblink.service import WeblinkService
from services.weblink.types import ParsedDocument, WeblinkData, WeblinkJobData


@pytest.fixture
def mock_service():
    return AsyncMock(spec=WeblinkService)


@pytest.fixture
def client(mock_service):
    return TestClient(create_app(service=mock_service))


def test_health(client):
    """Health endpoint returns OK status."""
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json().get("status") == "ok"


def test_store_links(client, mock_service):
    mock_service.store_links.return_value = [WeblinkJobData(url="https://a.com", user_id=7)]

    r = client.post("/weblink/store", json={
        "userId": 7,
        "links": [{"url": "https://a.com/?utm=1", "lastVisitTime": 1}, {"url": "https://a.com", "lastVisitTime": 2}],
    })

    assert r.status_code == 200
    assert r.json() == {"success": True, "queued": 1, "urls": ["https://a.com"]}
    user_id, links = mock_service.store_links.await_args.args
    assert user_id == 7
    assert links[1] == {"url": "https://a.com", "lastVisitTime": 2}


def test_store_links_validates_body(client):
    r = client.post("/weblink/store", json={"links": []})
    assert r.status_code == 422


def test_content_not_available(client, mock_service):
    mock_service.read_weblink_content.return_value = None
    r = client.get("/weblink/content", params={"url": "https://missing.example.com"})
    assert r.status_code == 404


def test_content_found(client, mock_service):
    doc = ParsedDocument(page_content="# Title\n\nBody", metadata={"title": "Title", "source": "https://a.com"})
    mock_service.read_weblink_content.return_value = WeblinkData(html="", doc=doc)

    r = client.get("/weblink/content", params={"url": "https://a.com"})

    assert r.status_code == 200
    assert r.json()["data"] == {"pageContent": "# Title\n\nBody",
                                "metadata": {"title": "Title", "source": "https://a.com"}}


def test_read_multi_converts_sources(client, mock_service):
    mock_service.read_multi_weblinks.return_value = [ParsedDocument(page_content="picked", metadata={})]

    r = client.post("/weblink/read", json={"sources": [
        {"metadata": {"source": "https://a.com"}, "selections": [{"content": "picked", "xPath": "/p[1]"}]},
    ]})

    assert r.status_code == 200
    assert r.json()["data"] == [{"pageContent": "picked", "metadata": {}}]
    [source] = mock_service.read_multi_weblinks.await_args.args[0]
    assert source.url == "https://a.com"
    assert source.selections[0].x_path == "/p[1]"


def test_history_params(client, mock_service):
    mock_service.get_user_history.return_value = []

    r = client.get("/weblink/history", params={"userId": 7, "skip": 10, "take": 5, "order": "asc"})

    assert r.status_code == 200
    assert r.json() == {"success": True, "data": []}
    mock_service.get_user_history.assert_awaited_once_with(7, skip=10, take=5, order="asc")
    assert client.get("/weblink/history", params={"userId": 7, "order": "sideways"}).status_code == 422


def test_metrics_endpoint(client):
    client.get("/health")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert "linkfoundry_http_requests_total" in r.text


def test_service_missing_returns_503():
    app = create_app(service=AsyncMock(spec=WeblinkService))
    app.state.weblink_service = None
    r = TestClient(app).get("/weblink/content", params={"url": "https://a.com"})
    assert r.status_code == 503
