import pytest
from fastapi.testclient import TestClient

from api.main import SessionStore, app, get_session_store
from core.data import CurReportError, get_record_source
from core.session import mount


class _BrokenSource:
    def fetch_report(self):
        raise CurReportError("bucket not reachable")


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def client(sample_source, store):
    app.dependency_overrides[get_record_source] = lambda: sample_source
    app.dependency_overrides[get_session_store] = lambda: store
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def session_id(client):
    response = client.post("/sessions", params={"include_charts": False})
    assert response.status_code == 200
    return response.json()["session_id"]


def test_create_session_returns_views_and_charts(client, store):
    response = client.post("/sessions")
    assert response.status_code == 200
    data = response.json()
    assert len(store) == 1
    assert data["error"] is None
    assert data["monthly_cost_trend"][0] == {"month": "2024-01", "cost": 15.5}
    assert data["total_monthly_cost"] == 0.0
    assert data["filters"] == {"date_from": "", "date_to": ""}
    assert len(data["filtered_line_items"]) == 5
    assert data["charts"]["comparison"] is not None


def test_create_session_with_failing_source(client, store):
    app.dependency_overrides[get_record_source] = lambda: _BrokenSource()
    response = client.post("/sessions")
    assert response.status_code == 200
    data = response.json()
    assert data["error"] == "bucket not reachable"
    assert data["filtered_line_items"] == []
    assert data["charts"] == {}


def test_update_and_clear_filters(client, session_id):
    response = client.post(
        f"/sessions/{session_id}/filters",
        json={"date_from": "2024-02-01", "date_to": "2024-02-29"},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["filters"] == {"date_from": "2024-02-01", "date_to": "2024-02-29"}
    assert [r["Period Start"] for r in data["filtered_line_items"]] == ["2024-02-10"]
    assert len(data["monthly_cost_trend"]) == 4

    response = client.post(f"/sessions/{session_id}/filters/clear")
    assert response.status_code == 200
    assert len(response.json()["filtered_line_items"]) == 5


def test_partial_filter_body(client, session_id):
    response = client.post(f"/sessions/{session_id}/filters", json={"date_from": "2024-03-01"})
    data = response.json()
    assert data["filters"] == {"date_from": "2024-03-01", "date_to": ""}
    assert len(data["filtered_line_items"]) == 2


def test_get_session_keeps_filters(client, session_id):
    client.post(f"/sessions/{session_id}/filters", json={"date_from": "2024-04-01"})
    data = client.get(f"/sessions/{session_id}", params={"include_charts": False}).json()
    assert data["filters"]["date_from"] == "2024-04-01"
    assert len(data["filtered_line_items"]) == 1
    assert data["charts"] == {}


def test_download_report_acknowledged(client, session_id):
    response = client.post(f"/sessions/{session_id}/download-report")
    assert response.status_code == 200
    assert response.json()["status"] == "accepted"


def test_export_csv_uses_filtered_items(client, session_id):
    client.post(f"/sessions/{session_id}/filters", json={"date_from": "2024-03-01"})
    response = client.get(f"/sessions/{session_id}/export")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("Project ID,Service Usage Details,Product Code")
    assert len(lines) == 3


def test_data_quality_endpoint(client, session_id):
    data = client.get(f"/sessions/{session_id}/data-quality").json()
    assert data["parse_warnings"]["unparsable_cost"] == 1
    assert data["row_counts"]["line_items"] == 5


def test_unknown_session_is_404(client):
    for method, path in [
        ("get", "/sessions/nope"),
        ("post", "/sessions/nope/filters/clear"),
        ("post", "/sessions/nope/download-report"),
        ("get", "/sessions/nope/export"),
        ("delete", "/sessions/nope"),
    ]:
        response = getattr(client, method)(path)
        assert response.status_code == 404
        assert response.json()["type"] == "SessionNotFound"


def test_end_session(client, session_id, store):
    response = client.delete(f"/sessions/{session_id}")
    assert response.status_code == 200
    assert len(store) == 0
    assert client.get(f"/sessions/{session_id}").status_code == 404


class _FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_store_evicts_least_recently_used(sample_source):
    store = SessionStore(max_sessions=2)
    first = store.create(mount(sample_source))
    second = store.create(mount(sample_source))
    assert store.get(first) is not None
    third = store.create(mount(sample_source))
    assert len(store) == 2
    assert store.get(second) is None
    assert store.get(first) is not None
    assert store.get(third) is not None


def test_store_expires_idle_sessions(sample_source):
    clock = _FakeClock()
    store = SessionStore(max_idle_seconds=60, clock=clock)
    stale = store.create(mount(sample_source))
    clock.now += 30
    active = store.create(mount(sample_source))
    clock.now += 45
    assert store.get(stale) is None
    assert store.get(active) is not None
    assert len(store) == 1


def test_expired_session_is_404(sample_source):
    clock = _FakeClock()
    store = SessionStore(max_idle_seconds=60, clock=clock)
    app.dependency_overrides[get_record_source] = lambda: sample_source
    app.dependency_overrides[get_session_store] = lambda: store
    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            session_id = test_client.post("/sessions", params={"include_charts": False}).json()["session_id"]
            assert test_client.get(f"/sessions/{session_id}", params={"include_charts": False}).status_code == 200
            clock.now += 61
            response = test_client.get(f"/sessions/{session_id}")
            assert response.status_code == 404
            assert response.json()["type"] == "SessionNotFound"
    finally:
        app.dependency_overrides.clear()
