"""Tests for API functionality."""

import asyncio
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from watchdog.events import FileDeletedEvent, FileModifiedEvent

from marginalia.api.app import create_app, generate_token
from marginalia.core.ports import PersistenceError
from marginalia.runtime import build_runtime
from marginalia.watch import DebounceHandler

HOME = (
    "---\ntitle: Home\ntags: [start]\n---\n"
    "Welcome. See [[Projects]] and https://example.com.\n"
    "cat cat cat\n"
)
PROJECTS = "---\ntitle: Projects\n---\nBack to [[Home]].\n"


@pytest.fixture
def runtime():
    """Create a runtime with test vault."""
    with tempfile.TemporaryDirectory() as tmpdir:
        vault_path = Path(tmpdir) / "vault"
        vault_path.mkdir()
        (vault_path / "home.md").write_text(HOME, encoding="utf-8")
        (vault_path / "projects.md").write_text(PROJECTS, encoding="utf-8")

        config_path = Path(tmpdir) / "marginalia.toml"
        config_path.write_text("[cache]\ncapacity = 4\n")

        yield build_runtime(vault_path=vault_path, config_path=config_path)


@pytest.fixture
def client(runtime):
    """Create test client without auth."""
    app = create_app(runtime, token=None)
    return TestClient(app)


@pytest.fixture
def authed_client(runtime):
    """Create test client with auth."""
    token = "test-token-123"
    app = create_app(runtime, token=token)
    client = TestClient(app)
    client.headers = {"Authorization": f"Bearer {token}"}
    return client


def open_session(client, note_id="home"):
    response = client.post("/sessions", json={"note_id": note_id})
    assert response.status_code == 201
    return response.json()["id"]


def test_health_endpoint(client):
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["sessions"] == 0


def test_auth_required(runtime):
    """Test that auth is required when token is set."""
    app = create_app(runtime, token="secret")
    client = TestClient(app)

    response = client.get("/health")
    assert response.status_code == 401

    response = client.get("/health", headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401


def test_auth_with_token(authed_client):
    """Test that auth works with a valid token."""
    response = authed_client.get("/health")
    assert response.status_code == 200


def test_get_note(client):
    """Test getting a note."""
    response = client.get("/notes/home")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == "home"
    assert data["title"] == "Home"
    assert data["tags"] == ["start"]
    assert data["body"].startswith("Welcome.")


def test_get_note_not_found(client):
    """Test getting a non-existent note."""
    response = client.get("/notes/nonexistent")
    assert response.status_code == 404


def test_get_note_is_cached(client, runtime):
    client.get("/notes/home")
    client.get("/notes/home")

    assert "home" in runtime.cache
    assert client.get("/health").json()["cached_notes"] == 1


def test_annotations(client):
    """Links and URLs are reported in order with trimmed URLs."""
    response = client.get("/notes/home/annotations")
    assert response.status_code == 200
    data = response.json()
    assert [a["kind"] for a in data] == ["link", "url"]
    assert data[0]["payload"] == "Projects"
    assert data[1]["payload"] == "https://example.com"


def test_segments_with_query(client):
    response = client.get("/notes/home/segments", params={"q": "cat", "current": 2})
    assert response.status_code == 200
    tags = [s["tag"] for s in response.json() if s["tag"] != "plain"]
    assert tags == ["match", "current", "match"]


def test_segments_without_query(client):
    data = client.get("/notes/home/segments").json()

    body = client.get("/notes/home").json()["body"]
    assert "".join(s["text"] for s in data) == body
    assert {"link", "url"} <= {s["tag"] for s in data}


def test_backlinks(client):
    response = client.get("/notes/projects/backlinks")
    assert response.status_code == 200
    assert response.json() == [{"id": "home"}]


def test_session_find_and_navigate(client):
    sid = open_session(client)

    data = client.post(f"/sessions/{sid}/find", json={"query": "cat"}).json()
    assert len(data["matches"]) == 3
    assert data["current_index"] == 1

    assert client.post(f"/sessions/{sid}/next").json()["current_index"] == 2
    assert client.post(f"/sessions/{sid}/previous").json()["current_index"] == 1
    assert client.post(f"/sessions/{sid}/previous").json()["current_index"] == 3


def test_session_find_options(client):
    sid = open_session(client)

    data = client.post(
        f"/sessions/{sid}/find", json={"query": "CAT", "case_sensitive": True}
    ).json()

    assert data["matches"] == []
    assert data["current_index"] == 0
    assert data["options"]["case_sensitive"] is True


def test_session_replace_persists(client, runtime):
    """Replacing the current match writes the file and refreshes the cache."""
    sid = open_session(client)
    client.post(f"/sessions/{sid}/find", json={"query": "cat"})
    client.post(f"/sessions/{sid}/next")

    response = client.post(f"/sessions/{sid}/replace", json={"replacement": "dog"})
    assert response.status_code == 200
    data = response.json()
    assert data["replaced"] == 1
    assert len(data["matches"]) == 2
    assert data["current_index"] == 1

    text = (runtime.vault.storage.root / "home.md").read_text(encoding="utf-8")
    assert "cat dog cat" in text
    assert text.startswith("---\ntitle: Home\n")
    assert "cat dog cat" in client.get("/notes/home").json()["body"]


def test_session_replace_all(client, runtime):
    sid = open_session(client)
    client.post(f"/sessions/{sid}/find", json={"query": "cat"})

    data = client.post(f"/sessions/{sid}/replace-all", json={"replacement": "bird"}).json()

    assert data["replaced"] == 3
    assert data["matches"] == []
    assert data["current_index"] == 0
    assert "bird bird bird" in client.get("/notes/home").json()["body"]


def test_replace_refreshes_other_sessions(client):
    first = open_session(client)
    second = open_session(client)
    client.post(f"/sessions/{first}/find", json={"query": "cat"})
    client.post(f"/sessions/{second}/find", json={"query": "cat"})

    client.post(f"/sessions/{first}/replace", json={"replacement": "dog"})

    assert len(client.get(f"/sessions/{second}").json()["matches"]) == 2


def test_session_replace_failure(client, runtime, monkeypatch):
    """A store failure is reported and the session keeps its matches."""
    sid = open_session(client)
    client.post(f"/sessions/{sid}/find", json={"query": "cat"})

    async def failing(id, content):
        raise PersistenceError("disk full")

    monkeypatch.setattr(runtime.store, "update_content", failing)

    response = client.post(f"/sessions/{sid}/replace", json={"replacement": "dog"})
    assert response.status_code == 502
    assert "disk full" in response.json()["detail"]

    data = client.get(f"/sessions/{sid}").json()
    assert len(data["matches"]) == 3
    assert data["current_index"] == 1


def test_session_segments(client):
    sid = open_session(client)
    client.post(f"/sessions/{sid}/find", json={"query": "cat"})

    data = client.get(f"/sessions/{sid}/segments").json()

    assert [s["tag"] for s in data if s["tag"] != "plain"] == ["current", "match", "match"]


def test_session_for_missing_note(client):
    response = client.post("/sessions", json={"note_id": "nope"})
    assert response.status_code == 404


def test_close_session(client):
    sid = open_session(client)

    assert client.delete(f"/sessions/{sid}").status_code == 204
    assert client.get(f"/sessions/{sid}").status_code == 404
    assert client.delete(f"/sessions/{sid}").status_code == 404


def test_generate_token():
    """Test token generation."""
    token1 = generate_token()
    token2 = generate_token()

    assert len(token1) > 20
    assert token1 != token2


def apply_disk_events(app, *events):
    """Feed file events through a debounce handler and apply the flushed batch."""
    batches = []
    handler = DebounceHandler(Path("/"), lambda changed, deleted: batches.append((changed, deleted)))
    for event in events:
        handler.dispatch(event)
    handler.flush()
    for changed, deleted in batches:
        asyncio.run(app.state.apply_vault_batch(changed, deleted))


def test_outside_edit_refreshes_open_session(runtime):
    """A note edited on disk is rescanned by sessions that have it open."""
    app = create_app(runtime)
    client = TestClient(app)
    sid = open_session(client)
    client.post(f"/sessions/{sid}/find", json={"query": "cat"})

    path = runtime.vault.storage.root / "home.md"
    path.write_text(HOME + "cat outside edit\n", encoding="utf-8")
    apply_disk_events(app, FileModifiedEvent(str(path)))

    segments = client.get(f"/sessions/{sid}/segments").json()
    assert "".join(s["text"] for s in segments).endswith("cat outside edit\n")
    assert len(client.get(f"/sessions/{sid}").json()["matches"]) == 4


def test_replace_after_outside_edit_keeps_it(runtime):
    """Replacing after a refresh writes on top of the edited file."""
    app = create_app(runtime)
    client = TestClient(app)
    sid = open_session(client)
    client.post(f"/sessions/{sid}/find", json={"query": "cat"})

    path = runtime.vault.storage.root / "home.md"
    path.write_text(HOME + "IMPORTANT external edit\n", encoding="utf-8")
    apply_disk_events(app, FileModifiedEvent(str(path)))

    client.post(f"/sessions/{sid}/replace-all", json={"replacement": "dog"})

    text = path.read_text(encoding="utf-8")
    assert "dog dog dog\n" in text
    assert text.endswith("IMPORTANT external edit\n")


def test_outside_delete_closes_sessions(runtime):
    app = create_app(runtime)
    client = TestClient(app)
    sid = open_session(client)
    other = open_session(client, "projects")

    path = runtime.vault.storage.root / "home.md"
    path.unlink()
    apply_disk_events(app, FileDeletedEvent(str(path)))

    assert client.get(f"/sessions/{sid}").status_code == 404
    assert client.get(f"/sessions/{other}").status_code == 200
    assert "home" not in runtime.cache
