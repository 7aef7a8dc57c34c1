"""HTTP API tests with authentication and the store overridden."""

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from scrappr.config import settings
from scrappr.core.repositories.implementations.memory.document_store import MemoryDocumentStore
from scrappr.core.schemas.auth import AuthUser
from scrappr.core.services import transcription_service
from scrappr.dependencies import get_current_user, get_document_store, get_optional_user
from scrappr.main import create_app

USER = AuthUser(id=uuid4(), email="me@example.com", role="authenticated")


@pytest.fixture
def api_store():
    return MemoryDocumentStore()


@pytest.fixture
def app(api_store):
    app = create_app()
    app.dependency_overrides[get_current_user] = lambda: USER
    app.dependency_overrides[get_optional_user] = lambda: USER
    app.dependency_overrides[get_document_store] = lambda: api_store
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def _create(client, content="hello", tags=None):
    resp = client.post("/api/v1/notes/", json={"content": content, "tags": tags or []})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestHealth:

    def test_health(self, client):
        resp = client.get("/api/v1/health/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"
        assert resp.headers["X-Content-Type-Options"] == "nosniff"

    def test_ready_with_memory_store(self, client):
        body = client.get("/api/v1/health/ready").json()
        assert body["store"] == "connected"
        assert body["store_backend"] == "memory"


class TestNotes:

    def test_create_and_get(self, client):
        created = _create(client, "see https://x.com now", ["Work", "ideas"])
        assert created["tags"] == ["work", "ideas"]
        assert created["created_at"] is not None
        assert [s["kind"] for s in created["segments"]] == ["text", "link", "text"]

        fetched = client.get(f"/api/v1/notes/{created['id']}").json()
        assert fetched["content"] == "see https://x.com now"

    def test_list_newest_first_with_tag_filter(self, client):
        first = _create(client, "one", ["a"])
        second = _create(client, "two", ["b"])
        third = _create(client, "three")

        all_ids = [n["id"] for n in client.get("/api/v1/notes/").json()]
        assert all_ids == [third["id"], second["id"], first["id"]]

        filtered = client.get("/api/v1/notes/", params=[("tag", "a"), ("tag", "b")]).json()
        assert [n["id"] for n in filtered] == [second["id"], first["id"]]

        joined = client.get("/api/v1/notes/", params={"tag": "A,b"}).json()
        assert len(joined) == 2

    @pytest.mark.parametrize(
        "body",
        [
            {"content": "   ", "tags": []},
            {"content": "ok", "tags": ["a", "A"]},
            {"content": "ok", "tags": [""]},
            {"tags": ["a"]},
        ],
    )
    def test_invalid_body_is_422(self, client, api_store, body):
        resp = client.post("/api/v1/notes/", json=body)
        assert resp.status_code == 422
        assert api_store.commit_count == 0

    def test_update(self, client):
        created = _create(client, "v1", ["a"])
        resp = client.put(f"/api/v1/notes/{created['id']}", json={"content": "v2", "tags": ["b"]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["content"] == "v2"
        assert body["tags"] == ["b"]
        assert body["created_at"] == created["created_at"]

    def test_update_missing_is_404(self, client):
        resp = client.put("/api/v1/notes/nope", json={"content": "x", "tags": []})
        assert resp.status_code == 404

    def test_get_missing_is_404(self, client):
        assert client.get("/api/v1/notes/nope").status_code == 404

    def test_delete_is_idempotent(self, client):
        created = _create(client)
        assert client.delete(f"/api/v1/notes/{created['id']}").json() == {"deleted": True}
        assert client.delete(f"/api/v1/notes/{created['id']}").json() == {"deleted": False}

    def test_store_failure_is_502(self, client, api_store):
        api_store.fail_next_commit()
        resp = client.post("/api/v1/notes/", json={"content": "x", "tags": []})
        assert resp.status_code == 502
        assert resp.json()["code"] == "unavailable"

    def test_requires_authentication(self, app):
        del app.dependency_overrides[get_current_user]
        del app.dependency_overrides[get_optional_user]
        with TestClient(app) as client:
            assert client.get("/api/v1/notes/").status_code == 401


class TestTags:

    def test_index_follows_saves(self, client):
        _create(client, "one", ["zeta", "alpha"])
        _create(client, "two", ["alpha", "mid"])
        assert client.get("/api/v1/metadata/tags").json() == {"tags": ["alpha", "mid", "zeta"]}

    def test_add_tags(self, client):
        resp = client.post("/api/v1/metadata/tags", json={"tags": ["B", "a"]})
        assert resp.json() == {"tags": ["a", "b"]}
        assert client.post("/api/v1/metadata/tags", json={"tags": []}).status_code == 422

    def test_delete_tag_globally(self, client):
        note = _create(client, "one", ["x", "y"])
        _create(client, "two", ["y"])

        resp = client.delete("/api/v1/metadata/tags/X")
        assert resp.json() == {"tag": "x", "notes_updated": 1}
        assert client.get(f"/api/v1/notes/{note['id']}").json()["tags"] == ["y"]
        assert client.get("/api/v1/metadata/tags").json() == {"tags": ["y"]}

    def test_delete_blank_tag_is_422(self, client):
        assert client.delete("/api/v1/metadata/tags/%20").status_code == 422

    def test_rebuild(self, client, api_store):
        _create(client, "one", ["a"])
        api_store._docs[f"users/{USER.owner}/notes/raw"] = {"content": "raw", "tagList": ["q"]}
        assert client.post("/api/v1/metadata/tags/rebuild").json() == {"tags": ["a", "q"]}


class TestTranscribeAudio:

    @pytest.fixture
    def openai_client(self, monkeypatch):
        client = MagicMock()
        client.audio.transcriptions.create = AsyncMock(return_value=SimpleNamespace(text="spoken words"))
        monkeypatch.setattr(settings, "openai_api_key", "sk-test")
        monkeypatch.setattr(transcription_service, "get_openai_client", lambda: client)
        return client

    def test_result_envelope(self, client, openai_client):
        audio = base64.b64encode(b"RIFFdata").decode()
        resp = client.post("/api/v1/transcribeAudio", json={"data": {"audioBase64": audio}})
        assert resp.status_code == 200
        assert resp.json() == {"result": {"text": "spoken words"}}

    def test_missing_audio_is_invalid_argument(self, client, openai_client):
        resp = client.post("/api/v1/transcribeAudio", json={"data": {}})
        assert resp.status_code == 400
        assert resp.json() == {"error": {"status": "INVALID_ARGUMENT", "message": "Missing audio data."}}
        openai_client.audio.transcriptions.create.assert_not_awaited()

    def test_upstream_failure_is_internal(self, client, openai_client):
        openai_client.audio.transcriptions.create.side_effect = RuntimeError("boom")
        audio = base64.b64encode(b"RIFFdata").decode()
        resp = client.post("/api/v1/transcribeAudio", json={"data": {"audioBase64": audio}})
        assert resp.status_code == 500
        assert resp.json()["error"]["status"] == "INTERNAL"

    def test_anonymous_caller_is_unauthenticated(self, app, openai_client):
        app.dependency_overrides[get_optional_user] = lambda: None
        with TestClient(app) as client:
            resp = client.post("/api/v1/transcribeAudio", json={"data": {"audioBase64": "YQ=="}})
        assert resp.status_code == 401
        assert resp.json()["error"]["status"] == "UNAUTHENTICATED"
