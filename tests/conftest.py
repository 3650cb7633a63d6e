"""Shared test fixtures: an in-process fake of the remote ZenML server.

The fake is a small FastAPI app holding entities in dicts.  Tests reach it
through ``httpx.ASGITransport``, so the real ``HttpEntityStore`` runs end to
end without a network.  Every request is recorded (method, path) so tests can
assert exactly which write calls a reconciliation pass made.

Failure injection:
- ``fail[(method, path)] = status`` answers that request with *status*.
- ``fail_members`` holds user ids whose membership calls answer 500.
- ``verify_error`` is returned by the connector verify endpoint.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator, Iterator
from typing import Any
from urllib.parse import parse_qs

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from httpx import ASGITransport
from pydantic import SecretStr

from zenstate.engine.context import ReconcileContext
from zenstate.engine.settings import _get_settings_cached
from zenstate.engine.store.http import COLLECTIONS, HttpEntityStore

API_TOKEN = "test-token"
API_KEY = "test-api-key"
WRITE_METHODS = frozenset({"POST", "PUT", "DELETE"})

# Collections rendered in the server's body/metadata envelope.
_ENVELOPED = frozenset({"components", "service_connectors", "stacks"})
_METADATA_KEYS = ("configuration", "labels", "components", "resource_types")


def _not_found(collection: str, entity_id: str) -> JSONResponse:
    return JSONResponse({"detail": f"{collection} '{entity_id}' not found"}, status_code=404)


class FakeZenServer:
    """In-memory stand-in for the server's REST API."""

    def __init__(self) -> None:
        self.entities: dict[str, dict[str, dict[str, Any]]] = {c: {} for c in COLLECTIONS.values()}
        self.secrets: dict[str, dict[str, str]] = {}
        self.requests: list[tuple[str, str]] = []
        self.fail: dict[tuple[str, str], int] = {}
        self.fail_members: set[str] = set()
        self.verify_error: str | None = None
        self.verify_calls = 0
        for user_id, name in (("u1", "alice"), ("u2", "bob"), ("u3", "carol")):
            self.entities["users"][user_id] = {"id": user_id, "name": name, "active": True}
        self.app = self._build_app()

    # -- Test helpers ------------------------------------------------------------

    def seed(self, collection: str, record: dict[str, Any]) -> str:
        """Insert a record directly, bypassing the API.  Returns its id."""
        entity_id = record.get("id") or f"{collection[:4]}-{uuid.uuid4().hex[:8]}"
        self.entities[collection][entity_id] = {**record, "id": entity_id}
        return entity_id

    def writes(self, method: str | None = None) -> list[tuple[str, str]]:
        """Recorded write requests, excluding login."""
        return [
            (m, p)
            for m, p in self.requests
            if m in WRITE_METHODS and not p.endswith("/login") and (method is None or m == method)
        ]

    def reset_requests(self) -> None:
        self.requests.clear()

    # -- Rendering ---------------------------------------------------------------

    def _render(self, collection: str, record: dict[str, Any]) -> dict[str, Any]:
        if collection == "teams":
            users = self.entities["users"]
            members = [{"id": uid, "name": users.get(uid, {}).get("name")} for uid in record.get("members", [])]
            return {**record, "members": members}
        if collection == "role_assignments":
            return {**record, "role": {"name": record["role"]}}
        if collection not in _ENVELOPED:
            return dict(record)

        data = dict(record)
        if collection == "service_connectors":
            data["connector_type"] = {"connector_type": data.pop("type")}
        if "workspace_id" in data:
            data["workspace"] = {"id": data.pop("workspace_id")}
        metadata = {key: data.pop(key) for key in _METADATA_KEYS if key in data}
        entity_id, name = data.pop("id"), data.pop("name")
        return {"id": entity_id, "name": name, "body": data, "metadata": metadata}

    def _conflict(self, collection: str, record: dict[str, Any], exclude: str | None = None) -> JSONResponse | None:
        name = record.get("name")
        if name is None:
            return None
        for other in self.entities[collection].values():
            if other["id"] == exclude:
                continue
            if other.get("name") == name and other.get("workspace_id") == record.get("workspace_id"):
                return JSONResponse({"detail": f"{collection} named '{name}' already exists"}, status_code=409)
        return None

    def _store_secrets(self, entity_id: str, record: dict[str, Any]) -> None:
        secrets = record.pop("secrets", None)
        if secrets is not None:
            self.secrets[entity_id] = secrets
            record["secret_id"] = f"secret-{entity_id}" if secrets else None

    # -- App ---------------------------------------------------------------------

    def _build_app(self) -> FastAPI:  # noqa: C901
        app = FastAPI()
        server = self

        @app.middleware("http")
        async def record_and_authorize(request: Request, call_next):
            method, path = request.method, request.url.path
            server.requests.append((method, path))
            status = server.fail.get((method, path))
            if status is not None:
                return JSONResponse({"detail": "injected failure"}, status_code=status)
            token = request.headers.get("Authorization", "").removeprefix("Bearer ")
            if not path.endswith("/login") and token not in (API_TOKEN, f"token-{API_KEY}"):
                return JSONResponse({"detail": "not authenticated"}, status_code=401)
            return await call_next(request)

        @app.post("/api/v1/login")
        async def login(request: Request):
            form = parse_qs((await request.body()).decode())
            password = form.get("password", [""])[0]
            if password != API_KEY:
                return JSONResponse({"detail": "invalid api key"}, status_code=401)
            return {"access_token": f"token-{password}", "token_type": "bearer"}

        @app.get("/api/v1/info")
        async def info():
            return {
                "id": "server-1",
                "name": "fake",
                "version": "0.80.0",
                "deployment_type": "other",
                "auth_scheme": "OAUTH2_PASSWORD_BEARER",
                "server_url": "http://test",
            }

        @app.post("/api/v1/service_connectors/verify")
        async def verify_connector(request: Request):
            await request.json()
            server.verify_calls += 1
            return {"error": server.verify_error}

        @app.post("/api/v1/teams/{team_id}/members")
        async def add_member(team_id: str, request: Request):
            user_id = (await request.json())["user_id"]
            team = server.entities["teams"].get(team_id)
            if team is None:
                return _not_found("teams", team_id)
            if user_id in server.fail_members:
                return JSONResponse({"detail": "membership backend unavailable"}, status_code=500)
            if user_id not in server.entities["users"]:
                return _not_found("users", user_id)
            if user_id not in team["members"]:
                team["members"].append(user_id)
            return Response(status_code=204)

        @app.delete("/api/v1/teams/{team_id}/members/{user_id}")
        async def remove_member(team_id: str, user_id: str):
            team = server.entities["teams"].get(team_id)
            if team is None:
                return _not_found("teams", team_id)
            if user_id in server.fail_members:
                return JSONResponse({"detail": "membership backend unavailable"}, status_code=500)
            if user_id in team["members"]:
                team["members"].remove(user_id)
            return Response(status_code=204)

        @app.post("/api/v1/{collection}")
        async def create(collection: str, request: Request):
            if collection not in server.entities:
                return JSONResponse({"detail": "unknown collection"}, status_code=404)
            record = await request.json()
            conflict = server._conflict(collection, record)
            if conflict is not None:
                return conflict
            entity_id = f"{collection[:4]}-{uuid.uuid4().hex[:8]}"
            record["id"] = entity_id
            if collection == "workspaces":
                record.update(status="available", server_url=f"https://{record['name']}.zenml.example")
            if collection == "teams":
                record["members"] = []
            if collection == "service_connectors":
                server._store_secrets(entity_id, record)
            server.entities[collection][entity_id] = record
            return JSONResponse(server._render(collection, record), status_code=201)

        @app.get("/api/v1/{collection}")
        async def list_entities(collection: str, request: Request):
            if collection not in server.entities:
                return JSONResponse({"detail": "unknown collection"}, status_code=404)
            params = request.query_params
            page, size = int(params.get("page", 1)), int(params.get("size", 100))
            items = [
                record
                for record in server.entities[collection].values()
                if ("name" not in params or record.get("name") == params["name"])
                and ("workspace" not in params or record.get("workspace_id") == params["workspace"])
            ]
            total_pages = max(1, -(-len(items) // size))
            window = items[(page - 1) * size : page * size]
            return {
                "index": page,
                "max_size": size,
                "total_pages": total_pages,
                "total": len(items),
                "items": [server._render(collection, record) for record in window],
            }

        @app.get("/api/v1/{collection}/{entity_id}")
        async def get(collection: str, entity_id: str):
            record = server.entities.get(collection, {}).get(entity_id)
            if record is None:
                return _not_found(collection, entity_id)
            return server._render(collection, record)

        @app.put("/api/v1/{collection}/{entity_id}")
        async def update(collection: str, entity_id: str, request: Request):
            record = server.entities.get(collection, {}).get(entity_id)
            if record is None:
                return _not_found(collection, entity_id)
            changes = await request.json()
            conflict = server._conflict(collection, {**record, **changes}, exclude=entity_id)
            if conflict is not None:
                return conflict
            if collection == "service_connectors":
                server._store_secrets(entity_id, changes)
            record.update(changes)
            return server._render(collection, record)

        @app.delete("/api/v1/{collection}/{entity_id}")
        async def delete(collection: str, entity_id: str):
            if server.entities.get(collection, {}).pop(entity_id, None) is None:
                return _not_found(collection, entity_id)
            return Response(status_code=204)

        return app


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_server() -> FakeZenServer:
    return FakeZenServer()


@pytest.fixture
async def store(fake_server: FakeZenServer) -> AsyncIterator[HttpEntityStore]:
    """``HttpEntityStore`` wired to the fake server through ``ASGITransport``."""
    async with HttpEntityStore(
        "http://test",
        api_token=SecretStr(API_TOKEN),
        transport=ASGITransport(app=fake_server.app),
    ) as entity_store:
        yield entity_store


@pytest.fixture
def context(store: HttpEntityStore) -> ReconcileContext:
    return ReconcileContext(store=store, deadline=5.0)


@pytest.fixture
def zenml_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Point settings at the fake server with a token credential."""
    monkeypatch.setenv("ZENML_SERVER_URL", "http://test")
    monkeypatch.setenv("ZENML_API_TOKEN", API_TOKEN)
    monkeypatch.delenv("ZENML_API_KEY", raising=False)
    _get_settings_cached.cache_clear()
    yield
    _get_settings_cached.cache_clear()
