"""HTTP implementation of ``EntityStore`` against the server's REST API.

Every collection lives under ``/api/v1/<collection>``; entities are created
with ``POST``, read with ``GET``, updated with ``PUT`` and removed with
``DELETE``.  Authentication is a bearer token: either a pre-issued
``api_token`` sent as-is, or an ``api_key`` exchanged once for a token via
``POST /api/v1/login``.

The client never retries: each call is one request, and deadlines are the
caller's business (reconcilers wrap every call in ``anyio.fail_after``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import anyio
import httpx
from loguru import logger

from zenstate.engine.errors import RemoteStoreError
from zenstate.engine.models.enums import EntityKind
from zenstate.engine.store.base import Page

if TYPE_CHECKING:
    from types import TracebackType

    from pydantic import SecretStr

    from zenstate.engine.settings import ZenStateSettings

API_PREFIX = "/api/v1"

COLLECTIONS: dict[EntityKind, str] = {
    EntityKind.WORKSPACE: "workspaces",
    EntityKind.PROJECT: "projects",
    EntityKind.STACK: "stacks",
    EntityKind.COMPONENT: "components",
    EntityKind.SERVICE_CONNECTOR: "service_connectors",
    EntityKind.TEAM: "teams",
    EntityKind.ROLE_ASSIGNMENT: "role_assignments",
    EntityKind.USER: "users",
}


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        detail = body["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return response.text


class HttpEntityStore:
    """``EntityStore`` backed by ``httpx.AsyncClient``.

    Use as an async context manager, or call ``aclose()`` when done.
    Pass ``transport`` to route requests somewhere other than the network
    (tests use ``httpx.ASGITransport`` against an in-process app).
    """

    def __init__(
        self,
        server_url: str,
        *,
        api_key: SecretStr | None = None,
        api_token: SecretStr | None = None,
        page_size: int = 100,
        timeout: float | None = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if (api_key is None) == (api_token is None):
            msg = "Exactly one of api_key or api_token is required"
            raise ValueError(msg)
        self._api_key = api_key
        self._token: str | None = api_token.get_secret_value() if api_token is not None else None
        self._token_lock = anyio.Lock()
        self.page_size = page_size
        self._client = httpx.AsyncClient(
            base_url=server_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(
        cls,
        settings: ZenStateSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> HttpEntityStore:
        return cls(
            settings.server_url,
            api_key=settings.api_key,
            api_token=settings.api_token,
            page_size=settings.page_size,
            timeout=settings.request_timeout,
            transport=transport,
        )

    # -- Lifecycle -------------------------------------------------------------

    async def __aenter__(self) -> HttpEntityStore:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- Transport -------------------------------------------------------------

    async def _bearer(self) -> str:
        if self._token is not None:
            return self._token
        async with self._token_lock:
            if self._token is None:
                assert self._api_key is not None
                logger.debug("Exchanging API key for an access token")
                response = await self._client.post(
                    f"{API_PREFIX}/login",
                    data={"password": self._api_key.get_secret_value()},
                )
                if response.is_error:
                    raise RemoteStoreError(response.status_code, _detail(response))
                self._token = response.json()["access_token"]
        return self._token

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = {"Authorization": f"Bearer {await self._bearer()}"}
        logger.debug("{} {}", method, path)
        response = await self._client.request(method, f"{API_PREFIX}{path}", json=json, params=params, headers=headers)
        if response.is_error:
            raise RemoteStoreError(response.status_code, _detail(response))
        return response

    @staticmethod
    def _path(kind: EntityKind, entity_id: str | None = None) -> str:
        collection = COLLECTIONS[kind]
        if entity_id is None:
            return f"/{collection}"
        return f"/{collection}/{entity_id}"

    # -- EntityStore -----------------------------------------------------------

    async def create(self, kind: EntityKind, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("POST", self._path(kind), json=payload)
        return response.json()

    async def get(self, kind: EntityKind, entity_id: str) -> dict[str, Any]:
        response = await self._request("GET", self._path(kind, entity_id))
        return response.json()

    async def update(self, kind: EntityKind, entity_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        response = await self._request("PUT", self._path(kind, entity_id), json=payload)
        return response.json()

    async def delete(self, kind: EntityKind, entity_id: str) -> None:
        try:
            await self._request("DELETE", self._path(kind, entity_id))
        except RemoteStoreError as exc:
            if exc.status_code != 404:
                raise
            logger.debug("{} '{}' already gone", kind, entity_id)

    async def list(
        self,
        kind: EntityKind,
        filters: dict[str, Any] | None = None,
        *,
        page: int = 1,
        size: int | None = None,
    ) -> Page:
        params: dict[str, Any] = {"page": page, "size": size or self.page_size}
        params.update({key: value for key, value in (filters or {}).items() if value is not None})
        response = await self._request("GET", self._path(kind), params=params)
        return Page.model_validate(response.json())

    async def add_team_member(self, team_id: str, user_id: str) -> None:
        await self._request("POST", f"{self._path(EntityKind.TEAM, team_id)}/members", json={"user_id": user_id})

    async def remove_team_member(self, team_id: str, user_id: str) -> None:
        await self._request("DELETE", f"{self._path(EntityKind.TEAM, team_id)}/members/{user_id}")

    async def verify_connector(self, payload: dict[str, Any]) -> str | None:
        response = await self._request("POST", f"{self._path(EntityKind.SERVICE_CONNECTOR)}/verify", json=payload)
        body = response.json()
        return body.get("error") if isinstance(body, dict) else None

    async def server_info(self) -> dict[str, Any]:
        response = await self._request("GET", "/info")
        return response.json()
