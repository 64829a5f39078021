"""
Async HTTP client for the AssetDesk API.

Every call returns a ``Result`` instead of raising: the envelope
``{success, data, message}`` is unpacked here, and failures are mapped to
the status-keyed fallback messages in ``assetdesk.client.results``.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from typing import Any

import httpx
from pydantic import BaseModel

from assetdesk.client.config import ClientConfig
from assetdesk.client.results import (INVALID_RESPONSE, NO_RESPONSE, Failed,
                                      FailureKind, Ok, Result, default_message)
from assetdesk.client.session import SessionContext

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"
MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def to_payload(body: BaseModel | dict | None) -> dict | None:
    """Serialise a request body; pydantic schemas go out camelCased."""
    if body is None or isinstance(body, dict):
        return body
    return body.model_dump(mode="json", by_alias=True, exclude_unset=True)


class ApiClient:
    """Thin wrapper over ``httpx.AsyncClient`` bound to one session."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        session: SessionContext | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or ClientConfig()
        self.session = session if session is not None else SessionContext()
        self._http = httpx.AsyncClient(base_url=self.config.base_url, transport=transport)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _headers(self, method: str, idempotency_key: str | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        if method in MUTATING_METHODS:
            headers[IDEMPOTENCY_HEADER] = idempotency_key or uuid.uuid4().hex
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        params: dict[str, Any] | None = None,
        json: BaseModel | dict | None = None,
        expect: Iterable[int] = (200,),
        conflict: str | None = None,
        idempotency_key: str | None = None,
    ) -> Result:
        """Send one request and unpack the envelope.

        ``action`` names the operation for the fallback message
        ("Failed to <action>"); ``expect`` lists the status codes that count
        as success; ``conflict`` is the message used for a bare 409.
        """
        method = method.upper()
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        try:
            response = await self._http.request(
                method,
                path,
                params=params or None,
                json=to_payload(json),
                headers=self._headers(method, idempotency_key),
            )
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            return Failed(NO_RESPONSE, None, FailureKind.TRANSPORT)

        if response.status_code == 401:
            self.session.clear()

        try:
            body = response.json()
        except ValueError:
            body = None

        server_message = None
        if isinstance(body, dict) and isinstance(body.get("message"), str) and body["message"]:
            server_message = body["message"]

        if not response.is_success:
            return Failed(
                server_message or default_message(response.status_code, action, conflict),
                response.status_code,
                FailureKind.HTTP,
            )
        if not isinstance(body, dict) or not isinstance(body.get("success"), bool):
            return Failed(INVALID_RESPONSE, response.status_code, FailureKind.MALFORMED)
        if not body["success"] or response.status_code not in tuple(expect):
            return Failed(
                server_message or f"Failed to {action}",
                response.status_code,
                FailureKind.HTTP,
            )
        return Ok(body.get("data"), response.status_code, server_message)

    async def get(self, path: str, *, action: str, params: dict[str, Any] | None = None) -> Result:
        return await self.request("GET", path, action=action, params=params)

    async def post(self, path: str, *, action: str, **kwargs: Any) -> Result:
        return await self.request("POST", path, action=action, **kwargs)

    async def put(self, path: str, *, action: str, **kwargs: Any) -> Result:
        return await self.request("PUT", path, action=action, **kwargs)

    async def delete(self, path: str, *, action: str, **kwargs: Any) -> Result:
        return await self.request("DELETE", path, action=action, **kwargs)
