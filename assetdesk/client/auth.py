"""
Sign-in / sign-out flow.

``navigate`` is whatever the host application uses to change screens; it
receives a path and may be a plain function or a coroutine function.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal

from assetdesk.client.http import ApiClient
from assetdesk.client.results import Failed
from assetdesk.client.session import SessionUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignInResult:
    status: Literal["success", "failed"]
    message: str


class AuthFlow:
    def __init__(self, api: ApiClient, navigate: Callable[[str], Any]) -> None:
        self.api = api
        self.navigate = navigate

    async def _go(self, path: str) -> None:
        outcome = self.navigate(path)
        if inspect.isawaitable(outcome):
            await outcome

    async def sign_in(
        self, username: str, password: str, redirect: str | None = None
    ) -> SignInResult:
        """Authenticate and open the landing page. Never raises."""
        result = await self.api.post(
            "/auth/login",
            action="sign in",
            json={"username": username, "password": password},
        )
        if isinstance(result, Failed):
            return SignInResult("failed", result.message or "Login failed")

        data = result.data if isinstance(result.data, dict) else {}
        token = data.get("token")
        user = data.get("user")
        if not token or not isinstance(user, dict) or not user.get("username"):
            return SignInResult("failed", "Login failed: Invalid credentials")

        role = str(user.get("role") or "user")
        self.api.session.populate(token, SessionUser(username=user["username"], role=role))
        logger.info("Signed in as %s", user["username"])
        await self._go(redirect or self.api.config.authenticated_entry_path)
        return SignInResult("success", "Login successful")

    async def sign_out(self) -> None:
        """Tell the server, then always drop the local session."""
        result = await self.api.post("/auth/logout", action="sign out")
        if isinstance(result, Failed):
            logger.warning("Sign-out request failed: %s", result.message)
        self.api.session.clear()
        await self._go(self.api.config.unauthenticated_entry_path)
