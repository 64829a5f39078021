"""
Signed-in session state.

One ``SessionContext`` is created per client and handed to ``ApiClient``;
it is never stored in a module global. ``on_change`` fires whenever the
identity behind the session goes away or is replaced, so anything cached
for the previous account can be dropped.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class SessionUser:
    username: str
    role: str
    authority: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.authority:
            self.authority = [self.role]


@dataclass
class SessionContext:
    token: str | None = None
    user: SessionUser | None = None
    on_change: Callable[[], None] | None = field(default=None, repr=False, compare=False)

    @property
    def signed_in(self) -> bool:
        return bool(self.token) and self.user is not None

    def populate(self, token: str, user: SessionUser) -> None:
        if self.user is not None and self.user != user:
            self._changed()
        self.token = token
        self.user = user

    def clear(self) -> None:
        self.token = None
        self.user = None
        self._changed()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()
