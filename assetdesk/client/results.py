"""
Outcome of one API call: ``Ok`` or ``Failed``.

``Failed.kind`` tells apart a request that never got an answer
(``transport``), a server-side refusal (``http``) and a 2xx answer that
is missing fields the caller depends on (``malformed``).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Union


class FailureKind(str, enum.Enum):
    TRANSPORT = "transport"
    HTTP = "http"
    MALFORMED = "malformed"


NO_RESPONSE = "No response received from server"
INVALID_RESPONSE = "Invalid response from server"

_STATUS_MESSAGES = {
    400: "Invalid request data",
    401: "Authentication required",
    403: "Permission denied",
    500: "Internal server error",
}


@dataclass(frozen=True)
class Ok:
    data: Any
    status_code: int
    message: str | None = None

    ok = True


@dataclass(frozen=True)
class Failed:
    message: str
    status_code: int | None
    kind: FailureKind

    ok = False


Result = Union[Ok, Failed]


def default_message(status_code: int | None, action: str, conflict: str | None = None) -> str:
    """Fallback text when the server's envelope carries no ``message``."""
    if status_code is None:
        return NO_RESPONSE
    if status_code == 409 and conflict:
        return conflict
    return _STATUS_MESSAGES.get(status_code, f"Failed to {action}")
