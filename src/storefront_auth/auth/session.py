"""Session storage contract for customer authentication state.

The core never owns the session: every operation receives a ``SessionStore``
explicitly. ``MemorySession`` is the in-process implementation used by tests
and by hosts that persist the session themselves.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Protocol


class SessionKey(str, Enum):
    """Session keys owned by the authentication core."""

    CODE_VERIFIER = "customer_code_verifier"
    STATE = "customer_state"
    NONCE = "customer_nonce"
    ACCESS_TOKEN = "customer_access_token"
    REFRESH_TOKEN = "customer_refresh_token"
    ID_TOKEN = "customer_id_token"
    EXPIRES_AT = "customer_expires_at"


AUTHORIZATION_KEYS = (SessionKey.CODE_VERIFIER, SessionKey.STATE, SessionKey.NONCE)
TOKEN_KEYS = (
    SessionKey.ACCESS_TOKEN,
    SessionKey.REFRESH_TOKEN,
    SessionKey.ID_TOKEN,
    SessionKey.EXPIRES_AT,
)


class SessionStore(Protocol):
    """Key-value session owned by the host framework."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def unset(self, key: str) -> None: ...

    def has(self, key: str) -> bool: ...

    def commit(self) -> str | None:
        """Serialize pending writes to a transport artifact, if any."""
        ...


class MemorySession:
    """Dict-backed session.

    ``commit()`` returns the JSON serialization of the session contents and
    marks the session clean.
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})
        self.dirty = False

    def get(self, key: str) -> Any:
        return self._data.get(key_name(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key_name(key)] = value
        self.dirty = True

    def unset(self, key: str) -> None:
        if self._data.pop(key_name(key), None) is not None:
            self.dirty = True

    def has(self, key: str) -> bool:
        return key_name(key) in self._data

    def commit(self) -> str:
        self.dirty = False
        return json.dumps(self._data, sort_keys=True)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)


def key_name(key: str) -> str:
    """Plain string form of a session key."""
    return key.value if isinstance(key, SessionKey) else key
