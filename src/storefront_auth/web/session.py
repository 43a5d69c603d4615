"""Starlette session adapter."""

from __future__ import annotations

from typing import Any

from starlette.requests import Request

from storefront_auth.auth.session import key_name


class StarletteSession:
    """Exposes ``request.session`` through the ``SessionStore`` contract.

    Requires ``SessionMiddleware``. The middleware writes the signed cookie
    when the response is sent, so ``commit()`` has nothing to return.
    """

    def __init__(self, request: Request) -> None:
        self._data = request.session

    def get(self, key: str) -> Any:
        return self._data.get(key_name(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key_name(key)] = value

    def unset(self, key: str) -> None:
        self._data.pop(key_name(key), None)

    def has(self, key: str) -> bool:
        return key_name(key) in self._data

    def commit(self) -> None:
        return None
