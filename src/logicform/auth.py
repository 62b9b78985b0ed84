from __future__ import annotations

import secrets
from typing import Protocol

from fastapi import HTTPException, Request

from logicform.config import Settings


class AuthProvider(Protocol):
    def require_admin(self, request: Request) -> None: ...


class NoAuthProvider:
    def require_admin(self, request: Request) -> None:
        return None


class TokenAuthProvider:
    def __init__(self, token: str) -> None:
        self._token = token

    def require_admin(self, request: Request) -> None:
        header = request.headers.get("Authorization", "")
        scheme, _, supplied = header.partition(" ")
        if scheme.lower() != "bearer" or not self._token or not secrets.compare_digest(supplied, self._token):
            raise HTTPException(status_code=401, detail="invalid admin token")


def get_auth_provider(settings: Settings) -> AuthProvider:
    if settings.auth_mode == "token":
        return TokenAuthProvider(settings.admin_token)
    return NoAuthProvider()
