"""
JWT claims verification, delegated to the hosted auth service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from supabase import AuthError as PlatformAuthError
from supabase import Client


class AuthError(Exception):
    """The token could not be verified."""


class ClaimsVerifier(Protocol):
    def get_claims(self, token: str) -> dict:
        ...


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if authorization.lower().startswith("bearer "):
        return authorization[len("bearer "):].strip() or None
    return authorization.strip() or None


@dataclass
class InMemoryClaimsVerifier:
    """Test double: only tokens registered up front verify."""

    tokens: dict[str, dict] = field(default_factory=dict)

    def register(self, token: str, claims: dict) -> None:
        self.tokens[token] = claims

    def reset(self) -> None:
        self.tokens.clear()

    def get_claims(self, token: str) -> dict:
        claims = self.tokens.get(token)
        if claims is None:
            raise AuthError("invalid JWT: unable to parse or verify signature")
        return dict(claims)


class SupabaseClaimsVerifier:
    """Asks the auth service who the token belongs to."""

    def __init__(self, client: Client):
        self._client = client

    def get_claims(self, token: str) -> dict:
        try:
            response = self._client.auth.get_user(token)
        except PlatformAuthError as exc:
            raise AuthError(exc.message) from exc
        user = response.user if response else None
        if user is None:
            return {}
        return {
            "sub": user.id,
            "email": user.email,
            "role": user.role,
            "aud": user.aud,
            "phone": user.phone,
            "app_metadata": user.app_metadata or {},
            "user_metadata": user.user_metadata or {},
        }
