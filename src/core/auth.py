from __future__ import annotations

import time
from dataclasses import dataclass, field
from uuid import UUID

import requests
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import settings
from src.core.db import get_db_session
from src.core.repositories.users import UserRepository

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(slots=True)
class AuthContext:
    user_id: UUID
    subject: str
    email: str | None = None
    claims: dict = field(default_factory=dict)


class JwksCache:
    def __init__(self, ttl_seconds: int = 300) -> None:
        self.ttl_seconds = ttl_seconds
        self._jwks: dict | None = None
        self._fetched_at = 0.0

    def get(self, url: str) -> dict:
        now = time.time()
        if self._jwks is None or (now - self._fetched_at) > self.ttl_seconds:
            response = requests.get(url, timeout=5)
            response.raise_for_status()
            self._jwks = response.json()
            self._fetched_at = now
        return self._jwks


jwks_cache = JwksCache()


def _get_signing_key(token: str) -> dict:
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication header",
        ) from exc

    kid = unverified_header.get("kid")
    if not kid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="JWT is missing key id",
        )

    jwks = jwks_cache.get(settings.auth_jwks_url)
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No matching signing key found",
    )


def _decode_jwt(token: str) -> dict:
    key = _get_signing_key(token)

    options = {"verify_aud": bool(settings.auth_audience)}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=["RS256"],
            issuer=settings.auth_issuer,
            audience=settings.auth_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from exc


async def get_optional_auth_context(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: AsyncSession = Depends(get_db_session),
) -> AuthContext | None:
    """Resolve the caller, or ``None`` when no bearer token was sent.

    The membership workflow decides what an anonymous caller may do, so a
    missing token is not rejected here. A token that is present but invalid
    still fails with 401, and a valid token whose subject has no user row
    fails with 403.
    """
    if credentials is None:
        return None

    claims = _decode_jwt(credentials.credentials)
    subject = claims.get("sub")
    if not subject:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token is missing required claims",
        )

    user = await UserRepository(session).get_by_auth_subject(subject)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not provisioned",
        )

    context = AuthContext(
        user_id=user.id,
        subject=subject,
        email=claims.get("email") or user.email,
        claims=claims,
    )
    request.state.auth_claims = claims
    request.state.user_subject = subject
    request.state.user_id = context.user_id
    return context
