"""Security utilities: OIDC token validation and session-backed user lookup."""

import time

import httpx
import structlog
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from tally.config import settings
from tally.core.database import get_db
from tally.core.exceptions import AuthenticationError

logger = structlog.get_logger()

SESSION_USER_KEY = "user_id"

# ── JWKS cache ────────────────────────────────────
_jwks_cache: dict | None = None
_jwks_cache_time: float = 0
JWKS_CACHE_TTL = 300  # 5 minutes


async def _fetch_jwks() -> dict:
    """Fetch the JSON Web Key Set from the identity provider."""
    global _jwks_cache, _jwks_cache_time

    now = time.time()
    if _jwks_cache and (now - _jwks_cache_time) < JWKS_CACHE_TTL:
        return _jwks_cache

    async with httpx.AsyncClient() as client:
        response = await client.get(settings.oidc_jwks_url, timeout=10)
        response.raise_for_status()
        _jwks_cache = response.json()
        _jwks_cache_time = now
        logger.info("JWKS fetched", url=settings.oidc_jwks_url)
        return _jwks_cache


def _find_signing_key(jwks: dict, kid: str) -> dict | None:
    """Find the signing key matching the token's kid."""
    for key in jwks.get("keys", []):
        if key.get("kid") == kid:
            return key
    return None


async def _decode(token: str, audience: str, access_token: str | None = None) -> dict:
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise AuthenticationError("Invalid token header") from e

    kid = unverified_header.get("kid")
    if not kid:
        raise AuthenticationError("Token missing key ID")

    try:
        jwks = await _fetch_jwks()
        signing_key = _find_signing_key(jwks, kid)

        if not signing_key:
            # Key may have rotated, force a refresh
            global _jwks_cache_time
            _jwks_cache_time = 0
            jwks = await _fetch_jwks()
            signing_key = _find_signing_key(jwks, kid)
    except httpx.HTTPError as e:
        logger.warning("JWKS fetch failed", error=str(e))
        raise AuthenticationError("Unable to verify token") from e

    if not signing_key:
        raise AuthenticationError("Unable to find matching signing key")

    try:
        return jwt.decode(
            token,
            signing_key,
            algorithms=["RS256"],
            audience=audience,
            issuer=settings.oidc_issuer_url,
            access_token=access_token,
            options={"verify_at_hash": access_token is not None},
        )
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e


async def decode_access_token(token: str) -> dict:
    """Decode and validate a bearer access token (RS256)."""
    return await _decode(token, audience=settings.oidc_audience)


async def decode_id_token(id_token: str, access_token: str | None = None) -> dict:
    """Decode and validate the ID token returned by the authorization code exchange."""
    return await _decode(id_token, audience=settings.oidc_client_id, access_token=access_token)


# ── Auth Dependencies ─────────────────────────────
security_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security_scheme),
    db: AsyncSession = Depends(get_db),
):
    """FastAPI dependency: resolve the user from the login session, else a bearer token.

    Bearer callers are provisioned (or refreshed) from their token claims.
    """
    from tally.models.user import User
    from tally.services.user_service import UserService, profile_from_claims

    service = UserService(db)

    user_id = request.session.get(SESSION_USER_KEY)
    if user_id:
        user: User | None = await service.get_user(user_id)
        if user is not None:
            return user
        # Account was deleted behind this session
        request.session.clear()

    if credentials is None:
        raise AuthenticationError()

    payload = await decode_access_token(credentials.credentials)
    if not payload.get("sub"):
        raise AuthenticationError("Token missing subject")

    user = await service.upsert_user(profile_from_claims(payload))
    logger.debug("Bearer user resolved", user_id=user.id)
    return user
