"""Authentication API routes.

Login and logout are browser redirects to the identity provider. After the
authorization-code callback the user id lives in the signed session cookie;
API routes read it back through ``get_current_user``.
"""

import secrets

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse

from tally.api.deps import get_category_service, get_current_user, get_user_service
from tally.config import settings
from tally.core.security import SESSION_USER_KEY, decode_id_token
from tally.models.user import User
from tally.schemas.user import UserResponse
from tally.services.category_service import CategoryService
from tally.services.oidc import OIDCClient, OIDCError, get_oidc_client
from tally.services.user_service import UserService, profile_from_claims

logger = structlog.get_logger()

router = APIRouter()
redirect_router = APIRouter()

_STATE_KEY = "oidc_state"
_NONCE_KEY = "oidc_nonce"
_ID_TOKEN_KEY = "id_token"


# ── Browser redirects (mounted under /api) ────────


@redirect_router.get("/login")
async def login(request: Request, oidc: OIDCClient = Depends(get_oidc_client)):
    """Start the authorization-code flow."""
    state = secrets.token_urlsafe(24)
    nonce = secrets.token_urlsafe(24)
    request.session[_STATE_KEY] = state
    request.session[_NONCE_KEY] = nonce
    return RedirectResponse(oidc.authorize_url(state, nonce), status_code=302)


@redirect_router.get("/callback")
async def callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    oidc: OIDCClient = Depends(get_oidc_client),
    users: UserService = Depends(get_user_service),
):
    """Finish the flow: exchange the code, provision the user, open the session."""
    expected_state = request.session.pop(_STATE_KEY, None)
    nonce = request.session.pop(_NONCE_KEY, None)

    if error:
        logger.warning("Identity provider returned an error", error=error)
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=f"Login failed: {error}")
    if not code or not state or state != expected_state:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid login state")

    try:
        tokens = await oidc.exchange_code(code)
    except OIDCError as e:
        raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    claims = await decode_id_token(tokens["id_token"], access_token=tokens.get("access_token"))
    if nonce and claims.get("nonce") != nonce:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="Invalid login nonce")

    user = await users.upsert_user(profile_from_claims(claims))
    request.session[SESSION_USER_KEY] = user.id
    request.session[_ID_TOKEN_KEY] = tokens["id_token"]
    logger.info("User logged in", user_id=user.id)

    return RedirectResponse(settings.post_login_redirect_url, status_code=302)


@redirect_router.get("/logout")
async def logout(request: Request, oidc: OIDCClient = Depends(get_oidc_client)):
    """Drop the local session, then end the session at the identity provider."""
    id_token = request.session.get(_ID_TOKEN_KEY)
    request.session.clear()
    return RedirectResponse(oidc.logout_url(id_token), status_code=302)


# ── API (mounted under /api/v1/auth) ──────────────


@router.get("/user", response_model=UserResponse)
async def auth_user(
    user: User = Depends(get_current_user),
    categories: CategoryService = Depends(get_category_service),
):
    """Return the current user.

    First call after login also seeds the default categories.
    """
    await categories.ensure_default_categories(user)
    return user
