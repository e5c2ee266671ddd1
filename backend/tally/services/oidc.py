"""OIDC authorization-code flow against the identity provider."""

from urllib.parse import urlencode

import httpx
import structlog

from tally.config import settings

logger = structlog.get_logger()


class OIDCError(Exception):
    """The identity provider rejected the code exchange or was unreachable."""


class OIDCClient:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self._transport = transport

    def authorize_url(self, state: str, nonce: str) -> str:
        params = {
            "client_id": settings.oidc_client_id,
            "response_type": "code",
            "scope": settings.oidc_scopes,
            "redirect_uri": settings.oidc_redirect_uri,
            "state": state,
            "nonce": nonce,
        }
        return f"{settings.oidc_authorize_url}?{urlencode(params)}"

    def logout_url(self, id_token: str | None = None) -> str:
        params = {
            "client_id": settings.oidc_client_id,
            "post_logout_redirect_uri": settings.oidc_post_logout_redirect_uri,
        }
        if id_token:
            params["id_token_hint"] = id_token
        return f"{settings.oidc_logout_url}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> dict:
        """Trade an authorization code for the token set."""
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": settings.oidc_redirect_uri,
            "client_id": settings.oidc_client_id,
        }
        if settings.oidc_client_secret:
            data["client_secret"] = settings.oidc_client_secret

        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=settings.oidc_timeout
            ) as client:
                response = await client.post(settings.oidc_token_url, data=data)
        except httpx.HTTPError as e:
            logger.error("Token endpoint unreachable", error=str(e))
            raise OIDCError("Identity provider unreachable") from e

        if response.status_code != 200:
            logger.warning("Code exchange rejected", status=response.status_code)
            raise OIDCError("Authorization code rejected")

        tokens = response.json()
        if "id_token" not in tokens:
            raise OIDCError("Token response has no id_token")
        return tokens


def get_oidc_client() -> OIDCClient:
    """FastAPI dependency."""
    return OIDCClient()
