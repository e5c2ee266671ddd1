"""Login redirect flow, session resolution and 401 handling."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from tally.api.v1 import auth
from tally.main import app
from tally.services.oidc import OIDCClient, get_oidc_client


@pytest.fixture
def idp(monkeypatch):
    """Stub identity provider: token endpoint and ID token validation."""
    claims = {
        "sub": "idp-subject-42",
        "email": "carol@example.com",
        "given_name": "Carol",
        "family_name": "Diaz",
    }

    def token_endpoint(request: httpx.Request) -> httpx.Response:
        assert b"grant_type=authorization_code" in request.content
        return httpx.Response(200, json={"id_token": "id.jwt", "access_token": "access.jwt"})

    async def fake_decode_id_token(id_token, access_token=None):
        assert id_token == "id.jwt"
        return dict(claims)

    monkeypatch.setattr(auth, "decode_id_token", fake_decode_id_token)
    app.dependency_overrides[get_oidc_client] = lambda: OIDCClient(
        transport=httpx.MockTransport(token_endpoint)
    )
    return claims


@pytest.mark.asyncio
async def test_api_401_carries_login_url(session_client):
    response = await session_client.get("/api/v1/items", headers={"Accept": "application/json"})
    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated", "login_url": "/api/login"}


@pytest.mark.asyncio
async def test_browser_401_redirects_to_login(session_client):
    response = await session_client.get("/api/v1/items", headers={"Accept": "text/html"})
    assert response.status_code == 302
    assert response.headers["location"] == "/api/login"


@pytest.mark.asyncio
async def test_login_redirects_to_identity_provider(session_client):
    response = await session_client.get("/api/login")
    assert response.status_code == 302
    location = urlparse(response.headers["location"])
    params = parse_qs(location.query)
    assert location.path.endswith("/protocol/openid-connect/auth")
    assert params["response_type"] == ["code"]
    assert params["state"][0]
    assert params["nonce"][0]


@pytest.mark.asyncio
async def test_callback_rejects_unknown_state(session_client, idp):
    await session_client.get("/api/login")
    response = await session_client.get("/api/callback", params={"code": "abc", "state": "forged"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_full_login_session_and_logout(session_client, idp):
    login = await session_client.get("/api/login")
    params = parse_qs(urlparse(login.headers["location"]).query)
    idp["nonce"] = params["nonce"][0]

    response = await session_client.get(
        "/api/callback", params={"code": "abc", "state": params["state"][0]}
    )
    assert response.status_code == 302
    assert response.headers["location"] == "/"

    response = await session_client.get("/api/v1/auth/user")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == "idp-subject-42"
    assert body["email"] == "carol@example.com"
    assert body["lastName"] == "Diaz"
    assert len((await session_client.get("/api/v1/categories")).json()) == 15

    response = await session_client.get("/api/logout")
    assert response.status_code == 302
    assert "/protocol/openid-connect/logout" in response.headers["location"]
    assert "id_token_hint=id.jwt" in response.headers["location"]

    response = await session_client.get("/api/v1/auth/user")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_relogin_updates_profile(session_client, idp):
    for given_name in ("Carol", "Caroline"):
        idp["given_name"] = given_name
        login = await session_client.get("/api/login")
        params = parse_qs(urlparse(login.headers["location"]).query)
        idp["nonce"] = params["nonce"][0]
        await session_client.get("/api/callback", params={"code": "abc", "state": params["state"][0]})

    body = (await session_client.get("/api/v1/users/me")).json()
    assert body["firstName"] == "Caroline"


@pytest.mark.asyncio
async def test_theme_preference(client):
    response = await client.patch("/api/v1/users/me", json={"theme": "dark"})
    assert response.status_code == 200
    assert response.json()["theme"] == "dark"
    assert (await client.get("/api/v1/users/me")).json()["theme"] == "dark"

    response = await client.patch("/api/v1/users/me", json={"theme": "purple"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_delete_account_removes_everything(client, other_client):
    await client.post("/api/v1/items", data={"name": "Lamp"})
    await other_client.post("/api/v1/items", data={"name": "Bike"})

    assert (await client.delete("/api/v1/users/me")).status_code == 204
    assert (await client.get("/api/v1/users/me")).status_code == 401
    assert len((await other_client.get("/api/v1/items")).json()) == 1
