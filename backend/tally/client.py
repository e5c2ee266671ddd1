"""Async API client used by the item entry form and the dashboard views."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from tally.core.exceptions import LOGIN_URL
from tally.schemas.category import CategoryResponse
from tally.schemas.item import ItemResponse, ItemStats
from tally.schemas.user import UserResponse

logger = structlog.get_logger()


class LoginRequiredError(Exception):
    """The session is missing or expired; the user must log in again."""

    def __init__(self, login_url: str = LOGIN_URL):
        super().__init__(f"Login required ({login_url})")
        self.login_url = login_url


class APIError(Exception):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


@dataclass(frozen=True)
class PhotoAttachment:
    filename: str
    content: bytes
    content_type: str = "image/jpeg"


class TallyClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        cookies: dict[str, str] | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = httpx.AsyncClient(
            base_url=base_url, headers=headers, cookies=cookies, transport=transport
        )

    async def __aenter__(self) -> "TallyClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _check(self, response: httpx.Response) -> Any:
        if response.status_code == 401:
            login_url = LOGIN_URL
            try:
                login_url = response.json().get("login_url", LOGIN_URL)
            except ValueError:
                pass
            raise LoginRequiredError(login_url)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail")
            except ValueError:
                detail = response.text
            raise APIError(response.status_code, detail)
        if response.status_code == 204:
            return None
        return response.json()

    # ── Session ──────────────────────────────────────

    async def current_user(self) -> UserResponse:
        data = self._check(await self._http.get("/api/v1/auth/user"))
        return UserResponse.model_validate(data)

    async def set_theme(self, theme: str) -> UserResponse:
        data = self._check(await self._http.patch("/api/v1/users/me", json={"theme": theme}))
        return UserResponse.model_validate(data)

    # ── Categories ───────────────────────────────────

    async def categories(self) -> list[CategoryResponse]:
        data = self._check(await self._http.get("/api/v1/categories"))
        return [CategoryResponse.model_validate(c) for c in data]

    # ── Items ────────────────────────────────────────

    async def items(self, q: str | None = None) -> list[ItemResponse]:
        params = {"q": q} if q else None
        data = self._check(await self._http.get("/api/v1/items", params=params))
        return [ItemResponse.model_validate(i) for i in data]

    async def recent_items(self, limit: int = 10) -> list[ItemResponse]:
        data = self._check(await self._http.get("/api/v1/items/recent", params={"limit": limit}))
        return [ItemResponse.model_validate(i) for i in data]

    async def stats(self) -> ItemStats:
        data = self._check(await self._http.get("/api/v1/items/stats"))
        return ItemStats.model_validate(data)

    async def expiring_items(self, days: int = 7) -> list[ItemResponse]:
        data = self._check(await self._http.get("/api/v1/items/expiring", params={"days": days}))
        return [ItemResponse.model_validate(i) for i in data]

    async def create_item(
        self, fields: dict[str, str], photo: PhotoAttachment | None = None
    ) -> ItemResponse:
        response = await self._http.post("/api/v1/items", data=fields, files=self._files(photo))
        return ItemResponse.model_validate(self._check(response))

    async def update_item(
        self, item_id: int, fields: dict[str, str], photo: PhotoAttachment | None = None
    ) -> ItemResponse:
        response = await self._http.patch(
            f"/api/v1/items/{item_id}", data=fields, files=self._files(photo)
        )
        return ItemResponse.model_validate(self._check(response))

    async def delete_item(self, item_id: int) -> None:
        self._check(await self._http.delete(f"/api/v1/items/{item_id}"))

    @staticmethod
    def _files(photo: PhotoAttachment | None) -> dict | None:
        if photo is None:
            return None
        return {"photo": (photo.filename, photo.content, photo.content_type)}


class DashboardViews:
    """Read views cached per key and invalidated after writes."""

    ITEMS = "items"
    RECENT = "items/recent"
    STATS = "items/stats"
    EXPIRING = "items/expiring"

    def __init__(self, client: TallyClient, recent_limit: int = 10, expiring_days: int = 7):
        self.client = client
        self.recent_limit = recent_limit
        self.expiring_days = expiring_days
        self._cache: dict[str, Any] = {}

    async def _get(self, key: str, fetch: Callable[[], Awaitable[Any]]) -> Any:
        if key not in self._cache:
            self._cache[key] = await fetch()
        return self._cache[key]

    async def items(self) -> list[ItemResponse]:
        return await self._get(self.ITEMS, self.client.items)

    async def recent(self) -> list[ItemResponse]:
        return await self._get(self.RECENT, lambda: self.client.recent_items(self.recent_limit))

    async def stats(self) -> ItemStats:
        return await self._get(self.STATS, self.client.stats)

    async def expiring(self) -> list[ItemResponse]:
        return await self._get(
            self.EXPIRING, lambda: self.client.expiring_items(self.expiring_days)
        )

    def is_cached(self, key: str) -> bool:
        return key in self._cache

    def invalidate(self, *keys: str) -> None:
        """Drop the given views (all of them when called without keys)."""
        if not keys:
            self._cache.clear()
            return
        for key in keys:
            self._cache.pop(key, None)


@dataclass
class SessionContext:
    """Explicit per-login state: current user, theme and cached views.

    Created at login with ``open()``; ``close()`` tears it down at logout.
    """

    client: TallyClient
    user: UserResponse | None = None
    theme: str = "light"
    views: DashboardViews | None = field(default=None)

    @property
    def is_open(self) -> bool:
        return self.user is not None

    async def open(self) -> UserResponse:
        self.user = await self.client.current_user()
        self.theme = self.user.theme
        self.views = DashboardViews(self.client)
        logger.info("Session opened", user_id=self.user.id)
        return self.user

    async def toggle_theme(self) -> str:
        theme = "light" if self.theme == "dark" else "dark"
        self.user = await self.client.set_theme(theme)
        self.theme = self.user.theme
        return self.theme

    def close(self) -> str:
        """Forget everything tied to the login; returns the logout redirect."""
        if self.views is not None:
            self.views.invalidate()
        self.user = None
        self.views = None
        self.theme = "light"
        return "/api/logout"
