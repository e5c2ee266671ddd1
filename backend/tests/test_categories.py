"""Category API tests."""

import pytest

from tally.services.category_service import DEFAULT_CATEGORIES


@pytest.mark.asyncio
async def test_first_listing_seeds_defaults(client, user):
    response = await client.get("/api/v1/categories")
    assert response.status_code == 200
    categories = response.json()
    assert [c["name"] for c in categories] == [name for name, _, _ in DEFAULT_CATEGORIES]
    assert all(c["userId"] == user.id for c in categories)

    again = (await client.get("/api/v1/categories")).json()
    assert [c["id"] for c in again] == [c["id"] for c in categories]


@pytest.mark.asyncio
async def test_auth_user_seeds_categories(client, user):
    response = await client.get("/api/v1/auth/user")
    assert response.status_code == 200
    body = response.json()
    assert body["id"] == user.id
    assert body["firstName"] == "Alice"
    assert body["theme"] == "light"

    assert len((await client.get("/api/v1/categories")).json()) == len(DEFAULT_CATEGORIES)


@pytest.mark.asyncio
async def test_categories_are_per_user(client, other_client):
    mine = {c["id"] for c in (await client.get("/api/v1/categories")).json()}
    theirs = {c["id"] for c in (await other_client.get("/api/v1/categories")).json()}
    assert mine.isdisjoint(theirs)


@pytest.mark.asyncio
async def test_create_and_update_category(client):
    await client.get("/api/v1/categories")
    response = await client.post("/api/v1/categories", json={"name": "Camping", "icon": "tent"})
    assert response.status_code == 201
    created = response.json()
    assert created["color"] == "#6b7280"

    response = await client.patch(f"/api/v1/categories/{created['id']}", json={"color": "#00ff00"})
    assert response.status_code == 200
    assert response.json()["name"] == "Camping"
    assert response.json()["color"] == "#00ff00"

    names = [c["name"] for c in (await client.get("/api/v1/categories")).json()]
    assert names[-1] == "Camping"
    assert len(names) == len(DEFAULT_CATEGORIES) + 1


@pytest.mark.asyncio
async def test_update_foreign_category_is_not_found(client, other_client):
    category = (await other_client.get("/api/v1/categories")).json()[0]
    response = await client.patch(f"/api/v1/categories/{category['id']}", json={"name": "Hijacked"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_category_keeps_items(client):
    category = (await client.get("/api/v1/categories")).json()[0]
    response = await client.post(
        "/api/v1/items", data={"name": "Kettle", "categoryId": str(category["id"])}
    )
    item = response.json()
    assert item["categoryId"] == category["id"]

    assert (await client.delete(f"/api/v1/categories/{category['id']}")).status_code == 204

    item = (await client.get(f"/api/v1/items/{item['id']}")).json()
    assert item["categoryId"] is None
    ids = [c["id"] for c in (await client.get("/api/v1/categories")).json()]
    assert category["id"] not in ids


@pytest.mark.asyncio
async def test_delete_foreign_category_is_a_no_op(client, other_client):
    category = (await other_client.get("/api/v1/categories")).json()[0]
    assert (await client.delete(f"/api/v1/categories/{category['id']}")).status_code == 204

    ids = [c["id"] for c in (await other_client.get("/api/v1/categories")).json()]
    assert category["id"] in ids


@pytest.mark.asyncio
async def test_reseeds_after_deleting_everything(client):
    categories = (await client.get("/api/v1/categories")).json()
    for category in categories:
        await client.delete(f"/api/v1/categories/{category['id']}")

    reseeded = (await client.get("/api/v1/categories")).json()
    assert len(reseeded) == len(DEFAULT_CATEGORIES)
