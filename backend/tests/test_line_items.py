import asyncio

import sqlalchemy as sa

from tumi.domain.shop.db_models import LineItem, LineItemSubmission, Product, ShoppingCart, SubmissionItem


async def _seed_product(async_session_maker, *, is_active: bool = True) -> dict:
    async with async_session_maker() as session:
        product = Product(title="Club hoodie", prices={"default": {"amount": 3500}}, is_active=is_active)
        product.submission_items = [SubmissionItem(name="Size"), SubmissionItem(name="Name print")]
        session.add(product)
        await session.commit()
        return {
            "product_id": product.id,
            "size_item_id": product.submission_items[0].id,
            "print_item_id": product.submission_items[1].id,
        }


async def _count(async_session_maker, model) -> int:
    async with async_session_maker() as session:
        return await session.scalar(sa.select(sa.func.count()).select_from(model))


def _add(client, headers, product_id: str, **overrides):
    body = {"product_id": product_id, "price": {"amount": 3500, "currency": "eur"}}
    body.update(overrides)
    return client.post("/v1/line-items", json=body, headers=headers)


def test_add_line_item_creates_cart_and_submissions(client, async_session_maker, make_user, auth_headers):
    user = make_user()
    seeded = asyncio.run(_seed_product(async_session_maker))

    response = _add(
        client,
        auth_headers(user),
        seeded["product_id"],
        quantity=2,
        submissions={seeded["size_item_id"]: "L"},
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["quantity"] == 2
    assert payload["cost"] == 3500
    assert payload["submissions"][0]["submission_item_id"] == seeded["size_item_id"]
    assert payload["submissions"][0]["data"] == {"value": "L"}
    assert asyncio.run(_count(async_session_maker, ShoppingCart)) == 1

    second = _add(client, auth_headers(user), seeded["product_id"])
    assert second.status_code == 201
    assert second.json()["quantity"] == 1
    assert second.json()["cart_id"] == payload["cart_id"]
    assert asyncio.run(_count(async_session_maker, ShoppingCart)) == 1


def test_add_line_item_unknown_product_is_404(client, make_user, auth_headers):
    user = make_user()

    response = _add(client, auth_headers(user), "missing-product")

    assert response.status_code == 404
    assert response.json()["detail"] == "Product not found"


def test_add_line_item_rejects_foreign_submission_item(client, async_session_maker, make_user, auth_headers):
    user = make_user()
    seeded = asyncio.run(_seed_product(async_session_maker))

    response = _add(client, auth_headers(user), seeded["product_id"], submissions={"not-an-item": "x"})

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "submissions.not-an-item"


def test_add_line_item_requires_authentication(client, async_session_maker):
    seeded = asyncio.run(_seed_product(async_session_maker))

    response = client.post(
        "/v1/line-items",
        json={"product_id": seeded["product_id"], "price": {"amount": 100}},
    )

    assert response.status_code == 401


def test_increase_and_decrease_quantity(client, async_session_maker, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    seeded = asyncio.run(_seed_product(async_session_maker))
    line_item_id = _add(client, headers, seeded["product_id"]).json()["id"]

    increased = client.post(f"/v1/line-items/{line_item_id}/increase", headers=headers)
    assert increased.status_code == 200
    assert increased.json()["quantity"] == 2

    decreased = client.post(f"/v1/line-items/{line_item_id}/decrease", headers=headers)
    assert decreased.json()["quantity"] == 1

    floored = client.post(f"/v1/line-items/{line_item_id}/decrease", headers=headers)
    assert floored.status_code == 200
    assert floored.json()["quantity"] == 1


def test_delete_line_item_returns_removed_item(client, async_session_maker, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    seeded = asyncio.run(_seed_product(async_session_maker))
    created = _add(client, headers, seeded["product_id"], submissions={seeded["print_item_id"]: "ADA"}).json()

    response = client.delete(f"/v1/line-items/{created['id']}", headers=headers)

    assert response.status_code == 200
    assert response.json()["id"] == created["id"]
    assert asyncio.run(_count(async_session_maker, LineItem)) == 0
    assert asyncio.run(_count(async_session_maker, LineItemSubmission)) == 0


def test_line_items_of_other_users_are_hidden(client, async_session_maker, make_user, auth_headers):
    owner = make_user()
    intruder = make_user()
    seeded = asyncio.run(_seed_product(async_session_maker))
    line_item_id = _add(client, auth_headers(owner), seeded["product_id"]).json()["id"]

    increase = client.post(f"/v1/line-items/{line_item_id}/increase", headers=auth_headers(intruder))
    delete = client.delete(f"/v1/line-items/{line_item_id}", headers=auth_headers(intruder))

    assert increase.status_code == 404
    assert delete.status_code == 404
    assert asyncio.run(_count(async_session_maker, LineItem)) == 1


def test_get_cart_totals_line_items(client, async_session_maker, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)
    seeded = asyncio.run(_seed_product(async_session_maker))
    _add(client, headers, seeded["product_id"], quantity=2)
    _add(client, headers, seeded["product_id"], price={"amount": 500})

    response = client.get("/v1/cart", headers=headers)

    assert response.status_code == 200
    payload = response.json()
    assert len(payload["line_items"]) == 2
    assert payload["total_cost"] == 3500 * 2 + 500


def test_get_cart_without_cart_is_empty_and_not_persisted(client, async_session_maker, make_user, auth_headers):
    user = make_user()

    response = client.get("/v1/cart", headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json() == {"id": None, "user_id": user.id, "line_items": [], "total_cost": 0}

    async def _cart_count() -> int:
        async with async_session_maker() as session:
            return await session.scalar(
                sa.select(sa.func.count()).select_from(ShoppingCart).where(ShoppingCart.user_id == user.id)
            )

    assert asyncio.run(_cart_count()) == 0
