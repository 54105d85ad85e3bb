import asyncio

from tumi.domain.events.db_models import EventRegistration, TumiEvent
from tumi.domain.users import service as user_service
from tumi.domain.users.statuses import MemberStatus, UserRole


def test_members_excludes_non_members_and_sorts_by_name(client, make_user, auth_headers):
    viewer = make_user(first_name="Viewer", last_name="Zulu")
    make_user(first_name="Bea", last_name="Alpha", status=MemberStatus.TRIAL)
    make_user(first_name="Al", last_name="Alpha", status=MemberStatus.ALUMNI)
    make_user(first_name="Guest", last_name="Beta", status=MemberStatus.NONE)

    response = client.get("/v1/members", headers=auth_headers(viewer))

    assert response.status_code == 200
    names = [(item["last_name"], item["first_name"]) for item in response.json()["items"]]
    assert names == [("Alpha", "Al"), ("Alpha", "Bea"), ("Zulu", "Viewer")]


def test_users_by_ids_preserves_request_order(client, make_user, auth_headers):
    viewer = make_user()
    first = make_user(last_name="First")
    second = make_user(last_name="Second")

    response = client.get(
        "/v1/users",
        params={"ids": f"{second.id},missing,{first.id}"},
        headers=auth_headers(viewer),
    )

    assert response.status_code == 200
    assert [item["id"] for item in response.json()["items"]] == [second.id, first.id]


def test_get_unknown_user_is_404(client, make_user, auth_headers):
    viewer = make_user()

    response = client.get("/v1/users/does-not-exist", headers=auth_headers(viewer))

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["detail"] == "User not found"


def test_user_updates_own_name_only(client, make_user, auth_headers):
    user = make_user(first_name="Old", last_name="Name")

    response = client.patch(f"/v1/users/{user.id}", json={"first_name": "New"}, headers=auth_headers(user))

    assert response.status_code == 200
    assert response.json()["first_name"] == "New"
    assert response.json()["last_name"] == "Name"

    promote = client.patch(f"/v1/users/{user.id}", json={"role": "ADMIN"}, headers=auth_headers(user))
    assert promote.status_code == 403


def test_user_cannot_update_someone_else(client, make_user, auth_headers):
    user = make_user()
    other = make_user()

    response = client.patch(f"/v1/users/{other.id}", json={"first_name": "Hacked"}, headers=auth_headers(user))

    assert response.status_code == 403


def test_admin_updates_member_status(client, make_user, auth_headers):
    admin = make_user(role=UserRole.ADMIN)
    member = make_user(status=MemberStatus.TRIAL)

    response = client.patch(
        f"/v1/users/{member.id}",
        json={"status": "FULL"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "FULL"


def test_update_rejects_null_for_required_field(client, make_user, auth_headers):
    user = make_user()

    response = client.patch(f"/v1/users/{user.id}", json={"first_name": None}, headers=auth_headers(user))

    assert response.status_code == 422


def test_update_to_taken_email_is_conflict(client, make_user, auth_headers):
    admin = make_user(role=UserRole.ADMIN)
    taken = make_user()
    member = make_user()

    response = client.patch(
        f"/v1/users/{member.id}", json={"email": taken.email}, headers=auth_headers(admin)
    )

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    unchanged = client.get(f"/v1/users/{member.id}", headers=auth_headers(admin))
    assert unchanged.json()["email"] == member.email


def test_invalid_token_is_rejected(client):
    response = client.get("/v1/members", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401


def test_populate_registrations_pairs_users(async_session_maker, make_user):
    user = make_user(last_name="Paired")

    async def _run():
        async with async_session_maker() as session:
            event = TumiEvent(title="Pub quiz", participant_limit=10)
            session.add(event)
            await session.flush()
            registrations = [
                EventRegistration(event_id=event.id, user_id=user.id),
                EventRegistration(event_id=event.id, user_id="ghost"),
            ]
            return await user_service.populate_registrations(session, registrations)

    pairs = asyncio.run(_run())

    assert pairs[0][1].last_name == "Paired"
    assert pairs[1][1] is None


def test_get_users_with_no_ids_skips_query(async_session_maker):
    async def _run():
        async with async_session_maker() as session:
            return await user_service.get_users(session, [])

    assert asyncio.run(_run()) == []
