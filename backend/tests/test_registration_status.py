def test_status_requires_authentication(client):
    response = client.get("/v1/registration/status")

    assert response.status_code == 401


def test_status_points_to_form_when_missing(client, make_user, auth_headers):
    user = make_user()

    response = client.get("/v1/registration/status", headers=auth_headers(user))

    assert response.status_code == 404
    assert response.json()["next"] == "/registration/form"


def test_submit_then_read_registration(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    submitted = client.post(
        "/v1/registration",
        json={"data": {"university": "TUM", "country": "DE"}},
        headers=headers,
    )
    assert submitted.status_code == 201
    assert submitted.json()["status"] == "PENDING"

    status = client.get("/v1/registration/status", headers=headers)
    assert status.status_code == 200
    assert status.json()["data"] == {"university": "TUM", "country": "DE"}


def test_second_submission_conflicts(client, make_user, auth_headers):
    user = make_user()
    headers = auth_headers(user)

    assert client.post("/v1/registration", json={"data": {}}, headers=headers).status_code == 201
    again = client.post("/v1/registration", json={"data": {}}, headers=headers)

    assert again.status_code == 409
    assert again.json()["detail"] == "Registration already submitted"
