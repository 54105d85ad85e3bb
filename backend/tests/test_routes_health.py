from tumi.infra.metrics import Metrics


def test_healthz(client):
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_checks_database(client):
    response = client.get("/readyz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": True}


def test_request_id_is_echoed(client):
    response = client.get("/healthz", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_validation_errors_use_problem_details(client, make_user, auth_headers):
    user = make_user()

    response = client.post("/v1/line-items", json={"price": {"amount": -1}}, headers=auth_headers(user))

    assert response.status_code == 422
    fields = {error["field"] for error in response.json()["errors"]}
    assert "product_id" in fields
    assert "price.amount" in fields


def test_metrics_render_counts_webhook_outcomes():
    metrics = Metrics(enabled=True)
    metrics.record_stripe_webhook("payment_intent.succeeded", "processed")
    metrics.record_reconciliation("event_registration", "successful")

    payload, content_type = metrics.render()
    body = payload.decode()

    assert "text/plain" in content_type
    assert 'stripe_webhook_events_total{event_type="payment_intent.succeeded",outcome="processed"} 1.0' in body
    assert 'payment_reconciliation_actions_total{entity="event_registration",action="successful"} 1.0' in body


def test_disabled_metrics_render_placeholder():
    payload, _ = Metrics(enabled=False).render()

    assert payload == b"metrics_disabled 1\n"
