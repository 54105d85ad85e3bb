import pytest
from fastapi.testclient import TestClient

from tumi.infra.metrics import configure_metrics
from tumi.main import create_app
from tumi.settings import settings


@pytest.fixture()
def metrics_client(async_session_maker):
    metrics_settings = settings.model_copy(update={"metrics_enabled": True, "metrics_token": "scrape-token"})
    metrics_app = create_app(metrics_settings)
    metrics_app.state.db_session_factory = async_session_maker
    with TestClient(metrics_app) as test_client:
        yield test_client
    configure_metrics(False)


def test_metrics_route_absent_when_disabled(client):
    response = client.get("/metrics")

    assert response.status_code == 404


def test_metrics_requires_token(metrics_client):
    response = metrics_client.get("/metrics")

    assert response.status_code == 401


def test_metrics_exposes_http_latency(metrics_client):
    metrics_client.get("/healthz")

    response = metrics_client.get("/metrics", headers={"Authorization": "Bearer scrape-token"})

    assert response.status_code == 200
    assert "http_request_latency_seconds" in response.text
