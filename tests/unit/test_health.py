from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from gateway.main import app


def test_health():
    session = MagicMock()
    session.state = "open"
    session.shutdown = AsyncMock()
    app.state.session = session

    with (
        patch("gateway.main.WebhookForwarder.startup", new_callable=AsyncMock),
        patch("gateway.main.WebhookForwarder.shutdown", new_callable=AsyncMock),
        patch("gateway.main.configure_logging"),
    ):
        with TestClient(app) as client:
            response = client.get("/health")

    app.state.session = None
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "session": "open"}
    session.launch.assert_called_once()
    session.shutdown.assert_awaited_once()


def test_health_without_transport():
    app.state.session = None

    with (
        patch("gateway.main.WebhookForwarder.startup", new_callable=AsyncMock),
        patch("gateway.main.WebhookForwarder.shutdown", new_callable=AsyncMock),
        patch("gateway.main.configure_logging"),
    ):
        with TestClient(app) as client:
            response = client.get("/health")

    assert response.json() == {"status": "ok", "session": "unconfigured"}
