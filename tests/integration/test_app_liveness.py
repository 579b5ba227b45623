from __future__ import annotations

import json

import pytest

from deboca_bot.api.app import create_app, create_controller
from deboca_bot.api.routes import LIVENESS_TEXT
from deboca_bot.application.lifecycle import ConnectionLifecycleController
from deboca_bot.config.license import load_runtime_identity
from deboca_bot.domain.connection import ConnectionPhase
from tests.helpers.fakes import FakeMessagingClient

SENDER = "5511987654321@c.us"


def test_root_returns_liveness_text(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert response.text == LIVENESS_TEXT


def test_correlation_id_is_propagated(client):
    response = client.get("/", headers={"x-correlation-id": "req-1"})

    assert response.headers["x-correlation-id"] == "req-1"


def test_liveness_does_not_depend_on_session(client):
    controller = client.app.state.controller

    assert controller.state.is_ready is False
    assert client.get("/").status_code == 200


def test_invalid_config_rejected(settings):
    settings = settings.model_copy(update={"bridge_base_url": "bridge:3000"})

    with pytest.raises(ValueError, match="Configuração inválida"):
        create_app(settings=settings)


def test_create_controller_from_identity(settings):
    identity = load_runtime_identity(settings)

    controller = create_controller(settings, identity)

    assert isinstance(controller, ConnectionLifecycleController)
    assert controller.client is None
    assert controller.router.license_expired is False


@pytest.mark.asyncio
async def test_expired_identity_disables_replies(settings, tmp_path):
    (tmp_path / "config.json").write_text(
        json.dumps({"CLIENT_ID": "cliente42", "installDate": "2024-01-01T00:00:00Z"}),
        encoding="utf-8",
    )
    identity = load_runtime_identity(settings)

    controller = create_controller(settings, identity)
    controller.state.phase = ConnectionPhase.READY
    client = FakeMessagingClient(pushnames={SENDER: "Maria"})

    result = await controller.router.route(client.message("oi", SENDER), client)

    assert identity.expired is True
    assert controller.router.license_expired is True
    assert result is None
    assert client.sent == []
    assert not (tmp_path / "data.json").exists()
