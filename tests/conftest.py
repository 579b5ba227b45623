from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from deboca_bot.api.app import create_app
from deboca_bot.application.connection_state import ConnectionState
from deboca_bot.application.lifecycle import ConnectionLifecycleController, LifecycleConfig
from deboca_bot.application.menu_responder import MenuResponder
from deboca_bot.application.router import MessageRouter
from deboca_bot.config.settings import Settings, get_settings
from deboca_bot.domain.connection import ConnectionPhase
from deboca_bot.infra.user_records import InMemoryUserRecordStore
from tests.helpers.fakes import FakeMessagingClient, RecordingSleep


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        config_file=str(tmp_path / "config.json"),
        data_file=str(tmp_path / "data.json"),
        session_data_dir=str(tmp_path / ".wwebjs_auth"),
        bot_number="5511999990000",
        typing_delay_seconds=0,
        render_pairing_in_terminal=False,
    )


@pytest.fixture()
def fake_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def store() -> InMemoryUserRecordStore:
    return InMemoryUserRecordStore()


@pytest.fixture()
def ready_state() -> ConnectionState:
    return ConnectionState(phase=ConnectionPhase.READY)


@pytest.fixture()
def fake_client() -> FakeMessagingClient:
    return FakeMessagingClient(pushnames={"5511987654321@c.us": "Maria Souza"})


@pytest.fixture()
def message_router(ready_state, store, fake_sleep) -> MessageRouter:
    responder = MenuResponder(store, typing_delay_seconds=0, sleep=fake_sleep)
    return MessageRouter(
        ready_state,
        store,
        responder,
        trigger_word="oi",
        typing_delay_seconds=0,
        sleep=fake_sleep,
    )


@pytest.fixture()
def client(settings):
    """App com controlador cujo cliente de mensageria é um dublê (sem rede)."""
    state = ConnectionState()
    records = InMemoryUserRecordStore()
    router = MessageRouter(
        state, records, MenuResponder(records, typing_delay_seconds=0), trigger_word="oi"
    )
    controller = ConnectionLifecycleController(
        client_factory=FakeMessagingClient,
        router=router,
        config=LifecycleConfig(client_id="botLocal1", bot_number=settings.bot_number),
        state=state,
    )
    app = create_app(settings=settings, controller=controller)
    with TestClient(app) as test_client:
        yield test_client
