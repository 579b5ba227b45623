"""Testes do controlador de ciclo de vida da conexão."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from deboca_bot.adapters.whatsapp.client import ClientEvent, MessagingClientError
from deboca_bot.application.connection_state import ConnectionState
from deboca_bot.application.lifecycle import ConnectionLifecycleController, LifecycleConfig
from deboca_bot.application.menu_responder import MenuResponder
from deboca_bot.application.router import MessageRouter
from deboca_bot.domain.connection import ConnectionPhase
from deboca_bot.infra.user_records import InMemoryUserRecordStore
from tests.helpers.fakes import FakeMessagingClient, RecordingSleep

BOT_NUMBER = "5511999990000"
BOT_ADDRESS = "5511999990000@c.us"
SENDER = "5511987654321@c.us"


class ClientFactory:
    """Cria FakeMessagingClient; `init_errors` é consumido uma falha por sessão."""

    def __init__(self, init_errors: list[Exception | None] | None = None, **kwargs) -> None:
        self.init_errors = list(init_errors or [])
        self.kwargs = kwargs
        self.clients: list[FakeMessagingClient] = []

    def __call__(self) -> FakeMessagingClient:
        error = self.init_errors.pop(0) if self.init_errors else None
        client = FakeMessagingClient(init_error=error, **self.kwargs)
        self.clients.append(client)
        return client

    @property
    def last(self) -> FakeMessagingClient:
        return self.clients[-1]


class GatedSleep(RecordingSleep):
    """Libera `free_calls` esperas; a seguinte bloqueia até o cancelamento."""

    def __init__(self, free_calls: int) -> None:
        super().__init__()
        self.free_calls = free_calls
        self.blocked = asyncio.Event()

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if len(self.delays) > self.free_calls:
            self.blocked.set()
            await asyncio.Event().wait()
        await asyncio.sleep(0)


def _controller(
    factory: ClientFactory,
    sleep=asyncio.sleep,
    state: ConnectionState | None = None,
    store: InMemoryUserRecordStore | None = None,
    render_pairing=None,
    clear_session=None,
    **config,
) -> ConnectionLifecycleController:
    state = state or ConnectionState()
    store = store or InMemoryUserRecordStore()
    router = MessageRouter(
        state, store, MenuResponder(store, typing_delay_seconds=0), "oi", typing_delay_seconds=0
    )
    return ConnectionLifecycleController(
        client_factory=factory,
        router=router,
        config=LifecycleConfig(client_id="botLocal1", bot_number=BOT_NUMBER, **config),
        state=state,
        render_pairing=render_pairing,
        clear_session=clear_session or AsyncMock(return_value=True),
        sleep=sleep,
    )


class TestInitialize:
    """Inicialização e exclusão mútua."""

    @pytest.mark.asyncio
    async def test_start_subscribes_handlers(self):
        factory = ClientFactory()
        controller = _controller(factory)

        await controller.start()

        client = factory.last
        assert controller.client is client
        assert client.initialize_calls == 1
        assert controller.state.phase is ConnectionPhase.INITIALIZING
        for event in ClientEvent:
            assert client.listener_count(event) == 1
        assert controller.reconnect_task is None
        await controller.stop()

    @pytest.mark.asyncio
    async def test_concurrent_initialize_is_noop(self):
        gate = asyncio.Event()
        factory = ClientFactory(init_gate=gate)
        controller = _controller(factory)

        first = asyncio.create_task(controller.initialize())
        while not controller.state.initializing:
            await asyncio.sleep(0)

        await controller.initialize()
        assert len(factory.clients) == 1

        gate.set()
        await first
        assert controller.state.initializing is False
        assert len(factory.clients) == 1
        await controller.stop()

    @pytest.mark.asyncio
    async def test_disconnect_during_initialize_reconnects_after_it_returns(self):
        gate = asyncio.Event()
        factory = ClientFactory(init_gate=gate)
        controller = _controller(factory, sleep=GatedSleep(free_calls=0))

        task = asyncio.create_task(controller.initialize())
        while not controller.state.initializing:
            await asyncio.sleep(0)

        await factory.last.emit(ClientEvent.DISCONNECTED, "NAVIGATION")
        assert controller.state.phase is ConnectionPhase.DISCONNECTED
        assert controller.reconnect_task is None

        gate.set()
        await task
        assert controller.reconnect_task is not None
        await controller.stop()

    @pytest.mark.asyncio
    async def test_init_timeout_counts_as_failure(self):
        factory = ClientFactory(init_gate=asyncio.Event())
        controller = _controller(factory, init_timeout_seconds=0.01, max_retries=0)

        await controller.start()
        await controller.reconnect_task

        assert controller.state.phase is ConnectionPhase.DISCONNECTED
        assert controller.state.retries_exhausted is True
        await controller.stop()


class TestReconnectBackoff:
    """Reconexão com backoff exponencial."""

    @pytest.mark.asyncio
    async def test_backoff_schedule_and_exhaustion(self):
        factory = ClientFactory(init_errors=[MessagingClientError("boom")] * 10)
        sleep = RecordingSleep()
        controller = _controller(factory, sleep=sleep)

        await controller.start()
        await controller.reconnect_task

        assert sleep.delays == [5.0, 10.0, 20.0, 40.0, 80.0]
        assert len(factory.clients) == 6
        assert controller.state.retry_count == 5
        assert controller.state.retries_exhausted is True
        assert controller.state.phase is ConnectionPhase.DISCONNECTED

    @pytest.mark.asyncio
    async def test_old_sessions_are_destroyed_and_detached(self):
        factory = ClientFactory(init_errors=[MessagingClientError("boom")] * 3)
        controller = _controller(factory, sleep=RecordingSleep(), max_retries=2)

        await controller.start()
        await controller.reconnect_task

        old_clients = factory.clients[:-1]
        assert all(client.destroyed for client in old_clients)
        assert all(client.listener_count(ClientEvent.READY) == 0 for client in old_clients)
        assert all(client.logout_calls == 1 for client in factory.clients)

    @pytest.mark.asyncio
    async def test_logout_failure_does_not_stop_reconnect(self):
        factory = ClientFactory(init_errors=[MessagingClientError("boom")])
        controller = _controller(factory, sleep=RecordingSleep())

        await controller.start()
        factory.last.logout_error = MessagingClientError("logout failed")
        await controller.reconnect_task

        assert len(factory.clients) == 2
        assert controller.state.retry_count == 1

    @pytest.mark.asyncio
    async def test_ready_resets_retry_count(self):
        factory = ClientFactory(init_errors=[MessagingClientError("boom"), None])
        controller = _controller(factory, sleep=GatedSleep(free_calls=1))

        await controller.start()
        await controller.reconnect_task
        assert controller.state.retry_count == 1

        await factory.last.emit(ClientEvent.READY)

        assert controller.state.phase is ConnectionPhase.READY
        assert controller.state.retry_count == 0
        await controller.stop()

    @pytest.mark.asyncio
    async def test_second_disconnect_while_reconnecting_is_ignored(self):
        factory = ClientFactory()
        sleep = GatedSleep(free_calls=0)
        controller = _controller(factory, sleep=sleep)

        await controller.start()
        await factory.last.emit(ClientEvent.READY)
        await factory.last.emit(ClientEvent.DISCONNECTED, "CONFLICT")
        pending = controller.reconnect_task

        await factory.last.emit(ClientEvent.DISCONNECTED, "CONFLICT")

        assert controller.reconnect_task is pending
        await controller.stop()

    @pytest.mark.asyncio
    async def test_restart_resets_retry_budget(self):
        factory = ClientFactory(init_errors=[MessagingClientError("boom")] * 3)
        controller = _controller(factory, sleep=RecordingSleep(), max_retries=2)

        await controller.start()
        await controller.reconnect_task
        assert controller.state.retries_exhausted is True

        await controller.restart()

        assert controller.state.retries_exhausted is False
        assert controller.state.retry_count == 0
        assert len(factory.clients) == 4
        await controller.stop()


class TestSessionEvents:
    """Handlers de qr / ready / disconnected / auth_failure / message."""

    @pytest.mark.asyncio
    async def test_pairing_code_rendered_and_resurfaced_on_retry(self):
        render = MagicMock()
        factory = ClientFactory()
        controller = _controller(factory, sleep=RecordingSleep(), render_pairing=render)

        await controller.start()
        await factory.last.emit(ClientEvent.QR, "pairing-payload")

        assert controller.state.phase is ConnectionPhase.AWAITING_PAIRING
        assert controller.state.last_pairing_payload == "pairing-payload"
        render.assert_called_once_with("pairing-payload")

        await factory.last.emit(ClientEvent.DISCONNECTED, "TIMEOUT")
        await controller.reconnect_task

        assert render.call_count == 2
        assert len(factory.clients) == 2
        await controller.stop()

    @pytest.mark.asyncio
    async def test_auth_failure_clears_session_and_reconnects(self):
        factory = ClientFactory()
        clear_session = AsyncMock(return_value=True)
        controller = _controller(
            factory, clear_session=clear_session, max_retries=0, session_data_dir="/tmp/sessions"
        )

        await controller.start()
        await factory.last.emit(ClientEvent.AUTH_FAILURE, "bad credentials")

        assert controller.state.phase is ConnectionPhase.AUTH_FAILED
        clear_session.assert_awaited_once_with("/tmp/sessions", "botLocal1")
        await controller.reconnect_task
        assert factory.last.logout_calls == 1
        assert controller.state.retries_exhausted is True

    @pytest.mark.asyncio
    async def test_stale_session_events_are_ignored(self):
        factory = ClientFactory()
        controller = _controller(factory)

        await controller.start()
        old = factory.last
        await old.emit(ClientEvent.READY)
        await controller.restart()
        new = factory.last

        assert new is not old
        assert old.listener_count(ClientEvent.DISCONNECTED) == 0
        controller._on_disconnected(old, "late event")
        controller._on_ready(old)
        assert controller.state.phase is ConnectionPhase.INITIALIZING
        assert controller.reconnect_task is None

        await new.emit(ClientEvent.READY)
        assert controller.state.phase is ConnectionPhase.READY
        await controller.stop()

    @pytest.mark.asyncio
    async def test_message_routed_when_ready(self):
        store = InMemoryUserRecordStore()
        factory = ClientFactory(pushnames={SENDER: "Maria"})
        controller = _controller(factory, store=store)

        await controller.start()
        client = factory.last
        await client.emit(ClientEvent.MESSAGE, client.message("oi", SENDER))
        assert client.sent == []

        await client.emit(ClientEvent.READY)
        await client.emit(ClientEvent.MESSAGE, client.message("oi", SENDER))

        assert len(client.sent) == 1
        assert (await store.load())[0].contact_id == "5511987654321"
        await controller.stop()


class TestKeepAlive:
    """Keep-alive periódico enquanto READY."""

    @pytest.mark.asyncio
    async def test_sends_keepalive_to_bot_number(self):
        sleep = GatedSleep(free_calls=2)
        factory = ClientFactory(number_ids={BOT_NUMBER: BOT_ADDRESS})
        controller = _controller(factory, sleep=sleep)

        await controller.start()
        await factory.last.emit(ClientEvent.READY)
        await sleep.blocked.wait()

        assert sleep.delays[:2] == [5.0, 300.0]
        assert factory.last.sent == [(BOT_ADDRESS, "Keep-alive")]
        await controller.stop()

    @pytest.mark.asyncio
    async def test_unknown_bot_number_skips_send(self):
        sleep = GatedSleep(free_calls=3)
        factory = ClientFactory()
        controller = _controller(factory, sleep=sleep)

        await controller.start()
        await factory.last.emit(ClientEvent.READY)
        await sleep.blocked.wait()

        assert factory.last.sent == []
        assert controller.state.phase is ConnectionPhase.READY
        await controller.stop()

    @pytest.mark.asyncio
    async def test_failure_forces_disconnected_and_reconnect(self):
        sleep = RecordingSleep()
        factory = ClientFactory(number_ids={BOT_NUMBER: BOT_ADDRESS})
        controller = _controller(factory, sleep=sleep, max_retries=0)

        await controller.start()
        client = factory.last
        client.send_error = MessagingClientError("session gone")
        await client.emit(ClientEvent.READY)
        await controller.keepalive_task

        assert controller.state.phase is ConnectionPhase.DISCONNECTED
        assert controller.reconnect_task is not None
        await controller.reconnect_task
        assert client.logout_calls == 1

    @pytest.mark.asyncio
    async def test_stop_cancels_keepalive_and_destroys_client(self):
        factory = ClientFactory()
        controller = _controller(factory)

        await controller.start()
        client = factory.last
        await client.emit(ClientEvent.READY)
        keepalive = controller.keepalive_task
        assert keepalive is not None

        await controller.stop()

        assert keepalive.cancelled()
        assert controller.keepalive_task is None
        assert controller.client is None
        assert client.destroyed is True
        assert client.listener_count(ClientEvent.MESSAGE) == 0
        assert controller._schedule_reconnect() is None


def test_config_from_settings(settings):
    config = LifecycleConfig.from_settings(settings, "cliente42", "5521988887777")

    assert config.client_id == "cliente42"
    assert config.bot_number == "5521988887777"
    assert config.max_retries == 5
    assert config.initial_retry_delay_seconds == 5.0
    assert config.init_timeout_seconds == 90.0
    assert config.keepalive_settle_seconds == 5.0
    assert config.keepalive_interval_seconds == 300.0
    assert config.session_data_dir == settings.session_data_dir
