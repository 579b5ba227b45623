"""Controlador do ciclo de vida da conexão WhatsApp.

Responsabilidades:
- Possuir a única sessão de mensageria e o ConnectionState
- Inicializar a sessão com exclusão mútua (uma inicialização por vez)
- Reagir a qr / ready / disconnected / auth_failure / message
- Reconectar com backoff exponencial limitado a `max_retries`
- Manter o keep-alive enquanto READY

Tasks de keep-alive e de backoff são canceladas no teardown; handlers de uma
sessão antiga são desanexados antes de outra ser construída e, se ainda
dispararem, são ignorados.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING

from deboca_bot.adapters.whatsapp.client import ClientEvent, InboundMessage, MessagingClient
from deboca_bot.application.connection_state import ConnectionState, compute_backoff_delay
from deboca_bot.domain.connection import ConnectionEvent, ConnectionPhase
from deboca_bot.infra.session_cleanup import clear_session_dir_async
from deboca_bot.observability.logging import get_logger

if TYPE_CHECKING:
    from deboca_bot.application.router import MessageRouter
    from deboca_bot.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

ClientFactory = Callable[[], MessagingClient]
Sleep = Callable[[float], Awaitable[None]]
PairingRenderer = Callable[[str], object]
SessionCleaner = Callable[[str, str], Awaitable[bool]]


@dataclass(frozen=True)
class LifecycleConfig:
    """Parâmetros do ciclo de conexão."""

    client_id: str
    bot_number: str
    max_retries: int = 5
    initial_retry_delay_seconds: float = 5.0
    init_timeout_seconds: float = 90.0
    keepalive_settle_seconds: float = 5.0
    keepalive_interval_seconds: float = 300.0
    keepalive_text: str = "Keep-alive"
    session_data_dir: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings, client_id: str, bot_number: str) -> LifecycleConfig:
        return cls(
            client_id=client_id,
            bot_number=bot_number,
            max_retries=settings.max_retries,
            initial_retry_delay_seconds=settings.initial_retry_delay_seconds,
            init_timeout_seconds=settings.init_timeout_seconds,
            keepalive_settle_seconds=settings.keepalive_settle_seconds,
            keepalive_interval_seconds=settings.keepalive_interval_seconds,
            keepalive_text=settings.keepalive_text,
            session_data_dir=settings.session_data_dir or None,
        )


async def _cancel_task(task: asyncio.Task | None) -> None:
    if task is None or task.done() or task is asyncio.current_task():
        return
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


class ConnectionLifecycleController:
    """Máquina de estados da sessão de mensageria."""

    def __init__(
        self,
        client_factory: ClientFactory,
        router: MessageRouter,
        config: LifecycleConfig,
        state: ConnectionState | None = None,
        render_pairing: PairingRenderer | None = None,
        clear_session: SessionCleaner = clear_session_dir_async,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client_factory = client_factory
        self._router = router
        self._config = config
        self._state = state or ConnectionState()
        self._render_pairing = render_pairing
        self._clear_session = clear_session
        self._sleep = sleep
        self._client: MessagingClient | None = None
        self._keepalive_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def router(self) -> MessageRouter:
        return self._router

    @property
    def client(self) -> MessagingClient | None:
        return self._client

    @property
    def reconnect_task(self) -> asyncio.Task[None] | None:
        return self._reconnect_task

    @property
    def keepalive_task(self) -> asyncio.Task[None] | None:
        return self._keepalive_task

    # --- API pública ---------------------------------------------------------

    async def start(self) -> None:
        """Primeira inicialização do processo."""
        self._stopped = False
        await self.initialize()

    async def initialize(self) -> None:
        """Inicializa a sessão; falha encaminha para reconexão com backoff."""
        if self._state.initializing:
            logger.info("initialize_ignored_already_in_progress")
            return

        if not await self._initialize_once():
            self._schedule_reconnect()

    async def restart(self) -> None:
        """Restart manual: descarta backoff pendente e renova o orçamento de tentativas."""
        if self._state.initializing:
            logger.info("restart_ignored_initialize_in_progress")
            return
        await _cancel_task(self._reconnect_task)
        self._reconnect_task = None
        self._state.retry_count = 0
        self._state.retries_exhausted = False
        self._stopped = False
        logger.info("manual_restart_requested")
        await self.initialize()

    async def stop(self) -> None:
        """Teardown: cancela timers, desanexa handlers e destrói a sessão."""
        self._stopped = True
        await _cancel_task(self._reconnect_task)
        self._reconnect_task = None
        await self._dispose_client()
        logger.info("lifecycle_stopped", extra={"phase": str(self._state.phase)})

    # --- inicialização -------------------------------------------------------

    async def _initialize_once(self) -> bool:
        """Constrói nova sessão e chama initialize(). True se a sessão subiu."""
        self._state.initializing = True
        self._state.apply(ConnectionEvent.START)
        started = time.monotonic()
        try:
            await self._dispose_client()
            client = self._client_factory()
            self._subscribe(client)
            self._client = client
            logger.info("initialize_started", extra={"client_id": self._config.client_id})
            await asyncio.wait_for(client.initialize(), timeout=self._config.init_timeout_seconds)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "initialize_failed",
                extra={"error_type": type(exc).__name__, "error": str(exc)},
                exc_info=True,
            )
            self._state.apply(ConnectionEvent.INIT_FAILED)
            return False
        finally:
            self._state.initializing = False

        logger.info(
            "initialize_completed",
            extra={"elapsed_seconds": round(time.monotonic() - started, 3)},
        )
        # Queda reportada durante o initialize foi ignorada pela guarda
        return self._state.phase not in (ConnectionPhase.DISCONNECTED, ConnectionPhase.AUTH_FAILED)

    def _subscribe(self, client: MessagingClient) -> None:
        client.on(ClientEvent.QR, partial(self._on_pairing_code, client))
        client.on(ClientEvent.READY, partial(self._on_ready, client))
        client.on(ClientEvent.DISCONNECTED, partial(self._on_disconnected, client))
        client.on(ClientEvent.AUTH_FAILURE, partial(self._on_auth_failure, client))
        client.on(ClientEvent.MESSAGE, partial(self._on_message, client))

    async def _dispose_client(self) -> None:
        await _cancel_task(self._keepalive_task)
        self._keepalive_task = None
        client, self._client = self._client, None
        if client is None:
            return
        client.remove_all_listeners()
        try:
            await client.destroy()
        except Exception as exc:  # noqa: BLE001
            logger.warning("client_destroy_failed", extra={"error": str(exc)})

    def _is_stale(self, client: MessagingClient, event: ClientEvent) -> bool:
        if client is self._client:
            return False
        logger.debug("stale_session_event_ignored", extra={"event": str(event)})
        return True

    # --- eventos do adapter --------------------------------------------------

    def _on_pairing_code(self, client: MessagingClient, payload: str) -> None:
        if self._is_stale(client, ClientEvent.QR):
            return
        logger.info("pairing_code_received")
        self._state.last_pairing_payload = payload
        self._state.apply(ConnectionEvent.PAIRING_CODE)
        self._surface_pairing(payload)

    def _on_ready(self, client: MessagingClient) -> None:
        if self._is_stale(client, ClientEvent.READY):
            return
        self._state.apply(ConnectionEvent.READY)
        self._state.retry_count = 0
        self._state.retries_exhausted = False
        logger.info("whatsapp_connected")
        self._arm_keepalive(client)

    def _on_disconnected(self, client: MessagingClient, reason: str) -> None:
        if self._is_stale(client, ClientEvent.DISCONNECTED):
            return
        logger.warning("whatsapp_disconnected", extra={"reason": str(reason)})
        self._state.apply(ConnectionEvent.DISCONNECTED)
        self._schedule_reconnect()

    async def _on_auth_failure(self, client: MessagingClient, reason: str) -> None:
        if self._is_stale(client, ClientEvent.AUTH_FAILURE):
            return
        logger.error("whatsapp_auth_failure", extra={"reason": str(reason)})
        self._state.apply(ConnectionEvent.AUTH_FAILURE)
        if self._config.session_data_dir:
            await self._clear_session(self._config.session_data_dir, self._config.client_id)
        self._schedule_reconnect()

    async def _on_message(self, client: MessagingClient, message: InboundMessage) -> None:
        if self._is_stale(client, ClientEvent.MESSAGE):
            return
        await self._router.route(message, client)

    def _surface_pairing(self, payload: str) -> None:
        if self._render_pairing is None:
            return
        try:
            self._render_pairing(payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning("pairing_render_failed", extra={"error": type(exc).__name__})

    # --- reconexão -----------------------------------------------------------

    def _schedule_reconnect(self) -> asyncio.Task[None] | None:
        """Dispara o procedimento de reconexão, se nenhum estiver em andamento."""
        if self._stopped:
            return None
        if self._reconnect_task is not None and not self._reconnect_task.done():
            logger.info("reconnect_ignored_already_in_progress")
            return self._reconnect_task
        if self._state.initializing:
            logger.info("reconnect_ignored_initialize_in_progress")
            return None
        self._reconnect_task = asyncio.create_task(self._reconnect_with_backoff())
        return self._reconnect_task

    async def _logout_quietly(self) -> None:
        if self._client is None:
            return
        try:
            logger.info("client_logout_before_reconnect")
            await self._client.logout()
        except Exception as exc:  # noqa: BLE001
            logger.error("client_logout_failed", extra={"error": str(exc)})

    async def _reconnect_with_backoff(self) -> None:
        await self._logout_quietly()
        while True:
            state = self._state
            if state.retry_count >= self._config.max_retries:
                state.retries_exhausted = True
                logger.error(
                    "reconnect_retries_exhausted",
                    extra={"max_retries": self._config.max_retries},
                )
                return

            delay = compute_backoff_delay(
                state.retry_count, self._config.initial_retry_delay_seconds
            )
            logger.info(
                "reconnect_scheduled",
                extra={
                    "delay_seconds": delay,
                    "attempt": state.retry_count + 1,
                    "max_retries": self._config.max_retries,
                },
            )
            await self._sleep(delay)

            state.retry_count += 1
            state.apply(ConnectionEvent.RETRY_SCHEDULED)
            if state.last_pairing_payload:
                logger.info("pairing_code_resurfaced")
                self._surface_pairing(state.last_pairing_payload)

            if state.initializing:
                logger.info("reconnect_ignored_initialize_in_progress")
                return
            if await self._initialize_once():
                return
            await self._logout_quietly()

    # --- keep-alive ----------------------------------------------------------

    def _arm_keepalive(self, client: MessagingClient) -> None:
        if self._keepalive_task is not None and not self._keepalive_task.done():
            self._keepalive_task.cancel()
        self._keepalive_task = asyncio.create_task(self._keepalive_loop(client))

    async def _keepalive_loop(self, client: MessagingClient) -> None:
        await self._sleep(self._config.keepalive_settle_seconds)
        logger.info("keepalive_started")
        while True:
            await self._sleep(self._config.keepalive_interval_seconds)
            if client is not self._client:
                return
            if not self._state.is_ready:
                logger.warning("keepalive_skipped_not_ready")
                continue
            try:
                number_id = await client.get_number_id(self._config.bot_number)
                if not number_id:
                    logger.warning("keepalive_bot_number_not_found")
                    continue
                await client.send_message(number_id, self._config.keepalive_text)
            except Exception as exc:  # noqa: BLE001
                logger.error("keepalive_failed", extra={"error": str(exc)})
                self._state.apply(ConnectionEvent.KEEPALIVE_FAILED)
                self._schedule_reconnect()
                return
            logger.info("keepalive_sent")
