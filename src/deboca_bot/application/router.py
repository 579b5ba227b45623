"""Roteamento de mensagens recebidas (saudação, opção do menu ou ignorada).

Regras (primeira que casar):
a. conversa direta + corpo casa o padrão de saudação → fluxo de saudação
b. conversa direta + corpo é exatamente "1".."5"     → MenuResponder
c. qualquer outra coisa (incluindo grupos)            → ignorada

Nada é processado fora da fase READY nem com a licença expirada.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from enum import StrEnum

from deboca_bot.adapters.whatsapp.client import InboundMessage, MessagingClient
from deboca_bot.application.connection_state import ConnectionState
from deboca_bot.application.menu_responder import MenuResponder
from deboca_bot.domain.addresses import is_direct_contact, normalize_contact_id
from deboca_bot.domain.menu import build_trigger_pattern, is_menu_option, render_greeting
from deboca_bot.domain.models import DEFAULT_DISPLAY_NAME, UserRecord
from deboca_bot.infra.user_records import UserRecordStore
from deboca_bot.observability.logging import get_logger, mask_address
from deboca_bot.observability.middleware import bind_correlation_id

logger: logging.Logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class Route(StrEnum):
    """Destino de uma mensagem."""

    GREETING = "greeting"
    OPTION = "option"
    IGNORED = "ignored"


def classify(message: InboundMessage, trigger_pattern: re.Pattern[str]) -> Route:
    """Classificação pura (sem I/O)."""
    if not is_direct_contact(message.sender):
        return Route.IGNORED
    if trigger_pattern.search(message.body or ""):
        return Route.GREETING
    if is_menu_option(message.body):
        return Route.OPTION
    return Route.IGNORED


def upsert_greeted_contact(records: list[UserRecord], contact_id: str, display_name: str) -> bool:
    """Cria o registro do contato; se já existir, só atualiza o nome.

    Retorna True se a lista mudou.
    """
    for record in records:
        if record.contact_id == contact_id:
            if record.display_name == display_name:
                return False
            record.display_name = display_name
            return True
    records.append(UserRecord(contact_id=contact_id, display_name=display_name))
    return True


class MessageRouter:
    """Classifica e despacha cada mensagem, uma por vez por evento."""

    def __init__(
        self,
        state: ConnectionState,
        store: UserRecordStore,
        responder: MenuResponder,
        trigger_word: str,
        typing_delay_seconds: float = 0.5,
        sleep: Sleep = asyncio.sleep,
        license_expired: bool = False,
    ) -> None:
        self._state = state
        self._license_expired = license_expired
        self._store = store
        self._responder = responder
        self._trigger_pattern = build_trigger_pattern(trigger_word)
        self._typing_delay = typing_delay_seconds
        self._sleep = sleep

    @property
    def license_expired(self) -> bool:
        return self._license_expired

    async def route(self, message: InboundMessage, client: MessagingClient) -> Route | None:
        """Processa a mensagem; retorna a rota tomada (None se descartada)."""
        if self._license_expired:
            logger.warning(
                "message_dropped_license_expired",
                extra={"from": mask_address(message.sender)},
            )
            return None

        if not self._state.is_ready:
            logger.warning(
                "message_dropped_not_ready",
                extra={"phase": str(self._state.phase)},
            )
            return None

        with bind_correlation_id(message.message_id):
            started = time.monotonic()
            route = classify(message, self._trigger_pattern)
            try:
                if route is Route.GREETING:
                    await self._greet(message, client)
                elif route is Route.OPTION:
                    await self._responder.respond(message.body, message, client)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "message_processing_failed",
                    extra={"route": str(route), "error_type": type(exc).__name__},
                    exc_info=True,
                )
            logger.info(
                "message_processed",
                extra={
                    "route": str(route),
                    "from": mask_address(message.sender),
                    "elapsed_seconds": round(time.monotonic() - started, 3),
                },
            )
            return route

    async def _pause_typing(self, chat) -> None:
        await self._sleep(self._typing_delay)
        await chat.send_typing_state()
        await self._sleep(self._typing_delay)

    async def _greet(self, message: InboundMessage, client: MessagingClient) -> None:
        chat = await message.get_chat()
        await self._pause_typing(chat)

        contact = await message.get_contact()
        display_name = contact.pushname or DEFAULT_DISPLAY_NAME

        await client.send_message(message.sender, render_greeting(display_name))
        logger.info("greeting_sent", extra={"to": mask_address(message.sender)})

        await self._pause_typing(chat)

        contact_id = normalize_contact_id(message.sender)
        await self._store.mutate(
            lambda records: upsert_greeted_contact(records, contact_id, display_name)
        )
