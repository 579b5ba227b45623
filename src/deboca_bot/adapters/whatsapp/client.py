"""Contrato do cliente de mensageria (sessão WhatsApp Web).

O cliente concreto é externo (bridge); o núcleo só conhece:
- eventos: qr, ready, disconnected, auth_failure, message
- operações: initialize, logout, destroy, send_message, get_number_id,
  send_typing_state, get_contact

Handlers são registrados por sessão e removidos com `remove_all_listeners`
antes de uma nova sessão ser construída.
"""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from deboca_bot.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

EventHandler = Callable[..., Awaitable[None] | None]


class ClientEvent(StrEnum):
    """Eventos emitidos pela sessão de mensageria."""

    QR = "qr"
    READY = "ready"
    DISCONNECTED = "disconnected"
    AUTH_FAILURE = "auth_failure"
    MESSAGE = "message"


class MessagingClientError(Exception):
    """Erro de operação no cliente de mensageria."""

    pass


@dataclass(frozen=True)
class Contact:
    """Contato remetente (nome é best-effort)."""

    contact_id: str
    pushname: str | None = None


@dataclass
class Chat:
    """Conversa à qual a mensagem pertence."""

    chat_id: str
    client: MessagingClient = field(repr=False)

    async def send_typing_state(self) -> None:
        """Exibe o indicador "digitando..." na conversa."""
        await self.client.send_typing_state(self.chat_id)


@dataclass
class InboundMessage:
    """Mensagem recebida pela sessão."""

    body: str
    sender: str
    client: MessagingClient = field(repr=False)
    message_id: str | None = None
    chat_id: str | None = None

    async def get_chat(self) -> Chat:
        return Chat(chat_id=self.chat_id or self.sender, client=self.client)

    async def get_contact(self) -> Contact:
        return await self.client.get_contact(self.sender)


class MessagingClient(ABC):
    """Sessão de mensageria com assinatura de eventos."""

    def __init__(self) -> None:
        self._listeners: dict[ClientEvent, list[EventHandler]] = {}

    # --- eventos -------------------------------------------------------------

    def on(self, event: ClientEvent, handler: EventHandler) -> None:
        """Registra handler (sync ou async) para o evento."""
        self._listeners.setdefault(ClientEvent(event), []).append(handler)

    def remove_all_listeners(self) -> None:
        """Desanexa todos os handlers desta sessão."""
        self._listeners.clear()

    def listener_count(self, event: ClientEvent) -> int:
        return len(self._listeners.get(ClientEvent(event), []))

    async def dispatch(self, event: ClientEvent, *args: Any) -> None:
        """Entrega o evento aos handlers, em ordem de registro.

        Exceção em um handler é logada e não impede os demais.
        """
        for handler in list(self._listeners.get(ClientEvent(event), [])):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "client_event_handler_failed",
                    extra={"event": str(event), "error": type(exc).__name__},
                    exc_info=True,
                )

    # --- operações -----------------------------------------------------------

    @abstractmethod
    async def initialize(self) -> None:
        """Conecta a sessão; eventos começam a ser emitidos."""
        ...

    @abstractmethod
    async def logout(self) -> None: ...

    @abstractmethod
    async def destroy(self) -> None:
        """Libera recursos locais da sessão (conexões, tasks)."""
        ...

    @abstractmethod
    async def send_message(self, address: str, text: str) -> None: ...

    @abstractmethod
    async def get_number_id(self, number: str) -> str | None:
        """Resolve número para endereço serializado ("55...@c.us") ou None."""
        ...

    @abstractmethod
    async def send_typing_state(self, chat_id: str) -> None: ...

    @abstractmethod
    async def get_contact(self, address: str) -> Contact: ...
