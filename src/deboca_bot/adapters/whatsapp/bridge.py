"""Cliente de mensageria via bridge WhatsApp Web (processo externo).

O bridge mantém o navegador/sessão WhatsApp Web e expõe:
- POST   /sessions/{id}/start                 inicia a sessão
- GET    /sessions/{id}/events                stream NDJSON de eventos
- POST   /sessions/{id}/logout                encerra credenciais
- DELETE /sessions/{id}                       libera a sessão no bridge
- POST   /sessions/{id}/messages              {"chatId", "text"}
- GET    /sessions/{id}/numbers/{number}      {"id": {"_serialized": ...}} | 404
- POST   /sessions/{id}/chats/{chat}/typing
- GET    /sessions/{id}/contacts/{contact}    {"pushname": ...}

Eventos de ciclo de vida são entregues em ordem; cada mensagem recebida é
entregue em sua própria task (mensagens podem se intercalar).
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from deboca_bot.adapters.whatsapp.client import (
    ClientEvent,
    Contact,
    InboundMessage,
    MessagingClient,
    MessagingClientError,
)
from deboca_bot.infra.http import HttpClient, HttpError, create_http_client
from deboca_bot.observability.logging import get_logger, mask_address

if TYPE_CHECKING:
    import httpx

    from deboca_bot.config.settings import Settings

logger: logging.Logger = get_logger(__name__)

STREAM_CLOSED_REASON = "event_stream_closed"


def _segment(value: str) -> str:
    return quote(value, safe="@.")


class WhatsAppBridgeClient(MessagingClient):
    """Sessão WhatsApp Web controlada por HTTP."""

    def __init__(
        self,
        http: HttpClient,
        client_id: str,
        init_timeout_seconds: float = 90.0,
    ) -> None:
        super().__init__()
        self._http = http
        self._client_id = client_id
        self._init_timeout = init_timeout_seconds
        self._reader_task: asyncio.Task[None] | None = None
        self._message_tasks: set[asyncio.Task[None]] = set()
        self._closing = False

    @property
    def _base(self) -> str:
        return f"/sessions/{_segment(self._client_id)}"

    async def _call(self, method: str, path: str, **kwargs: Any):
        try:
            return await self._http.request(method, path, **kwargs)
        except HttpError as exc:
            logger.warning(
                "bridge_call_failed",
                extra={
                    "method": method,
                    "status_code": exc.status_code,
                    "is_transient": exc.is_transient,
                },
            )
            raise MessagingClientError(f"{method} {path}: {exc}") from exc

    # --- ciclo de vida -------------------------------------------------------

    async def initialize(self) -> None:
        if not self._client_id:
            # Licença expirada zera o CLIENT_ID
            raise MessagingClientError("client_id vazio: sessão desabilitada")
        self._closing = False
        if self._reader_task is None or self._reader_task.done():
            self._reader_task = asyncio.create_task(self._consume_events())
        await self._call("POST", f"{self._base}/start", timeout=self._init_timeout)
        logger.info("bridge_session_started", extra={"client_id": self._client_id})

    async def logout(self) -> None:
        await self._call("POST", f"{self._base}/logout")

    async def destroy(self) -> None:
        self._closing = True
        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
        self._reader_task = None
        pending = [t for t in self._message_tasks if t is not asyncio.current_task()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._message_tasks.clear()
        try:
            await self._http.delete(self._base, allow_statuses=frozenset({404}))
        except HttpError as exc:
            logger.warning("bridge_destroy_failed", extra={"error": str(exc)})
        finally:
            await self._http.close()

    # --- operações -----------------------------------------------------------

    async def send_message(self, address: str, text: str) -> None:
        await self._call("POST", f"{self._base}/messages", json={"chatId": address, "text": text})

    async def get_number_id(self, number: str) -> str | None:
        response = await self._call(
            "GET",
            f"{self._base}/numbers/{_segment(number)}",
            allow_statuses=frozenset({404}),
        )
        if response.status_code == 404:
            return None
        data = response.json() or {}
        wid = data.get("id")
        if isinstance(wid, dict):
            return wid.get("_serialized")
        return wid

    async def send_typing_state(self, chat_id: str) -> None:
        await self._call("POST", f"{self._base}/chats/{_segment(chat_id)}/typing")

    async def get_contact(self, address: str) -> Contact:
        response = await self._call("GET", f"{self._base}/contacts/{_segment(address)}")
        data = response.json() or {}
        return Contact(contact_id=address, pushname=data.get("pushname") or None)

    # --- eventos -------------------------------------------------------------

    async def _consume_events(self) -> None:
        """Lê o stream NDJSON até o fim; queda do stream vira `disconnected`."""
        reason = STREAM_CLOSED_REASON
        try:
            async for line in self._http.stream_lines(f"{self._base}/events"):
                await self._handle_line(line)
        except HttpError as exc:
            reason = f"{STREAM_CLOSED_REASON}: {exc}"
            logger.warning("bridge_event_stream_failed", extra={"error": str(exc)})

        if not self._closing:
            await self.dispatch(ClientEvent.DISCONNECTED, reason)

    async def _handle_line(self, line: str) -> None:
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            logger.warning("bridge_event_unparseable")
            return
        if not isinstance(payload, dict):
            return

        event = payload.get("event")
        if event == ClientEvent.QR:
            await self.dispatch(ClientEvent.QR, payload.get("qr", ""))
        elif event == ClientEvent.READY:
            await self.dispatch(ClientEvent.READY)
        elif event == ClientEvent.DISCONNECTED:
            await self.dispatch(ClientEvent.DISCONNECTED, payload.get("reason", "unknown"))
        elif event == ClientEvent.AUTH_FAILURE:
            await self.dispatch(ClientEvent.AUTH_FAILURE, payload.get("reason", "unknown"))
        elif event == ClientEvent.MESSAGE:
            message = self._parse_message(payload.get("message") or {})
            if message is not None:
                task = asyncio.create_task(self.dispatch(ClientEvent.MESSAGE, message))
                self._message_tasks.add(task)
                task.add_done_callback(self._message_tasks.discard)
        else:
            logger.debug("bridge_event_ignored", extra={"event": str(event)})

    def _parse_message(self, raw: dict[str, Any]) -> InboundMessage | None:
        sender = raw.get("from")
        if not isinstance(sender, str) or not sender:
            logger.warning("bridge_message_without_sender")
            return None
        logger.debug("bridge_message_received", extra={"from": mask_address(sender)})
        return InboundMessage(
            body=str(raw.get("body") or ""),
            sender=sender,
            client=self,
            message_id=raw.get("id"),
            chat_id=raw.get("chatId") or sender,
        )


def create_bridge_client_factory(
    settings: Settings,
    client_id: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Callable[[], MessagingClient]:
    """Factory de sessões: cada chamada cria cliente (e conexão HTTP) novos."""

    def factory() -> MessagingClient:
        return WhatsAppBridgeClient(
            create_http_client(settings, transport=transport),
            client_id=client_id,
            init_timeout_seconds=settings.init_timeout_seconds,
        )

    return factory
