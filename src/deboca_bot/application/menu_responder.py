"""Resposta às opções numeradas do menu e registro da escolha."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from deboca_bot.adapters.whatsapp.client import InboundMessage, MessagingClient
from deboca_bot.domain.addresses import is_direct_contact, normalize_contact_id
from deboca_bot.domain.menu import reply_for_option
from deboca_bot.domain.models import UserRecord
from deboca_bot.infra.user_records import UserRecordStore
from deboca_bot.observability.logging import get_logger, mask_address

logger: logging.Logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def append_choice(records: list[UserRecord], contact_id: str, option_id: str) -> bool:
    """Anexa a opção ao registro do contato (duplicatas mantidas).

    Contato sem registro (não passou pela saudação) não é criado.
    """
    for record in records:
        if record.contact_id == contact_id:
            record.chosen_options.append(option_id)
            return True
    return False


class MenuResponder:
    """Envia a resposta da opção e atualiza o registro do contato."""

    def __init__(
        self,
        store: UserRecordStore,
        typing_delay_seconds: float = 0.5,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._store = store
        self._typing_delay = typing_delay_seconds
        self._sleep = sleep

    async def respond(
        self, option_id: str, message: InboundMessage, client: MessagingClient
    ) -> None:
        if not is_direct_contact(message.sender):
            return

        chat = await message.get_chat()
        await self._sleep(self._typing_delay)
        await chat.send_typing_state()
        await self._sleep(self._typing_delay)

        try:
            await client.send_message(message.sender, reply_for_option(option_id))
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "option_reply_send_failed",
                extra={"option": option_id, "error": str(exc)},
            )

        contact_id = normalize_contact_id(message.sender)
        recorded = False

        def _mutation(records: list[UserRecord]) -> bool:
            nonlocal recorded
            recorded = append_choice(records, contact_id, option_id)
            return recorded

        await self._store.mutate(_mutation)
        if not recorded:
            logger.info(
                "option_not_recorded_unknown_contact",
                extra={"option": option_id, "from": mask_address(message.sender)},
            )
