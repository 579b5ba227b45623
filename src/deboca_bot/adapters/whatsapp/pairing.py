"""Exibição do QR code de pareamento para o operador."""

from __future__ import annotations

import io
import logging
from urllib.parse import quote

import qrcode

from deboca_bot.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

QR_IMAGE_SERVICE_URL = "https://api.qrserver.com/v1/create-qr-code/?size=256x256&data="


def pairing_url(payload: str) -> str:
    """URL de imagem do QR code (o operador pode abrir no celular)."""
    return QR_IMAGE_SERVICE_URL + quote(payload, safe="")


def render_ascii(payload: str) -> str:
    """QR code em arte ASCII para o terminal."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(payload)
    qr.make(fit=True)
    out = io.StringIO()
    qr.print_ascii(out=out, invert=True)
    return out.getvalue()


class PairingRenderer:
    """Mostra o QR no terminal e loga a URL derivada."""

    def __init__(self, terminal: bool = True, stream: io.TextIOBase | None = None) -> None:
        self._terminal = terminal
        self._stream = stream

    def __call__(self, payload: str) -> str:
        url = pairing_url(payload)
        if self._terminal:
            print(render_ascii(payload), file=self._stream, flush=True)
        logger.info("pairing_code_url", extra={"qr_code_url": url})
        return url
