"""Eventos que disparam transições de fase da conexão."""

from __future__ import annotations

from enum import StrEnum


class ConnectionEvent(StrEnum):
    """Eventos do ciclo de vida da sessão."""

    # === Controlador ===
    START = "START"
    """Inicialização solicitada (partida, reconexão ou restart manual)."""

    INIT_FAILED = "INIT_FAILED"
    """initialize() levantou exceção ou estourou o timeout."""

    RETRY_SCHEDULED = "RETRY_SCHEDULED"
    """Backoff concluído; nova tentativa vai começar."""

    KEEPALIVE_FAILED = "KEEPALIVE_FAILED"
    """Falha ao enviar keep-alive (sinal de vida perdido)."""

    # === Adapter ===
    PAIRING_CODE = "PAIRING_CODE"
    """Adapter emitiu QR code de pareamento."""

    READY = "READY"
    """Adapter confirmou sessão pronta."""

    DISCONNECTED = "DISCONNECTED"
    """Adapter reportou desconexão."""

    AUTH_FAILURE = "AUTH_FAILURE"
    """Adapter reportou falha de autenticação."""
