"""Fases da sessão de mensageria.

Só READY aceita mensagens; todas as outras descartam silenciosamente.
"""

from __future__ import annotations

from enum import StrEnum


class ConnectionPhase(StrEnum):
    """Fases canônicas de uma sessão WhatsApp."""

    UNINITIALIZED = "UNINITIALIZED"
    """Processo iniciado, sessão ainda não criada."""

    INITIALIZING = "INITIALIZING"
    """Sessão sendo construída (no máximo uma em andamento)."""

    AWAITING_PAIRING = "AWAITING_PAIRING"
    """QR code emitido, aguardando leitura pelo operador."""

    READY = "READY"
    """Sessão conectada; mensagens são processadas."""

    DISCONNECTED = "DISCONNECTED"
    """Sessão caiu ou aguarda nova tentativa de reconexão."""

    AUTH_FAILED = "AUTH_FAILED"
    """Credenciais rejeitadas pelo WhatsApp."""

