"""Estado compartilhado da conexão (fase, tentativas, último QR).

Pertence ao controlador de ciclo de vida; o roteador recebe a mesma instância
e só lê `is_ready`. Transições passam por `apply`, que consulta a tabela do
domínio e ignora (com log) eventos inválidos para a fase corrente.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from deboca_bot.domain.connection import ConnectionEvent, ConnectionPhase, validate_transition
from deboca_bot.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def compute_backoff_delay(retry_count: int, initial_delay_seconds: float) -> float:
    """Atraso da próxima tentativa: initial * 2^retry_count (5s, 10s, 20s, 40s, 80s)."""
    return initial_delay_seconds * (2**retry_count)


@dataclass
class ConnectionState:
    """Estado mutável da sessão (único por processo)."""

    phase: ConnectionPhase = ConnectionPhase.UNINITIALIZED
    retry_count: int = 0
    last_pairing_payload: str | None = None
    initializing: bool = False
    retries_exhausted: bool = False

    @property
    def is_ready(self) -> bool:
        return self.phase is ConnectionPhase.READY

    def apply(self, event: ConnectionEvent) -> bool:
        """Aplica transição; retorna False (sem mudar a fase) se inválida."""
        valid, next_phase, error = validate_transition(self.phase, event)
        if not valid or next_phase is None:
            logger.debug(
                "connection_transition_ignored",
                extra={"phase": str(self.phase), "event": str(event), "error": error},
            )
            return False

        if next_phase is not self.phase:
            logger.info(
                "connection_phase_changed",
                extra={"from_phase": str(self.phase), "to_phase": str(next_phase), "event": str(event)},
            )
        self.phase = next_phase
        return True
