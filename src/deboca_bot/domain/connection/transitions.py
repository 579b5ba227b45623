"""Tabela de transições da conexão.

- TRANSITIONS[(fase_atual, evento)] = próxima fase
- AUTH_FAILURE leva a AUTH_FAILED a partir de qualquer fase
- Validação pura: sem side effects
"""

from __future__ import annotations

from deboca_bot.domain.connection.events import ConnectionEvent
from deboca_bot.domain.connection.phases import ConnectionPhase

_P = ConnectionPhase
_E = ConnectionEvent

TRANSITIONS: dict[tuple[ConnectionPhase, ConnectionEvent], ConnectionPhase] = {
    # === START: qualquer fase fora de INITIALIZING (guarda de exclusão mútua) ===
    (_P.UNINITIALIZED, _E.START): _P.INITIALIZING,
    (_P.AWAITING_PAIRING, _E.START): _P.INITIALIZING,
    (_P.READY, _E.START): _P.INITIALIZING,
    (_P.DISCONNECTED, _E.START): _P.INITIALIZING,
    (_P.AUTH_FAILED, _E.START): _P.INITIALIZING,
    # === Pareamento ===
    (_P.INITIALIZING, _E.PAIRING_CODE): _P.AWAITING_PAIRING,
    (_P.AWAITING_PAIRING, _E.PAIRING_CODE): _P.AWAITING_PAIRING,
    # === Pronto ===
    (_P.INITIALIZING, _E.READY): _P.READY,
    (_P.AWAITING_PAIRING, _E.READY): _P.READY,
    (_P.DISCONNECTED, _E.READY): _P.READY,
    (_P.READY, _E.READY): _P.READY,
    # === Quedas ===
    (_P.READY, _E.DISCONNECTED): _P.DISCONNECTED,
    (_P.INITIALIZING, _E.DISCONNECTED): _P.DISCONNECTED,
    (_P.AWAITING_PAIRING, _E.DISCONNECTED): _P.DISCONNECTED,
    (_P.READY, _E.KEEPALIVE_FAILED): _P.DISCONNECTED,
    (_P.INITIALIZING, _E.INIT_FAILED): _P.DISCONNECTED,
    (_P.AWAITING_PAIRING, _E.INIT_FAILED): _P.DISCONNECTED,
    # === Reconexão ===
    (_P.DISCONNECTED, _E.RETRY_SCHEDULED): _P.DISCONNECTED,
    (_P.AUTH_FAILED, _E.RETRY_SCHEDULED): _P.DISCONNECTED,
    (_P.INITIALIZING, _E.RETRY_SCHEDULED): _P.DISCONNECTED,
    (_P.AWAITING_PAIRING, _E.RETRY_SCHEDULED): _P.DISCONNECTED,
    (_P.READY, _E.RETRY_SCHEDULED): _P.DISCONNECTED,
    # AUTH_FAILURE: tratado como curinga em validate_transition
}


def validate_transition(
    current: ConnectionPhase, event: ConnectionEvent
) -> tuple[bool, ConnectionPhase | None, str]:
    """Valida se uma transição é permitida.

    Retorna:
    - (True, next_phase, ""): transição válida
    - (False, None, motivo): transição inválida

    Nunca lança exceção; apenas valida.
    """
    if event is ConnectionEvent.AUTH_FAILURE:
        return True, ConnectionPhase.AUTH_FAILED, ""

    next_phase = TRANSITIONS.get((current, event))
    if next_phase is None:
        return False, None, f"No transition from {current} on event {event}"

    return True, next_phase, ""
