"""FSM de conexão: fases, eventos e transições.

Exporta:
- ConnectionPhase: 6 fases da sessão WhatsApp
- ConnectionEvent: eventos que movem a sessão entre fases
- validate_transition: validador puro
"""

from deboca_bot.domain.connection.events import ConnectionEvent
from deboca_bot.domain.connection.phases import ConnectionPhase
from deboca_bot.domain.connection.transitions import validate_transition

__all__ = [
    "ConnectionPhase",
    "ConnectionEvent",
    "validate_transition",
]
