"""Configurações centralizadas do deboca_bot.

Este módulo exporta:
- Settings: classe de configuração via variáveis de ambiente
- get_settings: função cacheada para obter instância única
- RuntimeIdentity / load_runtime_identity: identidade vinda do config.json

Uso típico:
    from deboca_bot.config import get_settings, load_runtime_identity
"""

from deboca_bot.config.license import RuntimeIdentity, load_runtime_identity
from deboca_bot.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "RuntimeIdentity",
    "load_runtime_identity",
]
