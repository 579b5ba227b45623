"""Camada de infraestrutura: adapters para recursos externos.

Este módulo exporta:

- HTTP: HttpClient, HttpClientConfig, HttpError, create_http_client
- Registros: UserRecordStore, JsonUserRecordStore, InMemoryUserRecordStore
- Sessão: clear_session_dir

Uso típico:
    from deboca_bot.infra import JsonUserRecordStore

- Infraestrutura não decide regra de negócio
- Logs estruturados sem telefone completo nem corpo de mensagem
"""

from deboca_bot.infra.http import HttpClient, HttpClientConfig, HttpError, create_http_client
from deboca_bot.infra.session_cleanup import clear_session_dir
from deboca_bot.infra.user_records import (
    InMemoryUserRecordStore,
    JsonUserRecordStore,
    UserRecordStore,
)

__all__ = [
    "HttpClient",
    "HttpClientConfig",
    "HttpError",
    "create_http_client",
    "clear_session_dir",
    "UserRecordStore",
    "JsonUserRecordStore",
    "InMemoryUserRecordStore",
]
