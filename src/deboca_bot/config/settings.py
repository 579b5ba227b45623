"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars (ou `.env`).
Os campos de identidade (CLIENT_ID, BOT_NUMBER, TRIGGER_WORD) ainda passam
pelo `config.json` de licença antes de chegar ao núcleo (ver config/license.py).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

# -----------------------------------------------------------------------------
# Constantes do ciclo de conexão
# -----------------------------------------------------------------------------
MAX_RETRIES: int = 5
INITIAL_RETRY_DELAY_SECONDS: float = 5.0
INIT_TIMEOUT_SECONDS: float = 90.0
KEEPALIVE_SETTLE_SECONDS: float = 5.0
KEEPALIVE_INTERVAL_SECONDS: float = 300.0


class Settings(BaseSettings):
    """Configurações lidas do ambiente."""

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    # Aplicação
    service_name: str = "deboca_bot"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"
    port: int = 5000

    # Identidade do bot (sobrescrita pelo config.json)
    client_id: str = "botLocal1"
    bot_number: str = "5500000000000"
    trigger_word: str = "oi"

    # Arquivos locais
    config_file: str = "config.json"
    data_file: str = "data.json"
    session_data_dir: str = ".wwebjs_auth"  # Credenciais da sessão WhatsApp Web
    license_validity_days: int = 365

    # Bridge WhatsApp Web (processo externo que mantém a sessão)
    bridge_base_url: str = "http://localhost:3000"
    bridge_token: str | None = None
    bridge_timeout_seconds: float = 30.0

    # Ciclo de conexão
    init_timeout_seconds: float = INIT_TIMEOUT_SECONDS
    max_retries: int = MAX_RETRIES
    initial_retry_delay_seconds: float = INITIAL_RETRY_DELAY_SECONDS
    keepalive_settle_seconds: float = KEEPALIVE_SETTLE_SECONDS
    keepalive_interval_seconds: float = KEEPALIVE_INTERVAL_SECONDS
    keepalive_text: str = "Keep-alive"

    # UX
    typing_delay_seconds: float = 0.5  # Pausa entre passos para simular digitação
    render_pairing_in_terminal: bool = True

    def validate_connection_config(self) -> list[str]:
        """Valida parâmetros do ciclo de conexão.

        Retorna lista de erros (vazia = OK).
        """
        errors: list[str] = []
        if self.max_retries < 0:
            errors.append("MAX_RETRIES deve ser >= 0")
        if self.initial_retry_delay_seconds <= 0:
            errors.append("INITIAL_RETRY_DELAY_SECONDS deve ser > 0")
        if self.init_timeout_seconds <= 0:
            errors.append("INIT_TIMEOUT_SECONDS deve ser > 0")
        if self.keepalive_interval_seconds <= 0:
            errors.append("KEEPALIVE_INTERVAL_SECONDS deve ser > 0")
        if self.keepalive_settle_seconds < 0:
            errors.append("KEEPALIVE_SETTLE_SECONDS deve ser >= 0")
        if self.typing_delay_seconds < 0:
            errors.append("TYPING_DELAY_SECONDS deve ser >= 0")
        return errors

    def validate_bridge_config(self) -> list[str]:
        """Valida endereço do bridge WhatsApp Web."""
        errors: list[str] = []
        if not self.bridge_base_url.startswith(("http://", "https://")):
            errors.append("BRIDGE_BASE_URL deve começar com http:// ou https://")
        elif self.is_production and self.bridge_base_url.startswith("http://") and (
            "localhost" not in self.bridge_base_url and "127.0.0.1" not in self.bridge_base_url
        ):
            errors.append("BRIDGE_BASE_URL remoto deve usar https em produção")
        if self.bridge_timeout_seconds <= 0:
            errors.append("BRIDGE_TIMEOUT_SECONDS deve ser > 0")
        return errors

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")


@lru_cache
def get_settings() -> Settings:
    """Retorna instância única (cacheada) de Settings."""
    return Settings()
