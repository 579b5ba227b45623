"""Identidade do bot persistida em `config.json` com controle de licença.

Regras:
- Primeira execução grava `installDate` com o instante atual.
- Valores salvos no arquivo prevalecem sobre os do ambiente.
- Após `license_validity_days` (365) a identidade é redefinida para valores
  desabilitados; como o arquivo é regravado, cargas seguintes mantêm o reset.
- Arquivo ilegível nunca impede a inicialização: usa padrões, sem renovar
  `installDate` (gravado como null).
- Arquivo existente sem `installDate` válido conta como licença expirada.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from deboca_bot.config.settings import Settings
from deboca_bot.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

EXPIRED_CLIENT_ID = ""
EXPIRED_BOT_NUMBER = "5511111111111"
EXPIRED_TRIGGER_WORD = "*"

DEFAULT_CLIENT_ID = "botLocal1"
DEFAULT_TRIGGER_WORD = "oi"


@dataclass(frozen=True)
class RuntimeIdentity:
    """Snapshot imutável da identidade usada pelo núcleo."""

    client_id: str
    bot_number: str
    trigger_word: str
    install_date: datetime | None
    expired: bool = False

    def to_file_payload(self) -> dict[str, Any]:
        """Formato do config.json (chaves originais)."""
        return {
            "CLIENT_ID": self.client_id,
            "BOT_NUMBER": self.bot_number,
            "TRIGGER_WORD": self.trigger_word,
            "installDate": self.install_date.isoformat() if self.install_date else None,
        }


def _parse_install_date(raw: Any) -> datetime | None:
    if not isinstance(raw, str) or not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _read_saved(path: Path) -> dict[str, Any]:
    """Lê o config.json; levanta ValueError para conteúdo inválido."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("config.json deve conter um objeto JSON")
    return data


def _write_snapshot(path: Path, identity: RuntimeIdentity) -> None:
    try:
        path.write_text(
            json.dumps(identity.to_file_payload(), indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
    except OSError as exc:
        logger.error("license_config_write_failed", extra={"path": str(path), "error": str(exc)})


def is_license_expired(install_date: datetime, now: datetime, validity_days: int) -> bool:
    """True se passaram `validity_days` dias completos desde a instalação."""
    return (now - install_date).days >= validity_days


def load_runtime_identity(settings: Settings, now: datetime | None = None) -> RuntimeIdentity:
    """Carrega (ou inicializa) a identidade do bot a partir do config.json."""
    now = now or datetime.now(tz=UTC)
    path = Path(settings.config_file)

    client_id = settings.client_id
    bot_number = settings.bot_number
    trigger_word = settings.trigger_word
    install_date: datetime | None = None
    expired = False

    if path.exists():
        try:
            saved = _read_saved(path)
        except (OSError, ValueError) as exc:
            logger.error(
                "license_config_read_failed",
                extra={"path": str(path), "error": type(exc).__name__},
            )
            client_id = DEFAULT_CLIENT_ID
            bot_number = settings.bot_number
            trigger_word = DEFAULT_TRIGGER_WORD
        else:
            client_id = str(saved.get("CLIENT_ID", client_id))
            bot_number = str(saved.get("BOT_NUMBER", bot_number))
            trigger_word = str(saved.get("TRIGGER_WORD", trigger_word))
            install_date = _parse_install_date(saved.get("installDate"))

            # Sem installDate válido a licença não pode ser verificada: expira
            if install_date is None or is_license_expired(
                install_date, now, settings.license_validity_days
            ):
                client_id = EXPIRED_CLIENT_ID
                bot_number = EXPIRED_BOT_NUMBER
                trigger_word = EXPIRED_TRIGGER_WORD
                expired = True
                logger.warning(
                    "license_expired_identity_reset",
                    extra={"install_date": install_date.isoformat() if install_date else None},
                )
    else:
        install_date = now
        logger.info("license_first_run_recorded", extra={"path": str(path)})

    identity = RuntimeIdentity(
        client_id=client_id,
        bot_number=bot_number,
        trigger_word=trigger_word,
        install_date=install_date,
        expired=expired,
    )
    _write_snapshot(path, identity)

    logger.info(
        "runtime_identity_loaded",
        extra={
            "client_id": identity.client_id,
            "trigger_word": identity.trigger_word,
            "expired": identity.expired,
        },
    )
    return identity
