"""Limpeza best-effort das credenciais locais da sessão WhatsApp Web."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import anyio

from deboca_bot.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)


def session_dir_for(base_dir: str | Path, client_id: str) -> Path:
    """Pasta usada pelo LocalAuth do whatsapp-web.js: <base>/session-<client_id>."""
    return Path(base_dir) / f"session-{client_id}"


def clear_session_dir(base_dir: str | Path, client_id: str) -> bool:
    """Remove a pasta da sessão; pasta ausente é tolerada.

    Returns:
        True se a pasta não existe mais ao final.
    """
    path = session_dir_for(base_dir, client_id)
    if not path.exists():
        logger.info("session_dir_absent", extra={"path": str(path)})
        return True

    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return True
    except OSError as exc:
        logger.error("session_dir_remove_failed", extra={"path": str(path), "error": str(exc)})
        return False

    logger.info("session_dir_removed", extra={"path": str(path)})
    return True


async def clear_session_dir_async(base_dir: str | Path, client_id: str) -> bool:
    return await anyio.to_thread.run_sync(clear_session_dir, base_dir, client_id)
