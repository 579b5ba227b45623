"""Ponto de entrada: `python -m deboca_bot` (ou o script `deboca-bot`)."""

from __future__ import annotations

import uvicorn

from deboca_bot.config.settings import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "deboca_bot.api.app:create_app",
        factory=True,
        host="0.0.0.0",
        port=settings.port,
        log_config=None,  # mantém o logging JSON configurado em create_app
    )


if __name__ == "__main__":
    main()
