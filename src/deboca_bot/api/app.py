"""Fábrica da aplicação FastAPI e montagem do controlador WhatsApp."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from deboca_bot.adapters.whatsapp.bridge import create_bridge_client_factory
from deboca_bot.adapters.whatsapp.pairing import PairingRenderer
from deboca_bot.api.routes import router
from deboca_bot.application.connection_state import ConnectionState
from deboca_bot.application.lifecycle import ConnectionLifecycleController, LifecycleConfig
from deboca_bot.application.menu_responder import MenuResponder
from deboca_bot.application.router import MessageRouter
from deboca_bot.config.license import RuntimeIdentity, load_runtime_identity
from deboca_bot.config.settings import Settings, get_settings
from deboca_bot.infra.user_records import JsonUserRecordStore
from deboca_bot.observability.logging import configure_logging, get_logger
from deboca_bot.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


def create_controller(
    settings: Settings, identity: RuntimeIdentity
) -> ConnectionLifecycleController:
    """Monta estado, persistência, roteador e controlador a partir das settings."""
    if not identity.bot_number:
        logger.error("bot_number_not_configured")
    if identity.expired:
        logger.error("license_expired_messages_disabled")

    state = ConnectionState()
    store = JsonUserRecordStore(settings.data_file)
    responder = MenuResponder(store, typing_delay_seconds=settings.typing_delay_seconds)
    message_router = MessageRouter(
        state,
        store,
        responder,
        trigger_word=identity.trigger_word,
        typing_delay_seconds=settings.typing_delay_seconds,
        license_expired=identity.expired,
    )
    return ConnectionLifecycleController(
        client_factory=create_bridge_client_factory(settings, identity.client_id),
        router=message_router,
        config=LifecycleConfig.from_settings(settings, identity.client_id, identity.bot_number),
        state=state,
        render_pairing=PairingRenderer(terminal=settings.render_pairing_in_terminal),
    )


def create_app(
    settings: Settings | None = None,
    controller: ConnectionLifecycleController | None = None,
) -> FastAPI:
    """Cria a aplicação FastAPI; o controlador sobe em background no lifespan."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name)

    validation_errors: list[str] = []
    validation_errors.extend(settings.validate_connection_config())
    validation_errors.extend(settings.validate_bridge_config())
    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    if controller is None:
        identity = load_runtime_identity(settings)
        controller = create_controller(settings, identity)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        start_task = asyncio.create_task(controller.start())
        app.state.controller_start_task = start_task
        try:
            yield
        finally:
            start_task.cancel()
            try:
                await start_task
            except asyncio.CancelledError:
                pass
            await controller.stop()

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=lifespan)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(router)

    app.state.settings = settings
    app.state.controller = controller

    return app
