"""Cliente HTTP centralizado com timeout e logging.

Usado pelo bridge WhatsApp Web. Sem retry local: a única camada de retentativa
é o backoff de reconexão do controlador de ciclo de vida.

- Timeouts configuráveis
- Logging estruturado (sem tokens)
- Injeção de headers padrão
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from deboca_bot.observability.logging import get_logger

if TYPE_CHECKING:
    from deboca_bot.config.settings import Settings

logger: logging.Logger = get_logger(__name__)


@dataclass
class HttpClientConfig:
    """Configuração do cliente HTTP."""

    base_url: str = ""
    timeout_seconds: float = 30.0
    default_headers: dict[str, str] = field(default_factory=dict)


class HttpError(Exception):
    """Erro de requisição HTTP sem expor informações sensíveis."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        is_transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.is_transient = is_transient


def _is_transient_status(status_code: int) -> bool:
    """429 ou 5xx indicam falha transitória do bridge."""
    return status_code == 429 or 500 <= status_code < 600


def _wrap_transport_error(exc: Exception, method: str, path: str) -> HttpError:
    if isinstance(exc, httpx.TimeoutException):
        logger.warning("http_timeout", extra={"method": method, "path": path})
        return HttpError("Timeout", is_transient=True)

    if isinstance(exc, httpx.TransportError):
        logger.warning(
            "http_transport_error",
            extra={"method": method, "path": path, "error": type(exc).__name__},
        )
        return HttpError("Erro de conexão", is_transient=True)

    logger.error(
        "http_unexpected_error",
        extra={"method": method, "path": path, "error_type": type(exc).__name__},
    )
    return HttpError(f"Erro inesperado: {type(exc).__name__}")


class HttpClient:
    """Cliente HTTP assíncrono com logging.

    Uso típico:
        client = HttpClient(config)
        response = await client.request("POST", "/path", json=payload)
        await client.close()
    """

    def __init__(
        self,
        config: HttpClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config or HttpClientConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Retorna cliente httpx (lazy loading)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                headers=self._config.default_headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Fecha o cliente e libera recursos."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        allow_statuses: frozenset[int] = frozenset(),
        **kwargs: Any,
    ) -> httpx.Response:
        """Executa requisição; status fora de 2xx (e de allow_statuses) vira HttpError."""
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except Exception as exc:
            raise _wrap_transport_error(exc, method, path) from exc

        if response.is_success or response.status_code in allow_statuses:
            logger.debug(
                "http_request_ok",
                extra={"method": method, "path": path, "status_code": response.status_code},
            )
            return response

        logger.warning(
            "http_request_failed",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )
        raise HttpError(
            f"HTTP {response.status_code}",
            status_code=response.status_code,
            is_transient=_is_transient_status(response.status_code),
        )

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", path, **kwargs)

    async def stream_lines(self, path: str) -> AsyncIterator[str]:
        """Itera linhas de uma resposta em streaming (sem timeout de leitura)."""
        client = await self._get_client()
        timeout = httpx.Timeout(self._config.timeout_seconds, read=None)
        try:
            async with client.stream("GET", path, timeout=timeout) as response:
                if not response.is_success:
                    raise HttpError(
                        f"HTTP {response.status_code}",
                        status_code=response.status_code,
                        is_transient=_is_transient_status(response.status_code),
                    )
                async for line in response.aiter_lines():
                    if line.strip():
                        yield line
        except HttpError:
            raise
        except Exception as exc:
            raise _wrap_transport_error(exc, "GET", path) from exc


def create_http_client(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HttpClient:
    """Factory para o cliente HTTP do bridge conforme settings."""
    headers = {"User-Agent": f"{settings.service_name}/{settings.version}"}
    if settings.bridge_token:
        headers["Authorization"] = f"Bearer {settings.bridge_token}"

    config = HttpClientConfig(
        base_url=settings.bridge_base_url.rstrip("/"),
        timeout_seconds=settings.bridge_timeout_seconds,
        default_headers=headers,
    )
    return HttpClient(config, transport=transport)
