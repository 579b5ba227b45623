"""Persistência dos registros de usuários em arquivo JSON local.

Contrato:
- Arquivo ausente, JSON inválido ou topo que não é array → lista vazia e o
  arquivo é (re)gravado com `[]`.
- Item inválido é ignorado (com log); os demais registros são mantidos.
- Falhas de I/O são logadas e não propagadas.
- `mutate` serializa ciclos ler→alterar→gravar (um escritor por vez),
  evitando perda de atualização entre handlers intercalados.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path

import anyio
from pydantic import ValidationError

from deboca_bot.domain.models import UserRecord
from deboca_bot.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

RecordsMutation = Callable[[list[UserRecord]], bool]


class UserRecordStore(ABC):
    """Porta para persistência da lista ordenada de registros."""

    def __init__(self) -> None:
        self._write_lock = asyncio.Lock()

    @abstractmethod
    async def load(self) -> list[UserRecord]: ...

    @abstractmethod
    async def save(self, records: list[UserRecord]) -> None: ...

    async def mutate(self, mutation: RecordsMutation) -> list[UserRecord]:
        """Aplica `mutation` sob lock; grava somente se ela retornar True."""
        async with self._write_lock:
            records = await self.load()
            if mutation(records):
                await self.save(records)
            return records


class InMemoryUserRecordStore(UserRecordStore):
    """Armazenamento em memória (apenas testes)."""

    def __init__(self, records: list[UserRecord] | None = None) -> None:
        super().__init__()
        self._records = [r.model_copy(deep=True) for r in records or []]

    async def load(self) -> list[UserRecord]:
        return [r.model_copy(deep=True) for r in self._records]

    async def save(self, records: list[UserRecord]) -> None:
        self._records = [r.model_copy(deep=True) for r in records]


class JsonUserRecordStore(UserRecordStore):
    """Registros em array JSON UTF-8, indentado (formato legado data.json)."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_sync(self) -> list[UserRecord]:
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, list):
            raise ValueError("arquivo de dados deve conter um array JSON")

        records: list[UserRecord] = []
        for position, item in enumerate(raw):
            try:
                records.append(UserRecord.model_validate(item))
            except ValidationError as exc:
                logger.warning(
                    "user_record_invalid_skipped",
                    extra={"position": position, "errors": exc.error_count()},
                )
        return records

    def _write_sync(self, records: list[UserRecord]) -> None:
        payload = [record.to_file_dict() for record in records]
        self._path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    async def _reset_file(self) -> None:
        try:
            await anyio.to_thread.run_sync(self._write_sync, [])
        except OSError as exc:
            logger.error("user_records_reset_failed", extra={"error": str(exc)})

    async def load(self) -> list[UserRecord]:
        try:
            return await anyio.to_thread.run_sync(self._read_sync)
        except FileNotFoundError:
            logger.info("user_records_file_missing_creating", extra={"path": str(self._path)})
            await self._reset_file()
            return []
        except (json.JSONDecodeError, UnicodeDecodeError, ValueError) as exc:
            logger.warning(
                "user_records_file_corrupted_resetting",
                extra={"path": str(self._path), "error": type(exc).__name__},
            )
            await self._reset_file()
            return []
        except OSError as exc:
            logger.error("user_records_load_failed", extra={"error": str(exc)})
            return []

    async def save(self, records: list[UserRecord]) -> None:
        try:
            await anyio.to_thread.run_sync(self._write_sync, records)
        except OSError as exc:
            logger.error("user_records_save_failed", extra={"error": str(exc)})
