"""Modelos de domínio (registros persistidos)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DISPLAY_NAME = "Cliente"


class UserRecord(BaseModel):
    """Registro de um contato que passou pelo menu.

    Serializado com as chaves do arquivo de dados legado
    (whatsapp, nome, email, opcoes_escolhidas); chaves extras são preservadas.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    contact_id: str = Field(alias="whatsapp")
    display_name: str = Field(default=DEFAULT_DISPLAY_NAME, alias="nome")
    email: str | None = None
    chosen_options: list[str] = Field(default_factory=list, alias="opcoes_escolhidas")

    def to_file_dict(self) -> dict:
        """Dict no formato do arquivo (aliases)."""
        return self.model_dump(by_alias=True)
