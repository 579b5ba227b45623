"""Regras de endereço WhatsApp (conversa direta vs grupo)."""

from __future__ import annotations

DIRECT_CONTACT_SUFFIX = "@c.us"
GROUP_SUFFIX = "@g.us"


def is_direct_contact(address: str | None) -> bool:
    """True se o endereço denota conversa 1:1 (não grupo)."""
    return bool(address) and address.endswith(DIRECT_CONTACT_SUFFIX)


def normalize_contact_id(address: str) -> str:
    """Remove o sufixo de conversa direta: "5511...@c.us" -> "5511..."."""
    return address.replace(DIRECT_CONTACT_SUFFIX, "")
