"""Rota HTTP de liveness."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter()

LIVENESS_TEXT = "Servidor está rodando! Chatbot WhatsApp DeBocaEmBoca."


@router.get("/", response_class=PlainTextResponse)
def root() -> str:
    """Healthcheck simples: responde mesmo sem sessão WhatsApp ativa."""
    return LIVENESS_TEXT
