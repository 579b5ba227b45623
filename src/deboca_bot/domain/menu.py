"""Conteúdo do menu e padrão de disparo da saudação.

O texto é conteúdo de negócio; o núcleo só depende de:
- 5 opções numeradas ("1".."5")
- uma resposta fixa por opção e uma resposta genérica para opção inválida
"""

from __future__ import annotations

import re

from deboca_bot.domain.models import DEFAULT_DISPLAY_NAME

MENU_OPTIONS: tuple[str, ...] = ("1", "2", "3", "4", "5")

# Palavras que sempre disparam a saudação, além do TRIGGER_WORD configurado
GREETING_WORDS: tuple[str, ...] = ("menu", "dia", "tarde", "noite", "oi", "olá", "ola")

CONTACT_LINE = "Agende um contato pelo WhatsApp do atendimento."
SIGNUP_LINK = "https://sites.google.com/view/solucoes-em-ia"

GREETING_TEMPLATE = (
    "Olá! {first_name},\n\n"
    "Sou Ana Clara e represento a empresa DeBocaEmBoca. Como posso ajudá-lo(a) hoje?\n\n"
    "Por favor, digite o *número* da opção desejada abaixo:\n\n"
    "1 - Assistente Virtual humanizado que atende seus clientes e qualifica LEADS\n\n"
    "2 - Assinatura mensal com 3 consultas em Soluções com Inteligência Artificial\n\n"
    "3 - Dossiê sobre quem lhe prejudicou ou de quem você desconfia\n\n"
    "4 - Divulgação personalizada como esta\n\n"
    "5 - Outras perguntas"
)

OPTION_REPLIES: dict[str, str] = {
    "1": (
        f"Link para cadastro: {SIGNUP_LINK}\n\n"
        "Tenha um(a) Assistente Virtual que atende seus clientes e qualifica LEADS, "
        "ou os templates e arquivos de configuração prontos com nosso suporte remoto.\n\n"
        f"{CONTACT_LINE}"
    ),
    "2": (
        f"Link para cadastro: {SIGNUP_LINK}\n\n"
        "Tenha 3 consultas mensais que vão otimizar seu negócio com Soluções em IA "
        "e suporte remoto.\n\n"
        f"{CONTACT_LINE}"
    ),
    "3": (
        f"Link para cadastro: {SIGNUP_LINK}\n\n"
        "Saiba com quem se relaciona a partir de qualquer pequena informação: "
        "CPF, nome completo, endereço, CEP, placa de carro e outros.\n\n"
        f"{CONTACT_LINE}"
    ),
    "4": CONTACT_LINE,
    "5": (
        "Se tiver outras dúvidas ou precisar de mais informações, escreva aqui "
        f"ou visite nosso site: {SIGNUP_LINK}\n\n{CONTACT_LINE}"
    ),
}

INVALID_OPTION_REPLY = "Opção inválida."


def build_trigger_pattern(trigger_word: str) -> re.Pattern[str]:
    """Compila a alternância (TRIGGER_WORD | palavras de saudação), sem diferenciar caixa.

    A busca não é ancorada: "boa tarde" casa por conter "tarde".
    """
    words = [trigger_word, *GREETING_WORDS]
    alternatives = [re.escape(word) for word in words if word]
    return re.compile("(" + "|".join(alternatives) + ")", re.IGNORECASE)


def first_name(display_name: str | None) -> str:
    """Primeiro token do nome (fallback "Cliente")."""
    tokens = (display_name or "").split()
    return tokens[0] if tokens else DEFAULT_DISPLAY_NAME


def render_greeting(display_name: str | None) -> str:
    return GREETING_TEMPLATE.format(first_name=first_name(display_name))


def reply_for_option(option_id: str) -> str:
    """Resposta fixa da opção; qualquer outro valor recebe a resposta de opção inválida."""
    return OPTION_REPLIES.get(option_id, INVALID_OPTION_REPLY)


def is_menu_option(body: str | None) -> bool:
    """True se o corpo é exatamente uma das opções "1".."5"."""
    return body in MENU_OPTIONS
