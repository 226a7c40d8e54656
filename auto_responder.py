"""Canned answers for the bot's data-entry prompts.

The table below is evaluated top to bottom and the first matching rule
answers. Rules only look at the prompt text and the context they are given.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from whatsapp_bot_tests.unique import timestamp_token

DEFAULT_SKIP_KEYWORD = "omitir"


@dataclass
class AutoResponseContext:
    """Inputs a rule may use besides the prompt."""
    created_name: Optional[str] = None
    skip_keyword: str = DEFAULT_SKIP_KEYWORD
    clock: Callable[[], float] = field(default=time.time, repr=False)


Predicate = Callable[[str, AutoResponseContext], bool]
Responder = Callable[[str, AutoResponseContext], str]


def _contains(*phrases: str) -> Predicate:
    return lambda prompt, ctx: any(phrase in prompt for phrase in phrases)


def _price_with_skip(prompt: str, ctx: AutoResponseContext) -> bool:
    return "precio" in prompt and ctx.skip_keyword in prompt


def _fixed(answer: str) -> Responder:
    return lambda fallback, ctx: answer


def _brand(fallback: str, ctx: AutoResponseContext) -> str:
    return ctx.created_name or f"marca-auto-{timestamp_token(ctx.clock)}"


def _campaign(fallback: str, ctx: AutoResponseContext) -> str:
    return f"campaña-test-{timestamp_token(ctx.clock)[-4:]}"


def _keep_fallback(fallback: str, ctx: AutoResponseContext) -> str:
    return fallback


# (predicate over the lower-cased prompt, responder given the fallback)
REPLY_RULES: list[tuple[Predicate, Responder]] = [
    (_contains("nombre del cultivo", "nombre del producto o cultivo"), _fixed("maíz")),
    (_contains("nombre de la variedad"), _fixed("p 8660")),
    (_contains("destino del cultivo"), _fixed("pienso")),
    (_contains("marca del cultivo"), _brand),
    (_contains("nombre de la campaña"), _campaign),
    (_contains("nombre de la granja"), _fixed("granja-test")),
    (_contains("nombre del campo"), _fixed("campo-test")),
    (_contains("dosis"), _fixed("100")),
    (_price_with_skip, lambda fallback, ctx: ctx.skip_keyword),
    # status messages, not questions
    (_contains("operación cancelada", "ya existe"), _keep_fallback),
]


def decide_reply(last_prompt: Optional[str], fallback: str, context: Optional[AutoResponseContext] = None) -> str:
    """Answer for the bot's last prompt, or ``fallback`` when no rule matches."""
    if not last_prompt:
        return fallback

    context = context or AutoResponseContext()
    prompt = last_prompt.lower()
    for matches, respond in REPLY_RULES:
        if matches(prompt, context):
            return respond(fallback, context)
    return fallback


def matching_rule(last_prompt: Optional[str], context: Optional[AutoResponseContext] = None) -> Optional[int]:
    """Index of the rule that would answer ``last_prompt`` (``None`` if unmatched)."""
    if not last_prompt:
        return None
    context = context or AutoResponseContext()
    prompt = last_prompt.lower()
    for index, (matches, _) in enumerate(REPLY_RULES):
        if matches(prompt, context):
            return index
    return None
