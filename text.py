"""Text cleanup for WhatsApp message bubbles.

WhatsApp Web renders the delivery time inside each bubble ("Hola 10:31 a. m."),
sprinkles zero-width characters around emoji and links, and uses non-breaking
spaces in localized am/pm markers. Everything the harness compares goes
through :func:`normalize` first.
"""

import re
from typing import Optional

# Localized am/pm markers: am, AM, a.m., a. m., p.m., pm ...
_AMPM = r"[ap]\.?\s?m\b\.?"
_CLOCK = rf"(?<![\w:])\d{{1,2}}:\d{{2}}(?![\d:])(?:\s*{_AMPM})?"

# A period right after a bare time ("10:31.") belongs to the token
CLOCK_TOKEN = re.compile(rf"(?P<clock>{_CLOCK})(?:\.(?=\s|$))?", re.IGNORECASE)
CLOCK_ONLY = re.compile(rf"^\s*{_CLOCK}\.?\s*$", re.IGNORECASE)
INVISIBLE_CHARS = re.compile(r"[\u200B-\u200D\uFEFF]")
HORIZONTAL_SPACE = re.compile(r"[^\S\n]+")
LINE_BREAKS = re.compile(r"\s*\n\s*")
SPACE_BEFORE_PUNCT = re.compile(r"[^\S\n]+([.,;:!?])")
# One trailing period; an ellipsis stays as it is.
TRAILING_PERIOD = re.compile(r"(?<!\.)\.\s*$")
PRE_PLAIN_TEXT = re.compile(r"^\s*\[([^\]]+)\]")


def _clean_once(text: str) -> str:
    text = INVISIBLE_CHARS.sub("", text).replace("\u00a0", " ")
    text = CLOCK_TOKEN.sub("", text)
    text = HORIZONTAL_SPACE.sub(" ", text)
    text = LINE_BREAKS.sub("\n", text)
    text = SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = TRAILING_PERIOD.sub("", text)
    return text.strip()


def normalize(raw: Optional[str]) -> str:
    """Canonical form of a bubble text.

    Removes clock-face timestamps and invisible characters, collapses
    whitespace, removes spaces before punctuation and drops one trailing
    period. The cleanup is repeated until the text stops changing, so
    ``normalize(normalize(x)) == normalize(x)``.
    """
    if not raw:
        return ""
    text = raw
    while True:
        cleaned = _clean_once(text)
        if cleaned == text:
            return cleaned
        text = cleaned


def is_clock_token(text: str) -> bool:
    """True when the whole string is a clock-face time such as ``10:31 p.m.``."""
    return bool(text) and CLOCK_ONLY.match(text) is not None


def extract_clock_token(raw: Optional[str]) -> Optional[str]:
    """Return the last clock-face token found in raw bubble text."""
    if not raw:
        return None
    matches = [m.group("clock") for m in CLOCK_TOKEN.finditer(INVISIBLE_CHARS.sub("", raw))]
    if not matches:
        return None
    return matches[-1].replace("\u00a0", " ").strip()


def parse_pre_plain_text(attribute: Optional[str]) -> Optional[str]:
    """Timestamp part of a ``data-pre-plain-text`` attribute.

    ``"[10:31 a. m., 18/10/2026] Twilio: "`` -> ``"10:31 a. m., 18/10/2026"``
    """
    if not attribute:
        return None
    match = PRE_PLAIN_TEXT.match(attribute)
    if not match:
        return None
    return match.group(1).replace("\u00a0", " ").strip() or None


def is_sandbox_notice(text: str) -> bool:
    """Detect the Twilio sandbox "you are not connected" notice."""
    lower = (text or "").lower()
    return (
        "twilio sandbox" in lower
        and (
            "not connected to a sandbox" in lower
            or ("your number" in lower and "whatsapp:" in lower)
        )
        and "join" in lower
        and "sandbox name" in lower
    )
