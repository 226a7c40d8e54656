"""Menu-style option detection in bot replies.

The bot ends menu prompts with a line such as
``"Opciones: Yara, Nutrien, Bayer"``. The extractor turns that tail into an
ordered candidate list and the selector picks the one to answer with.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from whatsapp_bot_tests.text import is_clock_token, normalize

DEFAULT_MARKERS = ("Opciones", "Options")
DEFAULT_MAX_LINES = 3

SEPARATORS = re.compile(r"\s*(?:,|;|\||/|[\u2022\u2023\u25E6\u2043\u2219])\s*")
LIST_MARKERS = re.compile(r"\s*(?:\d+\)|\d+\.|-\s)\s*")
LIST_ITEM_LINE = re.compile(r"^\s*(?:\d+[).]|[-*\u2022\u2023\u25E6\u2043\u2219])\s*(.+)$")
SELECTION_KEYWORDS = ("seleccione", "selecciona", "elige", "escoge", "select", "choose")


@dataclass(frozen=True)
class OptionMatch:
    """A message from the delta together with the options found in it."""
    message: str
    options: list[str]
    source: str  # "marker" or "keywords"


def _marker_pattern(markers: Sequence[str]) -> re.Pattern:
    alternatives = "|".join(re.escape(m) for m in markers)
    return re.compile(rf"\b(?:{alternatives})\s*:\s*(.+)", re.IGNORECASE | re.DOTALL)


def _clean_candidates(pieces: Iterable[str]) -> list[str]:
    candidates = []
    for piece in pieces:
        option = normalize(piece)
        if not option or is_clock_token(option):
            continue
        candidates.append(option)
    return candidates


def extract_options(
    text: Optional[str],
    markers: Sequence[str] = DEFAULT_MARKERS,
    max_lines: int = DEFAULT_MAX_LINES,
) -> Optional[list[str]]:
    """Extract the candidates following an ``Opciones:`` marker.

    Only the first ``max_lines`` lines after the marker are considered so
    that trailing prose is not mistaken for options. Returns ``None`` when
    the marker is missing or nothing usable follows it.
    """
    cleaned = normalize(text)
    if not cleaned:
        return None

    match = _marker_pattern(markers).search(cleaned)
    if not match:
        return None

    blob = " ".join(match.group(1).splitlines()[:max_lines])
    pieces = [
        part
        for chunk in SEPARATORS.split(blob)
        for part in LIST_MARKERS.split(chunk)
    ]
    candidates = _clean_candidates(pieces)
    return candidates or None


def extract_listed_choices(text: Optional[str]) -> Optional[list[str]]:
    """Fallback for prompts without a marker, e.g. ``"Elige uno:\\n1) A\\n2) B"``."""
    cleaned = normalize(text)
    lower = cleaned.lower()
    if not any(keyword in lower for keyword in SELECTION_KEYWORDS):
        return None

    items = []
    for line in cleaned.splitlines():
        match = LIST_ITEM_LINE.match(line)
        if match:
            items.append(match.group(1))
    candidates = _clean_candidates(items)
    return candidates if len(candidates) >= 2 else None


def find_options(
    messages: Sequence[str],
    markers: Sequence[str] = DEFAULT_MARKERS,
    max_lines: int = DEFAULT_MAX_LINES,
) -> Optional[OptionMatch]:
    """Find the options to answer in a delta of messages.

    Messages are scanned newest first. A message carrying the canonical
    marker always wins over one that only matches the keyword heuristics.
    """
    keyword_hit: Optional[OptionMatch] = None
    for message in reversed(messages):
        options = extract_options(message, markers, max_lines)
        if options:
            return OptionMatch(message=message, options=options, source="marker")
        if keyword_hit is None:
            listed = extract_listed_choices(message)
            if listed:
                keyword_hit = OptionMatch(message=message, options=listed, source="keywords")
    return keyword_hit


def select_best(candidates: Optional[Sequence[str]]) -> Optional[str]:
    """Pick the option to send back.

    Single-word options are the bot's canonical identifiers, so the first
    one wins; otherwise the first candidate is used.
    """
    if not candidates:
        return None

    valid = _clean_candidates(candidates)
    if not valid:
        return None

    for option in valid:
        if len(option.split()) == 1:
            return option
    return valid[0]
