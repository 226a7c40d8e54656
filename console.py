"""Colored terminal output for the conversation echo and harness warnings."""

import os
from typing import Optional

RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
CYAN = "\033[36m"
MAGENTA = "\033[35m"

SENT_ARROW = "→"
RECEIVED_ARROW = "←"

# None means "detect from stdout"
_force_color: Optional[bool] = None


def use_color() -> bool:
    if _force_color is not None:
        return _force_color
    try:
        return os.isatty(1)
    except OSError:
        return False


def force_color(enabled: Optional[bool]):
    """Force colors on or off (``None`` goes back to auto-detection)."""
    global _force_color
    _force_color = enabled


def style(text: str, *codes: str) -> str:
    if not use_color():
        return text
    return f"{''.join(codes)}{text}{RESET}"


def heading(text: str) -> str:
    return style(text, BOLD, CYAN)


def dim(text: str) -> str:
    return style(text, DIM)


def sent(text: str) -> str:
    return style(f"{SENT_ARROW} {text}", GREEN)


def received(text: str) -> str:
    return style(f"{RECEIVED_ARROW} {text}", MAGENTA)


def bubble(index: int, outgoing: bool, text: str, remote_timestamp: Optional[str] = None) -> str:
    """One echoed chat line, e.g. ``[3] ← Hola (WA: 10:31 a. m.)``."""
    arrow = sent(text) if outgoing else received(text)
    remote = dim(f" (WA: {remote_timestamp})") if remote_timestamp else ""
    return f"[{index}] {arrow}{remote}"


def log(text: str, flush: bool = True):
    print(text, flush=flush)


def warning(text: str):
    """Print a harness warning (unknown prompt, early exit, stale reply...)."""
    log(style(f"! {text}", YELLOW))


def note(text: str):
    log(dim(text))
