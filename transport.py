"""Collaborator interfaces the turn-taking engine is injected with."""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class RawInbound:
    """One inbound bubble as read from the surface, before normalization."""
    text: str
    raw_text: str = ""
    remote_timestamp: Optional[str] = None


@runtime_checkable
class Transport(Protocol):
    def send_text(self, payload: str) -> None:
        """Type and submit ``payload``. Raises on failure."""
        ...


@runtime_checkable
class InboundReader(Protocol):
    def count_inbound(self) -> int:
        """Number of inbound bubbles currently rendered.

        Raises ``TransientReadError`` when the surface can't be read right now.
        """
        ...

    def read_inbound_at(self, index: int) -> RawInbound:
        """Bubble at ``index`` (0 = oldest). Raises ``TransientReadError`` on failure."""
        ...
