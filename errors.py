"""Error taxonomy for the turn-taking harness."""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class HarnessError(Exception):
    """Base class for harness errors."""


class TransientReadError(HarnessError):
    """Reading the inbound count or one inbound element failed; skip and continue."""


class TransportError(HarnessError):
    """Sending a payload failed. Aborts the current turn."""


class SurfaceClosedError(HarnessError):
    """The chat page is gone. Reads fail with ``ReadErrorKind.ABORT`` and the turn stops."""


class NoSignalTimeout(HarnessError):
    """No inbound growth before the deadline.

    Never raised to callers: the engine degrades it to an empty (or stale)
    reply and records it on the turn result.
    """


class ReadErrorKind(str, Enum):
    """What a failed read means for the caller."""
    SKIP = "skip"
    ABORT = "abort"


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of one read against the inbound surface."""
    value: Optional[T] = None
    error: Optional[ReadErrorKind] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "ReadResult[T]":
        return cls(value=value)

    @classmethod
    def skipped(cls, detail: str) -> "ReadResult[T]":
        return cls(error=ReadErrorKind.SKIP, detail=detail)

    @classmethod
    def aborted(cls, detail: str) -> "ReadResult[T]":
        return cls(error=ReadErrorKind.ABORT, detail=detail)

    def raise_if_aborted(self) -> "ReadResult[T]":
        if self.error == ReadErrorKind.ABORT:
            raise SurfaceClosedError(self.detail)
        return self
