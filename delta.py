"""Tracks which inbound messages are new since the last transmitted message."""

from dataclasses import dataclass, field
from typing import Optional

from whatsapp_bot_tests.errors import ReadResult, SurfaceClosedError, TransientReadError
from whatsapp_bot_tests.text import extract_clock_token, normalize
from whatsapp_bot_tests.transport import InboundReader, RawInbound


@dataclass(frozen=True)
class InboundMessage:
    """An inbound bubble, rebuilt on every read."""
    sequence_index: int
    text: str
    raw_text: str
    remote_timestamp: Optional[str] = None


@dataclass
class Delta:
    """Result of one enumeration of the inbound list."""
    messages: list[InboundMessage] = field(default_factory=list)
    observed: int = 0
    skipped: list[int] = field(default_factory=list)


class MessageDeltaTracker:
    """Computes the inbound messages that arrived after the baseline.

    The baseline is the number of inbound messages that were already on
    screen before the last send. Reading never moves it; the engine advances
    it once a turn has been read.
    """

    def __init__(self, reader: InboundReader, baseline: int = 0):
        self.reader = reader
        self._baseline = 0
        self.set_baseline(baseline)

    @property
    def baseline(self) -> int:
        return self._baseline

    def set_baseline(self, count: int) -> None:
        if count < 0:
            raise ValueError(f"Baseline must be non-negative, got {count}")
        self._baseline = count

    def reset(self) -> None:
        """Forget the history, e.g. after the chat was cleared."""
        self._baseline = 0

    def count(self) -> ReadResult[int]:
        try:
            return ReadResult.success(self.reader.count_inbound())
        except TransientReadError as e:
            return ReadResult.skipped(str(e))
        except SurfaceClosedError as e:
            return ReadResult.aborted(str(e))

    def read_at(self, index: int) -> ReadResult[InboundMessage]:
        try:
            raw = self.reader.read_inbound_at(index)
        except TransientReadError as e:
            return ReadResult.skipped(f"message {index}: {e}")
        except SurfaceClosedError as e:
            return ReadResult.aborted(f"message {index}: {e}")
        return ReadResult.success(self._to_message(index, raw))

    def read_delta(self) -> Delta:
        """Enumerate the inbound list and return what follows the baseline.

        Elements that fail to read, or are empty once normalized, are skipped.
        If the list can't even be counted the delta is empty. A closed page
        raises ``SurfaceClosedError``.
        """
        counted = self.count().raise_if_aborted()
        if not counted.ok:
            return Delta(observed=self._baseline)

        delta = Delta(observed=counted.value)
        for index in range(self._baseline, counted.value):
            result = self.read_at(index).raise_if_aborted()
            if not result.ok or not result.value.text:
                delta.skipped.append(index)
                continue
            delta.messages.append(result.value)
        return delta

    def read_new(self) -> list[InboundMessage]:
        return self.read_delta().messages

    @staticmethod
    def _to_message(index: int, raw: RawInbound) -> InboundMessage:
        raw_text = raw.raw_text or raw.text
        return InboundMessage(
            sequence_index=index,
            text=normalize(raw.text),
            raw_text=raw_text,
            remote_timestamp=raw.remote_timestamp or extract_clock_token(raw_text),
        )
