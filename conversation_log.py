"""Append-only journal of the messages exchanged in one session."""

from dataclasses import dataclass, asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from whatsapp_bot_tests import console
from whatsapp_bot_tests.output import JSONLWriter, generate_output_filename


class Direction(str, Enum):
    SENT = "SENT"
    RECEIVED = "RECEIVED"


@dataclass(frozen=True)
class ConversationTurn:
    index: int
    direction: Direction
    local_timestamp: str
    text: str
    remote_timestamp: Optional[str] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["direction"] = self.direction.value
        if self.remote_timestamp is None:
            del data["remote_timestamp"]
        return data


class ConversationLogger:
    """Collects sent and received messages and writes them out at teardown."""

    def __init__(self, logs_dir: Path = Path("logs"), now: Callable[[], datetime] = datetime.now):
        self.logs_dir = Path(logs_dir)
        self._now = now
        self._entries: list[ConversationTurn] = []
        self._started = False

    def start(self) -> bool:
        """Begin a new session. Returns False if one is already running."""
        if self._started:
            return False
        self._started = True
        self._entries = []
        console.log(console.heading("Conversation log started"))
        return True

    def log(self, direction: Direction, text: str, remote_timestamp: Optional[str] = None) -> ConversationTurn:
        if not self._started:
            self.start()

        entry = ConversationTurn(
            index=len(self._entries) + 1,
            direction=Direction(direction),
            local_timestamp=self._now().strftime("%Y-%m-%d %H:%M:%S"),
            text=text.strip(),
            remote_timestamp=remote_timestamp,
        )
        self._entries.append(entry)

        console.log(console.bubble(entry.index, entry.direction == Direction.SENT, entry.text, remote_timestamp))
        return entry

    @property
    def entries(self) -> list[ConversationTurn]:
        return list(self._entries)

    @property
    def last_entry(self) -> Optional[ConversationTurn]:
        return self._entries[-1] if self._entries else None

    def has_entries(self) -> bool:
        return bool(self._entries)

    def transcript(self) -> list[str]:
        """Human-readable transcript lines."""
        lines = [
            "=" * 80,
            "CONVERSATION LOG",
            "=" * 80,
            f"Date: {self._now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Total messages: {len(self._entries)}",
            "",
        ]
        for entry in self._entries:
            arrow = "→ SENT" if entry.direction == Direction.SENT else "← RECEIVED"
            remote = f" [WA: {entry.remote_timestamp}]" if entry.remote_timestamp else ""
            lines.append(f"[{entry.index:03d}] {entry.local_timestamp} {arrow}{remote}")
            lines.append(f"    {entry.text}")
            lines.append("")
        lines.append("=" * 80)
        return lines

    def flush(self) -> Optional[Path]:
        """Write the session to ``conversation_<timestamp>.jsonl`` and print it.

        Returns the written path, or None when nothing was logged.
        """
        if not self._entries:
            console.note("No conversation to log")
            return None

        for line in self.transcript():
            console.log(line)

        output_path = self.logs_dir / generate_output_filename("conversation", self._now())
        with JSONLWriter(output_path) as writer:
            writer.write_records(self._entries)
        console.log(f"Conversation log written to: {console.dim(str(output_path))}")
        return output_path
