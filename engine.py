"""Turn-taking engine for driving a chat bot through WhatsApp Web.

WhatsApp gives no signal that the bot has finished answering, and replies
often arrive as several bubbles a moment apart. One turn therefore goes:

    send -> wait for the inbound count to grow -> wait until it stops
    growing for a stabilization window -> read the new messages ->
    answer any "Opciones:" prompt automatically -> done

A reply saying the resource already exists ends the conversation early:
the engine remembers it and stops transmitting for the rest of its life.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from whatsapp_bot_tests import console
from whatsapp_bot_tests.auto_responder import AutoResponseContext, decide_reply, matching_rule
from whatsapp_bot_tests.config import Settings, get_settings
from whatsapp_bot_tests.conversation_log import ConversationLogger, Direction
from whatsapp_bot_tests.delta import Delta, InboundMessage, MessageDeltaTracker
from whatsapp_bot_tests.errors import HarnessError, NoSignalTimeout, TransportError
from whatsapp_bot_tests.options import find_options, select_best
from whatsapp_bot_tests.step import info, step
from whatsapp_bot_tests.text import is_sandbox_notice
from whatsapp_bot_tests.transport import InboundReader, Transport
from whatsapp_bot_tests.unique import unique_name


class TurnState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    AWAITING_FIRST_SIGNAL = "awaiting_first_signal"
    STABILIZING = "stabilizing"
    DELTA_READ = "delta_read"
    OPTION_BRANCH = "option_branch"
    DONE = "done"
    EARLY_EXIT = "early_exit"


@dataclass
class EarlyExitState:
    detected: bool = False
    message: str = ""


@dataclass
class ConversationState:
    """Mutable state of one conversation, owned by the engine."""
    last_reply: str = ""
    # Last non-empty inbound text seen, returned when a turn gets no reply
    last_seen: str = ""
    created_name: str = ""
    phase: TurnState = TurnState.IDLE
    early_exit: EarlyExitState = field(default_factory=EarlyExitState)


@dataclass(frozen=True)
class TurnTiming:
    """Engine timing in seconds."""
    poll_interval: float = 0.5
    stabilization_window: float = 1.2
    reply_timeout: float = 90.0
    option_timeout: float = 20.0
    option_check_interval: float = 1.0
    option_backoff: float = 0.5
    option_max_attempts: int = 5

    @classmethod
    def from_settings(cls, settings: Settings) -> "TurnTiming":
        return cls(
            poll_interval=settings.poll_interval / 1000,
            stabilization_window=settings.stabilization_window / 1000,
            reply_timeout=settings.reply_timeout / 1000,
            option_timeout=settings.option_timeout / 1000,
            option_check_interval=settings.option_check_interval / 1000,
            option_backoff=settings.option_backoff / 1000,
            option_max_attempts=settings.option_max_attempts,
        )


@dataclass
class TurnResult:
    """Outcome of one logical turn, including any options answered automatically."""
    reply: str = ""
    messages: list[InboundMessage] = field(default_factory=list)
    options_sent: list[str] = field(default_factory=list)
    early_exit: bool = False
    stale: bool = False
    timed_out: bool = False
    # Clock reading when the last reply burst was judged complete
    settled_at: Optional[float] = None
    error: Optional[HarnessError] = None

    @property
    def confirmed(self) -> bool:
        """A fresh, non-empty reply was read.

        Turns short-circuited by an earlier early exit are stale and never
        confirmed; the turn that detected it is.
        """
        return bool(self.reply) and not self.stale and not self.timed_out


class TurnTakingEngine:
    """Sends payloads and decides when the bot's reply is complete."""

    def __init__(
        self,
        transport: Transport,
        reader: InboundReader,
        logger: Optional[ConversationLogger] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings or get_settings()
        self.transport = transport
        self.reader = reader
        self.logger = logger or ConversationLogger(self.settings.logs_path)
        self.timing = TurnTiming.from_settings(self.settings)
        self.tracker = MessageDeltaTracker(reader)
        self.state = ConversationState()
        self._clock = clock
        self._sleep = sleep
        self._early_exit_regex = self.settings.early_exit_regex

    @classmethod
    def from_page(cls, page, **kwargs) -> "TurnTakingEngine":
        """Engine over a page object acting as both transport and reader."""
        return cls(page, page, **kwargs)

    # === State ===
    @property
    def baseline(self) -> int:
        return self.tracker.baseline

    @property
    def last_reply(self) -> str:
        return self.state.last_reply

    @property
    def early_exit(self) -> EarlyExitState:
        return self.state.early_exit

    # === Turns ===
    def run_turn(self, payload: str, timeout_ms: Optional[int] = None) -> TurnResult:
        """Send ``payload`` and wait for the complete reply.

        Returns an empty reply when nothing arrived before the timeout, or the
        last inbound text seen before the send (``stale=True``) if there was one.
        After an early exit nothing is sent and the stored message is returned.

        Raises ``TransportError`` if the payload can't be sent and
        ``SurfaceClosedError`` if the page goes away mid-turn.
        """
        if self.state.early_exit.detected:
            info(f"Early exit already detected, not sending '{payload}'")
            return TurnResult(reply=self.state.early_exit.message, early_exit=True, stale=True)

        timeout = timeout_ms / 1000 if timeout_ms is not None else self.timing.reply_timeout
        with step(f"Send '{payload}' and wait for the bot reply", step_type="wait"):
            result = self._exchange(payload, timeout)
            if result.messages and not self.state.early_exit.detected:
                result = self._resolve_options(result)

        result.early_exit = self.state.early_exit.detected
        self.state.phase = TurnState.EARLY_EXIT if result.early_exit else TurnState.IDLE
        return result

    def send_and_wait(self, payload: str, timeout_ms: Optional[int] = None) -> str:
        return self.run_turn(payload, timeout_ms).reply

    def send_auto(self, default: str, context: Optional[AutoResponseContext] = None,
                  timeout_ms: Optional[int] = None) -> str:
        """Answer the bot's last prompt with a canned reply, ``default`` if none fits."""
        prompt = self.state.last_reply
        skip = self.settings.skip_keyword
        context = context or AutoResponseContext(
            created_name=self.state.created_name or None,
            skip_keyword=skip,
        )
        if skip and skip in prompt.lower():
            payload = skip
        else:
            payload = decide_reply(prompt, default, context)
            if prompt and matching_rule(prompt, context) is None:
                console.warning(f"Unrecognized prompt '{prompt}', answering with default '{default}'")
        return self.send_and_wait(payload, timeout_ms)

    def confirm(self, expected: str, grace_ms: int = 3000) -> bool:
        """Check the last reply for ``expected``, giving late messages one grace period."""
        if expected.lower() in self.state.last_reply.lower():
            return True

        self._sleep(grace_ms / 1000)
        delta = self.tracker.read_delta()
        if not delta.messages:
            return False
        self._absorb(delta)
        return expected.lower() in self.state.last_reply.lower()

    def reset_history(self) -> None:
        """Start counting from zero after the chat history was cleared."""
        self.tracker.reset()
        self.state.last_seen = ""
        self.state.last_reply = ""

    def create_unique_name(self) -> str:
        self.state.created_name = unique_name(self.settings.name_base)
        return self.state.created_name

    def finish(self) -> Optional[Path]:
        """Flush the conversation log; call at session teardown."""
        return self.logger.flush()

    # === Stages ===
    def _exchange(self, payload: str, timeout: float) -> TurnResult:
        """One send -> await -> stabilize -> read cycle."""
        self._enter(TurnState.SENDING)
        counted = self.tracker.count().raise_if_aborted()
        if counted.ok and counted.value < self.tracker.baseline:
            console.warning(
                f"Inbound list shrank from {self.tracker.baseline} to {counted.value}; "
                "call reset_history() after clearing the chat"
            )
        baseline_count = max(counted.value, self.tracker.baseline) if counted.ok else self.tracker.baseline
        self.tracker.set_baseline(baseline_count)
        self._remember_last_seen(baseline_count)

        try:
            self.transport.send_text(payload)
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Failed to send '{payload}': {e}") from e
        self.logger.log(Direction.SENT, payload)

        deadline = self._clock() + timeout
        self._enter(TurnState.AWAITING_FIRST_SIGNAL)
        count = self._await_first_signal(baseline_count, deadline)
        if count is None:
            return self._no_signal(payload, timeout)

        self._enter(TurnState.STABILIZING)
        settled_at = self._stabilize(count, deadline)

        self._enter(TurnState.DELTA_READ)
        delta = self.tracker.read_delta()
        self._absorb(delta)
        self._enter(TurnState.DONE)
        if not delta.messages:
            return self._fallback(settled_at)
        return TurnResult(
            reply=self.state.last_reply,
            messages=list(delta.messages),
            settled_at=settled_at,
        )

    def _await_first_signal(self, baseline_count: int, deadline: float) -> Optional[int]:
        """Poll until the inbound count exceeds the baseline; None on timeout."""
        while True:
            counted = self.tracker.count().raise_if_aborted()
            # An unreadable count means "no change yet"
            if counted.ok and counted.value > baseline_count:
                self._check_newest(counted.value)
                return counted.value
            remaining = deadline - self._clock()
            if remaining <= 0:
                return None
            self._sleep(min(self.timing.poll_interval, remaining))

    def _stabilize(self, count: int, deadline: float) -> float:
        """Keep polling until no new message arrived for the stabilization window."""
        last_count = count
        last_changed = self._clock()
        while not self.state.early_exit.detected:
            now = self._clock()
            if now - last_changed >= self.timing.stabilization_window or now >= deadline:
                break
            self._sleep(self.timing.poll_interval)
            counted = self.tracker.count().raise_if_aborted()
            if counted.ok and counted.value > last_count:
                last_count = counted.value
                last_changed = self._clock()
                self._check_newest(last_count)
        return self._clock()

    def _resolve_options(self, result: TurnResult) -> TurnResult:
        """Answer option prompts until none is left or the attempts run out.

        Options in the turn's own messages are answered first; when there are
        none, messages that arrived after the reply settled are checked once.
        Both paths share one attempt counter.
        """
        pending = result.messages
        attempts = 0
        while pending and attempts < self.timing.option_max_attempts and not self.state.early_exit.detected:
            attempts += 1
            self._enter(TurnState.OPTION_BRANCH)
            match = find_options(
                [m.text for m in pending],
                markers=self.settings.option_markers,
                max_lines=self.settings.option_max_lines,
            )
            choice = select_best(match.options) if match else None
            if choice is None:
                self._sleep(self.timing.option_check_interval)
                late = self.tracker.read_delta()
                self._absorb(late)
                result.messages.extend(late.messages)
                if late.messages:
                    result.reply = self.state.last_reply
                pending = late.messages
                continue

            info(f"Options detected ({match.source}): {', '.join(match.options)} -> answering '{choice}' "
                 f"[{attempts}/{self.timing.option_max_attempts}]")
            self._sleep(self.timing.option_backoff)
            latest = self._exchange(choice, self.timing.option_timeout)
            result.options_sent.append(choice)
            result.messages.extend(latest.messages)
            result.reply = latest.reply
            result.stale = latest.stale
            result.timed_out = latest.timed_out
            result.error = latest.error
            result.settled_at = latest.settled_at or result.settled_at
            pending = latest.messages

        self._enter(TurnState.DONE)
        return result

    # === Helpers ===
    def _absorb(self, delta: Delta) -> None:
        """Log newly read messages and move the baseline past them."""
        for message in delta.messages:
            self.logger.log(Direction.RECEIVED, message.text, message.remote_timestamp)
            if is_sandbox_notice(message.text):
                console.warning("The bot number is not connected to the Twilio sandbox")
        self.tracker.set_baseline(max(self.tracker.baseline, delta.observed))

        if delta.messages:
            final = delta.messages[-1].text
            self.state.last_reply = final
            self.state.last_seen = final
            if self._early_exit_regex.search(final):
                self._flag_early_exit(final)

    def _check_newest(self, count: int) -> None:
        """Flag an early exit as soon as the newest bubble reports a duplicate."""
        newest = self.tracker.read_at(count - 1).raise_if_aborted()
        if newest.ok and self._early_exit_regex.search(newest.value.text):
            self._flag_early_exit(newest.value.text)

    def _enter(self, phase: TurnState) -> None:
        # EARLY_EXIT is absorbing
        if not self.state.early_exit.detected:
            self.state.phase = phase

    def _flag_early_exit(self, message: str) -> None:
        if self.state.early_exit.detected:
            return
        self.state.early_exit = EarlyExitState(detected=True, message=message)
        self.state.phase = TurnState.EARLY_EXIT
        info(f"Early exit: {message}")
        console.warning(f"Early exit detected: {message}")

    def _remember_last_seen(self, count: int) -> None:
        if count <= 0:
            return
        newest = self.tracker.read_at(count - 1).raise_if_aborted()
        if newest.ok and newest.value.text:
            self.state.last_seen = newest.value.text

    def _no_signal(self, payload: str, timeout: float) -> TurnResult:
        self._enter(TurnState.DONE)
        error = NoSignalTimeout(f"No reply to '{payload}' within {timeout:g}s")
        console.warning(str(error))
        result = self._fallback(None)
        result.timed_out = True
        result.error = error
        return result

    def _fallback(self, settled_at: Optional[float]) -> TurnResult:
        """Reply to use when no new message could be read."""
        if self.state.last_seen:
            console.note(f"Falling back to last seen message: {self.state.last_seen}")
            self.state.last_reply = self.state.last_seen
            return TurnResult(reply=self.state.last_seen, stale=True, settled_at=settled_at)
        self.state.last_reply = ""
        return TurnResult(reply="", settled_at=settled_at)
