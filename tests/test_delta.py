"""Tests for the inbound delta tracker."""

import pytest

from whatsapp_bot_tests.delta import MessageDeltaTracker
from whatsapp_bot_tests.errors import ReadErrorKind, SurfaceClosedError
from conftest import ScriptedChat


@pytest.mark.delta
class TestMessageDeltaTracker:

    def test_reads_everything_after_baseline(self, clock):
        chat = ScriptedChat(clock, history=("viejo", "Hola 10:31 a. m.", "\u200bAdiós"))
        tracker = MessageDeltaTracker(chat, baseline=1)

        delta = tracker.read_delta()

        assert [m.text for m in delta.messages] == ["Hola", "Adiós"]
        assert [m.sequence_index for m in delta.messages] == [1, 2]
        assert delta.observed == 3
        assert delta.skipped == []

    def test_reading_does_not_move_baseline(self, clock):
        chat = ScriptedChat(clock, history=("a", "b"))
        tracker = MessageDeltaTracker(chat)

        tracker.read_delta()

        assert tracker.baseline == 0
        assert len(tracker.read_new()) == 2

    def test_advancing_baseline_past_read_messages(self, clock):
        chat = ScriptedChat(clock, history=("viejo", "uno", "dos"))
        tracker = MessageDeltaTracker(chat)
        tracker.set_baseline(1)

        fresh = tracker.read_new()
        tracker.set_baseline(1 + len(fresh))

        assert [m.text for m in fresh] == ["uno", "dos"]
        assert tracker.read_new() == []

        chat.deliver("tres")
        assert [m.text for m in tracker.read_new()] == ["tres"]

    def test_remote_timestamp_from_raw_text(self, clock):
        chat = ScriptedChat(clock, history=("Hola",))
        message = MessageDeltaTracker(chat).read_new()[0]

        assert message.raw_text == "Hola\n10:00 a. m."
        assert message.remote_timestamp == "10:00 a. m."

    def test_skips_unreadable_and_empty_elements(self, clock):
        chat = ScriptedChat(clock, history=("uno", "dos", "10:31", "tres"))
        chat.failing_indexes = {1}

        delta = MessageDeltaTracker(chat).read_delta()

        assert [m.text for m in delta.messages] == ["uno", "tres"]
        assert delta.skipped == [1, 2]
        assert delta.observed == 4

    def test_count_failure_gives_empty_delta(self, clock):
        chat = ScriptedChat(clock, history=("uno",))
        chat.count_failures = 1
        tracker = MessageDeltaTracker(chat)

        delta = tracker.read_delta()

        assert delta.messages == []
        assert delta.observed == 0

    def test_read_results(self, clock):
        chat = ScriptedChat(clock, history=("uno",))
        chat.count_failures = 1
        tracker = MessageDeltaTracker(chat)

        failed = tracker.count()
        assert not failed.ok
        assert failed.error == ReadErrorKind.SKIP
        assert tracker.count().value == 1

        missing = tracker.read_at(5)
        assert missing.error == ReadErrorKind.SKIP
        assert "message 5" in missing.detail

    def test_baseline_bounds(self, clock):
        tracker = MessageDeltaTracker(ScriptedChat(clock))
        tracker.set_baseline(4)
        assert tracker.baseline == 4
        with pytest.raises(ValueError):
            tracker.set_baseline(-1)
        tracker.reset()
        assert tracker.baseline == 0

    def test_closed_page_aborts(self, clock):
        chat = ScriptedChat(clock, history=("uno",))
        chat.closed = True
        tracker = MessageDeltaTracker(chat)

        assert tracker.count().error == ReadErrorKind.ABORT
        assert tracker.read_at(0).error == ReadErrorKind.ABORT
        with pytest.raises(SurfaceClosedError):
            tracker.read_delta()
