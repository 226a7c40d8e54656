"""Step event collection for harness runs under pytest."""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Callable, Optional
import time

import pytest


@dataclass
class StepEvent:
    event_type: str  # "session_start", "test_start", "step", "test_end", "session_end"
    timestamp: str = field(
        default_factory=lambda: datetime.now().isoformat())
    nodeid: Optional[str] = None
    name: Optional[str] = None
    outcome: Optional[str] = None
    duration_ms: Optional[int] = None
    message: Optional[str] = None
    step_name: Optional[str] = None
    step_type: Optional[str] = None  # "action", "wait" or "info"

    def to_dict(self):
        return {k: v for k, v in asdict(self).items() if v is not None}


class StepCollector:
    """Pytest plugin that records test boundaries and the steps logged in between."""

    def __init__(self, on_event: Optional[Callable[[StepEvent], None]] = None):
        self.on_event = on_event
        self.events: list[StepEvent] = []
        self._test_start: Optional[float] = None
        self._nodeid: Optional[str] = None
        self._test_name: Optional[str] = None

    def emit(self, event: StepEvent):
        if event.event_type == "step" and event.nodeid is None:
            event.nodeid = self._nodeid
            event.name = self._test_name
        self.events.append(event)
        if self.on_event:
            self.on_event(event)

    def steps(self, nodeid: Optional[str] = None) -> list[StepEvent]:
        """Step events, optionally limited to one test."""
        return [
            e for e in self.events
            if e.event_type == "step" and (nodeid is None or e.nodeid == nodeid)
        ]

    def pytest_sessionstart(self, session):
        self.emit(StepEvent("session_start"))

    def pytest_runtest_setup(self, item):
        self._test_start = time.time()
        self._nodeid = item.nodeid
        self._test_name = item.name
        self.emit(StepEvent("test_start", nodeid=item.nodeid, name=item.name))

    def pytest_runtest_makereport(self, item, call):
        if call.when != "call" and not call.excinfo:
            return
        elapsed = time.time() - self._test_start if self._test_start else None
        duration_ms = int(elapsed * 1000) if elapsed is not None else None
        if call.excinfo:
            outcome = "skipped" if call.excinfo.errisinstance(pytest.skip.Exception) else "failed"
            message = str(call.excinfo.value)
        else:
            outcome, message = "passed", None
        self.emit(StepEvent(
            "test_end",
            nodeid=item.nodeid,
            name=item.name,
            outcome=outcome,
            duration_ms=duration_ms,
            message=message,
        ))
        self._nodeid = None
        self._test_name = None

    def pytest_sessionfinish(self, session, exitstatus):
        self.emit(StepEvent("session_end", outcome="passed" if exitstatus == 0 else "failed"))


# Collector that step()/info() report to
_current_collector: Optional[StepCollector] = None


def set_current_collector(collector: Optional[StepCollector]):
    global _current_collector
    _current_collector = collector


def get_current_collector() -> Optional[StepCollector]:
    return _current_collector


def log_step(name: str, outcome: str = "passed", message: Optional[str] = None,
             duration_ms: Optional[int] = None, step_type: str = "action"):
    """Report a step to the active collector; a no-op when none is set."""
    if _current_collector:
        _current_collector.emit(StepEvent(
            "step",
            step_name=name,
            outcome=outcome,
            message=message,
            duration_ms=duration_ms,
            step_type=step_type,
        ))
