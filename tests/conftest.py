from pathlib import Path
from typing import Callable, Optional, Union

import pytest
from playwright.sync_api import Error as PlaywrightError

from whatsapp_bot_tests.config import Settings, set_settings
from whatsapp_bot_tests.conversation_log import ConversationLogger
from whatsapp_bot_tests.engine import TurnTakingEngine
from whatsapp_bot_tests.errors import SurfaceClosedError, TransientReadError
from whatsapp_bot_tests.output import JSONLWriter
from whatsapp_bot_tests.plugin import StepCollector, set_current_collector
from whatsapp_bot_tests.transport import RawInbound


# === Step collection ===

def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--step-log",
        action="store",
        default=None,
        help="Write the collected step events to this JSONL file",
    )


def pytest_configure(config):
    collector = StepCollector()
    config.pluginmanager.register(collector, "step_collector")
    set_current_collector(collector)


def pytest_unconfigure(config):
    collector = config.pluginmanager.get_plugin("step_collector")
    set_current_collector(None)
    step_log = config.getoption("--step-log")
    if collector and step_log:
        with JSONLWriter(Path(step_log)) as writer:
            writer.write_records(collector.events)


@pytest.fixture
def step_collector(pytestconfig) -> StepCollector:
    return pytestconfig.pluginmanager.get_plugin("step_collector")


# === Fakes ===

class FakeClock:
    """Deterministic replacement for time.monotonic/time.sleep."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


Script = Union[dict, Callable[[str], list]]


class ScriptedChat:
    """Chat surface whose bot answers each payload with timed messages.

    ``script`` maps a payload (or a callable taking the payload) to a list of
    ``(delay_seconds, text)`` pairs measured from the moment of sending.
    """

    def __init__(self, clock: FakeClock, script: Optional[Script] = None, history: tuple = ()):
        self.clock = clock
        self.script = script or {}
        self.inbound: list[tuple[float, str]] = [(float("-inf"), text) for text in history]
        self.sent: list[str] = []
        self.failing_indexes: set[int] = set()
        self.count_failures = 0
        self.send_error: Optional[Exception] = None
        self.closed = False

    def replies_for(self, payload: str) -> list:
        if callable(self.script):
            return self.script(payload)
        return self.script.get(payload, [])

    def deliver(self, text: str, delay: float = 0.0):
        self.inbound.append((self.clock() + delay, text))

    def visible(self) -> list[str]:
        arrived = [(at, text) for at, text in self.inbound if at <= self.clock()]
        return [text for _, text in sorted(arrived, key=lambda item: item[0])]

    # Transport
    def send_text(self, payload: str):
        if self.send_error:
            raise self.send_error
        self.sent.append(payload)
        for delay, text in self.replies_for(payload):
            self.deliver(text, delay)

    # Inbound reader
    def count_inbound(self) -> int:
        if self.closed:
            raise SurfaceClosedError("page closed")
        if self.count_failures:
            self.count_failures -= 1
            raise TransientReadError("message list detached")
        return len(self.visible())

    def read_inbound_at(self, index: int) -> RawInbound:
        if self.closed:
            raise SurfaceClosedError("page closed")
        visible = self.visible()
        if index in self.failing_indexes or index >= len(visible):
            raise TransientReadError(f"bubble {index} went stale")
        text = visible[index]
        return RawInbound(text=text, raw_text=f"{text}\n10:{index % 60:02d} a. m.")


class StubElement:
    def __init__(self, text: str = "", spans: tuple = (), attrs: Optional[dict] = None,
                 visible: bool = True, broken: bool = False):
        self.text = text
        self.spans = list(spans)
        self.attrs = attrs or {}
        self.visible = visible
        self.broken = broken
        self.clicks = 0


class StubLocator:
    """Just enough of playwright's Locator for the page object."""

    def __init__(self, elements: list[StubElement], page: "StubPage"):
        self.elements = elements
        self.page = page

    def _check(self):
        if self.page.broken or self.page.closed or any(e.broken for e in self.elements):
            raise PlaywrightError("Target page, context or browser has been closed")

    def count(self) -> int:
        self._check()
        return len(self.elements)

    def nth(self, index: int) -> "StubLocator":
        return StubLocator(self.elements[index:index + 1], self.page)

    @property
    def first(self) -> "StubLocator":
        return self.nth(0)

    def locator(self, selector: str) -> "StubLocator":
        self._check()
        children = []
        for element in self.elements:
            if selector == self.page.selectors.BUBBLE_TEXT:
                children.extend(StubElement(text=span) for span in element.spans)
            elif selector == self.page.selectors.PRE_PLAIN_TEXT and "data-pre-plain-text" in element.attrs:
                children.append(StubElement(attrs=element.attrs))
        return StubLocator(children, self.page)

    def all_inner_texts(self) -> list[str]:
        self._check()
        return [e.text for e in self.elements]

    def inner_text(self, timeout: Optional[float] = None) -> str:
        self._check()
        if not self.elements:
            raise PlaywrightError(f"Timeout {timeout}ms exceeded")
        return self.elements[0].text

    def get_attribute(self, name: str, timeout: Optional[float] = None) -> Optional[str]:
        self._check()
        return self.elements[0].attrs.get(name) if self.elements else None

    def is_visible(self) -> bool:
        self._check()
        return bool(self.elements) and self.elements[0].visible

    def click(self):
        self._check()
        if not self.elements:
            raise PlaywrightError("Element is not attached to the DOM")
        self.elements[0].clicks += 1
        self.page.clicked.append(self.elements[0])


class StubKeyboard:
    def __init__(self, page: "StubPage"):
        self.page = page
        self.typed: list[tuple[str, Optional[float]]] = []
        self.pressed: list[str] = []

    def type(self, text: str, delay: Optional[float] = None):
        if self.page.broken:
            raise PlaywrightError("Target page, context or browser has been closed")
        self.typed.append((text, delay))

    def press(self, key: str):
        self.pressed.append(key)


class StubPage:
    """Selector -> elements map standing in for a Playwright Page."""

    def __init__(self, selectors):
        self.selectors = selectors
        self.elements: dict[str, list[StubElement]] = {}
        self.keyboard = StubKeyboard(self)
        self.clicked: list[StubElement] = []
        self.broken = False
        self.closed = False

    def is_closed(self) -> bool:
        return self.closed

    def add(self, selector: str, *elements: StubElement) -> "StubPage":
        self.elements.setdefault(selector, []).extend(elements)
        return self

    def locator(self, selector: str) -> StubLocator:
        return StubLocator(self.elements.get(selector, []), self)


# === Fixtures ===

@pytest.fixture
def settings(tmp_path) -> Settings:
    """Default settings with logs under the test's temporary directory."""
    settings = Settings(logs_dir=str(tmp_path / "logs"))
    set_settings(settings)
    yield settings
    set_settings(None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chat(clock) -> ScriptedChat:
    return ScriptedChat(clock)


@pytest.fixture
def conversation_logger(settings) -> ConversationLogger:
    return ConversationLogger(settings.logs_path)


@pytest.fixture
def make_engine(settings, clock, conversation_logger):
    """Build an engine over a scripted chat, sharing the fake clock."""

    def factory(chat: ScriptedChat, **overrides) -> TurnTakingEngine:
        engine_settings = settings.model_copy(update=overrides) if overrides else settings
        return TurnTakingEngine(
            chat,
            chat,
            logger=conversation_logger,
            settings=engine_settings,
            clock=clock,
            sleep=clock.sleep,
        )

    return factory
