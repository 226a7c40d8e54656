"""Page object for an open WhatsApp Web conversation."""
from typing import Optional

from playwright.sync_api import Page, Locator, Error as PlaywrightError

from whatsapp_bot_tests.config import Settings, get_settings
from whatsapp_bot_tests.errors import SurfaceClosedError, TransientReadError, TransportError
from whatsapp_bot_tests.step import info
from whatsapp_bot_tests.text import parse_pre_plain_text
from whatsapp_bot_tests.transport import RawInbound


class WhatsAppPageSelectors:
    """CSS selectors for WhatsApp Web elements."""

    # Messages
    MESSAGE_IN = "div.message-in"
    BUBBLE_TEXT = "span.selectable-text span, span.selectable-text, span[dir='auto'], div[dir='auto']"
    PRE_PLAIN_TEXT = "[data-pre-plain-text]"

    # Input elements
    COMPOSER = "footer div[contenteditable='true'], div[contenteditable='true'][role='textbox']"

    # Chat maintenance, tried in order (WhatsApp changes these often)
    CHAT_MENU_BUTTON = [
        'header div[role="button"]:has(span[data-icon="more-refreshed"])',
        'div[role="button"]:has(span[data-icon="more-refreshed"])',
        'header span[data-icon="more-refreshed"]',
        'span[data-icon="more-refreshed"]',
    ]
    CLEAR_CHAT_OPTION = [
        '[role="menuitem"]:has-text("Vaciar chat")',
        '[role="menuitem"]:has-text("Clear chat")',
        'div[role="button"]:has-text("Vaciar chat")',
        'div[role="button"]:has-text("Clear chat")',
        'li:has-text("Vaciar chat")',
        'li:has-text("Clear chat")',
    ]
    CONFIRM_CLEAR_CHAT = [
        'div[role="button"]:has-text("Vaciar")',
        'div[role="button"]:has-text("Clear")',
        'button:has-text("Vaciar")',
        'button:has-text("Clear")',
        'div[role="button"]:has-text("Confirmar")',
        'div[role="button"]:has-text("Confirm")',
    ]


class WhatsAppPage:
    """Transport and inbound reader over an already opened chat."""

    def __init__(self, page: Page, settings: Optional[Settings] = None):
        self.page = page
        self.settings = settings or get_settings()
        self.selectors = WhatsAppPageSelectors

    # === Locators ===
    @property
    def inbound_messages(self) -> Locator:
        return self.page.locator(self.selectors.MESSAGE_IN)

    @property
    def composer(self) -> Locator:
        return self.page.locator(self.selectors.COMPOSER).first

    # === Transport ===
    def send_text(self, payload: str) -> None:
        if not payload or not payload.strip():
            raise ValueError("Refusing to send an empty message")
        try:
            self.composer.click()
            self.page.keyboard.type(payload, delay=self.settings.typing_delay)
            self.page.keyboard.press("Enter")
        except PlaywrightError as e:
            raise TransportError(f"Could not send '{payload}': {e}") from e

    # === Inbound reader ===
    def count_inbound(self) -> int:
        try:
            return self.inbound_messages.count()
        except PlaywrightError as e:
            raise self._read_error("Could not count inbound messages", e) from e

    def read_inbound_at(self, index: int) -> RawInbound:
        bubble = self.inbound_messages.nth(index)
        try:
            return RawInbound(
                text=self._bubble_text(bubble),
                raw_text=bubble.inner_text(timeout=self.settings.read_timeout).strip(),
                remote_timestamp=self._remote_timestamp(bubble),
            )
        except PlaywrightError as e:
            raise self._read_error(f"Could not read inbound message {index}", e) from e

    def _read_error(self, what: str, error: PlaywrightError) -> Exception:
        if self.page.is_closed():
            return SurfaceClosedError(f"{what}: the page was closed")
        return TransientReadError(f"{what}: {error}")

    def _bubble_text(self, bubble: Locator) -> str:
        # Nested spans repeat their parent's text
        parts: list[str] = []
        for text in bubble.locator(self.selectors.BUBBLE_TEXT).all_inner_texts():
            text = text.strip()
            if text and text not in parts:
                parts.append(text)
        return " ".join(parts)

    def _remote_timestamp(self, bubble: Locator) -> Optional[str]:
        holder = bubble.locator(self.selectors.PRE_PLAIN_TEXT)
        if holder.count() == 0:
            return None
        attribute = holder.first.get_attribute("data-pre-plain-text", timeout=self.settings.read_timeout)
        return parse_pre_plain_text(attribute)

    # === Chat maintenance ===
    def clear_chat(self) -> bool:
        """Empty the chat through the header menu.

        The engine's baseline must be reset afterwards
        (``TurnTakingEngine.reset_history``).
        """
        for selectors in (
            self.selectors.CHAT_MENU_BUTTON,
            self.selectors.CLEAR_CHAT_OPTION,
            self.selectors.CONFIRM_CLEAR_CHAT,
        ):
            if not self._click_first_visible(selectors):
                info(f"Clear chat: nothing visible matches {selectors[0]}", outcome="failed")
                return False
        info("Chat history cleared")
        return True

    def _click_first_visible(self, selectors: list[str]) -> bool:
        for selector in selectors:
            candidate = self.page.locator(selector).first
            try:
                if candidate.is_visible():
                    candidate.click()
                    return True
            except PlaywrightError:
                continue
        return False
