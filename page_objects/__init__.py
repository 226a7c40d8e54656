"""Page objects for Playwright WhatsApp Web automation."""

from .whatsapp_page import WhatsAppPageSelectors, WhatsAppPage

__all__ = ["WhatsAppPageSelectors", "WhatsAppPage"]
