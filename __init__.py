"""
WhatsApp bot tests - turn-taking harness for chat bots behind WhatsApp Web.

This package provides:
- A turn-taking engine that decides when a (possibly fragmented) bot reply is complete
- Automatic answers to "Opciones:" menu prompts
- Early exit on "already exists" replies
- A per-session conversation log

Usage:
    engine = TurnTakingEngine.from_page(WhatsAppPage(page))
    reply = engine.send_and_wait("crear cultivo")
"""

__version__ = "1.0.0"
