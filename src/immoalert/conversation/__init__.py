"""
Conversación con los usuarios por WhatsApp.

- engine: máquina de estados y recolección de criterios
- parsers: interpretación del texto libre
- messages: textos del bot
"""

from immoalert.conversation.engine import CollectionCursor, ConversationEngine
from immoalert.conversation.locks import KeyedLock

__all__ = ["ConversationEngine", "CollectionCursor", "KeyedLock"]
