"""
Clientes de servicios externos.

- Whapi: envío y recepción de mensajes de WhatsApp
- Facebook: scraper de posts de grupos (RapidAPI)
"""

from immoalert.clients.whapi import (
    IncomingMessage,
    WhapiClient,
    format_phone_number,
    parse_incoming_messages,
)
from immoalert.clients.facebook import (
    FacebookScraperClient,
    ScrapedPage,
    ScrapedPost,
    extract_images,
    parse_posts,
)

__all__ = [
    "WhapiClient",
    "IncomingMessage",
    "format_phone_number",
    "parse_incoming_messages",
    "FacebookScraperClient",
    "ScrapedPage",
    "ScrapedPost",
    "extract_images",
    "parse_posts",
]
