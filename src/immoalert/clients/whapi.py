"""
Cliente de Whapi (gateway de WhatsApp).

Envía textos e imágenes y parsea los mensajes entrantes del webhook.
Los errores HTTP y timeouts se convierten en DeliveryError.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Optional

import aiohttp
import structlog

from immoalert.config import get_settings
from immoalert.exceptions import DeliveryError

logger = structlog.get_logger()

WHATSAPP_SUFFIX = "@s.whatsapp.net"


@dataclass
class IncomingMessage:
    """Mensaje de texto recibido por WhatsApp."""

    sender: str
    text: str
    message_id: Optional[str] = None


def format_phone_number(phone: str) -> str:
    """Normaliza un número a formato internacional sin símbolos."""
    cleaned = re.sub(r"\D", "", phone)
    if len(cleaned) == 9 and cleaned.startswith("6"):
        cleaned = "33" + cleaned
    elif len(cleaned) == 10 and cleaned.startswith("0"):
        cleaned = "33" + cleaned[1:]
    return cleaned


def parse_incoming_messages(payload: dict) -> list[IncomingMessage]:
    """
    Extrae los mensajes procesables de un payload de webhook.

    Solo se consideran textos y captions de imágenes; los mensajes
    propios (from_me) se ignoran.
    """
    messages = payload.get("messages") if isinstance(payload, dict) else None
    if not isinstance(messages, list):
        return []

    parsed = []
    for message in messages:
        if not isinstance(message, dict) or message.get("from_me"):
            continue

        sender = (message.get("from") or "").replace(WHATSAPP_SUFFIX, "")
        if message.get("type") == "text":
            text = (message.get("text") or {}).get("body")
        elif message.get("type") == "image":
            text = (message.get("image") or {}).get("caption")
        else:
            text = None

        if sender and text:
            parsed.append(IncomingMessage(sender=sender, text=text, message_id=message.get("id")))

    return parsed


class WhapiClient:
    """Cliente HTTP de Whapi."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.whapi_base_url).rstrip("/")
        self.token = token or settings.whapi_token
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.whapi_timeout_seconds
        )
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _post(self, path: str, recipient: str, payload: dict) -> dict:
        try:
            async with self._get_session().post(path, json=payload) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.error(
                        "Whapi API Error",
                        status=response.status,
                        endpoint=path,
                        body=body[:300],
                    )
                    raise DeliveryError(recipient, f"Whapi respondió {response.status}")
                try:
                    data = await response.json(content_type=None)
                except ValueError:
                    # 2xx sin JSON: el mensaje salió igual
                    logger.warning("Respuesta de Whapi sin JSON", endpoint=path, status=response.status)
                    return {}
                return data if isinstance(data, dict) else {}
        except asyncio.TimeoutError as e:
            raise DeliveryError(recipient, f"Timeout enviando a {path}") from e
        except aiohttp.ClientError as e:
            raise DeliveryError(recipient, f"Error de red: {e}") from e

    async def send_text(self, recipient: str, body: str) -> dict:
        """Envía un mensaje de texto."""
        return await self._post(
            "/messages/text",
            recipient,
            {"to": f"{recipient}{WHATSAPP_SUFFIX}", "body": body},
        )

    async def send_image(
        self, recipient: str, url: str, caption: Optional[str] = None
    ) -> dict:
        """Envía una imagen con caption opcional."""
        return await self._post(
            "/messages/image",
            recipient,
            {"to": f"{recipient}{WHATSAPP_SUFFIX}", "media": url, "caption": caption or ""},
        )
