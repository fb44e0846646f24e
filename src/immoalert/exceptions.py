"""Excepciones propias del sistema."""


class ImmoAlertError(Exception):
    """Base de todas las excepciones de ImmoAlert."""


class DeliveryError(ImmoAlertError):
    """Falló una llamada de envío al canal de chat (error HTTP o timeout)."""

    def __init__(self, recipient: str, message: str):
        self.recipient = recipient
        super().__init__(f"{message} (destinatario: {recipient})")


class ScraperError(ImmoAlertError):
    """Falló la descarga de una página de posts."""


class ExtractionError(ImmoAlertError):
    """Falló la llamada al LLM de extracción."""
