"""Enumeraciones compartidas por los modelos."""

from enum import Enum


class PropertyType(str, Enum):
    """Tipo de propiedad buscada o publicada."""

    HOUSE = "HOUSE"
    APARTMENT = "APARTMENT"
    BOTH = "BOTH"


class ConversationState(str, Enum):
    """Estado de la conversación de un usuario."""

    IDLE = "IDLE"
    COLLECTING_CRITERIA = "COLLECTING_CRITERIA"
    CONFIRMING = "CONFIRMING"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class Direction(str, Enum):
    """Sentido de un mensaje en el log de conversación."""

    INCOMING = "INCOMING"
    OUTGOING = "OUTGOING"
