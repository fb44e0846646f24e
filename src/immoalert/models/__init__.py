"""
Modelos de datos del sistema.

- User / Criteria / ConversationTurn: suscriptores y su conversación
- Listing / FacebookGroup: anuncios y grupos monitoreados
- Match / Notification: resultados del matching
"""

from immoalert.models.enums import ConversationState, Direction, PropertyType
from immoalert.models.user import ConversationTurn, Criteria, User
from immoalert.models.listing import FacebookGroup, Listing
from immoalert.models.match import Match, Notification

__all__ = [
    # Enums
    "ConversationState",
    "Direction",
    "PropertyType",
    # Usuarios
    "User",
    "Criteria",
    "ConversationTurn",
    # Listings
    "Listing",
    "FacebookGroup",
    # Matching
    "Match",
    "Notification",
]
