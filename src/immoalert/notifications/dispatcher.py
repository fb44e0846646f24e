"""
Dispatcher de notificaciones de matches por WhatsApp.

notify() nunca deja escapar errores de envío: un fallo del texto
principal devuelve FAILED y deja el match sin notificar; los fallos de
imágenes se registran y no afectan el resultado.
"""

from enum import Enum
from typing import Optional

import structlog

from immoalert.analysis import MessageWriter
from immoalert.clients import WhapiClient
from immoalert.config import Settings, get_settings
from immoalert.database import (
    ConversationRepository,
    CriteriaRepository,
    ListingRepository,
    MatchRepository,
    NotificationRepository,
    UserRepository,
)
from immoalert.exceptions import DeliveryError
from immoalert.models import (
    ConversationState,
    ConversationTurn,
    Direction,
    Match,
    Notification,
)
from immoalert.models.user import utcnow

logger = structlog.get_logger()

NOTIFICATION_TITLE = "Nouvelle annonce trouvée"
NOTIFICATION_MESSAGE_LENGTH = 200


class NotificationOutcome(str, Enum):
    """Resultado de notify()."""

    SENT = "SENT"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


class NotificationDispatcher:
    """Envía la notificación de un match: texto y hasta N imágenes."""

    def __init__(
        self,
        client: Optional[WhapiClient] = None,
        writer: Optional[MessageWriter] = None,
        user_repo: Optional[UserRepository] = None,
        criteria_repo: Optional[CriteriaRepository] = None,
        listing_repo: Optional[ListingRepository] = None,
        match_repo: Optional[MatchRepository] = None,
        notification_repo: Optional[NotificationRepository] = None,
        conversation_repo: Optional[ConversationRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or WhapiClient()
        self.writer = writer or MessageWriter()
        self.user_repo = user_repo or UserRepository()
        self.criteria_repo = criteria_repo or CriteriaRepository()
        self.listing_repo = listing_repo or ListingRepository()
        self.match_repo = match_repo or MatchRepository()
        self.notification_repo = notification_repo or NotificationRepository()
        self.conversation_repo = conversation_repo or ConversationRepository()

    async def notify(self, match: Match) -> NotificationOutcome:
        """
        Notifica un match al usuario.

        Args:
            match: Match persistido

        Returns:
            SENT si el texto principal se entregó, SKIPPED si no
            corresponde notificar, FAILED si falló el envío del texto
        """
        if match.is_notified:
            return NotificationOutcome.SKIPPED

        user = self.user_repo.get_by_id(match.user_id)
        if user is None or user.is_deleted:
            logger.warning("Usuario inexistente o dado de baja", user_id=match.user_id)
            return NotificationOutcome.SKIPPED
        if user.conversation_state == ConversationState.PAUSED:
            logger.info("Alertas pausadas, no se notifica", user_id=user.id, match_id=match.id)
            return NotificationOutcome.SKIPPED

        listing = self.listing_repo.get_by_id(match.listing_id)
        if listing is None:
            logger.warning("Listing inexistente", listing_id=match.listing_id)
            return NotificationOutcome.SKIPPED

        criteria = self.criteria_repo.get_by_user_id(user.id)
        text = await self.writer.generate(listing, criteria, reasons=match.reasons)

        try:
            await self.client.send_text(user.whatsapp_number, text)
        except DeliveryError as e:
            logger.error(
                "Error enviando notificación",
                match_id=match.id,
                user_id=user.id,
                error=str(e),
            )
            return NotificationOutcome.FAILED

        notified_at = utcnow()
        self.match_repo.mark_notified(match.id, notified_at)
        match.is_notified = True
        match.notified_at = notified_at

        self._record(match, text)

        for url in listing.images[: self.settings.max_images_per_notification]:
            try:
                await self.client.send_image(user.whatsapp_number, url)
            except DeliveryError as e:
                logger.warning(
                    "Error enviando imagen",
                    match_id=match.id,
                    image=url,
                    error=str(e),
                )

        logger.info("Notificación enviada", match_id=match.id, user_id=user.id, score=match.score)
        return NotificationOutcome.SENT

    def _record(self, match: Match, text: str) -> None:
        """Registra la notificación y el mensaje saliente (best-effort)."""
        try:
            self.notification_repo.create(
                Notification(
                    user_id=match.user_id,
                    title=NOTIFICATION_TITLE,
                    message=text[:NOTIFICATION_MESSAGE_LENGTH],
                    related_entity_id=match.listing_id,
                    related_entity_type="listing",
                )
            )
            self.conversation_repo.create(
                ConversationTurn(
                    user_id=match.user_id,
                    direction=Direction.OUTGOING,
                    content=text,
                )
            )
        except Exception as e:
            logger.error("Error registrando notificación", match_id=match.id, error=str(e))
