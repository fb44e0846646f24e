"""
Motor de conversación por WhatsApp.

Máquina de estados por usuario:
IDLE -> COLLECTING_CRITERIA -> CONFIRMING -> ACTIVE <-> PAUSED

La recolección de criterios usa un cursor en memoria por usuario (paso
1..5 y borrador). No se persiste: si el proceso se reinicia a mitad de la
recolección, el usuario retoma desde el paso 1. Los mensajes de un mismo
usuario se procesan de a uno (KeyedLock); usuarios distintos en paralelo.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from immoalert.clients import WhapiClient
from immoalert.config import Settings, get_settings
from immoalert.conversation import messages
from immoalert.conversation.locks import KeyedLock
from immoalert.conversation.parsers import (
    CHANGE_COMMANDS,
    CONFIRM_COMMANDS,
    HELP_COMMANDS,
    PAUSE_COMMANDS,
    REJECT_COMMANDS,
    RESUME_COMMANDS,
    SKIP,
    STATUS_COMMANDS,
    normalize_command,
    parse_locations,
    parse_optional_int,
    parse_price_range,
    parse_property_type,
)
from immoalert.database import ConversationRepository, CriteriaRepository, UserRepository
from immoalert.exceptions import DeliveryError
from immoalert.models import (
    ConversationState,
    ConversationTurn,
    Criteria,
    Direction,
    User,
)

logger = structlog.get_logger()

# Pasos de la recolección de criterios
(
    STEP_PROPERTY_TYPE,
    STEP_PRICE,
    STEP_LOCATIONS,
    STEP_ROOMS,
    STEP_SURFACE,
) = range(1, 6)


@dataclass
class CollectionCursor:
    """Progreso de la recolección de criterios de un usuario."""

    step: int = STEP_PROPERTY_TYPE
    draft: dict[str, Any] = field(default_factory=dict)


class ConversationEngine:
    """Procesa los mensajes entrantes y responde según el estado del usuario."""

    def __init__(
        self,
        client: Optional[WhapiClient] = None,
        user_repo: Optional[UserRepository] = None,
        criteria_repo: Optional[CriteriaRepository] = None,
        conversation_repo: Optional[ConversationRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or WhapiClient()
        self.user_repo = user_repo or UserRepository()
        self.criteria_repo = criteria_repo or CriteriaRepository()
        self.conversation_repo = conversation_repo or ConversationRepository()
        self._locks = KeyedLock()
        self._cursors: dict[str, CollectionCursor] = {}

        self._handlers = {
            ConversationState.IDLE: self._handle_idle,
            ConversationState.COLLECTING_CRITERIA: self._handle_collection,
            ConversationState.CONFIRMING: self._handle_confirmation,
            ConversationState.ACTIVE: self._handle_active,
            ConversationState.PAUSED: self._handle_paused,
        }

    def get_cursor(self, user_id: str) -> Optional[CollectionCursor]:
        return self._cursors.get(user_id)

    async def handle_incoming_message(
        self, phone: str, text: str, message_id: Optional[str] = None
    ) -> None:
        """
        Punto de entrada del webhook.

        Args:
            phone: Número de WhatsApp del remitente
            text: Texto del mensaje
            message_id: ID del mensaje en WhatsApp
        """
        async with self._locks.acquire(phone):
            await self._process(phone, text, message_id)

    async def _process(self, phone: str, text: str, message_id: Optional[str]) -> None:
        user = self.user_repo.get_by_whatsapp_number(phone)

        if user is None:
            user = self._create_user(phone)
            self._log_incoming(user, text, message_id)
            await self._send(user, messages.WELCOME)
            self._set_state(user, ConversationState.COLLECTING_CRITERIA)
            self._cursors[user.id] = CollectionCursor()
            return

        if user.is_deleted:
            logger.info("Mensaje de usuario dado de baja ignorado", user_id=user.id)
            return

        self.user_repo.touch(user.id)
        self._log_incoming(user, text, message_id)

        handler = self._handlers[user.conversation_state]
        await handler(user, text)

    def _create_user(self, phone: str) -> User:
        user = self.user_repo.create(User(whatsapp_number=phone))
        self.criteria_repo.create_empty(user.id)
        logger.info("Nuevo usuario", user_id=user.id)
        return user

    def _log_incoming(self, user: User, text: str, message_id: Optional[str]) -> None:
        self.conversation_repo.create(
            ConversationTurn(
                user_id=user.id,
                direction=Direction.INCOMING,
                content=text,
                message_id=message_id,
            )
        )

    async def _send(self, user: User, body: str) -> None:
        """Envía y registra el mensaje saliente; un fallo de envío solo se loguea."""
        try:
            await self.client.send_text(user.whatsapp_number, body)
        except DeliveryError as e:
            logger.error("Error enviando mensaje", user_id=user.id, error=str(e))
            return

        self.conversation_repo.create(
            ConversationTurn(user_id=user.id, direction=Direction.OUTGOING, content=body)
        )

    def _set_state(
        self, user: User, state: ConversationState, is_active: Optional[bool] = None
    ) -> None:
        self.user_repo.update_state(user.id, state, is_active=is_active)
        user.conversation_state = state
        if is_active is not None:
            user.is_active = is_active
        logger.debug("Cambio de estado", user_id=user.id, state=state.value)

    async def _start_collection(self, user: User) -> None:
        self._set_state(user, ConversationState.COLLECTING_CRITERIA)
        self._cursors[user.id] = CollectionCursor()
        await self._send(user, messages.RESTART_COLLECTION)

    async def _send_status(self, user: User) -> None:
        criteria = self.criteria_repo.get_by_user_id(user.id)
        await self._send(
            user,
            messages.render_status(
                criteria, user.conversation_state, self.settings.currency_label
            ),
        )

    async def _pause(self, user: User) -> None:
        self._set_state(user, ConversationState.PAUSED)
        await self._send(user, messages.PAUSED)

    # Comandos compartidos por IDLE y ACTIVE
    async def _handle_command(self, user: User, text: str) -> bool:
        command = normalize_command(text)
        if command in CHANGE_COMMANDS:
            await self._start_collection(user)
        elif command in STATUS_COMMANDS:
            await self._send_status(user)
        elif command in HELP_COMMANDS:
            await self._send(user, messages.HELP)
        elif command in PAUSE_COMMANDS:
            await self._pause(user)
        else:
            return False
        return True

    async def _handle_idle(self, user: User, text: str) -> None:
        if not await self._handle_command(user, text):
            await self._send(user, messages.MAIN_MENU)

    async def _handle_active(self, user: User, text: str) -> None:
        if not await self._handle_command(user, text):
            await self._send(user, messages.ACKNOWLEDGED)

    async def _handle_paused(self, user: User, text: str) -> None:
        command = normalize_command(text)
        if command in RESUME_COMMANDS:
            self._set_state(user, ConversationState.ACTIVE, is_active=True)
            await self._send(user, messages.RESUMED)
        elif command in STATUS_COMMANDS:
            await self._send_status(user)
        else:
            await self._send(user, messages.PAUSED_REMINDER)

    async def _handle_confirmation(self, user: User, text: str) -> None:
        command = normalize_command(text)
        if command in CONFIRM_COMMANDS:
            self._set_state(user, ConversationState.ACTIVE, is_active=True)
            await self._send(user, messages.CONFIRMED)
            logger.info("Criterios confirmados", user_id=user.id)
        elif command in REJECT_COMMANDS:
            await self._start_collection(user)
        else:
            await self._send(user, messages.REPROMPT_CONFIRMATION)

    async def _handle_collection(self, user: User, text: str) -> None:
        cursor = self._cursors.get(user.id)
        if cursor is None:
            # Cursor perdido (reinicio del proceso): se retoma desde el paso 1
            cursor = self._cursors[user.id] = CollectionCursor()

        if cursor.step == STEP_PROPERTY_TYPE:
            property_type = parse_property_type(text)
            if property_type is None:
                await self._send(user, messages.REPROMPT_PROPERTY_TYPE)
                return
            cursor.draft["property_type"] = property_type
            cursor.step = STEP_PRICE
            await self._send(
                user, messages.ASK_PRICE.format(currency=self.settings.currency_label)
            )

        elif cursor.step == STEP_PRICE:
            price_range = parse_price_range(text)
            if price_range is None:
                await self._send(user, messages.REPROMPT_PRICE)
                return
            cursor.draft["min_price"], cursor.draft["max_price"] = price_range
            cursor.step = STEP_LOCATIONS
            await self._send(user, messages.ASK_LOCATIONS)

        elif cursor.step == STEP_LOCATIONS:
            locations = parse_locations(text)
            if not locations:
                await self._send(user, messages.REPROMPT_LOCATIONS)
                return
            cursor.draft["locations"] = locations
            cursor.step = STEP_ROOMS
            await self._send(user, messages.ASK_ROOMS)

        elif cursor.step == STEP_ROOMS:
            rooms = parse_optional_int(text)
            if rooms is None:
                await self._send(user, messages.REPROMPT_ROOMS)
                return
            cursor.draft["min_rooms"] = None if rooms is SKIP else rooms
            cursor.step = STEP_SURFACE
            await self._send(user, messages.ASK_SURFACE)

        elif cursor.step == STEP_SURFACE:
            surface = parse_optional_int(text)
            if surface is None:
                await self._send(user, messages.REPROMPT_SURFACE)
                return
            cursor.draft["min_surface"] = None if surface is SKIP else surface
            await self._finish_collection(user, cursor)

    async def _finish_collection(self, user: User, cursor: CollectionCursor) -> None:
        criteria = self.criteria_repo.replace(Criteria(user_id=user.id, **cursor.draft))
        del self._cursors[user.id]

        await self._send(
            user, messages.render_summary(criteria, self.settings.currency_label)
        )
        self._set_state(user, ConversationState.CONFIRMING)

    def get_conversation_history(self, user_id: str, limit: int = 50) -> list[ConversationTurn]:
        """Historial de mensajes del usuario, del más reciente al más antiguo."""
        return self.conversation_repo.get_history(user_id, limit=limit)
