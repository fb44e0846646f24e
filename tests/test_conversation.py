"""
Tests del motor de conversación (máquina de estados por usuario).
"""

import asyncio

import pytest

from immoalert.conversation import messages
from immoalert.models import ConversationState, Direction, PropertyType, User

PHONE = "2250700000042"


async def _say(engine, *texts, phone=PHONE):
    for text in texts:
        await engine.handle_incoming_message(phone, text)


def _user(user_repo, phone=PHONE) -> User:
    return user_repo.get_by_whatsapp_number(phone)


class TestNewUser:

    async def test_first_contact_creates_user_and_starts_collection(
        self, conversation_engine, user_repo, criteria_repo, conversation_repo, whapi
    ):
        await conversation_engine.handle_incoming_message(PHONE, "Bonjour", message_id="wamid-1")

        user = _user(user_repo)
        assert user.conversation_state == ConversationState.COLLECTING_CRITERIA
        assert user.is_active is False
        assert criteria_repo.get_by_user_id(user.id) is not None
        assert whapi.texts_to(PHONE) == [messages.WELCOME]
        assert conversation_engine.get_cursor(user.id).step == 1

        incoming = conversation_repo.turns[0]
        assert incoming.direction == Direction.INCOMING
        assert incoming.message_id == "wamid-1"
        assert conversation_repo.turns[1].direction == Direction.OUTGOING


class TestCollection:

    async def test_full_flow_reaches_confirming(self, conversation_engine, user_repo, criteria_repo):
        await _say(conversation_engine, "Bonjour")
        await _say(conversation_engine, "maison", "250000", "Lyon", "pas important", "pas important")

        user = _user(user_repo)
        assert user.conversation_state == ConversationState.CONFIRMING

        criteria = criteria_repo.get_by_user_id(user.id)
        assert criteria.property_type == PropertyType.HOUSE
        assert criteria.max_price == 250_000
        assert criteria.min_price == 150_000
        assert criteria.locations == ["Lyon"]
        assert criteria.min_rooms is None
        assert criteria.min_surface is None
        assert conversation_engine.get_cursor(user.id) is None

    async def test_oui_activates(self, conversation_engine, user_repo, whapi):
        await _say(conversation_engine, "Bonjour", "maison", "250000", "Lyon", "pas important", "pas important")

        await _say(conversation_engine, "oui")

        user = _user(user_repo)
        assert user.conversation_state == ConversationState.ACTIVE
        assert user.is_active is True
        assert whapi.texts_to(PHONE)[-1] == messages.CONFIRMED

    async def test_rooms_and_surface_are_saved(self, conversation_engine, user_repo, criteria_repo):
        await _say(conversation_engine, "Bonjour", "appartement", "max 400000", "Cocody, Plateau", "3 pièces", "60m2")

        criteria = criteria_repo.get_by_user_id(_user(user_repo).id)
        assert criteria.property_type == PropertyType.APARTMENT
        assert (criteria.min_price, criteria.max_price) == (0, 400_000)
        assert criteria.locations == ["Cocody", "Plateau"]
        assert criteria.min_rooms == 3
        assert criteria.min_surface == 60

    @pytest.mark.parametrize(
        "answers,step,reprompt",
        [
            (["un château"], 1, messages.REPROMPT_PROPERTY_TYPE),
            (["maison", "pas cher"], 2, messages.REPROMPT_PRICE),
            (["maison", "250000", "a, b"], 3, messages.REPROMPT_LOCATIONS),
            (["maison", "250000", "Lyon", "beaucoup"], 4, messages.REPROMPT_ROOMS),
            (["maison", "250000", "Lyon", "2", "grande"], 5, messages.REPROMPT_SURFACE),
        ],
    )
    async def test_ambiguous_input_reprompts_same_step(
        self, conversation_engine, user_repo, criteria_repo, whapi, answers, step, reprompt
    ):
        await _say(conversation_engine, "Bonjour", *answers)

        user = _user(user_repo)
        assert user.conversation_state == ConversationState.COLLECTING_CRITERIA
        assert conversation_engine.get_cursor(user.id).step == step
        assert whapi.texts_to(PHONE)[-1] == reprompt
        # Solo los criterios vacíos del alta
        assert criteria_repo.replace_calls == 1

    async def test_lost_cursor_restarts_at_step_one(self, conversation_engine, user_repo, whapi):
        await _say(conversation_engine, "Bonjour", "maison")
        user = _user(user_repo)
        conversation_engine._cursors.clear()

        await _say(conversation_engine, "250000")

        assert conversation_engine.get_cursor(user.id).step == 1
        assert whapi.texts_to(PHONE)[-1] == messages.REPROMPT_PROPERTY_TYPE


class TestConfirming:

    async def _to_confirming(self, engine):
        await _say(engine, "Bonjour", "maison", "250000", "Lyon", "pas important", "pas important")

    @pytest.mark.parametrize("answer", ["non", "Modifier", "change"])
    async def test_negative_restarts_collection(self, conversation_engine, user_repo, whapi, answer):
        await self._to_confirming(conversation_engine)

        await _say(conversation_engine, answer)

        user = _user(user_repo)
        assert user.conversation_state == ConversationState.COLLECTING_CRITERIA
        assert user.is_active is False
        assert conversation_engine.get_cursor(user.id).step == 1
        assert whapi.texts_to(PHONE)[-1] == messages.RESTART_COLLECTION

    async def test_other_text_reprompts(self, conversation_engine, user_repo, whapi):
        await self._to_confirming(conversation_engine)

        await _say(conversation_engine, "peut-être")

        assert _user(user_repo).conversation_state == ConversationState.CONFIRMING
        assert whapi.texts_to(PHONE)[-1] == messages.REPROMPT_CONFIRMATION


class TestCommands:

    @pytest.fixture
    def existing_user(self, user_repo, criteria_repo):
        def _make(state: ConversationState, is_active: bool = False) -> User:
            user = user_repo.add(
                User(whatsapp_number=PHONE, conversation_state=state, is_active=is_active)
            )
            criteria_repo.create_empty(user.id)
            return user

        return _make

    @pytest.mark.parametrize("state", [ConversationState.IDLE, ConversationState.ACTIVE])
    async def test_change_restarts_collection(self, conversation_engine, user_repo, existing_user, state):
        existing_user(state)

        await _say(conversation_engine, "critères")

        assert _user(user_repo).conversation_state == ConversationState.COLLECTING_CRITERIA

    @pytest.mark.parametrize("state", [ConversationState.IDLE, ConversationState.ACTIVE])
    async def test_status_and_help_do_not_transition(
        self, conversation_engine, user_repo, whapi, existing_user, state
    ):
        existing_user(state)

        await _say(conversation_engine, "STATUT", "aide")

        assert _user(user_repo).conversation_state == state
        status, help_text = whapi.texts_to(PHONE)
        assert "📋 *Vos critères actuels :*" in status
        assert help_text == messages.HELP

    async def test_pause_keeps_is_active(self, conversation_engine, user_repo, whapi, existing_user):
        existing_user(ConversationState.ACTIVE, is_active=True)

        await _say(conversation_engine, "pause")

        user = _user(user_repo)
        assert user.conversation_state == ConversationState.PAUSED
        assert user.is_active is True
        assert whapi.texts_to(PHONE)[-1] == messages.PAUSED

    async def test_unknown_text(self, conversation_engine, user_repo, whapi, existing_user):
        existing_user(ConversationState.IDLE)
        await _say(conversation_engine, "salut")
        assert whapi.texts_to(PHONE)[-1] == messages.MAIN_MENU

        user_repo.users[_user(user_repo).id].conversation_state = ConversationState.ACTIVE
        await _say(conversation_engine, "merci")
        assert whapi.texts_to(PHONE)[-1] == messages.ACKNOWLEDGED
        assert _user(user_repo).conversation_state == ConversationState.ACTIVE

    @pytest.mark.parametrize("word", ["reprendre", "Resume", "start"])
    async def test_resume_from_paused(self, conversation_engine, user_repo, whapi, existing_user, word):
        existing_user(ConversationState.PAUSED)

        await _say(conversation_engine, word)

        user = _user(user_repo)
        assert user.conversation_state == ConversationState.ACTIVE
        assert user.is_active is True
        assert whapi.texts_to(PHONE)[-1] == messages.RESUMED

    async def test_paused_reminder(self, conversation_engine, user_repo, whapi, existing_user):
        existing_user(ConversationState.PAUSED)

        await _say(conversation_engine, "modifier")

        assert _user(user_repo).conversation_state == ConversationState.PAUSED
        assert whapi.texts_to(PHONE)[-1] == messages.PAUSED_REMINDER


class TestDelivery:

    async def test_delivery_failure_is_logged_not_persisted(
        self, conversation_engine, user_repo, conversation_repo, whapi
    ):
        whapi.fail_text = True

        await _say(conversation_engine, "Bonjour")

        # El alta y el mensaje entrante se guardan igual
        assert _user(user_repo).conversation_state == ConversationState.COLLECTING_CRITERIA
        assert [t.direction for t in conversation_repo.turns] == [Direction.INCOMING]

    async def test_history_is_newest_first(self, conversation_engine, user_repo):
        await _say(conversation_engine, "Bonjour", "maison")

        history = conversation_engine.get_conversation_history(_user(user_repo).id)

        assert history[0].direction == Direction.OUTGOING
        assert history[-1].content == "Bonjour"


class TestSerialization:

    async def test_messages_from_same_user_are_processed_in_order(
        self, conversation_engine, user_repo, criteria_repo, whapi
    ):
        original_send = whapi.send_text

        async def slow_send(recipient, body):
            # Cede el loop en cada envío para provocar intercalado
            await asyncio.sleep(0.01)
            return await original_send(recipient, body)

        whapi.send_text = slow_send

        answers = ["Bonjour", "maison", "250000", "Lyon", "pas important", "pas important"]
        await asyncio.gather(
            *(conversation_engine.handle_incoming_message(PHONE, text) for text in answers)
        )

        user = _user(user_repo)
        assert len(user_repo.users) == 1
        assert user.conversation_state == ConversationState.CONFIRMING
        assert criteria_repo.get_by_user_id(user.id).locations == ["Lyon"]
        assert len(conversation_engine._locks) == 0
