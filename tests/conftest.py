"""
Configuración de pytest y fixtures compartidos.
"""

import os

# Settings requiere las credenciales de Supabase; en tests nunca se usan
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-key")

import pytest

from immoalert.analysis import MessageWriter
from immoalert.config import Settings, get_settings
from immoalert.conversation import ConversationEngine
from immoalert.matching import MatchingEngine
from immoalert.models import ConversationState, Criteria, Listing, PropertyType, User
from immoalert.notifications import NotificationDispatcher

from tests.fakes import (
    FakeConversationRepository,
    FakeCriteriaRepository,
    FakeLLMProvider,
    FakeListingRepository,
    FakeMatchRepository,
    FakeNotificationRepository,
    FakeUserRepository,
    FakeWhapiClient,
)


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest.fixture
def user_repo():
    return FakeUserRepository()


@pytest.fixture
def criteria_repo():
    return FakeCriteriaRepository()


@pytest.fixture
def listing_repo():
    return FakeListingRepository()


@pytest.fixture
def match_repo():
    return FakeMatchRepository()


@pytest.fixture
def conversation_repo():
    return FakeConversationRepository()


@pytest.fixture
def notification_repo():
    return FakeNotificationRepository()


@pytest.fixture
def whapi():
    return FakeWhapiClient()


@pytest.fixture
def writer():
    # El LLM falla siempre: se usa el template estático
    return MessageWriter(provider=FakeLLMProvider(error=RuntimeError("sin LLM")))


@pytest.fixture
def dispatcher(
    whapi, writer, user_repo, criteria_repo, listing_repo, match_repo,
    notification_repo, conversation_repo, settings,
):
    return NotificationDispatcher(
        client=whapi,
        writer=writer,
        user_repo=user_repo,
        criteria_repo=criteria_repo,
        listing_repo=listing_repo,
        match_repo=match_repo,
        notification_repo=notification_repo,
        conversation_repo=conversation_repo,
        settings=settings,
    )


@pytest.fixture
def matching_engine(user_repo, criteria_repo, listing_repo, match_repo, dispatcher, settings):
    return MatchingEngine(
        user_repo=user_repo,
        criteria_repo=criteria_repo,
        listing_repo=listing_repo,
        match_repo=match_repo,
        dispatcher=dispatcher,
        settings=settings,
    )


@pytest.fixture
def conversation_engine(whapi, user_repo, criteria_repo, conversation_repo, settings):
    return ConversationEngine(
        client=whapi,
        user_repo=user_repo,
        criteria_repo=criteria_repo,
        conversation_repo=conversation_repo,
        settings=settings,
    )


@pytest.fixture
def make_listing():
    def _make(**overrides) -> Listing:
        data = {
            "post_id": "post-1",
            "original_text": "Maison 4 pièces à louer à Cocody, 250 000 FCFA",
            "price": 250_000,
            "location": "Cocody Riviera",
            "surface": 120,
            "rooms": 4,
            "property_type": PropertyType.HOUSE,
            "confidence_score": 0.9,
            "is_valid": True,
            "ai_enriched": True,
            "images": ["https://img.test/1.jpg", "https://img.test/2.jpg"],
            "post_url": "https://facebook.com/groups/1/posts/1",
        }
        data.update(overrides)
        return Listing(**data)

    return _make


@pytest.fixture
def subscriber(user_repo, criteria_repo):
    """Usuario activo cuyos criterios matchean el listing por defecto (score 100)."""

    def _make(phone: str = "2250700000001", **criteria_overrides) -> User:
        user = user_repo.add(
            User(
                whatsapp_number=phone,
                conversation_state=ConversationState.ACTIVE,
                is_active=True,
            )
        )
        data = {
            "user_id": user.id,
            "property_type": PropertyType.HOUSE,
            "min_price": 150_000,
            "max_price": 300_000,
            "locations": ["Cocody"],
        }
        data.update(criteria_overrides)
        criteria_repo.replace(Criteria(**data))
        return user

    return _make
