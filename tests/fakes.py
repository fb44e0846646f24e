"""
Dobles en memoria de repositorios, cliente de WhatsApp y proveedor LLM.

Los repositorios imitan la semántica de Supabase que el código usa:
insert-if-absent atómico sobre las claves únicas y copias de los modelos
en cada lectura.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Optional

from immoalert.analysis import BaseLLMProvider, LLMRequest, LLMResponse
from immoalert.clients import ScrapedPage, ScrapedPost
from immoalert.exceptions import DeliveryError, ScraperError
from immoalert.models import (
    ConversationState,
    ConversationTurn,
    Criteria,
    FacebookGroup,
    Listing,
    Match,
    Notification,
    User,
)
from immoalert.models.user import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class FakeUserRepository:
    def __init__(self):
        self.users: dict[str, User] = {}

    def add(self, user: User) -> User:
        if user.id is None:
            user = user.model_copy(update={"id": _new_id()})
        self.users[user.id] = user
        return user.model_copy()

    def create(self, user: User) -> User:
        return self.add(user)

    def get_by_id(self, user_id: str) -> Optional[User]:
        user = self.users.get(user_id)
        return user.model_copy() if user else None

    def get_by_whatsapp_number(self, whatsapp_number: str) -> Optional[User]:
        for user in self.users.values():
            if user.whatsapp_number == whatsapp_number:
                return user.model_copy()
        return None

    def get_active_users(self) -> list[User]:
        return [
            user.model_copy()
            for user in self.users.values()
            if user.is_active and user.deleted_at is None
        ]

    def update_state(
        self, user_id: str, state: ConversationState, is_active: Optional[bool] = None
    ) -> Optional[User]:
        user = self.users[user_id]
        user.conversation_state = state
        if is_active is not None:
            user.is_active = is_active
        return user.model_copy()

    def touch(self, user_id: str) -> None:
        self.users[user_id].last_interaction_at = utcnow()

    def soft_delete(self, user_id: str) -> None:
        user = self.users[user_id]
        user.deleted_at = utcnow()
        user.is_active = False


class FakeCriteriaRepository:
    def __init__(self):
        self.criteria: dict[str, Criteria] = {}
        self.replace_calls = 0

    def get_by_user_id(self, user_id: str) -> Optional[Criteria]:
        criteria = self.criteria.get(user_id)
        return criteria.model_copy() if criteria else None

    def create_empty(self, user_id: str) -> Criteria:
        return self.replace(Criteria.empty(user_id))

    def replace(self, criteria: Criteria) -> Criteria:
        self.replace_calls += 1
        self.criteria[criteria.user_id] = criteria.model_copy()
        return criteria.model_copy()


class FakeListingRepository:
    def __init__(self):
        self.listings: dict[str, Listing] = {}
        self.sent_to: list[tuple[str, str]] = []

    def add(self, listing: Listing) -> Listing:
        if listing.id is None:
            listing = listing.model_copy(update={"id": _new_id()})
        self.listings[listing.id] = listing
        return listing.model_copy()

    def create_if_absent(self, listing: Listing) -> Optional[Listing]:
        if any(existing.post_id == listing.post_id for existing in self.listings.values()):
            return None
        return self.add(listing)

    def get_by_id(self, listing_id: str) -> Optional[Listing]:
        listing = self.listings.get(listing_id)
        return listing.model_copy() if listing else None

    def get_by_post_id(self, post_id: str) -> Optional[Listing]:
        for listing in self.listings.values():
            if listing.post_id == post_id:
                return listing.model_copy()
        return None

    def get_unenriched(self, limit: int = 50) -> list[Listing]:
        pending = [
            listing.model_copy()
            for listing in self.listings.values()
            if not listing.ai_enriched and listing.is_valid
        ]
        return pending[:limit]

    def get_eligible(self, limit: int = 100) -> list[Listing]:
        eligible = [
            listing.model_copy()
            for listing in self.listings.values()
            if listing.is_eligible_for_matching
        ]
        return eligible[:limit]

    def save_enrichment(self, listing_id: str, fields: dict) -> Optional[Listing]:
        current = self.listings[listing_id]
        updated = Listing.model_validate(
            {**current.model_dump(), **fields, "ai_enriched": True}
        )
        self.listings[listing_id] = updated
        return updated.model_copy()

    def append_sent_to_user(self, listing_id: str, user_id: str) -> None:
        self.sent_to.append((listing_id, user_id))
        listing = self.listings[listing_id]
        if user_id not in listing.sent_to_users:
            listing.sent_to_users.append(user_id)


class FakeMatchRepository:
    def __init__(self):
        self.matches: dict[str, Match] = {}
        self.create_attempts = 0

    def create_if_absent(self, match: Match) -> Optional[Match]:
        self.create_attempts += 1
        for existing in self.matches.values():
            if (existing.user_id, existing.listing_id) == (match.user_id, match.listing_id):
                return None
        match = match.model_copy(update={"id": _new_id()})
        self.matches[match.id] = match
        return match.model_copy()

    def get_by_id(self, match_id: str) -> Optional[Match]:
        match = self.matches.get(match_id)
        return match.model_copy() if match else None

    def mark_notified(self, match_id: str, notified_at: datetime) -> None:
        match = self.matches[match_id]
        match.is_notified = True
        match.notified_at = notified_at

    def mark_viewed(self, match_id: str) -> Optional[Match]:
        match = self.matches[match_id]
        match.is_viewed = True
        match.viewed_at = utcnow()
        return match.model_copy()

    def mark_interested(self, match_id: str, interested: bool) -> Optional[Match]:
        match = self.matches[match_id]
        match.is_interested = interested
        return match.model_copy()

    def get_user_matches(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[Match]:
        matches = [
            m.model_copy()
            for m in self.matches.values()
            if m.user_id == user_id and not (unread_only and m.is_viewed)
        ]
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:limit]

    def get_stats(self) -> dict:
        matches = list(self.matches.values())
        avg = sum(m.score for m in matches) / len(matches) if matches else 0.0
        return {
            "total_matches": len(matches),
            "notified_matches": sum(m.is_notified for m in matches),
            "viewed_matches": sum(m.is_viewed for m in matches),
            "interested_matches": sum(m.is_interested for m in matches),
            "avg_match_score": round(avg, 2),
        }


class FakeConversationRepository:
    def __init__(self):
        self.turns: list[ConversationTurn] = []

    def create(self, turn: ConversationTurn) -> None:
        self.turns.append(turn)

    def get_history(self, user_id: str, limit: int = 50) -> list[ConversationTurn]:
        turns = [t for t in self.turns if t.user_id == user_id]
        return list(reversed(turns))[:limit]


class FakeNotificationRepository:
    def __init__(self):
        self.notifications: list[Notification] = []

    def create(self, notification: Notification) -> None:
        self.notifications.append(notification)


class FakeGroupRepository:
    def __init__(self, groups: Optional[list[FacebookGroup]] = None):
        self.groups: dict[str, FacebookGroup] = {}
        self.scrapes: list[tuple[str, int]] = []
        for group in groups or []:
            self.upsert(group)

    def get_active(self) -> list[FacebookGroup]:
        return [g.model_copy() for g in self.groups.values() if g.is_active]

    def upsert(self, group: FacebookGroup) -> FacebookGroup:
        if group.id is None:
            existing = self.groups.get(group.group_id)
            group = group.model_copy(update={"id": existing.id if existing else _new_id()})
        self.groups[group.group_id] = group
        return group.model_copy()

    def deactivate(self, group_id: str) -> None:
        self.groups[group_id].is_active = False

    def record_scrape(self, group: FacebookGroup, new_posts: int) -> None:
        self.scrapes.append((group.group_id, new_posts))
        stored = self.groups[group.group_id]
        stored.total_posts += new_posts
        stored.last_scraped_at = utcnow()


class FakeWhapiClient:
    """Registra los envíos; puede fallar textos o imágenes puntuales."""

    def __init__(self, fail_text: bool = False, fail_images: Optional[set[str]] = None):
        self.fail_text = fail_text
        self.fail_images = fail_images or set()
        self.texts: list[tuple[str, str]] = []
        self.images: list[tuple[str, str]] = []

    @property
    def calls(self) -> int:
        return len(self.texts) + len(self.images)

    async def send_text(self, recipient: str, body: str) -> dict:
        if self.fail_text:
            raise DeliveryError(recipient, "Whapi respondió 500")
        self.texts.append((recipient, body))
        return {"sent": True}

    async def send_image(self, recipient: str, url: str, caption: Optional[str] = None) -> dict:
        if url in self.fail_images:
            raise DeliveryError(recipient, "Whapi respondió 500")
        self.images.append((recipient, url))
        return {"sent": True}

    def texts_to(self, recipient: str) -> list[str]:
        return [body for to, body in self.texts if to == recipient]

    async def close(self):
        pass


class FakeLLMProvider(BaseLLMProvider):
    """Devuelve un texto fijo, falla o tarda más que el timeout."""

    provider_name = "fake"

    def __init__(self, text: str = "", error: Optional[Exception] = None, delay: float = 0.0):
        self.text = text
        self.error = error
        self.delay = delay
        self.calls = 0
        self.requests: list[LLMRequest] = []

    async def complete(self, request: LLMRequest) -> LLMResponse:
        self.calls += 1
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return LLMResponse(text=self.text, model="fake-model", provider=self.provider_name)


class FakeScraperClient:
    """Devuelve posts predefinidos por grupo; puede fallar grupos puntuales."""

    def __init__(self, posts_by_group: dict[str, list[ScrapedPost]], failing: Optional[set[str]] = None):
        self.posts_by_group = posts_by_group
        self.failing = failing or set()

    async def fetch_posts(self, group_id: str, cursor: Optional[str] = None) -> ScrapedPage:
        if group_id in self.failing:
            raise ScraperError(f"Scraper respondió 500 para {group_id}")
        return ScrapedPage(posts=self.posts_by_group.get(group_id, []))

    async def get_group_posts(self, group_id: str, max_pages: Optional[int] = None) -> list[ScrapedPost]:
        page = await self.fetch_posts(group_id)
        return page.posts

    async def close(self):
        pass
