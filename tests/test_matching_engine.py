"""
Tests del motor de matching con repositorios en memoria.
"""

import pytest

from immoalert.models import ConversationState, PropertyType
from immoalert.notifications import NotificationOutcome


class TestFindMatches:

    def test_candidates_sorted_by_score(self, matching_engine, listing_repo, subscriber, make_listing):
        subscriber(phone="1", property_type=PropertyType.HOUSE)
        # Sin zona: pierde los 25 puntos de ubicación
        subscriber(phone="2", locations=[])
        listing = listing_repo.add(make_listing())

        candidates = matching_engine.find_matches_for_listing(listing)

        assert [c.user.whatsapp_number for c in candidates] == ["1", "2"]
        assert candidates[0].score == 100
        assert candidates[1].score == 75

    def test_below_threshold_is_dropped(self, matching_engine, listing_repo, subscriber, make_listing):
        # Tipo y zona distintos: 30 + 20 + 15 = 65
        subscriber(phone="1", property_type=PropertyType.APARTMENT, locations=["Plateau"])
        listing = listing_repo.add(make_listing())

        assert matching_engine.find_matches_for_listing(listing)[0].score == 65

        # Zona distinta y precio lejos del rango: 10 + 20 + 15 = 45
        subscriber(phone="2", locations=["Plateau"], min_price=500_000, max_price=900_000)
        numbers = [c.user.whatsapp_number for c in matching_engine.find_matches_for_listing(listing)]
        assert "2" not in numbers

    def test_users_without_criteria_are_skipped(
        self, matching_engine, listing_repo, criteria_repo, subscriber, make_listing
    ):
        user = subscriber()
        del criteria_repo.criteria[user.id]
        listing = listing_repo.add(make_listing())

        assert matching_engine.find_matches_for_listing(listing) == []

    def test_inactive_users_are_ignored(
        self, matching_engine, listing_repo, user_repo, subscriber, make_listing
    ):
        user = subscriber()
        user_repo.users[user.id].is_active = False
        listing = listing_repo.add(make_listing())

        assert matching_engine.find_matches_for_listing(listing) == []


class TestProcessListing:

    async def test_creates_match_and_notifies(
        self, matching_engine, listing_repo, match_repo, whapi, subscriber, make_listing
    ):
        user = subscriber()
        listing = listing_repo.add(make_listing())

        notified = await matching_engine.process_listing(listing)

        assert notified == 1
        assert len(match_repo.matches) == 1
        match = next(iter(match_repo.matches.values()))
        assert match.user_id == user.id
        assert match.is_notified
        assert listing_repo.listings[listing.id].sent_to_users == [user.id]
        assert len(whapi.texts) == 1

    async def test_rerun_is_idempotent(
        self, matching_engine, listing_repo, match_repo, whapi, subscriber, make_listing
    ):
        subscriber()
        listing = listing_repo.add(make_listing())

        first = await matching_engine.process_listing(listing)
        calls_after_first = whapi.calls
        second = await matching_engine.process_listing(listing)

        assert first == 1
        assert second == 0
        assert len(match_repo.matches) == 1
        assert whapi.calls == calls_after_first
        assert len(listing_repo.sent_to) == 1

    @pytest.mark.parametrize(
        "flags",
        [{"is_valid": False}, {"ai_enriched": False}],
    )
    async def test_ineligible_listing_never_matches(
        self, matching_engine, listing_repo, match_repo, subscriber, make_listing, flags
    ):
        subscriber()
        listing = listing_repo.add(make_listing(**flags))

        assert await matching_engine.process_listing(listing) == 0
        assert match_repo.create_attempts == 0
        assert match_repo.matches == {}

    async def test_match_below_notify_threshold_is_not_sent(
        self, matching_engine, listing_repo, match_repo, whapi, subscriber, make_listing
    ):
        # 65 puntos: se crea el match pero no se notifica
        subscriber(property_type=PropertyType.APARTMENT, locations=["Plateau"])
        listing = listing_repo.add(make_listing())

        assert await matching_engine.process_listing(listing) == 0
        assert len(match_repo.matches) == 1
        assert not next(iter(match_repo.matches.values())).is_notified
        assert whapi.calls == 0

    async def test_failed_delivery_keeps_match(
        self, matching_engine, listing_repo, match_repo, whapi, subscriber, make_listing
    ):
        whapi.fail_text = True
        subscriber()
        listing = listing_repo.add(make_listing())

        assert await matching_engine.process_listing(listing) == 0
        match = next(iter(match_repo.matches.values()))
        assert not match.is_notified

        # La siguiente pasada no reintenta: el par ya tiene match
        whapi.fail_text = False
        assert await matching_engine.process_listing(listing) == 0
        assert whapi.calls == 0

    async def test_sent_to_users_failure_still_notifies(
        self, matching_engine, listing_repo, match_repo, whapi, subscriber, make_listing, monkeypatch
    ):
        user = subscriber()
        listing = listing_repo.add(make_listing())

        def broken_append(listing_id, user_id):
            raise RuntimeError("RPC append_sent_to_user falló")

        monkeypatch.setattr(listing_repo, "append_sent_to_user", broken_append)

        assert await matching_engine.process_listing(listing) == 1
        match = next(iter(match_repo.matches.values()))
        assert match.is_notified
        assert len(whapi.texts_to(user.whatsapp_number)) == 1

    async def test_dispatcher_exception_does_not_abort_other_users(
        self, matching_engine, listing_repo, match_repo, subscriber, make_listing, monkeypatch
    ):
        subscriber(phone="1")
        subscriber(phone="2")
        listing = listing_repo.add(make_listing())

        calls = []

        async def flaky_notify(match):
            calls.append(match.user_id)
            if len(calls) == 1:
                raise RuntimeError("boom")
            return NotificationOutcome.SENT

        monkeypatch.setattr(matching_engine.dispatcher, "notify", flaky_notify)

        assert await matching_engine.process_listing(listing) == 1
        assert len(match_repo.matches) == 2

    async def test_paused_user_gets_match_but_no_notification(
        self, matching_engine, listing_repo, user_repo, match_repo, whapi, subscriber, make_listing
    ):
        user = subscriber()
        user_repo.users[user.id].conversation_state = ConversationState.PAUSED
        listing = listing_repo.add(make_listing())

        assert await matching_engine.process_listing(listing) == 0
        assert len(match_repo.matches) == 1
        assert whapi.calls == 0


class TestProcessAll:

    async def test_aggregates_stats(self, matching_engine, listing_repo, subscriber, make_listing):
        subscriber()
        listing_repo.add(make_listing(post_id="a"))
        listing_repo.add(make_listing(post_id="b"))
        listing_repo.add(make_listing(post_id="c", ai_enriched=False))

        stats = await matching_engine.process_all()

        assert stats.as_dict() == {"processed": 2, "matched": 2, "notified": 2, "errors": 0}

    async def test_respects_batch_size(self, matching_engine, listing_repo, subscriber, make_listing):
        matching_engine.settings = matching_engine.settings.model_copy(update={"matching_batch_size": 1})
        subscriber()
        listing_repo.add(make_listing(post_id="a"))
        listing_repo.add(make_listing(post_id="b"))

        stats = await matching_engine.process_all()

        assert stats.processed == 1


class TestUserMatches:

    async def test_viewed_and_interested(self, matching_engine, listing_repo, subscriber, make_listing):
        user = subscriber()
        await matching_engine.process_listing(listing_repo.add(make_listing()))

        [match] = matching_engine.get_user_matches(user.id)
        matching_engine.mark_as_viewed(match.id)
        matching_engine.mark_as_interested(match.id)

        assert matching_engine.get_user_matches(user.id, unread_only=True) == []
        stats = matching_engine.get_stats()
        assert stats["total_matches"] == 1
        assert stats["viewed_matches"] == 1
        assert stats["interested_matches"] == 1
        assert stats["avg_match_score"] == 100
