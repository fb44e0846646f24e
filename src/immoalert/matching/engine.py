"""
Motor de matching entre listings y usuarios.

Flujo por listing:
1. Descartar si no es válido o no está enriquecido
2. Cargar usuarios activos con criterios
3. Puntuar y quedarse con los que superan MATCH_THRESHOLD
4. Crear el Match de forma atómica (si ya existe el par, no se hace nada)
5. Registrar el usuario en sent_to_users
6. Notificar si el score supera NOTIFY_THRESHOLD
"""

from dataclasses import dataclass, field
from typing import Optional

import structlog

from immoalert.config import Settings, get_settings
from immoalert.database import (
    CriteriaRepository,
    ListingRepository,
    MatchRepository,
    UserRepository,
)
from immoalert.matching.scoring import ScoreBreakdown, score_listing
from immoalert.models import Criteria, Listing, Match, User
from immoalert.notifications import NotificationDispatcher, NotificationOutcome

logger = structlog.get_logger()


@dataclass
class MatchCandidate:
    """Usuario que supera el umbral de matching para un listing."""

    user: User
    criteria: Criteria
    breakdown: ScoreBreakdown

    @property
    def score(self) -> float:
        return self.breakdown.total


@dataclass
class MatchingStats:
    """Totales de una pasada de matching."""

    processed: int = 0
    matched: int = 0
    notified: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "matched": self.matched,
            "notified": self.notified,
            "errors": self.errors,
        }


@dataclass
class ListingOutcome:
    matched: int = 0
    notified: int = 0
    errors: list[str] = field(default_factory=list)


class MatchingEngine:
    """
    Motor de matching por reglas ponderadas.

    Los repositorios y el dispatcher se pueden inyectar (tests); por
    defecto usan Supabase y Whapi.
    """

    def __init__(
        self,
        user_repo: Optional[UserRepository] = None,
        criteria_repo: Optional[CriteriaRepository] = None,
        listing_repo: Optional[ListingRepository] = None,
        match_repo: Optional[MatchRepository] = None,
        dispatcher: Optional[NotificationDispatcher] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.user_repo = user_repo or UserRepository()
        self.criteria_repo = criteria_repo or CriteriaRepository()
        self.listing_repo = listing_repo or ListingRepository()
        self.match_repo = match_repo or MatchRepository()
        self.dispatcher = dispatcher or NotificationDispatcher()

    def find_matches_for_listing(self, listing: Listing) -> list[MatchCandidate]:
        """
        Usuarios activos cuyo score supera el umbral de matching.

        Returns:
            Candidatos ordenados por score descendente
        """
        if not listing.is_eligible_for_matching:
            return []

        candidates = []
        for user in self.user_repo.get_active_users():
            criteria = self.criteria_repo.get_by_user_id(user.id)
            if criteria is None:
                continue

            breakdown = score_listing(listing, criteria)
            if breakdown.total >= self.settings.match_threshold:
                candidates.append(MatchCandidate(user=user, criteria=criteria, breakdown=breakdown))

        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates

    async def _process(self, listing: Listing) -> ListingOutcome:
        outcome = ListingOutcome()

        if not listing.is_eligible_for_matching:
            logger.debug(
                "Listing no elegible para matching",
                listing_id=listing.id,
                is_valid=listing.is_valid,
                ai_enriched=listing.ai_enriched,
            )
            return outcome

        for candidate in self.find_matches_for_listing(listing):
            user_id = candidate.user.id
            try:
                match = self.match_repo.create_if_absent(
                    Match(
                        user_id=user_id,
                        listing_id=listing.id,
                        score=candidate.score,
                        reasons=candidate.breakdown.reasons,
                    )
                )
                if match is None:
                    # El par ya tenía match: re-ejecutar es un no-op
                    continue

                outcome.matched += 1
                try:
                    self.listing_repo.append_sent_to_user(listing.id, user_id)
                except Exception as e:
                    # El match ya existe: si se corta acá no se notifica nunca
                    logger.error(
                        "Error registrando sent_to_users",
                        listing_id=listing.id,
                        user_id=user_id,
                        error=str(e),
                    )
                logger.info(
                    "Match creado",
                    listing_id=listing.id,
                    user_id=user_id,
                    score=candidate.score,
                )

                if candidate.score < self.settings.notify_threshold:
                    continue

                try:
                    result = await self.dispatcher.notify(match)
                except Exception as e:
                    logger.error(
                        "Error notificando match",
                        match_id=match.id,
                        user_id=user_id,
                        error=str(e),
                    )
                    continue

                if result == NotificationOutcome.SENT:
                    outcome.notified += 1

            except Exception as e:
                outcome.errors.append(str(e))
                logger.error(
                    "Error procesando candidato",
                    listing_id=listing.id,
                    user_id=user_id,
                    error=str(e),
                )

        return outcome

    async def process_listing(self, listing: Listing) -> int:
        """
        Crea los matches de un listing y notifica los que corresponda.

        Returns:
            Cantidad de usuarios efectivamente notificados
        """
        outcome = await self._process(listing)
        return outcome.notified

    async def process_all(self) -> MatchingStats:
        """
        Procesa una página de listings elegibles.

        No pagina más allá de matching_batch_size: el scheduler vuelve a
        invocar periódicamente para drenar el backlog.
        """
        stats = MatchingStats()
        listings = self.listing_repo.get_eligible(limit=self.settings.matching_batch_size)
        logger.info("Iniciando matching", listings=len(listings))

        for listing in listings:
            stats.processed += 1
            try:
                outcome = await self._process(listing)
            except Exception as e:
                stats.errors += 1
                logger.error("Error en matching de listing", listing_id=listing.id, error=str(e))
                continue

            stats.matched += outcome.matched
            stats.notified += outcome.notified
            stats.errors += len(outcome.errors)

        logger.info("Matching completado", **stats.as_dict())
        return stats

    def get_user_matches(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[Match]:
        return self.match_repo.get_user_matches(user_id, unread_only=unread_only, limit=limit)

    def mark_as_viewed(self, match_id: str) -> Optional[Match]:
        return self.match_repo.mark_viewed(match_id)

    def mark_as_interested(self, match_id: str, interested: bool = True) -> Optional[Match]:
        return self.match_repo.mark_interested(match_id, interested)

    def get_stats(self) -> dict:
        """Estadísticas globales de matching."""
        return self.match_repo.get_stats()
