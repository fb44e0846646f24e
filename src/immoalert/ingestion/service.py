"""
Ingesta de posts de grupos de Facebook.

Cada post se guarda crudo como Listing; la clave de deduplicación es el
post_id y la garantiza la base (insert-if-absent).
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog

from immoalert.clients import FacebookScraperClient, ScrapedPost
from immoalert.config import Settings, get_settings
from immoalert.database import GroupRepository, ListingRepository
from immoalert.models import FacebookGroup, Listing

logger = structlog.get_logger()


@dataclass
class IngestionStats:
    groups: int = 0
    fetched: int = 0
    created: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return {
            "groups": self.groups,
            "fetched": self.fetched,
            "created": self.created,
            "errors": self.errors,
        }


def matches_keywords(text: str, keywords: list[str]) -> bool:
    """Sin keywords se acepta todo; si hay, el texto debe contener alguna."""
    if not keywords:
        return True
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords if keyword)


class IngestionService:
    """Scrapea los grupos activos y guarda los posts nuevos."""

    def __init__(
        self,
        scraper: Optional[FacebookScraperClient] = None,
        listing_repo: Optional[ListingRepository] = None,
        group_repo: Optional[GroupRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.scraper = scraper or FacebookScraperClient()
        self.listing_repo = listing_repo or ListingRepository()
        self.group_repo = group_repo or GroupRepository()

    def process_post(self, post: ScrapedPost, group: FacebookGroup) -> bool:
        """
        Guarda un post como listing crudo.

        Returns:
            True si se creó un listing nuevo
        """
        if not post.id:
            return False

        if not matches_keywords(post.text, group.keywords):
            return False

        listing = Listing(
            post_id=post.id,
            group_id=group.id,
            group_name=group.name,
            post_url=post.url,
            author_name=post.author_name,
            author_id=post.author_id,
            original_text=post.text,
            images=post.images,
            posted_at=post.posted_at or datetime.now(timezone.utc),
        )
        created = self.listing_repo.create_if_absent(listing)
        if created is None:
            logger.debug("Post ya ingresado", post_id=post.id)
            return False
        return True

    async def scrape_group(self, group: FacebookGroup) -> tuple[int, int]:
        """Scrapea un grupo. Devuelve (posts obtenidos, listings nuevos)."""
        posts = await self.scraper.get_group_posts(
            group.group_id, max_pages=self.settings.scraper_max_pages
        )

        created = 0
        for post in posts:
            if self.process_post(post, group):
                created += 1

        self.group_repo.record_scrape(group, created)
        logger.info("Grupo scrapeado", group=group.name, posts=len(posts), new=created)
        return len(posts), created

    async def scrape_all_groups(self) -> IngestionStats:
        """Scrapea todos los grupos activos. Un grupo con error se saltea."""
        stats = IngestionStats()
        groups = self.group_repo.get_active()
        logger.info("Iniciando scraping", groups=len(groups))

        for group in groups:
            stats.groups += 1
            try:
                fetched, created = await self.scrape_group(group)
                stats.fetched += fetched
                stats.created += created
            except Exception as e:
                stats.errors += 1
                logger.error("Error scrapeando grupo", group=group.name, error=str(e))

        logger.info("Scraping completado", **stats.as_dict())
        return stats

    def add_group(self, group_id: str, name: str, keywords: Optional[list[str]] = None) -> FacebookGroup:
        """Agrega (o reactiva) un grupo a monitorear."""
        group = self.group_repo.upsert(
            FacebookGroup(group_id=group_id, name=name, keywords=keywords or [], is_active=True)
        )
        logger.info("Grupo agregado", group_id=group_id, name=name)
        return group

    def remove_group(self, group_id: str) -> None:
        """Deja de monitorear un grupo (baja lógica)."""
        self.group_repo.deactivate(group_id)
        logger.info("Grupo desactivado", group_id=group_id)
