"""
Cliente del scraper de grupos de Facebook (RapidAPI).

Devuelve páginas de posts normalizados; la deduplicación por id la
hace la ingesta contra la base.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp
import structlog

from immoalert.config import get_settings
from immoalert.exceptions import ScraperError

logger = structlog.get_logger()


@dataclass
class ScrapedPost:
    """Post de un grupo de Facebook."""

    id: str
    text: str
    url: Optional[str] = None
    author_name: Optional[str] = None
    author_id: Optional[str] = None
    posted_at: Optional[datetime] = None
    images: list[str] = field(default_factory=list)


@dataclass
class ScrapedPage:
    """Una página de resultados del scraper."""

    posts: list[ScrapedPost]
    next_cursor: Optional[str] = None


def extract_images(post: dict, attached: Optional[dict] = None) -> list[str]:
    """Junta las URLs de imágenes de los distintos formatos de post."""
    images = []

    image = post.get("image")
    if isinstance(image, dict) and image.get("uri"):
        images.append(image["uri"])

    for item in post.get("album_preview") or []:
        if isinstance(item, dict) and item.get("image_file_uri"):
            images.append(item["image_file_uri"])

    if post.get("video_thumbnail"):
        images.append(post["video_thumbnail"])

    # Posts compartidos: imágenes del post original
    if not images and attached:
        if attached.get("photo_url"):
            images.append(attached["photo_url"])
        if attached.get("album_url"):
            images.append(attached["album_url"])

    if not images and isinstance(post.get("images"), list):
        return [img for img in post["images"] if isinstance(img, str)]

    return images


def _parse_time(post: dict) -> Optional[datetime]:
    timestamp = post.get("timestamp")
    if isinstance(timestamp, (int, float)):
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    raw = post.get("time") or post.get("created_time")
    if isinstance(raw, str):
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def parse_posts(data: Any) -> list[ScrapedPost]:
    """Normaliza la respuesta de la API a ScrapedPost."""
    if not isinstance(data, dict):
        return []
    raw_posts = data.get("posts") or data.get("results") or data.get("data")
    if not isinstance(raw_posts, list):
        return []

    posts = []
    for post in raw_posts:
        if not isinstance(post, dict):
            continue
        attached = post.get("attached_post") if isinstance(post.get("attached_post"), dict) else None
        # En posts compartidos el mensaje viene en attached_post
        text = (
            post.get("message") or post.get("text") or post.get("content")
            or (attached or {}).get("message") or ""
        )
        author = post.get("author") if isinstance(post.get("author"), dict) else {}

        posts.append(
            ScrapedPost(
                id=str(post.get("post_id") or post.get("id") or ""),
                text=text,
                url=post.get("url") or (attached or {}).get("url"),
                author_name=author.get("name") or "Unknown",
                author_id=author.get("id") or author.get("url"),
                posted_at=_parse_time(post),
                images=extract_images(post, attached),
            )
        )
    return posts


class FacebookScraperClient:
    """Cliente HTTP del scraper de Facebook en RapidAPI."""

    def __init__(
        self,
        host: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self.host = host or settings.rapidapi_host
        self.api_key = api_key or settings.rapidapi_key
        self.timeout = aiohttp.ClientTimeout(
            total=timeout_seconds or settings.scraper_timeout_seconds
        )
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                base_url=f"https://{self.host}",
                headers={"x-rapidapi-host": self.host, "x-rapidapi-key": self.api_key},
                timeout=self.timeout,
            )
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def fetch_posts(self, group_id: str, cursor: Optional[str] = None) -> ScrapedPage:
        """
        Obtiene una página de posts de un grupo.

        Raises:
            ScraperError: Si la API falla o no responde a tiempo
        """
        params = {"group_id": group_id, "sorting_order": "CHRONOLOGICAL"}
        if cursor:
            params["cursor"] = cursor

        try:
            async with self._get_session().get("/group/posts", params=params) as response:
                if response.status >= 400:
                    logger.error(
                        "Facebook Scraper API Error",
                        status=response.status,
                        group_id=group_id,
                    )
                    raise ScraperError(f"Scraper respondió {response.status} para {group_id}")
                data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ScraperError(f"Timeout obteniendo posts de {group_id}") from e
        except aiohttp.ClientError as e:
            raise ScraperError(f"Error de red obteniendo posts de {group_id}: {e}") from e

        next_cursor = data.get("cursor") if isinstance(data, dict) else None
        return ScrapedPage(posts=parse_posts(data), next_cursor=next_cursor or None)

    async def get_group_posts(self, group_id: str, max_pages: Optional[int] = None) -> list[ScrapedPost]:
        """
        Recorre hasta max_pages páginas de un grupo.

        Un error en la primera página se propaga; en páginas siguientes
        corta la paginación y devuelve lo obtenido.
        """
        max_pages = max_pages or get_settings().scraper_max_pages
        all_posts: list[ScrapedPost] = []
        cursor: Optional[str] = None

        for page in range(max_pages):
            try:
                result = await self.fetch_posts(group_id, cursor)
            except ScraperError as e:
                if page == 0:
                    raise
                logger.warning("Paginación interrumpida", group_id=group_id, page=page, error=str(e))
                break

            all_posts.extend(result.posts)
            if not result.next_cursor or not result.posts:
                break
            cursor = result.next_cursor

        return all_posts
