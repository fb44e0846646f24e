"""
Repositorios para operaciones CRUD en Supabase.

Cada repositorio maneja una tabla/entidad específica. Las dos únicas
escrituras que necesitan atomicidad (match por par y post_id del listing)
se resuelven con upsert + ignore_duplicates sobre una constraint UNIQUE,
no con un chequeo previo en la aplicación.
"""

from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from immoalert.database.supabase_client import get_supabase_client, SupabaseClient
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

logger = structlog.get_logger()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BaseRepository:
    """Clase base para repositorios."""

    TABLE = ""

    def __init__(self, client: Optional[SupabaseClient] = None):
        self._client = client or get_supabase_client()

    @property
    def client(self) -> SupabaseClient:
        return self._client

    def _first(self, column: str, value: Any) -> Optional[dict]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq(column, value)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def _update(self, row_id: str, data: dict) -> Optional[dict]:
        response = (
            self.client.table(self.TABLE)
            .update(data)
            .eq("id", row_id)
            .execute()
        )
        return response.data[0] if response.data else None


class UserRepository(BaseRepository):
    """Repositorio para usuarios."""

    TABLE = "users"

    def create(self, user: User) -> User:
        """Crea un nuevo usuario."""
        response = self.client.table(self.TABLE).insert(user.to_db_dict()).execute()
        logger.info("Usuario creado", whatsapp_number=user.whatsapp_number)
        return User.model_validate(response.data[0])

    def get_by_id(self, user_id: str) -> Optional[User]:
        """Obtiene un usuario por su UUID."""
        row = self._first("id", user_id)
        return User.model_validate(row) if row else None

    def get_by_whatsapp_number(self, whatsapp_number: str) -> Optional[User]:
        """Obtiene un usuario por su número de WhatsApp."""
        row = self._first("whatsapp_number", whatsapp_number)
        return User.model_validate(row) if row else None

    def get_active_users(self) -> list[User]:
        """Usuarios que reciben notificaciones (activos y sin baja lógica)."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("is_active", True)
            .is_("deleted_at", "null")
            .execute()
        )
        return [User.model_validate(row) for row in response.data]

    def update_state(
        self,
        user_id: str,
        state: ConversationState,
        is_active: Optional[bool] = None,
    ) -> Optional[User]:
        """Cambia el estado de conversación (y opcionalmente is_active)."""
        data: dict[str, Any] = {
            "conversation_state": state.value,
            "updated_at": _now_iso(),
        }
        if is_active is not None:
            data["is_active"] = is_active
        row = self._update(user_id, data)
        return User.model_validate(row) if row else None

    def touch(self, user_id: str) -> None:
        """Actualiza last_interaction_at."""
        self._update(user_id, {"last_interaction_at": _now_iso()})

    def soft_delete(self, user_id: str) -> None:
        """Baja lógica: el usuario deja de recibir notificaciones."""
        self._update(
            user_id,
            {"deleted_at": _now_iso(), "is_active": False, "updated_at": _now_iso()},
        )


class CriteriaRepository(BaseRepository):
    """Repositorio para criterios de búsqueda (1:1 con users)."""

    TABLE = "property_criteria"

    def get_by_user_id(self, user_id: str) -> Optional[Criteria]:
        row = self._first("user_id", user_id)
        return Criteria.model_validate(row) if row else None

    def create_empty(self, user_id: str) -> Criteria:
        """Crea los criterios vacíos de un usuario nuevo."""
        return self.replace(Criteria.empty(user_id))

    def replace(self, criteria: Criteria) -> Criteria:
        """Sobreescribe los criterios completos del usuario."""
        data = criteria.to_db_dict()
        data["updated_at"] = _now_iso()
        response = (
            self.client.table(self.TABLE)
            .upsert(data, on_conflict="user_id")
            .execute()
        )
        logger.info("Criterios guardados", user_id=criteria.user_id)
        return Criteria.model_validate(response.data[0]) if response.data else criteria


class ListingRepository(BaseRepository):
    """Repositorio para listings (scraped_listings)."""

    TABLE = "scraped_listings"

    def create_if_absent(self, listing: Listing) -> Optional[Listing]:
        """
        Inserta el listing si no existe otro con el mismo post_id.

        Returns:
            El listing insertado, o None si ya existía
        """
        response = (
            self.client.table(self.TABLE)
            .upsert(listing.to_db_dict(), on_conflict="post_id", ignore_duplicates=True)
            .execute()
        )
        if not response.data:
            return None
        logger.info("Listing creado", post_id=listing.post_id, group=listing.group_name)
        return Listing.model_validate(response.data[0])

    def get_by_id(self, listing_id: str) -> Optional[Listing]:
        row = self._first("id", listing_id)
        return Listing.model_validate(row) if row else None

    def get_by_post_id(self, post_id: str) -> Optional[Listing]:
        row = self._first("post_id", post_id)
        return Listing.model_validate(row) if row else None

    def get_unenriched(self, limit: int = 50) -> list[Listing]:
        """Listings que todavía no pasaron por el extractor."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("ai_enriched", False)
            .eq("is_valid", True)
            .order("created_at")
            .limit(limit)
            .execute()
        )
        return [Listing.model_validate(row) for row in response.data]

    def get_eligible(self, limit: int = 100) -> list[Listing]:
        """Listings válidos y enriquecidos, listos para matching."""
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("is_valid", True)
            .eq("ai_enriched", True)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [Listing.model_validate(row) for row in response.data]

    def save_enrichment(self, listing_id: str, fields: dict) -> Optional[Listing]:
        """Guarda el resultado del enriquecimiento en una sola actualización."""
        row = self._update(listing_id, {**fields, "ai_enriched": True})
        return Listing.model_validate(row) if row else None

    def append_sent_to_user(self, listing_id: str, user_id: str) -> None:
        """Agrega el usuario a sent_to_users de forma atómica (RPC)."""
        self.client.rpc(
            "append_sent_to_user",
            {"p_listing_id": listing_id, "p_user_id": user_id},
        )


class MatchRepository(BaseRepository):
    """Repositorio para matches."""

    TABLE = "matches"

    def create_if_absent(self, match: Match) -> Optional[Match]:
        """
        Crea el match si no existe otro para el mismo (user_id, listing_id).

        Returns:
            El match creado, o None si el par ya tenía match
        """
        response = (
            self.client.table(self.TABLE)
            .upsert(
                match.to_db_dict(),
                on_conflict="user_id,listing_id",
                ignore_duplicates=True,
            )
            .execute()
        )
        if not response.data:
            return None
        return Match.model_validate(response.data[0])

    def get_by_id(self, match_id: str) -> Optional[Match]:
        row = self._first("id", match_id)
        return Match.model_validate(row) if row else None

    def mark_notified(self, match_id: str, notified_at: datetime) -> None:
        self._update(match_id, {"is_notified": True, "notified_at": notified_at.isoformat()})

    def mark_viewed(self, match_id: str) -> Optional[Match]:
        row = self._update(match_id, {"is_viewed": True, "viewed_at": _now_iso()})
        return Match.model_validate(row) if row else None

    def mark_interested(self, match_id: str, interested: bool) -> Optional[Match]:
        row = self._update(match_id, {"is_interested": interested})
        return Match.model_validate(row) if row else None

    def get_user_matches(
        self, user_id: str, unread_only: bool = False, limit: int = 50
    ) -> list[Match]:
        """Matches de un usuario ordenados por score."""
        query = self.client.table(self.TABLE).select("*").eq("user_id", user_id)
        if unread_only:
            query = query.eq("is_viewed", False)
        response = query.order("score", desc=True).limit(limit).execute()
        return [Match.model_validate(row) for row in response.data]

    def _count(self, column: Optional[str] = None) -> int:
        query = self.client.table(self.TABLE).select("id", count="exact")
        if column:
            query = query.eq(column, True)
        return query.execute().count or 0

    def get_stats(self) -> dict:
        """Totales agregados para el panel de administración."""
        scores = self.client.table(self.TABLE).select("score").execute().data
        avg = sum(row["score"] for row in scores) / len(scores) if scores else 0.0
        return {
            "total_matches": self._count(),
            "notified_matches": self._count("is_notified"),
            "viewed_matches": self._count("is_viewed"),
            "interested_matches": self._count("is_interested"),
            "avg_match_score": round(avg, 2),
        }


class ConversationRepository(BaseRepository):
    """Log append-only de mensajes entrantes y salientes."""

    TABLE = "conversations"

    def create(self, turn: ConversationTurn) -> None:
        self.client.table(self.TABLE).insert(turn.to_db_dict()).execute()

    def get_history(self, user_id: str, limit: int = 50) -> list[ConversationTurn]:
        response = (
            self.client.table(self.TABLE)
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [ConversationTurn.model_validate(row) for row in response.data]


class NotificationRepository(BaseRepository):
    """Repositorio para notificaciones enviadas."""

    TABLE = "notifications"

    def create(self, notification: Notification) -> None:
        """Registra una notificación enviada."""
        self.client.table(self.TABLE).insert(notification.to_db_dict()).execute()


class GroupRepository(BaseRepository):
    """Repositorio para grupos de Facebook monitoreados."""

    TABLE = "facebook_groups"

    def get_active(self) -> list[FacebookGroup]:
        response = self.client.table(self.TABLE).select("*").eq("is_active", True).execute()
        return [FacebookGroup.model_validate(row) for row in response.data]

    def upsert(self, group: FacebookGroup) -> FacebookGroup:
        response = (
            self.client.table(self.TABLE)
            .upsert(group.to_db_dict(), on_conflict="group_id")
            .execute()
        )
        return FacebookGroup.model_validate(response.data[0]) if response.data else group

    def deactivate(self, group_id: str) -> None:
        (
            self.client.table(self.TABLE)
            .update({"is_active": False})
            .eq("group_id", group_id)
            .execute()
        )

    def record_scrape(self, group: FacebookGroup, new_posts: int) -> None:
        """Actualiza last_scraped_at y suma los posts nuevos."""
        (
            self.client.table(self.TABLE)
            .update({
                "last_scraped_at": _now_iso(),
                "total_posts": group.total_posts + new_posts,
            })
            .eq("group_id", group.group_id)
            .execute()
        )
