"""
Módulo de base de datos.

Provee acceso a Supabase y operaciones CRUD.
"""

from immoalert.database.supabase_client import get_supabase_client, SupabaseClient
from immoalert.database.repositories import (
    ConversationRepository,
    CriteriaRepository,
    GroupRepository,
    ListingRepository,
    MatchRepository,
    NotificationRepository,
    UserRepository,
)

__all__ = [
    "get_supabase_client",
    "SupabaseClient",
    "UserRepository",
    "CriteriaRepository",
    "ListingRepository",
    "MatchRepository",
    "ConversationRepository",
    "NotificationRepository",
    "GroupRepository",
]
