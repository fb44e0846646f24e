"""
Conexión a Supabase (Postgres) compartida por todos los repositorios.

Las escrituras atómicas viven en la base: constraints UNIQUE para los
upserts idempotentes y funciones RPC (ver sql/schema.sql).
"""

from functools import lru_cache
from typing import Any, Optional

import structlog
from supabase import Client, create_client

from immoalert.config import Settings, get_settings

logger = structlog.get_logger()


class SupabaseClient:
    """Tablas y funciones RPC del esquema de ImmoAlert."""

    def __init__(self, client: Client):
        self._client = client

    def table(self, name: str):
        return self._client.table(name)

    def rpc(self, function_name: str, params: Optional[dict] = None) -> Any:
        """Llama a una función de Postgres y devuelve response.data."""
        try:
            return self._client.rpc(function_name, params or {}).execute().data
        except Exception as e:
            logger.error("Error en RPC de Supabase", function=function_name, error=str(e))
            raise


def create_supabase_client(settings: Settings) -> SupabaseClient:
    """
    Conecta con la service key si está configurada (el backend escribe en
    tablas con RLS); si no, con la anon key.
    """
    key = settings.supabase_service_key or settings.supabase_key
    if not settings.supabase_url or not key:
        raise ValueError("Faltan SUPABASE_URL / SUPABASE_KEY")

    logger.info(
        "Conectando a Supabase",
        url=settings.supabase_url,
        service_role=bool(settings.supabase_service_key),
    )
    return SupabaseClient(create_client(settings.supabase_url, key))


@lru_cache
def get_supabase_client() -> SupabaseClient:
    """Cliente compartido del proceso."""
    return create_supabase_client(get_settings())
