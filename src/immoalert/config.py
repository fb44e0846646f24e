"""
Configuración centralizada del sistema.
Carga variables de entorno y define settings globales.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Encontrar la raíz del proyecto (donde está el .env)
# config.py -> immoalert/ -> src/ -> project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """Configuración principal de la aplicación."""

    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Supabase
    supabase_url: str = Field(..., description="URL del proyecto Supabase")
    supabase_key: str = Field(..., description="Anon key de Supabase")
    supabase_service_key: Optional[str] = Field(
        None, description="Service role key para operaciones admin"
    )

    # LLM: proveedor y modelo principal, más un modelo de respaldo opcional
    llm_provider: Literal["groq", "gemini"] = Field("groq", description="Proveedor de LLM")

    groq_api_key: Optional[str] = Field(None, description="API key de Groq")
    groq_model: str = Field("llama-3.3-70b-versatile", description="Modelo principal en Groq")
    groq_fallback_model: Optional[str] = Field(
        "llama-3.1-8b-instant", description="Modelo de respaldo en Groq (None lo desactiva)"
    )

    gemini_api_key: Optional[str] = Field(None, description="API key de Google Gemini")
    gemini_model: str = Field("gemini-2.0-flash", description="Modelo principal en Gemini")
    gemini_fallback_model: Optional[str] = Field(
        "gemini-2.0-flash-lite", description="Modelo de respaldo en Gemini (None lo desactiva)"
    )

    # Whapi (WhatsApp)
    whapi_base_url: str = Field(
        "https://gate.whapi.cloud", description="URL base del gateway Whapi"
    )
    whapi_token: str = Field("", description="Bearer token de Whapi")
    whapi_timeout_seconds: float = Field(30.0, gt=0, description="Timeout por llamada a Whapi")
    whapi_webhook_secret: Optional[str] = Field(
        None, description="Secreto compartido esperado en el webhook"
    )

    # Scraper (RapidAPI)
    rapidapi_host: str = Field(
        "facebook-scraper3.p.rapidapi.com", description="Host del scraper en RapidAPI"
    )
    rapidapi_key: str = Field("", description="API key de RapidAPI")
    scraper_timeout_seconds: float = Field(60.0, gt=0, description="Timeout por página")
    scraper_max_pages: int = Field(3, ge=1, description="Páginas por grupo y pasada")

    # Enriquecimiento
    extraction_timeout_seconds: float = Field(
        45.0, gt=0, description="Timeout total de una extracción con LLM"
    )
    ai_confidence_threshold: float = Field(
        0.6, ge=0.0, le=1.0, description="Confianza mínima para marcar un listing como válido"
    )
    listing_min_price: int = Field(10_000, description="Precio mínimo razonable (FCFA)")
    listing_max_price: int = Field(10_000_000, description="Precio máximo razonable (FCFA)")
    enrichment_batch_size: int = Field(50, ge=1, description="Listings por pasada de enriquecimiento")

    # Matching
    match_threshold: float = Field(60.0, ge=0, le=100, description="Score mínimo para crear un match")
    notify_threshold: float = Field(70.0, ge=0, le=100, description="Score mínimo para notificar")
    matching_batch_size: int = Field(100, ge=1, description="Listings por pasada de matching")
    max_images_per_notification: int = Field(3, ge=0, description="Imágenes enviadas por match")
    message_generation_timeout_seconds: float = Field(
        20.0, gt=0, description="Timeout para el mensaje personalizado con LLM"
    )

    # Scheduler
    scheduler_enabled: bool = Field(True, description="Arranca los jobs periódicos con el server")
    scraper_interval_minutes: float = Field(2.0, gt=0)
    enrichment_interval_minutes: float = Field(5.0, gt=0)
    matching_interval_minutes: float = Field(3.0, gt=0)
    background_concurrency: int = Field(
        4, ge=1, description="Mensajes entrantes procesados en paralelo (usuarios distintos)"
    )

    # Server
    server_listen: str = Field("0.0.0.0", description="Host de escucha")
    server_port: int = Field(3000, description="Puerto HTTP")
    job_trigger_token: Optional[str] = Field(
        None, description="Token esperado en X-Trigger-Token para disparar jobs"
    )

    # Presentación
    currency_label: str = Field("FCFA", description="Moneda mostrada en los mensajes")

    # Logging
    log_level: str = Field("INFO", description="Nivel de logging")


@lru_cache
def get_settings() -> Settings:
    """Obtiene la configuración cacheada."""
    return Settings()
