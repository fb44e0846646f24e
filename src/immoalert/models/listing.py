"""
Listing: anuncio inmobiliario normalizado.

Se crea crudo en la ingesta (texto + imágenes), lo completa una única
vez el enriquecimiento y el matching solo agrega usuarios a sent_to_users.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from immoalert.models.enums import PropertyType
from immoalert.models.user import utcnow


class Listing(BaseModel):
    """Anuncio publicado en un grupo de Facebook."""

    model_config = ConfigDict(from_attributes=True)

    # Identificación (source + post_id es la clave de deduplicación)
    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    source: str = Field(default="FACEBOOK", description="Origen del post")
    post_id: str = Field(..., description="ID externo del post")

    # Datos crudos
    group_id: Optional[str] = Field(None, description="FK al FacebookGroup")
    group_name: Optional[str] = None
    post_url: Optional[str] = None
    author_name: Optional[str] = None
    author_id: Optional[str] = None
    original_text: str = Field(default="", description="Texto completo del post")
    images: list[str] = Field(default_factory=list, description="URLs de imágenes")
    posted_at: Optional[datetime] = None

    # Datos extraídos por IA
    title: Optional[str] = None
    price: Optional[float] = None
    location: Optional[str] = None
    surface: Optional[float] = None
    rooms: Optional[int] = None
    property_type: Optional[PropertyType] = None
    furnished: Optional[bool] = None
    contact: Optional[str] = None
    description: Optional[str] = None
    confidence_score: Optional[float] = Field(None, ge=0, le=1)
    extracted_data: Optional[dict[str, Any]] = None

    # Flags
    is_valid: bool = Field(default=True, description="Pasa el control de calidad")
    ai_enriched: bool = Field(default=False, description="Se intentó la extracción")
    sent_to_users: list[str] = Field(
        default_factory=list, description="Usuarios con match creado para este listing"
    )

    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_eligible_for_matching(self) -> bool:
        return self.is_valid and self.ai_enriched

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})


class FacebookGroup(BaseModel):
    """Grupo de Facebook monitoreado."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    group_id: str = Field(..., description="ID numérico del grupo en Facebook")
    name: str
    keywords: list[str] = Field(
        default_factory=list, description="Si hay keywords, solo se guardan posts que las contengan"
    )
    is_active: bool = True
    last_scraped_at: Optional[datetime] = None
    total_posts: int = 0

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})
