"""
Modelo de Usuario, Criterios de búsqueda y log de conversación.

Los criterios pertenecen 1:1 a un usuario y se sobreescriben completos
al terminar cada pasada de recolección.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from immoalert.models.enums import ConversationState, Direction, PropertyType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """
    Usuario del sistema identificado por su número de WhatsApp.
    """

    model_config = ConfigDict(from_attributes=True)

    # Identificadores
    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    whatsapp_number: str = Field(..., description="Número de WhatsApp (handle estable)")
    name: Optional[str] = Field(None, description="Nombre visible, si se conoce")

    # Estado
    conversation_state: ConversationState = Field(
        default=ConversationState.IDLE, description="Estado de la conversación"
    )
    is_active: bool = Field(default=False, description="Recibe notificaciones")
    last_interaction_at: Optional[datetime] = Field(
        None, description="Último mensaje recibido"
    )
    deleted_at: Optional[datetime] = Field(None, description="Baja lógica")

    # Metadatos
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})


class Criteria(BaseModel):
    """
    Preferencias de búsqueda de un usuario.

    Los límites numéricos son opcionales: None significa "sin preferencia".
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    user_id: str = Field(..., description="FK al User")

    property_type: PropertyType = Field(default=PropertyType.BOTH)

    min_price: Optional[float] = Field(None, ge=0, description="Precio mínimo")
    max_price: Optional[float] = Field(None, ge=0, description="Precio máximo")

    locations: list[str] = Field(default_factory=list, description="Zonas aceptables")

    min_rooms: Optional[int] = Field(None, ge=0, description="Mínimo de piezas")
    max_rooms: Optional[int] = Field(None, ge=0, description="Máximo de piezas")
    min_surface: Optional[float] = Field(None, ge=0, description="Superficie mínima m²")
    max_surface: Optional[float] = Field(None, ge=0, description="Superficie máxima m²")

    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("locations")
    @classmethod
    def _clean_locations(cls, value: list[str]) -> list[str]:
        return [loc.strip() for loc in value if loc and loc.strip()]

    @model_validator(mode="after")
    def _check_bounds(self) -> "Criteria":
        for low, high in (
            ("min_price", "max_price"),
            ("min_rooms", "max_rooms"),
            ("min_surface", "max_surface"),
        ):
            low_value = getattr(self, low)
            high_value = getattr(self, high)
            if low_value is not None and high_value is not None and low_value > high_value:
                raise ValueError(f"{low} ({low_value}) no puede superar {high} ({high_value})")
        return self

    @classmethod
    def empty(cls, user_id: str) -> "Criteria":
        """Criterios vacíos creados junto con el usuario."""
        return cls(user_id=user_id)

    @property
    def has_price_bounds(self) -> bool:
        return self.min_price is not None or self.max_price is not None

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})


class ConversationTurn(BaseModel):
    """Entrada append-only del historial de conversación."""

    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    user_id: str = Field(..., description="FK al User")
    direction: Direction
    content: str
    message_id: Optional[str] = Field(None, description="ID del mensaje en WhatsApp")
    media_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})
