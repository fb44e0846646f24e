"""Match entre un usuario y un listing, y log de notificaciones."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from immoalert.models.user import utcnow


class Match(BaseModel):
    """
    Par (usuario, listing) con su score.

    Existe como mucho un Match por par: re-puntuar el mismo par no crea otro.
    """

    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    user_id: str = Field(..., description="FK al User")
    listing_id: str = Field(..., description="FK al Listing")

    score: float = Field(..., ge=0, le=100, description="Score total 0-100")
    reasons: list[str] = Field(default_factory=list, description="Motivos legibles del match")

    is_notified: bool = False
    notified_at: Optional[datetime] = None
    is_viewed: bool = False
    viewed_at: Optional[datetime] = None
    is_interested: bool = False

    created_at: datetime = Field(default_factory=utcnow)

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})


class Notification(BaseModel):
    """Registro de una notificación enviada."""

    id: Optional[str] = Field(None, description="UUID generado por Supabase")
    user_id: str
    type: str = "LISTING_MATCH"
    title: str
    message: str = Field(..., max_length=200)
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    def to_db_dict(self) -> dict:
        """Convierte a diccionario para inserción en Supabase."""
        return self.model_dump(mode="json", exclude={"id"})
