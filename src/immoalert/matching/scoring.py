"""
Scoring de un listing contra los criterios de un usuario.

Función pura: sin I/O ni estado, mismo input -> mismo output.

Pesos (suman 100):
- Tipo de propiedad: 10
- Precio: 30 (con decaimiento lineal fuera de rango)
- Ubicación: 25
- Superficie: 20
- Piezas: 15
"""

from dataclasses import dataclass, field
from typing import Optional

from immoalert.models import Criteria, Listing, PropertyType

TYPE_WEIGHT = 10.0
PRICE_WEIGHT = 30.0
LOCATION_WEIGHT = 25.0
SURFACE_WEIGHT = 20.0
ROOMS_WEIGHT = 15.0

# Umbrales para emitir motivos
PRICE_REASON_THRESHOLD = 25.0
LOCATION_REASON_THRESHOLD = 20.0
SURFACE_REASON_THRESHOLD = 15.0
ROOMS_REASON_THRESHOLD = 10.0
TYPE_REASON_THRESHOLD = 8.0


@dataclass(frozen=True)
class ScoreBreakdown:
    """Score total, aporte por dimensión y motivos legibles."""

    type: float
    price: float
    location: float
    surface: float
    rooms: float
    reasons: list[str] = field(default_factory=list)

    @property
    def total(self) -> float:
        return self.price + self.location + self.surface + self.rooms + self.type

    def per_dimension(self) -> dict[str, float]:
        return {
            "price": self.price,
            "location": self.location,
            "surface": self.surface,
            "rooms": self.rooms,
            "type": self.type,
        }


def score_type(listing: Listing, criteria: Criteria) -> float:
    if listing.property_type is None:
        return 0.0
    if criteria.property_type == PropertyType.BOTH:
        return TYPE_WEIGHT
    return TYPE_WEIGHT if criteria.property_type == listing.property_type else 0.0


def score_price(listing: Listing, criteria: Criteria) -> float:
    """
    Precio con ambos límites: 30 dentro del rango, si no decae según la
    distancia al límite más cercano relativa al precio del listing.
    Sin límites: 30. Con un solo límite: 0.
    """
    low, high = criteria.min_price, criteria.max_price

    if low is None and high is None:
        return PRICE_WEIGHT
    if low is None or high is None:
        return 0.0

    price = listing.price
    if not price or price <= 0:
        return 0.0

    if low <= price <= high:
        return PRICE_WEIGHT

    distance = min(abs(price - low), abs(price - high))
    return max(0.0, PRICE_WEIGHT - (distance / price) * 100)


def score_location(listing: Listing, criteria: Criteria) -> float:
    # Sin zonas no hay puntos: a diferencia de los rangos numéricos,
    # "sin preferencia" no cuenta como cumplido.
    if not listing.location or not criteria.locations:
        return 0.0
    haystack = listing.location.lower()
    if any(loc.lower() in haystack for loc in criteria.locations):
        return LOCATION_WEIGHT
    return 0.0


def _score_range(
    value: Optional[float],
    low: Optional[float],
    high: Optional[float],
    weight: float,
) -> float:
    if low is None and high is None:
        return weight
    if low is None or high is None or value is None:
        return 0.0
    return weight if low <= value <= high else 0.0


def score_surface(listing: Listing, criteria: Criteria) -> float:
    return _score_range(
        listing.surface, criteria.min_surface, criteria.max_surface, SURFACE_WEIGHT
    )


def score_rooms(listing: Listing, criteria: Criteria) -> float:
    return _score_range(listing.rooms, criteria.min_rooms, criteria.max_rooms, ROOMS_WEIGHT)


def _format_number(value: float) -> str:
    return f"{value:g}"


def build_reasons(
    listing: Listing,
    type_score: float,
    price_score: float,
    location_score: float,
    surface_score: float,
    rooms_score: float,
) -> list[str]:
    """Motivos en orden fijo: precio, ubicación, superficie, piezas, tipo."""
    reasons = []

    if price_score >= PRICE_REASON_THRESHOLD:
        reasons.append("💰 Prix dans votre budget")
    elif price_score > 0:
        reasons.append("💰 Prix proche de votre budget")

    if location_score >= LOCATION_REASON_THRESHOLD:
        reasons.append("📍 Localisation recherchée")

    if surface_score >= SURFACE_REASON_THRESHOLD and listing.surface is not None:
        reasons.append(f"📐 Surface: {_format_number(listing.surface)}m²")

    if rooms_score >= ROOMS_REASON_THRESHOLD and listing.rooms is not None:
        reasons.append(f"🚪 {listing.rooms} pièces")

    if type_score >= TYPE_REASON_THRESHOLD:
        if listing.property_type == PropertyType.HOUSE:
            reasons.append("🏠 Maison")
        else:
            reasons.append("🏢 Appartement")

    return reasons


def score_listing(listing: Listing, criteria: Criteria) -> ScoreBreakdown:
    """
    Calcula el score de un listing para un usuario.

    Args:
        listing: Listing válido y enriquecido
        criteria: Criterios del usuario

    Returns:
        ScoreBreakdown con total en [0, 100]

    Raises:
        ValueError: Si el listing no es elegible para matching
    """
    if not listing.is_eligible_for_matching:
        raise ValueError(
            f"Listing {listing.id} no es elegible (is_valid={listing.is_valid}, "
            f"ai_enriched={listing.ai_enriched})"
        )

    type_score = score_type(listing, criteria)
    price_score = score_price(listing, criteria)
    location_score = score_location(listing, criteria)
    surface_score = score_surface(listing, criteria)
    rooms_score = score_rooms(listing, criteria)

    return ScoreBreakdown(
        type=type_score,
        price=price_score,
        location=location_score,
        surface=surface_score,
        rooms=rooms_score,
        reasons=build_reasons(
            listing, type_score, price_score, location_score, surface_score, rooms_score
        ),
    )
