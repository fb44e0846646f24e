"""
Redacción del mensaje de notificación de un match.

Intenta primero un mensaje personalizado con LLM y cae al template
estático ante cualquier error. generate() nunca lanza.
"""

import asyncio
from typing import Optional

import structlog

from immoalert.analysis.llm_providers import BaseLLMProvider, get_llm_provider
from immoalert.config import get_settings
from immoalert.models import Criteria, Listing, PropertyType

logger = structlog.get_logger()

MESSAGE_SYSTEM_PROMPT = (
    "Tu rédiges des messages WhatsApp courts pour un service d'alertes immobilières. "
    "Tu n'inventes jamais d'informations absentes de l'annonce."
)

MESSAGE_USER_PROMPT_TEMPLATE = """Génère un message WhatsApp court et enthousiaste pour cette annonce immobilière.

Détails de l'annonce:
- Type: {listing_type}
- Prix: {price}
- Surface: {surface}
- Pièces: {rooms}
- Localisation: {location}
{furnished}
Critères de l'utilisateur:
- Budget: {budget}
- Zones: {zones}
- Type: {criteria_type}

Instructions:
- Maximum 2-3 phrases courtes
- Ton enthousiaste mais professionnel
- Mentionne pourquoi ça correspond aux critères
- Appel à l'action clair
- Utilise des emojis appropriés

Réponds uniquement avec le texte du message, sans formatage JSON."""

MAX_MESSAGE_LENGTH = 1000

PROPERTY_TYPE_LABELS = {
    PropertyType.HOUSE: "Maison",
    PropertyType.APARTMENT: "Appartement",
    PropertyType.BOTH: "Les deux",
}


def format_amount(value: Optional[float]) -> str:
    """250000 -> '250 000'."""
    if value is None:
        return "?"
    return f"{value:,.0f}".replace(",", " ")


def build_listing_message(
    listing: Listing,
    reasons: Optional[list[str]] = None,
    currency: Optional[str] = None,
) -> str:
    """Template estático de notificación (siempre disponible)."""
    currency = currency or get_settings().currency_label
    icon = "🏡" if listing.property_type == PropertyType.HOUSE else "🏢"

    details = []
    if listing.rooms:
        details.append(f"{listing.rooms} pièces")
    if listing.surface:
        details.append(f"{listing.surface:g}m²")

    lines = ["🏠 *Nouvelle annonce trouvée !*", ""]
    if details:
        lines.append(f"{icon} " + " • ".join(details))
    if listing.price:
        lines.append(f"💰 {format_amount(listing.price)} {currency}")
    if listing.location:
        lines.append(f"📍 {listing.location}")
    if reasons:
        lines.append("")
        lines.extend(reasons)
    if listing.post_url:
        lines.extend(["", f"🔗 {listing.post_url}"])
    lines.extend(["", "Cette annonce correspond à vos critères ! Souhaitez-vous plus d'informations ?"])

    return "\n".join(lines)


class MessageWriter:
    """Genera el texto de la notificación de un match."""

    def __init__(
        self,
        provider: Optional[BaseLLMProvider] = None,
        timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings()
        self._provider = provider
        self.currency = settings.currency_label
        self.timeout_seconds = timeout_seconds or settings.message_generation_timeout_seconds

    def _build_prompt(self, listing: Listing, criteria: Optional[Criteria]) -> str:
        if criteria and criteria.has_price_bounds:
            budget = (
                f"{format_amount(criteria.min_price)} - "
                f"{format_amount(criteria.max_price)} {self.currency}"
            )
        else:
            budget = "non défini"

        return MESSAGE_USER_PROMPT_TEMPLATE.format(
            listing_type=PROPERTY_TYPE_LABELS.get(listing.property_type, "Non précisé"),
            price=f"{format_amount(listing.price)} {self.currency}",
            surface=f"{listing.surface:g}m²" if listing.surface else "non précisée",
            rooms=listing.rooms or "non précisé",
            location=listing.location or "non précisée",
            furnished="- Meublé\n" if listing.furnished else "",
            budget=budget,
            zones=", ".join(criteria.locations) if criteria and criteria.locations else "non définies",
            criteria_type=PROPERTY_TYPE_LABELS[criteria.property_type] if criteria else "Les deux",
        )

    async def _generate_with_llm(self, listing: Listing, criteria: Optional[Criteria]) -> str:
        if self._provider is None:
            self._provider = get_llm_provider()
        response = await self._provider.generate(
            system_prompt=MESSAGE_SYSTEM_PROMPT,
            user_prompt=self._build_prompt(listing, criteria),
            temperature=0.7,
            max_tokens=200,
        )
        return (response.text or "").strip()

    async def generate(
        self,
        listing: Listing,
        criteria: Optional[Criteria],
        reasons: Optional[list[str]] = None,
    ) -> str:
        """
        Mensaje personalizado para un match.

        Returns:
            Texto del LLM, o el template estático si el LLM falla o no responde
        """
        try:
            text = await asyncio.wait_for(
                self._generate_with_llm(listing, criteria),
                timeout=self.timeout_seconds,
            )
            if text:
                # El link nunca se recorta
                if listing.post_url and listing.post_url not in text:
                    link = f"\n\n🔗 {listing.post_url}"
                    return text[:MAX_MESSAGE_LENGTH - len(link)].rstrip() + link
                return text[:MAX_MESSAGE_LENGTH]
            logger.warning("Mensaje vacío del LLM, usando template", listing_id=listing.id)
        except asyncio.TimeoutError:
            logger.warning("Timeout generando mensaje, usando template", listing_id=listing.id)
        except Exception as e:
            logger.warning(
                "Error generando mensaje personalizado, usando template",
                listing_id=listing.id,
                error=str(e),
            )

        return build_listing_message(listing, reasons=reasons, currency=self.currency)
