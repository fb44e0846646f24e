"""
Enriquecimiento de listings con IA.

Cada listing pasa una única vez por el extractor: se guardan los campos
extraídos, ai_enriched=True y el resultado del control de calidad.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from immoalert.analysis import ExtractionResult, ListingExtractor
from immoalert.config import Settings, get_settings
from immoalert.database import ListingRepository
from immoalert.models import Listing

logger = structlog.get_logger()


def is_valid_extraction(
    result: ExtractionResult,
    threshold: float,
    min_price: float,
    max_price: float,
) -> bool:
    """
    Control de calidad de una extracción.

    Válida si la confianza supera el umbral, tiene precio o ubicación, y
    el precio (si está) cae en un rango razonable.
    """
    if result.confidence < threshold:
        return False
    if not result.price and not result.location:
        return False
    if result.price and not (min_price <= result.price <= max_price):
        return False
    return True


@dataclass
class EnrichmentStats:
    processed: int = 0
    valid: int = 0
    invalid: int = 0
    errors: int = 0

    def as_dict(self) -> dict:
        return {
            "processed": self.processed,
            "valid": self.valid,
            "invalid": self.invalid,
            "errors": self.errors,
        }


class EnrichmentService:
    """Completa los listings crudos con los datos extraídos por el LLM."""

    def __init__(
        self,
        extractor: Optional[ListingExtractor] = None,
        listing_repo: Optional[ListingRepository] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.extractor = extractor or ListingExtractor()
        self.listing_repo = listing_repo or ListingRepository()

    def _is_valid(self, result: ExtractionResult) -> bool:
        return is_valid_extraction(
            result,
            threshold=self.settings.ai_confidence_threshold,
            min_price=self.settings.listing_min_price,
            max_price=self.settings.listing_max_price,
        )

    async def enrich_listing(self, listing: Listing) -> Optional[Listing]:
        """Extrae, valida y guarda en una sola actualización."""
        result = await self.extractor.extract(listing.original_text)
        is_valid = self._is_valid(result)

        fields = {
            "title": result.title,
            "price": result.price,
            "location": result.location,
            "surface": result.surface,
            "rooms": result.rooms,
            "property_type": result.property_type.value if result.property_type else None,
            "contact": result.contact,
            "furnished": result.furnished,
            "description": result.description,
            "extracted_data": result.to_dict(),
            "confidence_score": result.confidence,
            "is_valid": is_valid,
        }
        updated = self.listing_repo.save_enrichment(listing.id, fields)

        logger.info(
            "Listing enriquecido",
            post_id=listing.post_id,
            confidence=round(result.confidence, 2),
            is_valid=is_valid,
        )
        return updated

    async def process_unenriched(self) -> EnrichmentStats:
        """Procesa un lote de listings pendientes de enriquecimiento."""
        stats = EnrichmentStats()
        listings = self.listing_repo.get_unenriched(limit=self.settings.enrichment_batch_size)
        logger.info("Iniciando enriquecimiento", pending=len(listings))

        for listing in listings:
            stats.processed += 1
            try:
                updated = await self.enrich_listing(listing)
            except Exception as e:
                stats.errors += 1
                logger.error("Error enriqueciendo listing", listing_id=listing.id, error=str(e))
                continue

            if updated is not None and updated.is_valid:
                stats.valid += 1
            else:
                stats.invalid += 1

        logger.info("Enriquecimiento completado", **stats.as_dict())
        return stats
