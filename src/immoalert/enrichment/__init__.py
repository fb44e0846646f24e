"""Enriquecimiento de listings con extracción por LLM."""

from immoalert.enrichment.service import EnrichmentService, EnrichmentStats, is_valid_extraction

__all__ = ["EnrichmentService", "EnrichmentStats", "is_valid_extraction"]
