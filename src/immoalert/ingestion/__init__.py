"""Ingesta de posts de Facebook como listings crudos."""

from immoalert.ingestion.service import IngestionService, IngestionStats, matches_keywords

__all__ = ["IngestionService", "IngestionStats", "matches_keywords"]
