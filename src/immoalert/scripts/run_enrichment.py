"""
Script para enriquecer con IA los listings pendientes.

Uso:
    python -m immoalert.scripts.run_enrichment
    python -m immoalert.scripts.run_enrichment --limit 20
"""

import argparse
import asyncio
import sys
from typing import Optional

import structlog

from immoalert.config import get_settings
from immoalert.enrichment import EnrichmentService
from immoalert.logging_config import configure_logging

logger = structlog.get_logger()


async def run_enrichment(limit: Optional[int] = None) -> dict:
    """
    Enriquece un lote de listings.

    Args:
        limit: Tamaño del lote (por defecto enrichment_batch_size)
    """
    settings = get_settings()
    if limit:
        settings = settings.model_copy(update={"enrichment_batch_size": limit})

    service = EnrichmentService(settings=settings)
    stats = await service.process_unenriched()
    return stats.as_dict()


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Enriquece listings con IA")
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Máximo de listings a procesar",
    )
    args = parser.parse_args()

    configure_logging(get_settings().log_level)

    try:
        stats = asyncio.run(run_enrichment(limit=args.limit))
        sys.exit(0 if stats["errors"] == 0 else 1)
    except KeyboardInterrupt:
        logger.info("Enriquecimiento interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en enriquecimiento", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
