"""
Script para ejecutar una pasada de matching y notificaciones.

Uso:
    python -m immoalert.scripts.run_matching
"""

import asyncio
import sys

import structlog

from immoalert.config import get_settings
from immoalert.logging_config import configure_logging
from immoalert.matching import MatchingEngine

logger = structlog.get_logger()


async def run_matching() -> dict:
    """Ejecuta una pasada de matching sobre una página de listings."""
    engine = MatchingEngine()
    try:
        stats = await engine.process_all()
    finally:
        await engine.dispatcher.client.close()
    return stats.as_dict()


def main():
    """Entry point del script."""
    configure_logging(get_settings().log_level)
    logger.info("Iniciando pasada de matching...")

    try:
        stats = asyncio.run(run_matching())
        logger.info("Matching finalizado", **stats)
        sys.exit(0 if stats["errors"] == 0 else 1)
    except KeyboardInterrupt:
        logger.info("Matching interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en matching", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
