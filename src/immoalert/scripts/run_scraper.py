"""
Script para scrapear los grupos de Facebook monitoreados.

Uso:
    python -m immoalert.scripts.run_scraper
    python -m immoalert.scripts.run_scraper --add-group 123456 --name "Location Abidjan" --keywords louer,location
    python -m immoalert.scripts.run_scraper --remove-group 123456
"""

import argparse
import asyncio
import sys

import structlog

from immoalert.config import get_settings
from immoalert.ingestion import IngestionService
from immoalert.logging_config import configure_logging

logger = structlog.get_logger()


async def run_scraper() -> dict:
    """Scrapea todos los grupos activos."""
    service = IngestionService()
    try:
        stats = await service.scrape_all_groups()
    finally:
        await service.scraper.close()
    return stats.as_dict()


def main():
    """Entry point del script."""
    parser = argparse.ArgumentParser(description="Scraper de grupos de Facebook")
    parser.add_argument("--add-group", type=str, help="ID del grupo a agregar")
    parser.add_argument("--name", type=str, help="Nombre del grupo (con --add-group)")
    parser.add_argument(
        "--keywords",
        type=str,
        default="",
        help="Keywords separadas por coma (con --add-group)",
    )
    parser.add_argument("--remove-group", type=str, help="ID del grupo a desactivar")
    args = parser.parse_args()

    configure_logging(get_settings().log_level)

    if args.add_group:
        keywords = [k.strip() for k in args.keywords.split(",") if k.strip()]
        IngestionService().add_group(args.add_group, args.name or args.add_group, keywords)
        sys.exit(0)

    if args.remove_group:
        IngestionService().remove_group(args.remove_group)
        sys.exit(0)

    try:
        stats = asyncio.run(run_scraper())
        logger.info("Scraping finalizado", **stats)
        sys.exit(0 if stats["errors"] == 0 else 1)
    except KeyboardInterrupt:
        logger.info("Scraping interrumpido por usuario")
        sys.exit(130)
    except Exception as e:
        logger.error("Error fatal en scraping", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
