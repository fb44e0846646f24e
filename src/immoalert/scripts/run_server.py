"""
Servidor HTTP: webhook de WhatsApp, disparo manual de jobs y scheduler.

Uso:
    python -m immoalert.scripts.run_server
"""

import asyncio
import sys
from typing import Optional

import structlog
from aiohttp import web

from immoalert.clients import WhapiClient, parse_incoming_messages
from immoalert.config import Settings, get_settings
from immoalert.conversation import ConversationEngine
from immoalert.enrichment import EnrichmentService
from immoalert.ingestion import IngestionService
from immoalert.logging_config import configure_logging
from immoalert.matching import MatchingEngine
from immoalert.notifications import NotificationDispatcher
from immoalert.scheduler import (
    BackgroundTasks,
    JobRunner,
    Scheduler,
    TriggerResult,
    UnknownJobError,
)

logger = structlog.get_logger()

CONVERSATION_ENGINE = web.AppKey("conversation_engine", ConversationEngine)
JOB_RUNNER = web.AppKey("job_runner", JobRunner)
MESSAGE_TASKS = web.AppKey("message_tasks", BackgroundTasks)
SETTINGS = web.AppKey("settings", Settings)


def build_job_runner(
    background: BackgroundTasks,
    ingestion: IngestionService,
    enrichment: EnrichmentService,
    matching: MatchingEngine,
) -> JobRunner:
    runner = JobRunner(background)
    runner.register("scrape", ingestion.scrape_all_groups)
    runner.register("enrich", enrichment.process_unenriched)
    runner.register("match", matching.process_all)
    return runner


def scheduler_intervals(settings: Settings) -> dict[str, float]:
    """Intervalos en segundos por job."""
    return {
        "scrape": settings.scraper_interval_minutes * 60,
        "enrich": settings.enrichment_interval_minutes * 60,
        "match": settings.matching_interval_minutes * 60,
    }


def _authorized_webhook(request: web.Request, settings: Settings) -> bool:
    secret = settings.whapi_webhook_secret
    if not secret:
        return True
    provided = request.headers.get("X-Webhook-Secret") or request.query.get("secret")
    return provided == secret


async def handle_webhook(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS]
    if not _authorized_webhook(request, settings):
        return web.json_response({"error": "forbidden"}, status=403)

    try:
        payload = await request.json()
    except ValueError:
        return web.json_response({"error": "Invalid JSON"}, status=400)

    if not isinstance(payload, dict) or not isinstance(payload.get("messages"), list):
        return web.json_response(
            {"error": "Invalid payload: messages array required"}, status=400
        )

    engine = request.app[CONVERSATION_ENGINE]
    message_tasks = request.app[MESSAGE_TASKS]
    incoming = parse_incoming_messages(payload)

    for message in incoming:
        message_tasks.spawn(
            lambda m=message: engine.handle_incoming_message(m.sender, m.text, m.message_id),
            name=f"message:{message.sender}",
            key=message.sender,
        )

    logger.debug("Webhook recibido", messages=len(payload["messages"]), accepted=len(incoming))
    return web.json_response({"status": "ok", "processed": len(incoming)})


async def verify_webhook(request: web.Request) -> web.Response:
    challenge = request.query.get("challenge")
    if challenge:
        return web.Response(text=challenge)
    return web.json_response({"status": "ok", "message": "Webhook endpoint active"})


async def health(_: web.Request) -> web.Response:
    return web.Response(text="ok")


async def trigger_job(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS]
    token = request.headers.get("X-Trigger-Token")
    expected = settings.job_trigger_token
    if not expected or token != expected:
        return web.Response(text="forbidden", status=403)

    name = request.match_info["name"]
    try:
        result = request.app[JOB_RUNNER].trigger(name)
    except UnknownJobError:
        return web.json_response({"error": f"unknown job: {name}"}, status=404)

    if result == TriggerResult.ALREADY_RUNNING:
        return web.json_response({"job": name, "status": result.value}, status=409)

    logger.info("Job disparado manualmente", job=name)
    return web.json_response({"job": name, "status": result.value}, status=202)


async def jobs_status(request: web.Request) -> web.Response:
    statuses = request.app[JOB_RUNNER].status()
    return web.json_response({name: status.as_dict() for name, status in statuses.items()})


def create_app(
    engine: ConversationEngine,
    runner: JobRunner,
    message_tasks: BackgroundTasks,
    settings: Settings,
) -> web.Application:
    app = web.Application()
    app[CONVERSATION_ENGINE] = engine
    app[JOB_RUNNER] = runner
    app[MESSAGE_TASKS] = message_tasks
    app[SETTINGS] = settings

    app.router.add_post("/webhook/whapi", handle_webhook)
    app.router.add_get("/webhook/whapi", verify_webhook)
    app.router.add_get("/health", health)
    app.router.add_post("/jobs/{name}", trigger_job)
    app.router.add_get("/jobs", jobs_status)
    return app


async def serve(settings: Optional[Settings] = None):
    settings = settings or get_settings()
    # Pools separados: un job largo no le quita lugar a los mensajes
    message_tasks = BackgroundTasks(settings.background_concurrency)
    job_tasks = BackgroundTasks(3)

    whapi = WhapiClient()
    ingestion = IngestionService()
    runner = build_job_runner(
        job_tasks,
        ingestion=ingestion,
        enrichment=EnrichmentService(),
        matching=MatchingEngine(dispatcher=NotificationDispatcher(client=whapi)),
    )
    engine = ConversationEngine(client=whapi)

    app = create_app(engine, runner, message_tasks, settings)
    web_runner = web.AppRunner(app)
    await web_runner.setup()
    site = web.TCPSite(web_runner, host=settings.server_listen, port=settings.server_port)

    scheduler = Scheduler(runner, scheduler_intervals(settings))

    try:
        await site.start()
        if settings.scheduler_enabled:
            scheduler.start()
        logger.info(
            "Servidor activo",
            listen=settings.server_listen,
            port=settings.server_port,
            scheduler=settings.scheduler_enabled,
        )
        await asyncio.Event().wait()
    finally:
        if scheduler.running:
            await scheduler.stop()
        await message_tasks.cancel_all()
        await job_tasks.cancel_all()
        await web_runner.cleanup()
        await whapi.close()
        await ingestion.scraper.close()


def main():
    """Entry point del servidor."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info("Iniciando servidor ImmoAlert...")

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Servidor detenido por usuario")
        sys.exit(0)
    except Exception as e:
        logger.error("Error fatal en servidor", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
