"""
Registro de jobs con nombre (scrape, enrich, match).

Cada job tiene su propio lock: el mismo job nunca corre dos veces a la
vez dentro del proceso. Los disparos manuales reciben "accepted" al
instante y el estado se consulta aparte.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import structlog

from immoalert.models.user import utcnow
from immoalert.scheduler.tasks import BackgroundTasks

logger = structlog.get_logger()

JobFunc = Callable[[], Awaitable[Any]]


class TriggerResult(str, Enum):
    ACCEPTED = "accepted"
    ALREADY_RUNNING = "already_running"


class UnknownJobError(KeyError):
    """El job pedido no está registrado."""


@dataclass
class JobStatus:
    """Estado de un job para el endpoint de status."""

    name: str
    running: bool = False
    runs: int = 0
    last_started_at: Optional[datetime] = None
    last_finished_at: Optional[datetime] = None
    last_result: Any = None
    last_error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "name": self.name,
            "running": self.running,
            "runs": self.runs,
            "last_started_at": self.last_started_at.isoformat() if self.last_started_at else None,
            "last_finished_at": self.last_finished_at.isoformat() if self.last_finished_at else None,
            "last_result": self.last_result,
            "last_error": self.last_error,
        }


@dataclass
class _Job:
    func: JobFunc
    lock: asyncio.Lock
    status: JobStatus
    # Disparado en segundo plano pero todavía sin arrancar
    pending: bool = False


def _summarize(result: Any) -> Any:
    if hasattr(result, "as_dict"):
        return result.as_dict()
    return result


class JobRunner:
    """Ejecuta jobs registrados sin solaparlos consigo mismos."""

    def __init__(self, background: Optional[BackgroundTasks] = None):
        self.background = background or BackgroundTasks()
        self._jobs: dict[str, _Job] = {}

    def register(self, name: str, func: JobFunc) -> None:
        self._jobs[name] = _Job(func=func, lock=asyncio.Lock(), status=JobStatus(name=name))

    @property
    def names(self) -> list[str]:
        return list(self._jobs)

    def _get(self, name: str) -> _Job:
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJobError(name) from None

    def is_running(self, name: str) -> bool:
        job = self._get(name)
        return job.pending or job.lock.locked()

    async def run(self, name: str) -> Optional[Any]:
        """
        Ejecuta el job y espera el resultado.

        Returns:
            El resultado del job, o None si ya estaba corriendo o falló
        """
        job = self._get(name)
        if job.lock.locked():
            logger.info("Job ya en ejecución, se omite", job=name)
            return None

        async with job.lock:
            status = job.status
            status.running = True
            status.runs += 1
            status.last_started_at = utcnow()
            logger.info("Job iniciado", job=name)

            try:
                result = await job.func()
            except Exception as e:
                status.last_error = str(e)
                logger.error("Job falló", job=name, error=str(e))
                return None
            else:
                status.last_result = _summarize(result)
                status.last_error = None
                logger.info("Job finalizado", job=name)
                return result
            finally:
                status.running = False
                status.last_finished_at = utcnow()

    def trigger(self, name: str) -> TriggerResult:
        """Dispara el job en segundo plano y vuelve enseguida."""
        job = self._get(name)
        if job.pending or job.lock.locked():
            return TriggerResult.ALREADY_RUNNING

        async def _run_triggered():
            job.pending = False
            return await self.run(name)

        job.pending = True
        self.background.spawn(_run_triggered, name=f"job:{name}")
        return TriggerResult.ACCEPTED

    def status(self) -> dict[str, JobStatus]:
        return {name: job.status for name, job in self._jobs.items()}
