"""Scheduler periódico: un loop asyncio por job con su intervalo."""

import asyncio
from typing import Optional

import structlog

from immoalert.scheduler.jobs import JobRunner

logger = structlog.get_logger()


class Scheduler:
    """Dispara cada job registrado cada N segundos."""

    def __init__(self, runner: JobRunner, intervals: dict[str, float]):
        self.runner = runner
        self.intervals = intervals
        self._loops: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._loops)

    async def _loop(self, name: str, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.runner.run(name)

    def start(self) -> None:
        if self._loops:
            return
        for name, interval in self.intervals.items():
            self._loops.append(asyncio.create_task(self._loop(name, interval), name=f"scheduler:{name}"))
        logger.info(
            "Scheduler iniciado",
            jobs={name: f"{interval:g}s" for name, interval in self.intervals.items()},
        )

    async def stop(self, timeout: Optional[float] = None) -> None:
        for task in self._loops:
            task.cancel()
        await asyncio.wait_for(
            asyncio.gather(*self._loops, return_exceptions=True), timeout=timeout
        )
        self._loops = []
        logger.info("Scheduler detenido")
