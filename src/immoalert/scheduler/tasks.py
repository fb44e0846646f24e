"""Tareas en segundo plano con concurrencia acotada."""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from immoalert.conversation.locks import KeyedLock

logger = structlog.get_logger()


class BackgroundTasks:
    """
    Lanza corrutinas sin esperarlas.

    Mantiene referencias fuertes a las tareas hasta que terminan (el loop
    solo guarda referencias débiles) y limita cuántas corren a la vez.
    Las tareas con la misma key corren en orden de llegada y esperan su
    turno antes de ocupar un lugar del pool, así una ráfaga de una sola
    key no bloquea a las demás.
    Los errores se loguean; nunca se propagan al que las lanzó.
    """

    def __init__(self, concurrency: int = 4):
        self._semaphore = asyncio.Semaphore(concurrency)
        self._keys = KeyedLock()
        self._tasks: set[asyncio.Task] = set()

    async def _run_bounded(
        self, factory: Callable[[], Awaitable[object]], name: Optional[str]
    ) -> Optional[object]:
        async with self._semaphore:
            try:
                return await factory()
            except Exception as e:
                logger.error("Tarea en segundo plano falló", task=name, error=str(e))
                return None

    def spawn(
        self,
        factory: Callable[[], Awaitable[object]],
        name: Optional[str] = None,
        key: Optional[str] = None,
    ) -> asyncio.Task:
        async def _run():
            if key is None:
                return await self._run_bounded(factory, name)
            async with self._keys.acquire(key):
                return await self._run_bounded(factory, name)

        task = asyncio.create_task(_run(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Espera a que terminen las tareas en curso."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
