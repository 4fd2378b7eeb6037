"""Serialized execution lane over a single database connection.

SQLite executes one statement at a time per connection, and temporary tables
only exist on the connection that created them. The lane owns exactly one
``AsyncConnection`` and runs submitted jobs one after another in FIFO order
on a single worker task. Each job runs as one transaction: committed when it
returns, rolled back when it raises.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

T = TypeVar("T")

Job = Callable[[AsyncConnection], Awaitable[T]]


class ExecutionLane:
    """Runs storage jobs one at a time on a lazily opened connection.

    Callers await a shielded future, so a caller that stops waiting does not
    cancel its job: once submitted, a job runs to completion or failure.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)
        self._queue: asyncio.Queue[tuple[Job[Any], asyncio.Future[Any]] | None] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._connection: AsyncConnection | None = None
        self._closed = False

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def closed(self) -> bool:
        return self._closed

    async def submit(self, job: Job[T]) -> T:
        """Queue a job and wait for its result.

        Args:
            job: Coroutine function receiving the lane's connection.

        Returns:
            Whatever the job returns.

        Raises:
            RuntimeError: If the lane has been closed.
        """
        if self._closed:
            raise RuntimeError("ExecutionLane is closed")

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((job, future))
        self._ensure_worker()
        return await asyncio.shield(future)

    async def close(self) -> None:
        """Drain queued jobs, then close the connection and dispose the engine."""
        if self._closed:
            return
        self._closed = True

        if self._worker is not None:
            self._queue.put_nowait(None)
            await self._worker
            self._worker = None

        if self._connection is not None:
            await self._connection.close()
            self._connection = None
        await self._engine.dispose()
        self._logger.info("execution_lane_closed")

    def _ensure_worker(self) -> None:
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                job, future = item
                await self._run_job(job, future)
            finally:
                self._queue.task_done()

    async def _run_job(self, job: Job[Any], future: asyncio.Future[Any]) -> None:
        try:
            connection = await self._connect()
            result = await job(connection)
            await connection.commit()
        except Exception as e:
            try:
                await self._rollback()
            except Exception:
                self._logger.exception("execution_lane_rollback_failed")
            if not future.done():
                future.set_exception(e)
            return

        if not future.done():
            future.set_result(result)

    async def _connect(self) -> AsyncConnection:
        if self._connection is None:
            self._connection = await self._engine.connect()
            self._logger.debug("execution_lane_connected", url=str(self._engine.url))
        return self._connection

    async def _rollback(self) -> None:
        if self._connection is not None and self._connection.in_transaction():
            await self._connection.rollback()
