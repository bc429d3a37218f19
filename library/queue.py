"""Job queue for import jobs.

The inline backend runs a job in the calling thread. The thread backend
runs jobs on a bounded pool, one worker per job, so several users' imports
proceed concurrently.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from django.conf import settings
from django.db import connection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImportJobPayload:
    """Message delivered to an import worker."""

    import_job_id: int
    user_id: int

    def to_dict(self) -> dict[str, int]:
        return {"importJobId": self.import_job_id, "userId": self.user_id}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ImportJobPayload:
        """Read a payload in its message form.

        Raises:
            ValueError: If either id is missing or not an integer.
        """
        try:
            return cls(import_job_id=int(data["importJobId"]), user_id=int(data["userId"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Invalid import job payload: {dict(data)!r}") from exc


ImportJobHandler = Callable[[ImportJobPayload], Any]


class ImportQueue(Protocol):
    def enqueue(self, payload: ImportJobPayload) -> None:
        ...


class InlineImportQueue:
    """Runs each job immediately; failures propagate to the caller."""

    def __init__(self, handler: ImportJobHandler) -> None:
        self._handler = handler

    def enqueue(self, payload: ImportJobPayload) -> None:
        self._handler(payload)


class ThreadPoolImportQueue:
    """Runs jobs on a bounded thread pool."""

    def __init__(self, handler: ImportJobHandler, max_workers: int) -> None:
        self._handler = handler
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="import-worker"
        )

    def enqueue(self, payload: ImportJobPayload) -> Future:
        future = self._executor.submit(self._run, payload)
        future.add_done_callback(lambda done: self._report(payload, done))
        return future

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _run(self, payload: ImportJobPayload) -> Any:
        try:
            return self._handler(payload)
        finally:
            # Worker threads hold their own connection.
            connection.close()

    def _report(self, payload: ImportJobPayload, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Import job %s failed in worker",
                payload.import_job_id,
                exc_info=(type(exc), exc, exc.__traceback__),
            )


@lru_cache(maxsize=1)
def get_import_queue() -> ImportQueue:
    """The queue backend selected by IMPORT_QUEUE_BACKEND."""
    from library.services.jobs import handle_import_job

    backend = settings.IMPORT_QUEUE_BACKEND
    if backend == "inline":
        return InlineImportQueue(handle_import_job)
    if backend == "thread":
        return ThreadPoolImportQueue(
            handle_import_job, max_workers=max(1, settings.IMPORT_WORKER_CONCURRENCY)
        )
    raise ValueError(f"Unknown import queue backend: {backend!r}")
