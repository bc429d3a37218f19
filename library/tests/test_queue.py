"""Tests for library.queue."""

from unittest import mock

import pytest

from library.queue import (
    ImportJobPayload,
    InlineImportQueue,
    ThreadPoolImportQueue,
    get_import_queue,
)


class TestInlineImportQueue:
    """Tests for InlineImportQueue."""

    def test_runs_immediately(self) -> None:
        """The handler is called in the enqueueing thread."""
        seen = []
        InlineImportQueue(seen.append).enqueue(ImportJobPayload(1, 2))
        assert seen == [ImportJobPayload(1, 2)]

    def test_failures_propagate(self) -> None:
        """Handler errors reach the caller."""

        def fail(payload):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            InlineImportQueue(fail).enqueue(ImportJobPayload(1, 2))


class TestThreadPoolImportQueue:
    """Tests for ThreadPoolImportQueue."""

    def test_runs_jobs_on_pool(self) -> None:
        """Every enqueued payload is handled."""
        seen = []
        queue = ThreadPoolImportQueue(seen.append, max_workers=2)
        for job_id in range(5):
            queue.enqueue(ImportJobPayload(job_id, 1))
        queue.shutdown()

        assert sorted(p.import_job_id for p in seen) == [0, 1, 2, 3, 4]

    def test_failures_are_logged(self) -> None:
        """A failing job is reported without stopping the pool."""

        def fail(payload):
            raise RuntimeError("boom")

        queue = ThreadPoolImportQueue(fail, max_workers=1)
        with mock.patch("library.queue.logger") as logger:
            future = queue.enqueue(ImportJobPayload(9, 1))
            queue.shutdown()

        assert isinstance(future.exception(), RuntimeError)
        logger.error.assert_called_once()
        assert logger.error.call_args.args[1] == 9


class TestGetImportQueue:
    """Tests for backend selection."""

    def test_inline_backend(self, inline_queue) -> None:
        """IMPORT_QUEUE_BACKEND=inline selects the inline queue."""
        assert isinstance(inline_queue, InlineImportQueue)

    def test_thread_backend(self, settings) -> None:
        """IMPORT_QUEUE_BACKEND=thread selects the pool."""
        settings.IMPORT_QUEUE_BACKEND = "thread"
        get_import_queue.cache_clear()
        try:
            queue = get_import_queue()
            assert isinstance(queue, ThreadPoolImportQueue)
            queue.shutdown()
        finally:
            get_import_queue.cache_clear()
