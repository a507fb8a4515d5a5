import asyncio
import pytest
from tse_ingest.services.importer.queue import ImportQueue


class RecordingRunner:
    def __init__(self):
        self.order = []
        self.concurrent = 0
        self.max_concurrent = 0
        self.gate = asyncio.Event()
        self.contexts = {}

    async def __call__(self, job_id, ctx):
        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        self.order.append(job_id)
        self.contexts[job_id] = ctx
        try:
            await self.gate.wait()
            if job_id == 2:
                raise RuntimeError("boom")
        finally:
            self.concurrent -= 1


@pytest.mark.asyncio
async def test_jobs_run_one_at_a_time_in_fifo_order():
    runner = RecordingRunner()
    queue = ImportQueue(runner)
    for job_id in (1, 2, 3):
        assert queue.enqueue(job_id)
    await asyncio.sleep(0)
    status = queue.status()
    assert status["isProcessing"] is True
    assert status["currentJobId"] == 1
    assert status["orderedQueue"] == [2, 3]
    assert status["queueLength"] == 2

    runner.gate.set()
    await asyncio.wait_for(queue.join(), timeout=5)
    assert runner.order == [1, 2, 3]
    assert runner.max_concurrent == 1
    assert queue.status() == {"isProcessing": False, "currentJobId": None, "queueLength": 0, "orderedQueue": []}


@pytest.mark.asyncio
async def test_duplicate_enqueue_rejected():
    runner = RecordingRunner()
    queue = ImportQueue(runner)
    assert queue.enqueue(1)
    assert queue.enqueue(2)
    await asyncio.sleep(0)
    assert not queue.enqueue(1)  # running
    assert not queue.enqueue(2)  # waiting
    assert queue.status()["orderedQueue"] == [2]
    runner.gate.set()
    await asyncio.wait_for(queue.join(), timeout=5)


@pytest.mark.asyncio
async def test_remove_and_cancel_waiting_job():
    runner = RecordingRunner()
    queue = ImportQueue(runner)
    for job_id in (1, 2, 3):
        queue.enqueue(job_id)
    await asyncio.sleep(0)
    assert queue.remove(2)
    assert not queue.remove(2)
    assert queue.cancel(3)
    assert queue.status()["orderedQueue"] == []
    runner.gate.set()
    await asyncio.wait_for(queue.join(), timeout=5)
    assert runner.order == [1]


@pytest.mark.asyncio
async def test_cancel_running_job_signals_context():
    runner = RecordingRunner()
    queue = ImportQueue(runner)
    queue.enqueue(1)
    await asyncio.sleep(0)
    assert queue.cancel(1)
    ctx = runner.contexts[1]
    assert ctx.cancelled
    assert ctx.abort_event.is_set()
    assert not queue.cancel(99)
    runner.gate.set()
    await asyncio.wait_for(queue.join(), timeout=5)


@pytest.mark.asyncio
async def test_worker_restarts_after_idle():
    runner = RecordingRunner()
    runner.gate.set()
    queue = ImportQueue(runner)
    queue.enqueue(1)
    await asyncio.wait_for(queue.join(), timeout=5)
    queue.enqueue(4)
    await asyncio.wait_for(queue.join(), timeout=5)
    assert runner.order == [1, 4]
