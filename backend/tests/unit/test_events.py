import pytest
from tse_ingest.services.importer.events import EventBroadcaster, progress_percent


def test_progress_percent():
    assert progress_percent(0, 0) == 0
    assert progress_percent(50, 200) == 25
    assert progress_percent(3, 2) == 100


@pytest.mark.asyncio
async def test_fan_out_and_unsubscribe():
    events = EventBroadcaster()
    a, b = events.subscribe(), events.subscribe()

    events.job_progress(7, 10, 40)
    events.unsubscribe(b)
    events.batch_error(7, 1, 0, "boom")

    first = await a.get()
    assert first["type"] == "import.job.progress"
    assert first["jobId"] == 7
    assert first["percent"] == 25
    assert (await a.get())["message"] == "boom"
    assert b.qsize() == 1
    assert events.subscriber_count == 1


@pytest.mark.asyncio
async def test_full_subscriber_misses_events():
    events = EventBroadcaster(queue_size=2)
    slow = events.subscribe()
    for i in range(5):
        events.job_status(i, "processing")
    assert slow.qsize() == 2
    assert [(await slow.get())["jobId"] for _ in range(2)] == [0, 1]
