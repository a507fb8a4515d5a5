import asyncio
import json
from typing import Optional
from fastapi import APIRouter
from fastapi.responses import StreamingResponse
from tse_ingest.services.importer.events import broadcaster

router = APIRouter()

KEEPALIVE_SECONDS = 15.0


@router.get("/progress/stream")
async def progress_stream(job_id: Optional[int] = None):
    async def event_generator():
        q = broadcaster.subscribe()
        try:
            # Initial lines to help proxies start streaming immediately
            yield ": init\n\n"
            yield "retry: 2000\n\n"
            while True:
                try:
                    event = await asyncio.wait_for(q.get(), timeout=KEEPALIVE_SECONDS)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                if job_id is not None and event.get("jobId") != job_id:
                    continue
                payload = json.dumps(event, ensure_ascii=False, default=str)
                yield f"event: {event['type']}\ndata: {payload}\n\n"
        finally:
            broadcaster.unsubscribe(q)

    headers = {
        "Cache-Control": "no-cache, no-store, must-revalidate",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=headers)
