from __future__ import annotations

import asyncio
import time
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from services.api.deps import get_pipeline
from services.api.schemas.creations import RunOut
from services.api.utils.streaming import sse_event, sse_heartbeat
from services.config import get_settings
from services.pipeline.pipeline import CreationPipeline


router = APIRouter(prefix="", tags=["progress"])


@router.get(
    "/creations/current/stream",
    responses={
        200: {
            "content": {
                "text/event-stream": {
                    "examples": {
                        "sseExample": {
                            "summary": "Stage events until the run is terminal",
                            "value": "event: stage\ndata: {\"stage\":\"generating_image\",\"label\":\"Generating Image...\",\"busy\":true}\n\n"
                                     "event: stage\ndata: {\"stage\":\"idle\",\"label\":\"Minted\",\"busy\":false}\n\n"
                        }
                    }
                }
            }
        }
    },
)
async def stream_current(pipeline: CreationPipeline = Depends(get_pipeline)) -> StreamingResponse:
    settings = get_settings()
    poll_s = settings.sse_poll_ms / 1000.0
    heartbeat_s = 15.0

    async def _gen() -> AsyncIterator[bytes]:
        last_hb = time.time()
        last_key: tuple[str | None, str] | None = None
        while True:
            snap = pipeline.snapshot()
            key = (snap.id if snap else None, snap.stage.value if snap else pipeline.stage.value)
            if key != last_key:
                yield sse_event("stage", {
                    "stage": pipeline.stage.value,
                    "label": snap.label if snap else pipeline.stage.label,
                    "busy": pipeline.busy,
                    "run": RunOut.from_snapshot(snap).model_dump() if snap else None,
                })
                last_key = key

            now = time.time()
            if now - last_hb >= heartbeat_s:
                yield sse_heartbeat()
                last_hb = now

            # Close once the slot is free again
            if not pipeline.busy:
                break
            await asyncio.sleep(poll_s)

    return StreamingResponse(_gen(), media_type="text/event-stream", headers={
        "Cache-Control": "no-store",
    })
