from __future__ import annotations

import datetime as dt
from typing import Any, Iterable

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from modules.persistence.db import get_session
from modules.persistence import repos
from services.api.schemas.creations import ErrorResponse
from services.api.utils.streaming import ndjson_line
from services.config import get_settings


router = APIRouter(prefix="", tags=["logs"])


def parse_since_ts(value: str | None) -> dt.datetime | None:
    if not value:
        return None
    v = value.strip()
    # Accept both ISO with Z and without
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    return dt.datetime.fromisoformat(v)


def event_to_logline(evt) -> dict[str, Any]:  # type: ignore[no-untyped-def]
    payload = evt.payload_json if isinstance(evt.payload_json, dict) else {}
    ts = evt.ts if evt.ts.tzinfo else evt.ts.replace(tzinfo=dt.timezone.utc)
    out: dict[str, Any] = {
        "ts": ts.isoformat().replace("+00:00", "Z"),
        "seq": evt.seq,
        "level": evt.level,
        "code": evt.code,
        "stage": evt.stage,
        "message": payload.get("message") or evt.code,
        "run_id": str(evt.run_id),
    }
    if payload:
        out["payload"] = payload
    return out


@router.get(
    "/creations/{run_id}/logs",
    responses={
        200: {
            "content": {
                "application/x-ndjson": {
                    "examples": {
                        "ndjson": {
                            "summary": "Two log lines (stage + pinned content)",
                            "value": "{\"ts\":\"2025-09-12T21:20:00Z\",\"seq\":2,\"level\":\"info\",\"code\":\"stage.enter\",\"stage\":\"generating_image\",\"message\":\"stage.enter\",\"run_id\":\"<uuid>\"}\n{\"ts\":\"2025-09-12T21:20:09Z\",\"seq\":5,\"level\":\"info\",\"code\":\"content.pinned\",\"stage\":\"uploading_image\",\"message\":\"content.pinned\",\"run_id\":\"<uuid>\"}\n"
                        }
                    }
                }
            }
        },
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse}
    },
)
def get_logs(run_id: str, tail: int | None = None, since_ts: str | None = None) -> StreamingResponse:
    with get_session() as session:
        run = repos.get_run(session, run_id)
        if not run:
            raise HTTPException(status_code=404, detail={"code": "not_found", "message": "run not found"})

    settings = get_settings()
    if tail is None:
        tail = settings.logs_tail_default
    if tail <= 0 or tail > settings.logs_tail_max:
        raise HTTPException(status_code=422, detail={"code": "invalid_input", "message": f"tail must be 1..{settings.logs_tail_max}"})

    try:
        since_dt = parse_since_ts(since_ts)
    except ValueError:
        raise HTTPException(status_code=422, detail={"code": "invalid_input", "message": "invalid since_ts"})

    def _gen() -> Iterable[bytes]:
        with get_session() as session:
            events = repos.iter_events(session, run_id, since_ts=since_dt, tail=tail)
        for e in events:
            yield ndjson_line(event_to_logline(e))

    return StreamingResponse(_gen(), media_type="application/x-ndjson", headers={
        "Cache-Control": "no-store",
    })
