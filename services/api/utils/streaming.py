from __future__ import annotations

import json
from typing import Any


def _dumps(obj: Any) -> str:
    # Snapshots carry datetimes and enums; stringify anything json can't encode
    return json.dumps(obj, separators=(",", ":"), default=str)


def ndjson_line(obj: dict) -> bytes:
    return (_dumps(obj) + "\n").encode("utf-8")


def sse_event(event: str, data: dict) -> bytes:
    return f"event: {event}\ndata: {_dumps(data)}\n\n".encode("utf-8")


def sse_heartbeat() -> bytes:
    return b":\n\n"
