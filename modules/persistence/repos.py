from __future__ import annotations

import uuid as _uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import String, cast, func, select, update
from sqlalchemy.orm import Session

from modules.creation.models import RunSnapshot

from .models import Event, Run
UTC = timezone.utc


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _run_values(snap: RunSnapshot) -> dict[str, Any]:
    err = snap.error or {}
    return {
        "stage": snap.stage.value,
        "image_cid": snap.image_cid,
        "image_url": snap.image_url,
        "metadata_cid": snap.metadata_cid,
        "token_uri": snap.token_uri,
        "tx_hash": snap.tx_hash,
        "failed_stage": snap.failed_stage.value if snap.failed_stage else None,
        "error_code": err.get("code"),
        "error_message": err.get("message"),
        "updated_at": snap.updated_at,
    }


def create_run(session: Session, snap: RunSnapshot) -> Run:
    run = Run(
        id=_uuid.UUID(snap.id),
        name=snap.name,
        description=snap.description,
        created_at=snap.created_at,
        **_run_values(snap),
    )
    session.add(run)
    session.flush()
    return run


def update_run(session: Session, snap: RunSnapshot) -> None:
    session.execute(update(Run).where(cast(Run.id, String) == snap.id).values(**_run_values(snap)))


def get_run(session: Session, run_id: str | _uuid.UUID) -> Run | None:
    # Avoid dialect-dependent UUID casting by comparing as text
    rid = str(run_id)
    return session.scalars(select(Run).where(cast(Run.id, String) == rid)).first()


def list_runs(session: Session, *, stage: str | None = None, limit: int = 20) -> list[Run]:
    """List recent runs ordered by updated_at desc with optional stage filter.

    Caps limit to 200 to avoid accidental large scans.
    """
    lmt = max(1, min(int(limit), 200))
    stmt = select(Run)
    if stage:
        stmt = stmt.where(Run.stage == stage)
    stmt = stmt.order_by(Run.updated_at.desc(), Run.created_at.desc()).limit(lmt)
    return list(session.scalars(stmt).all())


def append_event(
    session: Session,
    *,
    run_id: str | _uuid.UUID,
    stage: str,
    code: str,
    level: str = "info",
    payload: dict[str, Any] | None = None,
) -> Event:
    rid = str(run_id)
    seq = session.scalar(select(func.count()).select_from(Event).where(cast(Event.run_id, String) == rid)) or 0
    evt = Event(
        id=_uuid.uuid4(),
        run_id=_uuid.UUID(str(run_id)),
        ts=_utcnow(),
        seq=int(seq) + 1,
        stage=stage,
        code=code,
        level=level,
        payload_json=payload or {},
    )
    session.add(evt)
    session.flush()
    return evt


def iter_events(
    session: Session,
    run_id: str | _uuid.UUID,
    *,
    since_ts: datetime | None = None,
    tail: int | None = None,
) -> list[Event]:
    rid = str(run_id)
    stmt = select(Event).where(cast(Event.run_id, String) == rid)
    if since_ts is not None:
        stmt = stmt.where(Event.ts >= since_ts)
        stmt = stmt.order_by(Event.seq.asc())
        return list(session.scalars(stmt).all())

    # Tail without since: fetch last N by seq desc, then reverse in memory
    stmt = stmt.order_by(Event.seq.desc())
    if tail is not None and tail > 0:
        stmt = stmt.limit(int(tail))
    out = list(session.scalars(stmt).all())
    out.reverse()
    return out
