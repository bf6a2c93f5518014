from __future__ import annotations

from typing import Any

from modules.creation.models import RunSnapshot
from modules.persistence import repos
from modules.persistence.db import get_session


class RunJournal:
    """Persists every run transition and event to the journal database.

    Writes are synchronous on the event loop: one short transaction per event,
    at most one active run per process. Observers registered after the journal
    see the row already committed for the event they receive.
    """

    def on_event(self, snapshot: RunSnapshot, code: str, payload: dict[str, Any], *, level: str = "info") -> None:
        with get_session() as session:
            if code == "run.created":
                repos.create_run(session, snapshot)
            else:
                repos.update_run(session, snapshot)
            repos.append_event(
                session,
                run_id=snapshot.id,
                stage=snapshot.stage.value,
                code=code,
                level=level,
                payload=payload,
            )
