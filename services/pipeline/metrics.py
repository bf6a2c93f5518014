from __future__ import annotations

from typing import Any

from prometheus_client import CollectorRegistry, Counter, Gauge

from modules.creation.models import RunSnapshot


REGISTRY = CollectorRegistry()
_RUNS = Counter("mf_runs_total", "Creation runs by terminal outcome", ["outcome"], registry=REGISTRY)
_STAGES = Counter("mf_stage_entered_total", "Pipeline stage entries", ["stage"], registry=REGISTRY)
_ACTIVE = Gauge("mf_pipeline_active", "Run currently occupying the pipeline slot (1=busy)", registry=REGISTRY)


class RunMetrics:
    def on_event(self, snapshot: RunSnapshot, code: str, payload: dict[str, Any], *, level: str = "info") -> None:
        if code == "run.created":
            _ACTIVE.set(1)
        elif code == "stage.enter":
            _STAGES.labels(stage=snapshot.stage.value).inc()
        elif code in {"run.succeeded", "run.failed"}:
            outcome = "succeeded" if code == "run.succeeded" else str(payload.get("code", "internal"))
            _RUNS.labels(outcome=outcome).inc()
            _ACTIVE.set(0)
