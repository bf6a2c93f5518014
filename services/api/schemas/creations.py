from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from modules.creation.errors import SUMMARIES, PipelineError
from modules.creation.models import RunSnapshot, Stage


class CreationCreateRequest(BaseModel):
    # Length bounds are enforced by the pipeline so the rejection stays a pipeline ValidationError
    name: str
    description: str


class RunOut(BaseModel):
    id: str
    stage: str
    label: str
    name: str
    description: str
    image_cid: str | None = None
    image_url: str | None = None
    metadata_cid: str | None = None
    token_uri: str | None = None
    tx_hash: str | None = None
    failed_stage: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    created_at: str
    updated_at: str

    @classmethod
    def from_snapshot(cls, snap: RunSnapshot) -> "RunOut":
        err = snap.error or {}
        return cls(
            id=snap.id,
            stage=snap.stage.value,
            label=snap.label,
            name=snap.name,
            description=snap.description,
            image_cid=snap.image_cid,
            image_url=snap.image_url,
            metadata_cid=snap.metadata_cid,
            token_uri=snap.token_uri,
            tx_hash=snap.tx_hash,
            failed_stage=snap.failed_stage.value if snap.failed_stage else None,
            error_code=err.get("code"),
            error_message=err.get("message"),
            created_at=_iso(snap.created_at),
            updated_at=_iso(snap.updated_at),
        )

    @classmethod
    def from_row(cls, row) -> "RunOut":  # type: ignore[no-untyped-def]
        stage = Stage(row.stage)
        label = stage.label if stage is not Stage.FAILED else SUMMARIES.get(row.error_code or "", PipelineError.summary)
        return cls(
            id=str(row.id),
            stage=row.stage,
            label=label,
            name=row.name,
            description=row.description,
            image_cid=row.image_cid,
            image_url=row.image_url,
            metadata_cid=row.metadata_cid,
            token_uri=row.token_uri,
            tx_hash=row.tx_hash,
            failed_stage=row.failed_stage,
            error_code=row.error_code,
            error_message=row.error_message,
            created_at=_iso(row.created_at),
            updated_at=_iso(row.updated_at),
        )


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        return value.isoformat() + "Z"
    return value.isoformat().replace("+00:00", "Z")


class CreationResponse(BaseModel):
    run: RunOut


class CurrentResponse(BaseModel):
    stage: str
    label: str
    busy: bool
    run: RunOut | None = None


class RunListResponse(BaseModel):
    runs: list[RunOut] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None
    stage: str | None = None
