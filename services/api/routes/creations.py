from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Response, status

from modules.persistence.db import get_session
from modules.persistence import repos
from services.api.deps import get_pipeline
from services.api.schemas.creations import (
    CreationCreateRequest,
    CreationResponse,
    CurrentResponse,
    ErrorResponse,
    RunListResponse,
    RunOut,
)
from services.pipeline.pipeline import CreationPipeline


router = APIRouter(prefix="", tags=["creations"])


@router.post(
    "/creations",
    response_model=CreationResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        200: {"model": CreationResponse, "description": "Terminal snapshot (wait=true)"},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def create_creation(
    response: Response,
    req: CreationCreateRequest = Body(
        examples={
            "cyberLion": {
                "summary": "Generate, pin and mint one image",
                "value": {"name": "Cyber Lion", "description": "A futuristic lion with cybernetic enhancements."},
            }
        }
    ),
    wait: bool = False,
    pipeline: CreationPipeline = Depends(get_pipeline),
) -> CreationResponse:
    # ValidationError / AlreadyInProgress propagate to the app-level handler
    if wait:
        snap = await pipeline.submit(req.name, req.description)
        response.status_code = status.HTTP_200_OK
    else:
        snap = pipeline.start(req.name, req.description)
    return CreationResponse(run=RunOut.from_snapshot(snap))


@router.get("/creations/current", response_model=CurrentResponse)
def get_current(pipeline: CreationPipeline = Depends(get_pipeline)) -> CurrentResponse:
    snap = pipeline.snapshot()
    stage = pipeline.stage
    return CurrentResponse(
        stage=stage.value,
        label=snap.label if snap else stage.label,
        busy=pipeline.busy,
        run=RunOut.from_snapshot(snap) if snap else None,
    )


@router.get("/creations", response_model=RunListResponse)
def list_creations(stage: str | None = None, limit: int = 20) -> RunListResponse:
    with get_session() as session:
        rows = repos.list_runs(session, stage=stage, limit=limit)
        return RunListResponse(runs=[RunOut.from_row(r) for r in rows])


@router.get("/creations/{run_id}", response_model=RunOut, responses={404: {"model": ErrorResponse}})
def get_creation(run_id: str) -> RunOut:
    with get_session() as session:
        row = repos.get_run(session, run_id)
        if not row:
            raise HTTPException(status_code=404, detail={"code": "not_found", "message": "run not found"})
        return RunOut.from_row(row)
