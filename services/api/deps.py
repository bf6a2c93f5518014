from __future__ import annotations

from fastapi import HTTPException, Request

from services.pipeline.pipeline import CreationPipeline


def get_pipeline(request: Request) -> CreationPipeline:
    pipeline: CreationPipeline | None = request.app.state.pipeline
    if pipeline is None:
        raise HTTPException(status_code=503, detail={"code": "not_ready", "message": "pipeline not initialized"})
    return pipeline
