from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, generate_latest

from modules.creation.errors import AlreadyInProgress, PipelineError, ValidationError
from modules.persistence.db import check_connection
from services.config import get_settings
from services.pipeline.factory import build_pipeline
from services.pipeline.metrics import REGISTRY
from services.pipeline.pipeline import CreationPipeline

from .routes import router as v1_router


_HEALTH_HITS = Counter("mf_api_healthz_hits", "Health endpoint hits", registry=REGISTRY)
_READY_GAUGE = Gauge("mf_api_ready", "Readiness status (1=ready, 0=not)", registry=REGISTRY)

_ERROR_STATUS = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    AlreadyInProgress: status.HTTP_409_CONFLICT,
}


def create_app(pipeline: CreationPipeline | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # One pipeline (one session slot) per process; config errors abort startup
        if app.state.pipeline is None:
            app.state.pipeline = await build_pipeline(get_settings())
        yield
        current: CreationPipeline | None = app.state.pipeline
        if current is not None and current.busy:
            await current.wait()

    app = FastAPI(title="Mint Forge API", version="0.1.0", docs_url=None, redoc_url=None, lifespan=lifespan)
    app.state.pipeline = pipeline

    @app.exception_handler(PipelineError)
    async def _pipeline_error(_: Request, exc: PipelineError) -> JSONResponse:
        code = next((s for t, s in _ERROR_STATUS.items() if isinstance(exc, t)), status.HTTP_500_INTERNAL_SERVER_ERROR)
        return JSONResponse(status_code=code, content={"detail": exc.to_dict()})

    @app.get("/healthz")
    def healthz() -> dict[str, Any]:
        _HEALTH_HITS.inc()
        return {"status": "ok", "ts": int(time.time())}

    @app.get("/readyz")
    def readyz(request: Request) -> Any:
        checks = get_settings().ready_check_set()
        try:
            if "db" in checks:
                check_connection()
            if "chain" in checks:
                current: CreationPipeline | None = request.app.state.pipeline
                if current is None or not current.chain_connected:
                    raise RuntimeError("chain readiness requested but no chain session is connected")
            _READY_GAUGE.set(1)
            return {"status": "ready"}
        except Exception as exc:  # noqa: BLE001
            _READY_GAUGE.set(0)
            return Response(content=f"not ready: {exc}", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)

    @app.get("/metrics")
    def metrics() -> Response:
        output = generate_latest(REGISTRY)
        return Response(output, media_type=CONTENT_TYPE_LATEST)

    app.include_router(v1_router)

    return app


app = create_app()
