from fastapi import APIRouter
from .creations import router as creations_router
from .logs import router as logs_router
from .progress import router as progress_router

router = APIRouter(prefix="/v1")

@router.get("/", tags=["meta"])
def root() -> dict[str, str]:
    return {"service": "mint-forge", "version": "v1"}

router.include_router(progress_router)
router.include_router(creations_router)
router.include_router(logs_router)
