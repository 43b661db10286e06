from fastapi import APIRouter
from app.api.v1.endpoints import health, tenders

router = APIRouter(prefix="/v1")

router.include_router(health.router, prefix="/health", tags=["Health"])
router.include_router(tenders.router, prefix="/tenders", tags=["Tenders"])
