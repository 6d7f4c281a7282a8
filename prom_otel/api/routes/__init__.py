"""Route modules mounted by the application factory."""

from fastapi import APIRouter

from prom_otel.api.metrics import router as metrics_router
from prom_otel.api.routes.health import router as health_router
from prom_otel.api.routes.root import router as root_router

router = APIRouter()
router.include_router(root_router)
router.include_router(metrics_router)
router.include_router(health_router)

__all__ = ["router"]
