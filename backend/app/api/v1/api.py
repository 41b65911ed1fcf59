from fastapi import APIRouter  # type: ignore

from app.api.v1.endpoints import cost_config, dashboard, errors, logs, proxy, sessions, webhooks

# Create the main API router
router = APIRouter()

# Gate
router.include_router(proxy.router, prefix="/proxy", tags=["proxy"])
router.include_router(errors.router, prefix="/errors", tags=["errors"])
router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
router.include_router(logs.router, prefix="/logs", tags=["logs"])

# Configuration and reporting
router.include_router(cost_config.router, prefix="/cost-config", tags=["cost-config"])
router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
