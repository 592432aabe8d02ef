from .decisions import router as decisions_router
from .health import router as health_router
from .plan_versions import router as plan_versions_router
from .signatures import router as signatures_router

__all__ = ["decisions_router", "health_router", "plan_versions_router", "signatures_router"]
