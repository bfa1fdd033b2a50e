"""
API routes split by domain.

Each sub-module defines its own APIRouter which is composed
into the top-level router exposed by this package.
"""
from fastapi import APIRouter

from .health import router as health_router
from .analytics import router as analytics_router
from .payroll import router as payroll_router
from .reports import router as reports_router
from .live import router as live_router

router = APIRouter(tags=["api"])

router.include_router(health_router)
router.include_router(analytics_router)
router.include_router(payroll_router)
router.include_router(reports_router)
router.include_router(live_router)
