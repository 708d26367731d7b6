"""API v1 router and endpoint organization."""

from fastapi import APIRouter

from app.api.v1.endpoints import autoblog

router = APIRouter(tags=["v1"])

# Include domain-specific routers
router.include_router(autoblog.router, prefix="/autoblog", tags=["AutoBlog"])
