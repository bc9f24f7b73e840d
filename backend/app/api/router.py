from fastapi import APIRouter
from app.api.routers import templates, imports, jobs

api_router = APIRouter()
api_router.include_router(templates.router, prefix="/templates", tags=["templates"])
api_router.include_router(imports.router, prefix="/templates", tags=["imports"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
