from fastapi import APIRouter
from choreograph.api.v1.auth import router as auth_router
from choreograph.api.v1.users import router as users_router
from choreograph.api.v1.projects import router as projects_router
from choreograph.api.v1.columns import router as columns_router
from choreograph.api.v1.tasks import router as tasks_router

# Create main API router
api_router = APIRouter(prefix="/api/v1")

# Include routers
api_router.include_router(auth_router)
api_router.include_router(users_router)
api_router.include_router(projects_router)
api_router.include_router(columns_router)
api_router.include_router(tasks_router)


@api_router.get("/health", tags=["health"])
async def health_check():
    return {"status": "ok"}
