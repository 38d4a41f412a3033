from fastapi import APIRouter

from app.api.routes.admin.router import router as admin_router
from app.api.routes.evaluator import router as evaluator_router
from app.api.routes.student import router as student_router

api_router = APIRouter()
api_router.include_router(evaluator_router)
api_router.include_router(student_router)
api_router.include_router(admin_router)


@api_router.get("/healthz")
def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
