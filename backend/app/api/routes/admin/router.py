from fastapi import APIRouter, Depends

from app.api.deps.admin_auth import require_admin_token
from app.api.routes.admin.assignments import router as assignments_router
from app.api.routes.admin.audit_log import router as audit_log_router
from app.api.routes.admin.combined_scores import router as combined_scores_router
from app.api.routes.admin.materials import router as materials_router
from app.api.routes.admin.post_test_batches import router as post_test_batches_router
from app.api.routes.admin.student_activity import router as student_activity_router

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_token)])

router.include_router(assignments_router)
router.include_router(combined_scores_router)
router.include_router(student_activity_router)
router.include_router(materials_router)
router.include_router(post_test_batches_router)
router.include_router(audit_log_router)
