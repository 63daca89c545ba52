"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.auth_routes import router as auth_router
from app.api.routes.school_routes import router as school_router
from app.api.routes.session_routes import router as session_router
from app.api.routes.term_routes import router as term_router
from app.api.routes.class_routes import router as class_router
from app.api.routes.subject_routes import router as subject_router
from app.api.routes.teacher_routes import router as teacher_router
from app.api.routes.student_routes import router as student_router
from app.api.routes.leadership_routes import router as leadership_router
from app.api.routes.announcement_routes import router as announcement_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(school_router)
api_router.include_router(session_router)
api_router.include_router(term_router)
api_router.include_router(class_router)
api_router.include_router(subject_router)
api_router.include_router(teacher_router)
api_router.include_router(student_router)
api_router.include_router(leadership_router)
api_router.include_router(announcement_router)
