"""API V1 Router"""

from fastapi import APIRouter

from schoolms.api.v1.endpoints import auth, classes, students, staff, parents, finance, dashboard

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["Dashboard"])
api_router.include_router(classes.router, prefix="/classes", tags=["Classes"])
api_router.include_router(students.router, prefix="/students", tags=["Student Management"])
api_router.include_router(staff.router, prefix="/staff", tags=["Staff"])
api_router.include_router(parents.router, prefix="/parents", tags=["Parents"])
api_router.include_router(finance.router, prefix="/finance", tags=["Finance"])
