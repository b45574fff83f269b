from fastapi import APIRouter
from app.api import auth, roles, students, users

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(students.router, prefix="/students", tags=["Students"])
router.include_router(roles.router, prefix="/roles", tags=["Roles"])
