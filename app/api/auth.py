from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.deps import get_current_user
from app.core.errors import success_payload
from app.core.security import create_access_token, verify_password
from app.db.session import get_db
from app.models.user import User
from app.schemas.auth import LoginIn, TokenOut
from app.services.roles_bootstrap import ensure_bootstrap_admin_for_login, get_active_user_by_email

router = APIRouter()


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = ensure_bootstrap_admin_for_login(db, payload.email, payload.password)
    if user is None:
        user = get_active_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(str(user.id), user.email, user.role.name if user.role else None)
    return success_payload("Login successful", TokenOut(access_token=token).model_dump())


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    data = {
        "user": {
            "id": str(user.id),
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "role": user.role.name if user.role else None,
        }
    }
    return success_payload("User details", data)
