from uuid import UUID

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from app.core.errors import PermissionDenied
from app.core.security import decode_access_token
from app.db.session import get_db
from app.models.user import User

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise HTTPException(status_code=401, detail="Token not valid")
    claims = decode_access_token(creds.credentials)
    if not claims:
        raise HTTPException(status_code=401, detail="Token not valid")
    try:
        user_id = UUID(str(claims.get("sub") or ""))
    except ValueError:
        raise HTTPException(status_code=401, detail="Token not valid")
    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=401, detail="Token not valid")
    return user

def _role_name_or_403(user: User) -> str:
    if user.role is None:
        raise PermissionDenied()
    return user.role.name

def require_role(*roles: str):
    def _inner(user: User = Depends(get_current_user)) -> User:
        if _role_name_or_403(user) not in roles:
            raise PermissionDenied("Permission denied")
        return user
    return _inner

def require_permission(name: str):
    def _inner(user: User = Depends(get_current_user)) -> User:
        _role_name_or_403(user)
        if not user.has_permission(name):
            raise PermissionDenied("Permission denied")
        return user
    return _inner
