from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.core.deps import require_role
from app.core.errors import ValidationFailure, success_payload
from app.core.security import hash_password
from app.db.session import get_db
from app.models.user import User
from app.schemas.users import JsonFieldsDelete, UserCreate, UserUpdate
from app.services.api_query import handle_api_request
from app.services.json_fields import delete_deep_json_field, deleted_fields_message, update_with_deep_merge
from app.services.query_builder import QueryBuilder
from app.services.records import commit_or_400, find_or_404
from app.services.roles_bootstrap import ROLE_ADMIN, get_role
from app.services.search_params import RequestParams
from app.services.serializers import serialize_one

router = APIRouter()


def _role_or_422(db: Session, name: str):
    role = get_role(db, str(name or "").strip().lower())
    if role is None:
        raise ValidationFailure("The selected role is invalid.")
    return role


@router.get("")
def list_users(request: Request, db: Session = Depends(get_db), admin: User = Depends(require_role(ROLE_ADMIN))):
    params = RequestParams.from_request(request)
    data = handle_api_request(params, QueryBuilder(db, User), with_=["role"])
    return success_payload("Users retrieved successfully", data)


@router.get("/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db), admin: User = Depends(require_role(ROLE_ADMIN))):
    return success_payload("User retrieved successfully", serialize_one(find_or_404(db, User, user_id)))


@router.post("", status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: User = Depends(require_role(ROLE_ADMIN))):
    role = _role_or_422(db, payload.role)
    user = User(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        password_hash=hash_password(payload.password),
        status=payload.status,
        profile=payload.profile,
        role=role,
    )
    db.add(user)
    commit_or_400(db)
    db.refresh(user)
    return success_payload("User created successfully", serialize_one(user))


@router.patch("/{user_id}")
def update_user(
    user_id: str,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_role(ROLE_ADMIN)),
):
    user = find_or_404(db, User, user_id)
    changes = payload.model_dump(exclude_unset=True)
    if "role" in changes:
        user.role = _role_or_422(db, changes.pop("role"))
    update_with_deep_merge(user, changes)
    db.add(user)
    commit_or_400(db)
    db.refresh(user)
    return success_payload("User updated successfully", serialize_one(user))


@router.delete("/{user_id}/profile")
def delete_profile_fields(
    user_id: str,
    payload: JsonFieldsDelete,
    db: Session = Depends(get_db),
    admin: User = Depends(require_role(ROLE_ADMIN)),
):
    user = find_or_404(db, User, user_id)
    removed = delete_deep_json_field(user, "profile", payload.fields)
    db.add(user)
    commit_or_400(db)
    db.refresh(user)
    return success_payload(deleted_fields_message(removed), serialize_one(user))


@router.delete("/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db), admin: User = Depends(require_role(ROLE_ADMIN))):
    user = find_or_404(db, User, user_id)
    db.delete(user)
    db.commit()
    return success_payload("User deleted successfully")
