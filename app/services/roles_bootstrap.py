from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import hash_password
from app.models.permission import Permission
from app.models.role import Role
from app.models.user import User

ROLE_ADMIN = "admin"
ROLE_CUSTOMER = "customer"
ROLE_STAFF = "staff"

PERMISSIONS = [
    "view_users",
    "view_orders",
    "create_users",
    "edit_users",
    "delete_users",
    "view_institutions",
    "create_institutions",
    "edit_institutions",
    "delete_institutions",
    "view_courses",
    "create_courses",
    "edit_courses",
    "delete_courses",
]

ROLE_PERMISSIONS: dict[str, list[str]] = {
    ROLE_ADMIN: [
        "view_users",
        "create_users",
        "edit_users",
        "delete_users",
        "view_institutions",
        "create_institutions",
        "edit_institutions",
        "delete_institutions",
    ],
    ROLE_CUSTOMER: ["view_orders"],
    ROLE_STAFF: ["view_courses", "edit_courses"],
}


def normalize_email(raw: str | None) -> str:
    return str(raw or "").strip().lower()


def get_role(db: Session, name: str) -> Role | None:
    return db.query(Role).filter(Role.name == name).first()


def seed_roles_and_permissions(db: Session) -> dict[str, Role]:
    """Create missing roles/permissions and sync each role to its fixed permission list."""
    existing = {p.name: p for p in db.query(Permission).all()}
    for name in PERMISSIONS:
        if name not in existing:
            existing[name] = Permission(name=name)
            db.add(existing[name])

    roles: dict[str, Role] = {}
    for role_name, permission_names in ROLE_PERMISSIONS.items():
        role = get_role(db, role_name)
        if role is None:
            role = Role(name=role_name)
            db.add(role)
        role.permissions = [existing[name] for name in permission_names]
        roles[role_name] = role
    db.commit()
    return roles


def get_active_user_by_email(db: Session, email: str) -> User | None:
    normalized = normalize_email(email)
    if not normalized:
        return None
    return (
        db.query(User)
        .filter(func.lower(User.email) == normalized, User.is_active.is_(True))
        .first()
    )


def ensure_bootstrap_admin(db: Session) -> User | None:
    if not settings.ROLES_BOOTSTRAP_ENABLED:
        return None

    roles = seed_roles_and_permissions(db)
    email = normalize_email(settings.ADMIN_BOOTSTRAP_EMAIL)
    user = db.query(User).filter(func.lower(User.email) == email).first()
    if user is None:
        user = User(
            name=str(settings.ADMIN_BOOTSTRAP_NAME or "Super Admin"),
            email=email,
            password_hash=hash_password(str(settings.ADMIN_BOOTSTRAP_PASSWORD or "")),
            is_active=True,
        )
    user.role = roles[ROLE_ADMIN]
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return get_active_user_by_email(db, email)
    db.refresh(user)
    return user


def ensure_bootstrap_admin_for_login(db: Session, email: str, password: str) -> User | None:
    if not settings.ROLES_BOOTSTRAP_ENABLED:
        return None
    if normalize_email(email) != normalize_email(settings.ADMIN_BOOTSTRAP_EMAIL):
        return None
    if str(password or "") != str(settings.ADMIN_BOOTSTRAP_PASSWORD or ""):
        return None
    return ensure_bootstrap_admin(db)
