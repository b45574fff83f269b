from __future__ import annotations

from app.db.session import SessionLocal
from app.services.roles_bootstrap import ensure_bootstrap_admin, seed_roles_and_permissions


def main() -> None:
    db = SessionLocal()
    try:
        roles = seed_roles_and_permissions(db)
        admin = ensure_bootstrap_admin(db)
        print(f"roles: {', '.join(sorted(roles))}")
        if admin is not None:
            print(f"admin: {admin.email}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
