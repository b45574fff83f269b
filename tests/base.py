import os
import unittest

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from app.core.config import settings
from app.core.security import create_access_token, hash_password
from app.db.session import get_db
from app.main import app
from app.models.permission import Permission, role_permissions
from app.models.role import Role
from app.models.student import Student
from app.models.student_staff import StudentStaff
from app.models.user import User
from app.services.roles_bootstrap import seed_roles_and_permissions


class ApiTestBase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Permission.__table__.create(bind=cls.engine)
        Role.__table__.create(bind=cls.engine)
        role_permissions.create(bind=cls.engine)
        User.__table__.create(bind=cls.engine)
        Student.__table__.create(bind=cls.engine)
        StudentStaff.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        StudentStaff.__table__.drop(bind=cls.engine)
        Student.__table__.drop(bind=cls.engine)
        User.__table__.drop(bind=cls.engine)
        role_permissions.drop(bind=cls.engine)
        Role.__table__.drop(bind=cls.engine)
        Permission.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(StudentStaff))
            db.execute(delete(Student))
            db.execute(delete(User))
            db.execute(role_permissions.delete())
            db.execute(delete(Role))
            db.execute(delete(Permission))
            db.commit()
            seed_roles_and_permissions(db)

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app, raise_server_exceptions=False)

        self._settings_backup = {
            "APP_ENV": settings.APP_ENV,
            "DEBUG": settings.DEBUG,
            "FILTER_OR_WHERE_STRICT": settings.FILTER_OR_WHERE_STRICT,
            "ROLES_BOOTSTRAP_ENABLED": settings.ROLES_BOOTSTRAP_ENABLED,
            "ADMIN_BOOTSTRAP_EMAIL": settings.ADMIN_BOOTSTRAP_EMAIL,
            "ADMIN_BOOTSTRAP_PASSWORD": settings.ADMIN_BOOTSTRAP_PASSWORD,
        }
        settings.APP_ENV = "production"
        settings.DEBUG = False
        settings.FILTER_OR_WHERE_STRICT = False
        settings.ROLES_BOOTSTRAP_ENABLED = False

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()
        for key, value in self._settings_backup.items():
            setattr(settings, key, value)

    def _create_user(self, *, name: str, email: str, role: str | None = None, status: str = "active", **fields) -> User:
        with self.SessionLocal() as db:
            role_row = db.query(Role).filter(Role.name == role).first() if role else None
            user = User(
                name=name,
                email=email,
                password_hash=hash_password(fields.pop("password", "secret123")),
                status=status,
                role=role_row,
                **fields,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            db.expunge(user)
            return user

    def _auth_headers(self, role: str | None = "admin", email: str | None = None) -> dict[str, str]:
        email = email or f"{role or 'norole'}@example.com"
        user = self._create_user(name=f"{role} user", email=email, role=role)
        token = create_access_token(str(user.id), user.email, role)
        return {"Authorization": f"Bearer {token}"}
