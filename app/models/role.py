from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin
from app.models.permission import Permission, role_permissions

class Role(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "roles"
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)  # admin|customer|staff
    permissions: Mapped[list[Permission]] = relationship(Permission, secondary=role_permissions, lazy="selectin")
