import uuid
from datetime import date

from sqlalchemy import Date, ForeignKey, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin
from app.models.student_staff import StudentStaff
from app.models.user import User

class Student(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "students"
    ref_id: Mapped[str] = mapped_column(String(40), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True, index=True)
    dob: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(30), default="pending", nullable=False, index=True)
    documents: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    agent_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    created_by_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)

    agent: Mapped[User | None] = relationship(User, foreign_keys=[agent_id])
    created_by: Mapped[User | None] = relationship(User, foreign_keys=[created_by_id])
    assign_staffs: Mapped[list[StudentStaff]] = relationship(StudentStaff, cascade="all, delete-orphan")
