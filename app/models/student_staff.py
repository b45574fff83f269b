import uuid

from sqlalchemy import ForeignKey, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.db.session import Base
from app.models.common import UUIDMixin, TimestampMixin
from app.models.user import User

class StudentStaff(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "student_staff"
    __table_args__ = (UniqueConstraint("student_id", "staff_id", name="uq_student_staff"),)
    student_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    staff_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    staff: Mapped[User] = relationship(User)
