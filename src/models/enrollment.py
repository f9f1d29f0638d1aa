from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from core.clock import utcnow
from .base import Base


class EnrollmentModel(Base):
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_enrollments_student_class"),
    )

    enrollment_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("students.student_id", ondelete="CASCADE"), index=True, nullable=False
    )
    class_id = Column(
        Integer, ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    enrolled_at = Column(DateTime, nullable=False, default=utcnow)

    student = relationship("StudentModel", back_populates="enrollments")
    class_ = relationship("ClassModel", back_populates="enrollments")
