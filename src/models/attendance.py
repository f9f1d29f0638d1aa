from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint

from core.clock import utcnow
from .base import Base


class AttendanceModel(Base):
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "class_id",
            "attendance_date",
            name="uq_attendance_student_class_date",
        ),
    )

    attendance_id = Column(Integer, primary_key=True, index=True)
    student_id = Column(
        Integer, ForeignKey("students.student_id", ondelete="CASCADE"), index=True, nullable=False
    )
    class_id = Column(
        Integer, ForeignKey("classes.class_id", ondelete="CASCADE"), index=True, nullable=False
    )
    attendance_date = Column(Date, index=True, nullable=False)
    status = Column(String, nullable=False)  # present, absent, late, excused
    recorded_by = Column(Integer, nullable=False)
    recorded_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
