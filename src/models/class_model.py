from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class ClassModel(Base):
    __tablename__ = "classes"

    class_id = Column(Integer, primary_key=True, index=True)
    teacher_id = Column(
        Integer, ForeignKey("teachers.teacher_id"), index=True, nullable=False
    )
    name = Column(String, nullable=False)
    code = Column(String, unique=True, index=True, nullable=False)

    teacher = relationship("TeacherModel", back_populates="classes")
    enrollments = relationship(
        "EnrollmentModel",
        back_populates="class_",
        cascade="all, delete-orphan",
    )
