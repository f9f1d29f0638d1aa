"""Identity database models.

Students, teachers and administrators live in separate tables. Students and
teachers sign in with emailed one-time codes; administrators use a password.
"""

from sqlalchemy import Column, Date, Integer, String
from sqlalchemy.orm import relationship

from .base import Base


class StudentModel(Base):
    """Student database model."""

    __tablename__ = "students"

    student_id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    second_last_name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    grade = Column(Integer, index=True, nullable=False)
    group = Column("group_name", String, index=True, nullable=False)
    enrollment_number = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    birth_date = Column(Date, nullable=True)

    enrollments = relationship(
        "EnrollmentModel",
        back_populates="student",
        cascade="all, delete-orphan",
    )

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name, self.second_last_name]
        return " ".join(p for p in parts if p)


class TeacherModel(Base):
    """Teacher database model."""

    __tablename__ = "teachers"

    teacher_id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    second_last_name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)

    classes = relationship("ClassModel", back_populates="teacher")

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name, self.second_last_name]
        return " ".join(p for p in parts if p)


class AdministratorModel(Base):
    """Administrator database model."""

    __tablename__ = "administrators"

    admin_id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    second_last_name = Column(String, nullable=True)
    phone = Column(String, nullable=True)
