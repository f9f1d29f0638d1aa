"""Class and enrollment management utilities."""

import logging
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.database import transaction
from core.exceptions import AuthorizationError, ConflictError, NotFoundError
from models.class_model import ClassModel
from models.enrollment import EnrollmentModel
from models.user import StudentModel, TeacherModel
from schemas.academic import ClassInfo, ClassStudentInfo, ImportSummary
from utils.targeting import StudentAudience

logger = logging.getLogger(__name__)


class ClassManager:
    """Manages classes, class ownership and enrollments."""

    def __init__(self, db: Session):
        self.db = db

    def create_class(self, teacher_id: int, name: str, code: str) -> ClassModel:
        """Create a class owned by a teacher.

        Raises:
            NotFoundError: If the teacher does not exist.
            ConflictError: If the class code is already taken.
        """
        teacher = self.db.get(TeacherModel, teacher_id)
        if not teacher:
            raise NotFoundError("Teacher not found", "TEACHER_NOT_FOUND")
        code = code.strip()
        existing = self.db.query(ClassModel).filter(ClassModel.code == code).first()
        if existing:
            raise ConflictError(f"Class code '{code}' already exists", "DUPLICATE_CLASS_CODE")

        class_model = ClassModel(teacher_id=teacher_id, name=name.strip(), code=code)
        with transaction(self.db):
            self.db.add(class_model)
        self.db.refresh(class_model)
        logger.info("Created class %s (%s) for teacher %s", class_model.class_id, code, teacher_id)
        return class_model

    def get_class(self, class_id: int) -> ClassModel:
        model = self.db.get(ClassModel, class_id)
        if not model:
            raise NotFoundError("Class not found", "CLASS_NOT_FOUND")
        return model

    def list_classes(self, teacher_id: Optional[int] = None) -> List[ClassInfo]:
        """List classes with their enrollment counts, optionally for one teacher."""
        query = (
            self.db.query(ClassModel, func.count(EnrollmentModel.enrollment_id))
            .outerjoin(EnrollmentModel, EnrollmentModel.class_id == ClassModel.class_id)
            .group_by(ClassModel.class_id)
        )
        if teacher_id is not None:
            query = query.filter(ClassModel.teacher_id == teacher_id)
        return [
            ClassInfo(
                class_id=model.class_id,
                teacher_id=model.teacher_id,
                name=model.name,
                code=model.code,
                total_students=count,
            )
            for model, count in query.order_by(ClassModel.name).all()
        ]

    def list_classes_for_student(self, student_id: int) -> List[ClassModel]:
        return (
            self.db.query(ClassModel)
            .join(EnrollmentModel, EnrollmentModel.class_id == ClassModel.class_id)
            .filter(EnrollmentModel.student_id == student_id)
            .order_by(ClassModel.name)
            .all()
        )

    def delete_class(self, class_id: int) -> None:
        class_model = self.get_class(class_id)
        with transaction(self.db):
            self.db.query(EnrollmentModel).filter(
                EnrollmentModel.class_id == class_id
            ).delete()
            self.db.delete(class_model)
        logger.info("Deleted class: %s", class_id)

    def ensure_owner(self, class_id: int, teacher_id: int) -> ClassModel:
        """Return the class if the teacher owns it.

        Raises:
            NotFoundError: If the class does not exist.
            AuthorizationError: If another teacher owns the class.
        """
        class_model = self.get_class(class_id)
        if class_model.teacher_id != teacher_id:
            raise AuthorizationError("You do not have access to this class")
        return class_model

    def enroll_student(self, student_id: int, class_id: int) -> EnrollmentModel:
        """Enroll one student in a class.

        Raises:
            NotFoundError: If the student or class does not exist.
            ConflictError: If the student is already enrolled.
        """
        if not self.db.get(StudentModel, student_id):
            raise NotFoundError("Student not found", "STUDENT_NOT_FOUND")
        self.get_class(class_id)
        existing = (
            self.db.query(EnrollmentModel)
            .filter(
                EnrollmentModel.class_id == class_id,
                EnrollmentModel.student_id == student_id,
            )
            .first()
        )
        if existing:
            raise ConflictError("Student is already enrolled in this class", "ALREADY_ENROLLED")

        enrollment = EnrollmentModel(student_id=student_id, class_id=class_id)
        with transaction(self.db):
            self.db.add(enrollment)
        self.db.refresh(enrollment)
        return enrollment

    def bulk_enroll(self, class_id: int, student_ids: Iterable[int]) -> ImportSummary:
        """Enroll many students in a class.

        Unknown and already-enrolled students are skipped and reported. All
        remaining enrollments are written in one transaction.
        """
        self.get_class(class_id)
        summary = ImportSummary()
        requested = list(dict.fromkeys(student_ids))
        if not requested:
            return summary

        known = {
            row.student_id
            for row in self.db.query(StudentModel.student_id)
            .filter(StudentModel.student_id.in_(requested))
            .all()
        }
        enrolled = {
            row.student_id
            for row in self.db.query(EnrollmentModel.student_id)
            .filter(
                EnrollmentModel.class_id == class_id,
                EnrollmentModel.student_id.in_(requested),
            )
            .all()
        }

        to_insert = []
        for student_id in requested:
            if student_id not in known:
                summary.skip(student_id, "Student not found")
            elif student_id in enrolled:
                summary.skip(student_id, "Already enrolled")
            else:
                to_insert.append(EnrollmentModel(student_id=student_id, class_id=class_id))

        if to_insert:
            with transaction(self.db):
                self.db.add_all(to_insert)
        summary.inserted = len(to_insert)
        logger.info(
            "Bulk enrollment into class %s: %d inserted, %d skipped",
            class_id,
            summary.inserted,
            summary.skipped,
        )
        return summary

    def unenroll(self, enrollment_id: int) -> None:
        enrollment = self.db.get(EnrollmentModel, enrollment_id)
        if not enrollment:
            raise NotFoundError("Enrollment not found", "ENROLLMENT_NOT_FOUND")
        with transaction(self.db):
            self.db.delete(enrollment)

    def list_class_students(self, class_id: int) -> List[ClassStudentInfo]:
        query = (
            self.db.query(EnrollmentModel, StudentModel)
            .join(StudentModel, StudentModel.student_id == EnrollmentModel.student_id)
            .filter(EnrollmentModel.class_id == class_id)
            .order_by(StudentModel.last_name, StudentModel.second_last_name, StudentModel.first_name)
        )
        return [
            ClassStudentInfo(
                enrollment_id=enrollment.enrollment_id,
                student_id=student.student_id,
                first_name=student.first_name,
                last_name=student.last_name,
                second_last_name=student.second_last_name,
                enrollment_number=student.enrollment_number,
                grade=student.grade,
                group=student.group,
            )
            for enrollment, student in query.all()
        ]

    def student_audience(self, student_id: int) -> StudentAudience:
        """Collect a student's grade, group and class memberships.

        Raises:
            NotFoundError: If the student does not exist.
        """
        student = self.db.get(StudentModel, student_id)
        if not student:
            raise NotFoundError("Student not found", "STUDENT_NOT_FOUND")
        rows = (
            self.db.query(ClassModel.class_id, ClassModel.teacher_id)
            .join(EnrollmentModel, EnrollmentModel.class_id == ClassModel.class_id)
            .filter(EnrollmentModel.student_id == student_id)
            .all()
        )
        return StudentAudience(
            student_id=student.student_id,
            grade=student.grade,
            group=student.group,
            class_ids=frozenset(row.class_id for row in rows),
            class_owner_ids=frozenset(row.teacher_id for row in rows),
        )
