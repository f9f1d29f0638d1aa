"""Attendance management utilities."""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.database import transaction
from core.exceptions import NotFoundError, ValidationError
from models.attendance import AttendanceModel
from models.enrollment import EnrollmentModel
from models.user import StudentModel, TeacherModel
from schemas.academic import ClassStudentInfo
from schemas.attendance import (
    AttendanceDay,
    AttendanceEntry,
    AttendanceLogEntry,
    AttendanceRecord,
    AttendanceResult,
    ClassAttendanceReport,
)
from utils.class_manager import ClassManager

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ("present", "absent", "late", "excused")

DEFAULT_HISTORY_LIMIT = 10

ADMIN_REPORT_LIMIT = 100


class AttendanceManager:
    """Records and reports class attendance.

    Teachers work on the classes they own; administrators can review and
    clear the marks of any class.
    """

    def __init__(self, db: Session):
        self.db = db
        self.class_manager = ClassManager(db)

    def class_roster(self, class_id: int, teacher_id: int) -> List[ClassStudentInfo]:
        """Students enrolled in a class the teacher owns."""
        self.class_manager.ensure_owner(class_id, teacher_id)
        return self.class_manager.list_class_students(class_id)

    def record_attendance(
        self,
        class_id: int,
        teacher_id: int,
        attendance_date: date,
        entries: List[AttendanceEntry],
    ) -> AttendanceResult:
        """Record or correct one day of attendance.

        Every entry is validated before anything is written. Students that
        already have a mark for the date are updated, the rest inserted.

        Raises:
            NotFoundError: If the class does not exist.
            AuthorizationError: If the teacher does not own the class.
            ValidationError: If there are no entries, a status is invalid or
                a student is not enrolled in the class.
        """
        self.class_manager.ensure_owner(class_id, teacher_id)
        if not entries:
            raise ValidationError("At least one attendance entry is required", "INVALID_DATA")

        for entry in entries:
            if entry.status not in ATTENDANCE_STATUSES:
                raise ValidationError(
                    f"Invalid attendance status: {entry.status}", "INVALID_STATUS"
                )

        # Last mark wins when a student appears twice
        by_student = {entry.student_id: entry for entry in entries}
        student_ids = set(by_student)
        enrolled = {
            row.student_id
            for row in self.db.query(EnrollmentModel.student_id)
            .filter(
                EnrollmentModel.class_id == class_id,
                EnrollmentModel.student_id.in_(student_ids),
            )
            .all()
        }
        missing = sorted(student_ids - enrolled)
        if missing:
            raise ValidationError(
                f"Students not enrolled in this class: {missing}", "STUDENT_NOT_ENROLLED"
            )

        existing = {
            row.student_id: row
            for row in self.db.query(AttendanceModel)
            .filter(
                AttendanceModel.class_id == class_id,
                AttendanceModel.attendance_date == attendance_date,
                AttendanceModel.student_id.in_(student_ids),
            )
            .all()
        }

        action = "updated" if existing else "recorded"
        with transaction(self.db):
            for entry in by_student.values():
                row = existing.get(entry.student_id)
                if row is not None:
                    row.status = entry.status
                    row.recorded_by = teacher_id
                else:
                    row = AttendanceModel(
                        student_id=entry.student_id,
                        class_id=class_id,
                        attendance_date=attendance_date,
                        status=entry.status,
                        recorded_by=teacher_id,
                    )
                    self.db.add(row)

        logger.info(
            "Attendance for class %s on %s: %d entries", class_id, attendance_date, len(by_student)
        )
        return AttendanceResult(
            action=action,
            total=len(by_student),
            attendance_date=attendance_date,
            class_id=class_id,
        )

    def history(
        self,
        class_id: int,
        teacher_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[AttendanceDay]:
        """Per-day status counts, most recent first."""
        self.class_manager.ensure_owner(class_id, teacher_id)
        query = self.db.query(AttendanceModel.attendance_date, AttendanceModel.status).filter(
            AttendanceModel.class_id == class_id
        )
        if date_from is not None:
            query = query.filter(AttendanceModel.attendance_date >= date_from)
        if date_to is not None:
            query = query.filter(AttendanceModel.attendance_date <= date_to)

        days: Dict[date, Dict[str, int]] = defaultdict(
            lambda: {status: 0 for status in ATTENDANCE_STATUSES}
        )
        for attendance_date, status in query.all():
            days[attendance_date][status] = days[attendance_date].get(status, 0) + 1

        limit = max(1, min(100, limit))
        return [
            AttendanceDay(
                attendance_date=day,
                counts=counts,
                total=sum(counts.values()),
            )
            for day, counts in sorted(days.items(), reverse=True)[:limit]
        ]

    def attendance_for_date(
        self, class_id: int, teacher_id: int, attendance_date: date
    ) -> List[AttendanceRecord]:
        """Marks recorded for one date, ordered by student name."""
        self.class_manager.ensure_owner(class_id, teacher_id)
        rows = (
            self.db.query(AttendanceModel, StudentModel)
            .join(StudentModel, StudentModel.student_id == AttendanceModel.student_id)
            .filter(
                AttendanceModel.class_id == class_id,
                AttendanceModel.attendance_date == attendance_date,
            )
            .order_by(StudentModel.last_name, StudentModel.second_last_name, StudentModel.first_name)
            .all()
        )
        return [
            AttendanceRecord(
                student_id=student.student_id,
                full_name=student.full_name,
                enrollment_number=student.enrollment_number,
                status=attendance.status,
            )
            for attendance, student in rows
        ]

    # --- Administrator oversight ---

    def class_attendance(
        self,
        class_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        student_id: Optional[int] = None,
        page: int = 1,
        limit: int = ADMIN_REPORT_LIMIT,
    ) -> ClassAttendanceReport:
        """Attendance marks of any class, newest first, with status totals.

        The totals cover the whole class regardless of the filters.

        Raises:
            NotFoundError: If the class does not exist.
        """
        class_model = self.class_manager.get_class(class_id)
        query = (
            self.db.query(AttendanceModel, StudentModel, TeacherModel)
            .join(StudentModel, StudentModel.student_id == AttendanceModel.student_id)
            .outerjoin(TeacherModel, TeacherModel.teacher_id == AttendanceModel.recorded_by)
            .filter(AttendanceModel.class_id == class_id)
        )
        if date_from is not None:
            query = query.filter(AttendanceModel.attendance_date >= date_from)
        if date_to is not None:
            query = query.filter(AttendanceModel.attendance_date <= date_to)
        if student_id is not None:
            query = query.filter(AttendanceModel.student_id == student_id)

        page = max(1, page)
        limit = max(1, min(ADMIN_REPORT_LIMIT, limit))
        rows = (
            query.order_by(
                AttendanceModel.attendance_date.desc(),
                StudentModel.last_name,
                StudentModel.first_name,
            )
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        counts = {status: 0 for status in ATTENDANCE_STATUSES}
        for status, total in (
            self.db.query(AttendanceModel.status, func.count(AttendanceModel.attendance_id))
            .filter(AttendanceModel.class_id == class_id)
            .group_by(AttendanceModel.status)
            .all()
        ):
            counts[status] = total

        return ClassAttendanceReport(
            class_id=class_model.class_id,
            class_name=class_model.name,
            code=class_model.code,
            records=[
                AttendanceLogEntry(
                    attendance_id=attendance.attendance_id,
                    attendance_date=attendance.attendance_date,
                    status=attendance.status,
                    student_id=student.student_id,
                    full_name=student.full_name,
                    enrollment_number=student.enrollment_number,
                    recorded_by=attendance.recorded_by,
                    recorded_by_name=teacher.full_name if teacher else None,
                )
                for attendance, student, teacher in rows
            ],
            counts=counts,
            total=sum(counts.values()),
        )

    def delete_class_attendance(self, class_id: int) -> int:
        """Remove the whole attendance history of a class.

        Raises:
            NotFoundError: If the class does not exist or has no marks.
        """
        self.class_manager.get_class(class_id)
        query = self.db.query(AttendanceModel).filter(AttendanceModel.class_id == class_id)
        if query.count() == 0:
            raise NotFoundError("No attendance records for this class", "NO_RECORDS")
        with transaction(self.db):
            deleted = query.delete(synchronize_session="fetch")
        logger.info("Deleted %d attendance records of class %s", deleted, class_id)
        return deleted

    def delete_attendance(self, attendance_id: int) -> None:
        row = self.db.get(AttendanceModel, attendance_id)
        if row is None:
            raise NotFoundError("Attendance record not found", "ATTENDANCE_NOT_FOUND")
        with transaction(self.db):
            self.db.delete(row)
