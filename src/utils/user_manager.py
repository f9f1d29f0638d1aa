"""User management utilities.

This module provides identity lookup for the three roles, profile reads and
updates, administrator password authentication, and student/teacher creation
including batch student import, grade promotion and group removal.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Union

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from config import ADMIN_PASSWORD_MIN_LENGTH, MAX_GRADE, MIN_GRADE
from core.database import transaction
from core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from core.security import (
    ROLE_ADMINISTRATOR,
    ROLE_STUDENT,
    ROLE_TEACHER,
    Identity,
    PasswordHasher,
)
from models.attendance import AttendanceModel
from models.class_model import ClassModel
from models.enrollment import EnrollmentModel
from models.notification import NotificationModel
from models.user import AdministratorModel, StudentModel, TeacherModel
from schemas.academic import (
    DashboardStats,
    GradeGroupCatalog,
    GroupCount,
    ImportSummary,
    StudentCreate,
    TeacherCreate,
)
from schemas.auth import AdminRegisterRequest, UpdateProfileRequest, UserProfile
from utils.notification_manager import STATUS_PENDING

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

IdentityModel = Union[StudentModel, TeacherModel, AdministratorModel]

REQUIRED_STUDENT_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "grade",
    "group",
    "enrollment_number",
)


def validate_email(email: Optional[str]) -> str:
    """Return the trimmed email or raise ValidationError."""
    if not email or not email.strip():
        raise ValidationError("Email is required", "EMAIL_REQUIRED")
    email = email.strip()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError("Invalid email format", "INVALID_EMAIL")
    return email


@dataclass(frozen=True)
class EmailOwner:
    """Student or teacher that owns a login email."""

    id: int
    role: str
    name: str
    email: str


class UserManager:
    """Manages identity lookups and account operations."""

    def __init__(self, db: Session, password_hasher: Optional[PasswordHasher] = None):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
            password_hasher: Hasher for administrator passwords.
        """
        self.db = db
        self.password_hasher = password_hasher or PasswordHasher()

    # --- Identity lookup ---

    def find_identity_by_email(self, email: str) -> Optional[EmailOwner]:
        """Find the student or teacher using an email, students first."""
        student = self.db.query(StudentModel).filter(StudentModel.email == email).first()
        if student:
            return EmailOwner(
                id=student.student_id,
                role=ROLE_STUDENT,
                name=f"{student.first_name} {student.last_name}",
                email=student.email,
            )
        teacher = self.db.query(TeacherModel).filter(TeacherModel.email == email).first()
        if teacher:
            return EmailOwner(
                id=teacher.teacher_id,
                role=ROLE_TEACHER,
                name=f"{teacher.first_name} {teacher.last_name}",
                email=teacher.email,
            )
        return None

    def get_by_role(self, role: str, email: str) -> Optional[IdentityModel]:
        """Load the full identity row for an email within one role table."""
        if role == ROLE_STUDENT:
            return self.db.query(StudentModel).filter(StudentModel.email == email).first()
        if role == ROLE_TEACHER:
            return self.db.query(TeacherModel).filter(TeacherModel.email == email).first()
        if role == ROLE_ADMINISTRATOR:
            return (
                self.db.query(AdministratorModel)
                .filter(AdministratorModel.email == email)
                .first()
            )
        raise ValueError(f"Invalid role: {role}")

    def _get_identity_row(self, identity: Identity) -> IdentityModel:
        model_by_role = {
            ROLE_STUDENT: StudentModel,
            ROLE_TEACHER: TeacherModel,
            ROLE_ADMINISTRATOR: AdministratorModel,
        }
        row = self.db.get(model_by_role[identity.role], identity.id)
        if row is None:
            raise NotFoundError("User not found", "USER_NOT_FOUND")
        return row

    def get_profile(self, identity: Identity) -> UserProfile:
        """Get the caller's profile.

        Raises:
            NotFoundError: If the identity no longer exists.
        """
        return build_profile(identity.role, self._get_identity_row(identity))

    def update_profile(self, identity: Identity, req: UpdateProfileRequest) -> UserProfile:
        """Update the editable profile fields of a student or teacher."""
        if identity.role not in (ROLE_STUDENT, ROLE_TEACHER):
            raise ValidationError("Profile editing is only available to students and teachers")
        row = self._get_identity_row(identity)
        changes = req.model_dump(exclude_unset=True)
        if identity.role == ROLE_TEACHER:
            changes.pop("address", None)
        for field in ("first_name", "last_name"):
            if field in changes and not (changes[field] or "").strip():
                raise ValidationError(f"{field} cannot be empty", "MISSING_FIELDS")
        with transaction(self.db):
            for field, value in changes.items():
                setattr(row, field, value.strip() if isinstance(value, str) else value)
        self.db.refresh(row)
        return build_profile(identity.role, row)

    # --- Administrators ---

    def count_admins(self) -> int:
        return self.db.query(func.count(AdministratorModel.admin_id)).scalar() or 0

    def admins_exist(self) -> bool:
        return self.count_admins() > 0

    def register_first_admin(self, req: AdminRegisterRequest) -> AdministratorModel:
        """Create the initial administrator.

        Raises:
            ConflictError: If any administrator already exists.
        """
        if self.admins_exist():
            raise ConflictError(
                "Administrators already exist; use the regular registration", "ADMINS_EXIST"
            )
        return self._create_admin(req)

    def register_admin(self, req: AdminRegisterRequest) -> AdministratorModel:
        """Create an additional administrator (caller must be an administrator)."""
        return self._create_admin(req)

    def _create_admin(self, req: AdminRegisterRequest) -> AdministratorModel:
        if not req.email or not req.password or not req.first_name.strip() or not req.last_name.strip():
            raise ValidationError(
                "Required fields: email, password, first_name, last_name", "MISSING_FIELDS"
            )
        email = validate_email(req.email)
        if len(req.password) < ADMIN_PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {ADMIN_PASSWORD_MIN_LENGTH} characters",
                "PASSWORD_TOO_SHORT",
            )
        existing = (
            self.db.query(AdministratorModel)
            .filter(AdministratorModel.email == email)
            .first()
        )
        if existing:
            raise ConflictError("Email is already registered", "EMAIL_EXISTS")

        admin = AdministratorModel(
            email=email,
            password_hash=self.password_hasher.hash(req.password),
            first_name=req.first_name.strip(),
            last_name=req.last_name.strip(),
            second_last_name=req.second_last_name,
            phone=req.phone,
        )
        with transaction(self.db):
            self.db.add(admin)
        self.db.refresh(admin)
        logger.info("Created administrator %s", admin.admin_id)
        return admin

    def login_admin(self, email: str, password: str) -> AdministratorModel:
        """Check administrator credentials.

        Raises:
            ValidationError: If email or password is missing.
            AuthenticationError: If the credentials do not match.
        """
        if not email or not password:
            raise ValidationError("Email and password are required", "MISSING_CREDENTIALS")
        admin = (
            self.db.query(AdministratorModel)
            .filter(AdministratorModel.email == email.strip())
            .first()
        )
        if admin is None or not self.password_hasher.verify(password, admin.password_hash):
            raise AuthenticationError("Invalid credentials", "INVALID_CREDENTIALS")
        return admin

    def change_password(self, admin_id: int, current_password: str, new_password: str) -> None:
        """Replace an administrator password after checking the current one."""
        if not current_password or not new_password:
            raise ValidationError("Current and new password are required", "MISSING_FIELDS")
        if len(new_password) < ADMIN_PASSWORD_MIN_LENGTH:
            raise ValidationError(
                f"Password must be at least {ADMIN_PASSWORD_MIN_LENGTH} characters",
                "PASSWORD_TOO_SHORT",
            )
        admin = self.db.get(AdministratorModel, admin_id)
        if admin is None:
            raise NotFoundError("Administrator not found", "USER_NOT_FOUND")
        if not self.password_hasher.verify(current_password, admin.password_hash):
            raise AuthenticationError("Current password is incorrect", "INVALID_CREDENTIALS")
        with transaction(self.db):
            admin.password_hash = self.password_hasher.hash(new_password)
        logger.info("Password changed for administrator %s", admin_id)

    # --- Students and teachers ---

    def _email_in_use(self, email: str) -> bool:
        if self.db.query(StudentModel.student_id).filter(StudentModel.email == email).first():
            return True
        return (
            self.db.query(TeacherModel.teacher_id).filter(TeacherModel.email == email).first()
            is not None
        )

    def list_students(self, grade: Optional[int] = None, group: Optional[str] = None) -> List[StudentModel]:
        query = self.db.query(StudentModel)
        if grade is not None:
            query = query.filter(StudentModel.grade == grade)
        if group:
            query = query.filter(StudentModel.group == group.strip().upper())
        return query.order_by(StudentModel.last_name, StudentModel.first_name).all()

    def list_teachers(self) -> List[TeacherModel]:
        return self.db.query(TeacherModel).order_by(TeacherModel.last_name, TeacherModel.first_name).all()

    def create_student(self, req: StudentCreate) -> StudentModel:
        """Create one student.

        Raises:
            ConflictError: If the enrollment number or email is taken.
        """
        email = validate_email(req.email)
        duplicate = (
            self.db.query(StudentModel.student_id)
            .filter(StudentModel.enrollment_number == req.enrollment_number.strip())
            .first()
        )
        if duplicate:
            raise ConflictError("Enrollment number already exists", "DUPLICATE_ENROLLMENT_NUMBER")
        if self._email_in_use(email):
            raise ConflictError("Email is already registered", "EMAIL_EXISTS")

        student = StudentModel(**{**req.model_dump(), "email": email})
        student.group = student.group.strip().upper()
        student.enrollment_number = student.enrollment_number.strip()
        with transaction(self.db):
            self.db.add(student)
        self.db.refresh(student)
        return student

    def create_teacher(self, req: TeacherCreate) -> TeacherModel:
        """Create one teacher.

        Raises:
            ConflictError: If the email is taken.
        """
        email = validate_email(req.email)
        if self._email_in_use(email):
            raise ConflictError("Email is already registered", "EMAIL_EXISTS")
        teacher = TeacherModel(**{**req.model_dump(), "email": email})
        with transaction(self.db):
            self.db.add(teacher)
        self.db.refresh(teacher)
        return teacher

    def import_students(
        self,
        rows: Iterable[dict],
        skip_duplicates: bool = True,
        class_id: Optional[int] = None,
    ) -> ImportSummary:
        """Insert parsed student rows.

        Rows with missing fields, a bad email or grade, or an enrollment
        number or email already present (in the database or earlier in the
        batch) are skipped and reported. All remaining rows are inserted in
        one transaction.

        Args:
            rows: Parsed CSV rows.
            skip_duplicates: When False, rows clashing with existing students
                are not pre-checked and the database constraint decides,
                failing the whole batch.
            class_id: Class to enroll every inserted student in.

        Raises:
            ValidationError: If there are no rows.
            NotFoundError: If ``class_id`` does not exist.
        """
        rows = list(rows)
        if not rows:
            raise ValidationError("No rows to import", "INVALID_CSV_DATA")
        if class_id is not None and self.db.get(ClassModel, class_id) is None:
            raise NotFoundError("Class not found", "CLASS_NOT_FOUND")

        summary = ImportSummary()
        numbers = {str(r.get("enrollment_number", "")).strip() for r in rows}
        emails = {str(r.get("email", "")).strip() for r in rows}
        existing = self.db.query(StudentModel.enrollment_number, StudentModel.email).filter(
            or_(
                StudentModel.enrollment_number.in_(numbers),
                StudentModel.email.in_(emails),
            )
        )
        taken_numbers = set()
        taken_emails = set()
        if skip_duplicates:
            for number, email in existing.all():
                taken_numbers.add(number)
                taken_emails.add(email)

        to_insert: List[StudentModel] = []
        for index, row in enumerate(rows, start=1):
            key = str(row.get("enrollment_number") or f"row {index}").strip()
            missing = [f for f in REQUIRED_STUDENT_FIELDS if not str(row.get(f) or "").strip()]
            if missing:
                summary.skip(key, f"Missing fields: {', '.join(missing)}")
                continue
            number = str(row["enrollment_number"]).strip()
            email = str(row["email"]).strip()
            if not EMAIL_PATTERN.match(email):
                summary.skip(key, "Invalid email")
                continue
            try:
                grade = int(row["grade"])
            except (TypeError, ValueError):
                summary.skip(key, "Invalid grade")
                continue
            if not MIN_GRADE <= grade <= MAX_GRADE:
                summary.skip(key, "Invalid grade")
                continue
            if number in taken_numbers:
                summary.skip(key, "Duplicate enrollment number")
                continue
            if email in taken_emails:
                summary.skip(key, "Duplicate email")
                continue
            taken_numbers.add(number)
            taken_emails.add(email)
            to_insert.append(
                StudentModel(
                    first_name=str(row["first_name"]).strip(),
                    last_name=str(row["last_name"]).strip(),
                    second_last_name=row.get("second_last_name") or None,
                    email=email,
                    grade=grade,
                    group=str(row["group"]).strip().upper(),
                    enrollment_number=number,
                    phone=row.get("phone") or None,
                    address=row.get("address") or None,
                    birth_date=_parse_date(row.get("birth_date")),
                )
            )
            if class_id is not None:
                to_insert[-1].enrollments.append(EnrollmentModel(class_id=class_id))

        if to_insert:
            with transaction(self.db):
                self.db.add_all(to_insert)
        summary.inserted = len(to_insert)
        logger.info("Student import: %d inserted, %d skipped", summary.inserted, summary.skipped)
        return summary

    # --- Grades and groups ---

    def promote_grade(self, grade: Optional[int] = None, group: Optional[str] = None) -> int:
        """Move students up one grade.

        Students already in the last grade are left where they are. Without
        filters every student is moved.

        Returns:
            Number of students moved.
        """
        return self._shift_grade(1, grade, group)

    def demote_grade(self, grade: Optional[int] = None, group: Optional[str] = None) -> int:
        """Move students down one grade, never below the first grade."""
        return self._shift_grade(-1, grade, group)

    def _shift_grade(self, step: int, grade: Optional[int], group: Optional[str]) -> int:
        if grade is not None and not MIN_GRADE <= grade <= MAX_GRADE:
            raise ValidationError(
                f"Grade must be between {MIN_GRADE} and {MAX_GRADE}", "INVALID_GRADE"
            )

        query = self.db.query(StudentModel)
        if step > 0:
            query = query.filter(StudentModel.grade < MAX_GRADE)
        else:
            query = query.filter(StudentModel.grade > MIN_GRADE)
        if grade is not None:
            query = query.filter(StudentModel.grade == grade)
        if group and group.strip():
            query = query.filter(StudentModel.group == group.strip().upper())

        with transaction(self.db):
            moved = query.update(
                {StudentModel.grade: StudentModel.grade + step}, synchronize_session="fetch"
            )
        logger.info("Moved %d students %s one grade", moved, "up" if step > 0 else "down")
        return moved

    def delete_group(self, grade: int, group: str) -> int:
        """Delete every student of one grade and group.

        Their enrollments and attendance marks are removed with them.

        Returns:
            Number of deleted students.

        Raises:
            NotFoundError: If no student is in the group.
        """
        group = (group or "").strip().upper()
        student_ids = [
            row.student_id
            for row in self.db.query(StudentModel.student_id)
            .filter(StudentModel.grade == grade, StudentModel.group == group)
            .all()
        ]
        if not student_ids:
            raise NotFoundError("No students found in this group", "GROUP_NOT_FOUND")

        with transaction(self.db):
            self.db.query(AttendanceModel).filter(
                AttendanceModel.student_id.in_(student_ids)
            ).delete(synchronize_session="fetch")
            self.db.query(EnrollmentModel).filter(
                EnrollmentModel.student_id.in_(student_ids)
            ).delete(synchronize_session="fetch")
            self.db.query(StudentModel).filter(
                StudentModel.student_id.in_(student_ids)
            ).delete(synchronize_session="fetch")
        logger.info("Deleted group %s%s with %d students", grade, group, len(student_ids))
        return len(student_ids)

    def list_grades_groups(self) -> GradeGroupCatalog:
        """Distinct grades and groups currently held by students."""
        grades = self.db.query(StudentModel.grade).distinct().order_by(StudentModel.grade).all()
        groups = self.db.query(StudentModel.group).distinct().order_by(StudentModel.group).all()
        return GradeGroupCatalog(
            grades=[row[0] for row in grades],
            groups=[row[0] for row in groups],
        )

    def dashboard_stats(self) -> DashboardStats:
        """Head counts for the administrator dashboard."""
        distribution = (
            self.db.query(StudentModel.grade, StudentModel.group, func.count(StudentModel.student_id))
            .group_by(StudentModel.grade, StudentModel.group)
            .order_by(StudentModel.grade, StudentModel.group)
            .all()
        )
        pending = (
            self.db.query(func.count(NotificationModel.notification_id))
            .filter(NotificationModel.status == STATUS_PENDING)
            .scalar()
        )
        return DashboardStats(
            students=self.db.query(func.count(StudentModel.student_id)).scalar(),
            teachers=self.db.query(func.count(TeacherModel.teacher_id)).scalar(),
            classes=self.db.query(func.count(ClassModel.class_id)).scalar(),
            pending_notifications=pending,
            distribution=[
                GroupCount(grade=grade, group=group, total=total)
                for grade, group, total in distribution
            ],
        )


def _parse_date(value) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        return None


def build_profile(role: str, row: IdentityModel) -> UserProfile:
    """Build the role-dependent profile for an identity row."""
    if role == ROLE_STUDENT:
        return UserProfile(
            id=row.student_id,
            role=role,
            email=row.email,
            first_name=row.first_name,
            last_name=row.last_name,
            second_last_name=row.second_last_name,
            phone=row.phone,
            grade=row.grade,
            group=row.group,
            enrollment_number=row.enrollment_number,
            address=row.address,
            birth_date=row.birth_date,
        )
    if role == ROLE_TEACHER:
        return UserProfile(
            id=row.teacher_id,
            role=role,
            email=row.email,
            first_name=row.first_name,
            last_name=row.last_name,
            second_last_name=row.second_last_name,
            phone=row.phone,
        )
    return UserProfile(
        id=row.admin_id,
        role=role,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        second_last_name=row.second_last_name,
        phone=row.phone,
    )
