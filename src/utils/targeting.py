"""Notification audience targeting.

A notification addresses an audience described by one of a fixed set of
target modes. This module turns request payloads and stored rows into typed
``TargetSpec`` values, checks at creation time that the creator may address
the requested audience, and decides at read time whether a given student is
part of it.

The read-time check (``includes``) is pure: everything it needs about the
student is gathered once into a ``StudentAudience`` before a listing is
filtered.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, FrozenSet, Iterable, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import AuthorizationError, ValidationError
from core.security import ROLE_ADMINISTRATOR, ROLE_TEACHER
from models.class_model import ClassModel
from models.enrollment import EnrollmentModel
from models.notification import NotificationModel
from models.user import StudentModel

logger = logging.getLogger(__name__)


class TargetMode(str, Enum):
    """Audience modes. The values are stored and exchanged verbatim."""

    SPECIFIC_STUDENTS = "ALUMNOS_ESPECIFICOS"
    CLASSES = "ALUMNOS_CLASE"
    ALL_MY_STUDENTS = "TODOS_MIS_ALUMNOS"
    GRADE = "ALUMNOS_GRADO"
    GROUP = "ALUMNOS_GRUPO"
    ALL_STUDENTS = "TODOS_ALUMNOS"


TEACHER_MODES = frozenset(
    {
        TargetMode.SPECIFIC_STUDENTS,
        TargetMode.CLASSES,
        TargetMode.ALL_MY_STUDENTS,
        TargetMode.GRADE,
        TargetMode.GROUP,
    }
)


@dataclass(frozen=True)
class SpecificStudents:
    student_ids: FrozenSet[int]
    mode: ClassVar[TargetMode] = TargetMode.SPECIFIC_STUDENTS


@dataclass(frozen=True)
class ClassWide:
    class_ids: FrozenSet[int]
    mode: ClassVar[TargetMode] = TargetMode.CLASSES


@dataclass(frozen=True)
class AllOwnedStudents:
    mode: ClassVar[TargetMode] = TargetMode.ALL_MY_STUDENTS


@dataclass(frozen=True)
class GradeWide:
    grade: int
    mode: ClassVar[TargetMode] = TargetMode.GRADE


@dataclass(frozen=True)
class GroupWide:
    grade: int
    group: str
    mode: ClassVar[TargetMode] = TargetMode.GROUP


@dataclass(frozen=True)
class AllStudents:
    mode: ClassVar[TargetMode] = TargetMode.ALL_STUDENTS


TargetSpec = Union[
    SpecificStudents, ClassWide, AllOwnedStudents, GradeWide, GroupWide, AllStudents
]


@dataclass(frozen=True)
class StudentAudience:
    """What the resolver needs to know about one student."""

    student_id: int
    grade: int
    group: str
    class_ids: FrozenSet[int]
    # Teachers owning at least one of the student's classes
    class_owner_ids: FrozenSet[int]


def normalize_group(group: Optional[str]) -> str:
    return (group or "").strip().upper()


def _parse_ids(ids: Optional[Iterable], label: str) -> FrozenSet[int]:
    if not ids:
        raise ValidationError(
            f"At least one {label} id is required", "NO_RECIPIENTS"
        )
    # Stored payloads may hold any JSON value
    if not isinstance(ids, (list, tuple, set, frozenset)):
        raise ValidationError(f"Invalid {label} ids: {ids!r}", "INVALID_RECIPIENTS")
    parsed = set()
    for raw in ids:
        # bool is an int subclass and never a valid id
        if isinstance(raw, bool):
            raise ValidationError(f"Invalid {label} id: {raw!r}", "INVALID_RECIPIENTS")
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid {label} id: {raw!r}", "INVALID_RECIPIENTS")
        if value <= 0:
            raise ValidationError(f"Invalid {label} id: {raw!r}", "INVALID_RECIPIENTS")
        parsed.add(value)
    return frozenset(parsed)


def _parse_grade(grade) -> int:
    if grade is None or (isinstance(grade, str) and not grade.strip()):
        raise ValidationError("Grade is required for this target mode", "MISSING_GRADE")
    if isinstance(grade, bool):
        raise ValidationError(f"Invalid grade: {grade!r}", "INVALID_GRADE")
    try:
        value = int(grade)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid grade: {grade!r}", "INVALID_GRADE")
    if value <= 0:
        raise ValidationError(f"Invalid grade: {grade!r}", "INVALID_GRADE")
    return value


def parse_mode(mode) -> TargetMode:
    try:
        return TargetMode(mode)
    except ValueError:
        raise ValidationError(f"Invalid target mode: {mode!r}", "INVALID_TARGET_MODE")


def build_target_spec(
    mode,
    ids: Optional[Iterable] = None,
    grade=None,
    group: Optional[str] = None,
) -> TargetSpec:
    """Build a target spec from request values.

    Args:
        mode: Target mode token.
        ids: Student ids or class ids for the id-set modes.
        grade: Grade for the grade and group modes.
        group: Group for the group mode.

    Returns:
        The matching ``TargetSpec`` variant.

    Raises:
        ValidationError: If the mode is unknown or its payload is missing or
            malformed.
    """
    target_mode = parse_mode(mode)
    if target_mode is TargetMode.SPECIFIC_STUDENTS:
        return SpecificStudents(_parse_ids(ids, "student"))
    if target_mode is TargetMode.CLASSES:
        return ClassWide(_parse_ids(ids, "class"))
    if target_mode is TargetMode.ALL_MY_STUDENTS:
        return AllOwnedStudents()
    if target_mode is TargetMode.GRADE:
        return GradeWide(_parse_grade(grade))
    if target_mode is TargetMode.GROUP:
        parsed_grade = _parse_grade(grade)
        normalized = normalize_group(group)
        if not normalized:
            raise ValidationError("Group is required for this target mode", "MISSING_GROUP")
        return GroupWide(parsed_grade, normalized)
    return AllStudents()


def spec_from_notification(notification: NotificationModel) -> TargetSpec:
    """Rebuild the target spec stored on a notification row."""
    return build_target_spec(
        notification.target_mode,
        ids=notification.target_ids,
        grade=notification.target_grade,
        group=notification.target_group,
    )


def spec_columns(spec: TargetSpec) -> dict:
    """Column values used to persist a target spec."""
    columns = {
        "target_mode": spec.mode.value,
        "target_ids": None,
        "target_grade": None,
        "target_group": None,
    }
    match spec:
        case SpecificStudents(student_ids=ids):
            columns["target_ids"] = sorted(ids)
        case ClassWide(class_ids=ids):
            columns["target_ids"] = sorted(ids)
        case GradeWide(grade=grade):
            columns["target_grade"] = grade
        case GroupWide(grade=grade, group=group):
            columns["target_grade"] = grade
            columns["target_group"] = group
    return columns


def spec_includes(
    spec: TargetSpec,
    created_by_id: int,
    created_by_role: str,
    audience: StudentAudience,
) -> bool:
    """Decide whether a student belongs to a target audience.

    Grade and group targets written by a teacher only reach that teacher's
    own students.
    """
    teacher_scoped = created_by_role == ROLE_TEACHER
    match spec:
        case AllStudents():
            return True
        case GradeWide(grade=grade):
            if grade != audience.grade:
                return False
            return not teacher_scoped or created_by_id in audience.class_owner_ids
        case GroupWide(grade=grade, group=group):
            if grade != audience.grade or group != normalize_group(audience.group):
                return False
            return not teacher_scoped or created_by_id in audience.class_owner_ids
        case SpecificStudents(student_ids=ids):
            return audience.student_id in ids
        case ClassWide(class_ids=ids):
            return not ids.isdisjoint(audience.class_ids)
        case AllOwnedStudents():
            return created_by_id in audience.class_owner_ids
        case _:
            return False


def includes(notification: NotificationModel, audience: StudentAudience) -> bool:
    """Decide whether a stored notification is visible to a student.

    Rows with an unknown mode or a malformed payload are excluded.
    """
    try:
        spec = spec_from_notification(notification)
    except ValidationError as e:
        logger.warning(
            "Skipping notification %s with unusable target (%s): %s",
            notification.notification_id,
            notification.target_mode,
            e.message,
        )
        return False
    return spec_includes(
        spec, notification.created_by_id, notification.created_by_role, audience
    )


class TargetAuthorizer:
    """Checks that a creator may address a target audience."""

    def __init__(self, db: Session):
        self.db = db

    def authorize(self, creator_role: str, creator_id: int, spec: TargetSpec) -> None:
        """Authorize a creator's requested target.

        Administrators may use every mode except the teacher-relative
        ``TODOS_MIS_ALUMNOS`` and skip ownership checks. Teachers may only
        reach students enrolled in classes they own.

        Raises:
            AuthorizationError: If the role may not use the mode or an
                ownership check fails.
            ValidationError: If an administrator names unknown students or
                classes.
        """
        if creator_role == ROLE_ADMINISTRATOR:
            self._authorize_admin(spec)
        elif creator_role == ROLE_TEACHER:
            self._authorize_teacher(creator_id, spec)
        else:
            raise AuthorizationError(
                "Only teachers and administrators can create notifications"
            )

    def _authorize_admin(self, spec: TargetSpec) -> None:
        match spec:
            case AllOwnedStudents():
                raise AuthorizationError(
                    f"{spec.mode.value} is only available to teachers",
                    "INVALID_TARGET_MODE",
                )
            case SpecificStudents(student_ids=ids):
                found = (
                    self.db.query(func.count(StudentModel.student_id))
                    .filter(StudentModel.student_id.in_(ids))
                    .scalar()
                )
                if found != len(ids):
                    raise ValidationError(
                        "Some recipients do not exist", "UNKNOWN_RECIPIENTS"
                    )
            case ClassWide(class_ids=ids):
                found = (
                    self.db.query(func.count(ClassModel.class_id))
                    .filter(ClassModel.class_id.in_(ids))
                    .scalar()
                )
                if found != len(ids):
                    raise ValidationError(
                        "Some classes do not exist", "UNKNOWN_RECIPIENTS"
                    )

    def _authorize_teacher(self, teacher_id: int, spec: TargetSpec) -> None:
        match spec:
            case AllStudents():
                raise AuthorizationError(
                    "Only administrators can notify all students",
                    "INVALID_TARGET_MODE",
                )
            case SpecificStudents(student_ids=ids):
                found = (
                    self.db.query(func.count(func.distinct(EnrollmentModel.student_id)))
                    .join(ClassModel, ClassModel.class_id == EnrollmentModel.class_id)
                    .filter(
                        ClassModel.teacher_id == teacher_id,
                        EnrollmentModel.student_id.in_(ids),
                    )
                    .scalar()
                )
                if found != len(ids):
                    raise AuthorizationError(
                        "You can only notify students enrolled in your classes",
                        "INVALID_STUDENTS",
                    )
            case ClassWide(class_ids=ids):
                found = (
                    self.db.query(func.count(ClassModel.class_id))
                    .filter(
                        ClassModel.teacher_id == teacher_id,
                        ClassModel.class_id.in_(ids),
                    )
                    .scalar()
                )
                if found != len(ids):
                    raise AuthorizationError(
                        "You can only notify your own classes", "INVALID_CLASSES"
                    )
            case AllOwnedStudents():
                if self._count_own_students(teacher_id) == 0:
                    raise AuthorizationError(
                        "You have no enrolled students to notify", "NO_MATCHING_STUDENTS"
                    )
            case GradeWide(grade=grade):
                if self._count_own_students(teacher_id, grade=grade) == 0:
                    raise AuthorizationError(
                        f"You have no students in grade {grade}", "NO_MATCHING_STUDENTS"
                    )
            case GroupWide(grade=grade, group=group):
                if self._count_own_students(teacher_id, grade=grade, group=group) == 0:
                    raise AuthorizationError(
                        f"You have no students in group {grade}{group}",
                        "NO_MATCHING_STUDENTS",
                    )
            case _:
                raise ValidationError("Unsupported target", "INVALID_TARGET_MODE")

    def _count_own_students(
        self, teacher_id: int, grade: Optional[int] = None, group: Optional[str] = None
    ) -> int:
        query = (
            self.db.query(func.count(func.distinct(StudentModel.student_id)))
            .join(EnrollmentModel, EnrollmentModel.student_id == StudentModel.student_id)
            .join(ClassModel, ClassModel.class_id == EnrollmentModel.class_id)
            .filter(ClassModel.teacher_id == teacher_id)
        )
        if grade is not None:
            query = query.filter(StudentModel.grade == grade)
        if group is not None:
            query = query.filter(func.upper(StudentModel.group) == group)
        return query.scalar() or 0
