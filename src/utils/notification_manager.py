"""Notification management utilities.

This module stores notifications, runs the approval workflow and produces the
teacher, administrator and student listings. Audience rules live in
``utils.targeting``.
"""

import logging
import math
from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT, NOTIFICATION_RETENTION_DAYS
from core.clock import Clock, utcnow
from core.database import transaction
from core.exceptions import ConflictError, NotFoundError, ValidationError
from core.security import ROLE_ADMINISTRATOR, ROLE_STUDENT, ROLE_TEACHER, Identity
from models.class_model import ClassModel
from models.enrollment import EnrollmentModel
from models.notification import NotificationModel
from models.user import AdministratorModel, StudentModel, TeacherModel
from schemas.notification import (
    CatalogClass,
    CatalogStudent,
    NotificationInfo,
    NotificationPage,
    NotificationStats,
    Pagination,
    RecipientsCatalog,
    StudentNotificationInfo,
)
from utils.class_manager import ClassManager
from utils.targeting import (
    AllOwnedStudents,
    AllStudents,
    ClassWide,
    GradeWide,
    GroupWide,
    SpecificStudents,
    TargetAuthorizer,
    TargetSpec,
    includes,
    parse_mode,
    spec_columns,
    spec_from_notification,
)

logger = logging.getLogger(__name__)

STATUS_PENDING = "Pending"
STATUS_APPROVED = "Approved"
STATUS_REJECTED = "Rejected"
STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

MODERATION_ACTIONS = {"approve": STATUS_APPROVED, "reject": STATUS_REJECTED}

ADMIN_PAGE_LIMIT = 50


def clamp_limit(limit: Optional[int], default: int = DEFAULT_LIST_LIMIT) -> int:
    """Clamp a requested listing size to 1..MAX_LIST_LIMIT."""
    if limit is None:
        return default
    return max(1, min(MAX_LIST_LIMIT, int(limit)))


def _check_status(status: Optional[str]) -> None:
    if status is not None and status not in STATUSES:
        raise ValidationError(f"Invalid status: {status}", "INVALID_STATUS")


class NotificationManager:
    """Manages notification creation, moderation and listings."""

    def __init__(self, db: Session, clock: Clock = utcnow):
        """Initialize NotificationManager.

        Args:
            db: SQLAlchemy Session.
            clock: Returns the current naive UTC time.
        """
        self.db = db
        self.clock = clock
        self.authorizer = TargetAuthorizer(db)
        self.class_manager = ClassManager(db)

    # --- Creation ---

    def create_notification(
        self, identity: Identity, title: str, message: str, spec: TargetSpec
    ) -> NotificationModel:
        """Create a notification after authorizing its audience.

        Teacher notifications start ``Pending``. Administrator notifications
        are approved on creation by their author.

        Raises:
            ValidationError: If title or message is blank, or ids are unknown.
            AuthorizationError: If the creator may not address the audience.
        """
        title = (title or "").strip()
        message = (message or "").strip()
        if not title or not message:
            raise ValidationError("Title and message are required", "MISSING_FIELDS")

        self.authorizer.authorize(identity.role, identity.id, spec)

        now = self.clock()
        notification = NotificationModel(
            title=title,
            message=message,
            created_by_id=identity.id,
            created_by_role=identity.role,
            created_at=now,
            **spec_columns(spec),
        )
        if identity.role == ROLE_ADMINISTRATOR:
            notification.status = STATUS_APPROVED
            notification.approved_by_id = identity.id
            notification.approved_at = now
        else:
            notification.status = STATUS_PENDING

        with transaction(self.db):
            self.db.add(notification)
        self.db.refresh(notification)
        logger.info(
            "Notification %s created by %s %s (%s, %s)",
            notification.notification_id,
            identity.role,
            identity.id,
            notification.target_mode,
            notification.status,
        )
        return notification

    # --- Moderation ---

    def moderate(self, notification_id: int, admin_id: int, action: str) -> NotificationModel:
        """Approve or reject a pending notification.

        The transition is a single conditional update, so two concurrent
        moderators cannot both succeed.

        Raises:
            ValidationError: If the action is unknown.
            NotFoundError: If the notification does not exist.
            ConflictError: If the notification was already moderated.
        """
        new_status = MODERATION_ACTIONS.get(action)
        if new_status is None:
            raise ValidationError("Action must be 'approve' or 'reject'", "INVALID_ACTION")

        with transaction(self.db):
            updated = (
                self.db.query(NotificationModel)
                .filter(
                    NotificationModel.notification_id == notification_id,
                    NotificationModel.status == STATUS_PENDING,
                )
                .update(
                    {
                        NotificationModel.status: new_status,
                        NotificationModel.approved_by_id: admin_id,
                        NotificationModel.approved_at: self.clock(),
                    },
                    synchronize_session=False,
                )
            )
            if updated == 0:
                exists = (
                    self.db.query(NotificationModel.notification_id)
                    .filter(NotificationModel.notification_id == notification_id)
                    .first()
                )
                if exists is None:
                    raise NotFoundError("Notification not found", "NOTIFICATION_NOT_FOUND")
                raise ConflictError(
                    "Notification has already been moderated", "ALREADY_MODERATED"
                )

        logger.info(
            "Notification %s %s by administrator %s", notification_id, new_status, admin_id
        )
        return self.get_notification(notification_id)

    # --- Administrator operations ---

    def get_notification(self, notification_id: int) -> NotificationModel:
        notification = self.db.get(NotificationModel, notification_id)
        if notification is None:
            raise NotFoundError("Notification not found", "NOTIFICATION_NOT_FOUND")
        return notification

    def update_notification(
        self,
        notification_id: int,
        title: Optional[str] = None,
        message: Optional[str] = None,
    ) -> NotificationModel:
        """Edit the text of an approved notification.

        Raises:
            ValidationError: If no field is given or a given field is blank.
            NotFoundError: If the notification does not exist.
            ConflictError: If the notification is not approved.
        """
        if title is None and message is None:
            raise ValidationError("Provide a title or a message to update", "NO_CHANGES")
        if (title is not None and not title.strip()) or (
            message is not None and not message.strip()
        ):
            raise ValidationError("Title and message cannot be empty", "MISSING_FIELDS")

        notification = self.get_notification(notification_id)
        if notification.status != STATUS_APPROVED:
            raise ConflictError("Only approved notifications can be edited", "NOT_APPROVED")

        with transaction(self.db):
            if title is not None:
                notification.title = title.strip()
            if message is not None:
                notification.message = message.strip()
        self.db.refresh(notification)
        return notification

    def delete_notification(self, notification_id: int) -> None:
        notification = self.get_notification(notification_id)
        with transaction(self.db):
            self.db.delete(notification)
        logger.info("Deleted notification: %s", notification_id)

    def bulk_delete(self, rejected: bool = False, older_than_days: Optional[int] = None) -> int:
        """Delete rejected notifications, or notifications older than N days.

        Args:
            rejected: Delete every rejected notification.
            older_than_days: Age threshold; defaults to the retention period
                when ``rejected`` is not set.

        Returns:
            Number of deleted notifications.
        """
        if rejected and older_than_days is not None:
            raise ValidationError("Choose a single cleanup criterion", "INVALID_CLEANUP")

        query = self.db.query(NotificationModel)
        if rejected:
            query = query.filter(NotificationModel.status == STATUS_REJECTED)
        else:
            days = NOTIFICATION_RETENTION_DAYS if older_than_days is None else older_than_days
            if days < 1:
                raise ValidationError("older_than_days must be positive", "INVALID_CLEANUP")
            cutoff = self.clock() - timedelta(days=days)
            query = query.filter(NotificationModel.created_at < cutoff)

        with transaction(self.db):
            deleted = query.delete(synchronize_session="fetch")
        logger.info("Notification cleanup removed %d rows", deleted)
        return deleted

    def list_all(
        self,
        status: Optional[str] = None,
        mode: Optional[str] = None,
        page: int = 1,
        limit: int = ADMIN_PAGE_LIMIT,
    ) -> NotificationPage:
        """Paginated administrator listing, newest first."""
        _check_status(status)
        page = max(1, page)
        limit = clamp_limit(limit, ADMIN_PAGE_LIMIT)

        query = self.db.query(NotificationModel)
        if status:
            query = query.filter(NotificationModel.status == status)
        if mode:
            query = query.filter(NotificationModel.target_mode == parse_mode(mode).value)
        total = query.count()
        rows = (
            query.order_by(
                NotificationModel.created_at.desc(), NotificationModel.notification_id.desc()
            )
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        names = self._creator_names(rows)
        now = self.clock()
        items = []
        for row in rows:
            info = NotificationInfo.model_validate(row)
            info.creator_name = names.get((row.created_by_role, row.created_by_id))
            info.age_days = (now - row.created_at).days
            items.append(info)
        return NotificationPage(
            items=items,
            pagination=Pagination(
                page=page, limit=limit, total=total, pages=math.ceil(total / limit)
            ),
        )

    def list_pending(self) -> List[NotificationInfo]:
        """Pending notifications, oldest first, with the author's name."""
        rows = (
            self.db.query(NotificationModel)
            .filter(NotificationModel.status == STATUS_PENDING)
            .order_by(NotificationModel.created_at, NotificationModel.notification_id)
            .all()
        )
        names = self._creator_names(rows)
        descriptions = self._describe_targets(rows)
        items = []
        for row in rows:
            info = NotificationInfo.model_validate(row)
            info.creator_name = names.get((row.created_by_role, row.created_by_id))
            info.recipients_info = descriptions.get(row.notification_id)
            items.append(info)
        return items

    # --- Teacher operations ---

    def list_for_teacher(
        self, teacher_id: int, status: Optional[str] = None, limit: Optional[int] = None
    ) -> List[NotificationInfo]:
        """A teacher's own notifications, newest first, with readable recipients."""
        _check_status(status)
        query = self.db.query(NotificationModel).filter(
            NotificationModel.created_by_id == teacher_id,
            NotificationModel.created_by_role == ROLE_TEACHER,
        )
        if status:
            query = query.filter(NotificationModel.status == status)
        rows = (
            query.order_by(NotificationModel.notification_id.desc())
            .limit(clamp_limit(limit))
            .all()
        )
        descriptions = self._describe_targets(rows)
        items = []
        for row in rows:
            info = NotificationInfo.model_validate(row)
            info.recipients_info = descriptions.get(row.notification_id)
            items.append(info)
        return items

    def recipients_catalog(self, teacher_id: int) -> RecipientsCatalog:
        """Classes a teacher owns and the distinct students enrolled in them."""
        classes = [
            CatalogClass(
                class_id=info.class_id,
                name=info.name,
                code=info.code,
                total_students=info.total_students,
            )
            for info in self.class_manager.list_classes(teacher_id=teacher_id)
        ]

        rows = (
            self.db.query(StudentModel, ClassModel.name)
            .join(EnrollmentModel, EnrollmentModel.student_id == StudentModel.student_id)
            .join(ClassModel, ClassModel.class_id == EnrollmentModel.class_id)
            .filter(ClassModel.teacher_id == teacher_id)
            .order_by(StudentModel.last_name, StudentModel.first_name, ClassModel.name)
            .all()
        )
        shared: Dict[int, List[str]] = defaultdict(list)
        students: Dict[int, StudentModel] = {}
        for student, class_name in rows:
            students.setdefault(student.student_id, student)
            shared[student.student_id].append(class_name)

        catalog_students = [
            CatalogStudent(
                student_id=student.student_id,
                full_name=student.full_name,
                enrollment_number=student.enrollment_number,
                grade=student.grade,
                group=student.group,
                shared_classes=", ".join(shared[student.student_id]),
            )
            for student in students.values()
        ]
        return RecipientsCatalog(
            classes=classes,
            students=catalog_students,
            total_classes=len(classes),
            total_students=len(catalog_students),
        )

    # --- Student operations ---

    def list_for_student(
        self, student_id: int, limit: Optional[int] = None
    ) -> List[StudentNotificationInfo]:
        """Approved notifications addressed to a student, newest first.

        Rows are filtered by audience before the limit is applied.
        """
        visible = self._visible_for_student(student_id)
        return [
            StudentNotificationInfo.model_validate(row) for row in visible[: clamp_limit(limit)]
        ]

    def _visible_for_student(self, student_id: int) -> List[NotificationModel]:
        audience = self.class_manager.student_audience(student_id)
        rows = (
            self.db.query(NotificationModel)
            .filter(NotificationModel.status == STATUS_APPROVED)
            .order_by(
                NotificationModel.created_at.desc(), NotificationModel.notification_id.desc()
            )
            .all()
        )
        return [row for row in rows if includes(row, audience)]

    # --- Statistics ---

    def get_stats(self, identity: Identity) -> NotificationStats:
        """Counts per status.

        Teachers see their own notifications, administrators the whole
        system and students the approved notifications addressed to them.
        """
        if identity.role == ROLE_STUDENT:
            visible = len(self._visible_for_student(identity.id))
            return NotificationStats(approved=visible, total=visible)

        query = self.db.query(NotificationModel.status, func.count(NotificationModel.notification_id))
        if identity.role == ROLE_TEACHER:
            query = query.filter(
                NotificationModel.created_by_id == identity.id,
                NotificationModel.created_by_role == ROLE_TEACHER,
            )
        counts = dict(query.group_by(NotificationModel.status).all())
        stats = NotificationStats(
            pending=counts.get(STATUS_PENDING, 0),
            approved=counts.get(STATUS_APPROVED, 0),
            rejected=counts.get(STATUS_REJECTED, 0),
        )
        stats.total = stats.pending + stats.approved + stats.rejected
        return stats

    # --- Helpers ---

    def _creator_names(self, rows: List[NotificationModel]) -> Dict[Tuple[str, int], str]:
        teacher_ids = {r.created_by_id for r in rows if r.created_by_role == ROLE_TEACHER}
        admin_ids = {r.created_by_id for r in rows if r.created_by_role == ROLE_ADMINISTRATOR}
        names = {}
        if teacher_ids:
            for teacher in (
                self.db.query(TeacherModel).filter(TeacherModel.teacher_id.in_(teacher_ids)).all()
            ):
                names[(ROLE_TEACHER, teacher.teacher_id)] = teacher.full_name
        if admin_ids:
            for admin in (
                self.db.query(AdministratorModel)
                .filter(AdministratorModel.admin_id.in_(admin_ids))
                .all()
            ):
                names[(ROLE_ADMINISTRATOR, admin.admin_id)] = (
                    f"{admin.first_name} {admin.last_name}"
                )
        return names

    def _describe_targets(self, rows: List[NotificationModel]) -> Dict[int, str]:
        """Readable audience descriptions keyed by notification id."""
        specs = {}
        student_ids = set()
        class_ids = set()
        for row in rows:
            try:
                spec = spec_from_notification(row)
            except ValidationError:
                continue
            specs[row.notification_id] = spec
            if isinstance(spec, SpecificStudents):
                student_ids |= spec.student_ids
            elif isinstance(spec, ClassWide):
                class_ids |= spec.class_ids

        student_labels = {}
        if student_ids:
            for student in (
                self.db.query(StudentModel).filter(StudentModel.student_id.in_(student_ids)).all()
            ):
                student_labels[student.student_id] = (
                    f"{student.full_name} ({student.enrollment_number})"
                )
        class_labels = {}
        if class_ids:
            for class_model in (
                self.db.query(ClassModel).filter(ClassModel.class_id.in_(class_ids)).all()
            ):
                class_labels[class_model.class_id] = class_model.name

        descriptions = {}
        for row in rows:
            spec = specs.get(row.notification_id)
            match spec:
                case SpecificStudents(student_ids=ids):
                    text = ", ".join(student_labels[i] for i in sorted(ids) if i in student_labels)
                case ClassWide(class_ids=ids):
                    text = ", ".join(class_labels[i] for i in sorted(ids) if i in class_labels)
                case AllOwnedStudents():
                    text = "All my students"
                case GradeWide(grade=grade):
                    text = f"Grade {grade}"
                case GroupWide(grade=grade, group=group):
                    text = f"Grade {grade}, group {group}"
                case AllStudents():
                    text = "All students"
                case _:
                    text = "Unknown recipients"
            descriptions[row.notification_id] = text
        return descriptions
