"""Notification routes.

Teachers submit notifications for moderation, administrators publish and
moderate them, and students read the approved notifications addressed to
them.
"""

from typing import List, Optional

from fastapi import APIRouter, Query

from core.access import AdminDep, CurrentIdentity, StudentDep, TeacherDep
from core.dependencies import NotificationManagerDep
from schemas.notification import (
    CleanupRequest,
    DeleteResult,
    ModerationRequest,
    NotificationCreate,
    NotificationInfo,
    NotificationPage,
    NotificationStats,
    NotificationUpdate,
    RecipientsCatalog,
    StudentNotificationInfo,
)
from utils.targeting import build_target_spec

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _create(req: NotificationCreate, identity, notification_manager) -> NotificationInfo:
    spec = build_target_spec(req.target_mode, ids=req.recipients, grade=req.grade, group=req.group)
    model = notification_manager.create_notification(identity, req.title, req.message, spec)
    return NotificationInfo.model_validate(model)


# --- Teacher ---


@router.get("/teacher/recipients", response_model=RecipientsCatalog, summary="Available recipients")
def teacher_recipients(
    identity: TeacherDep,
    notification_manager: NotificationManagerDep,
) -> RecipientsCatalog:
    return notification_manager.recipients_catalog(identity.id)


@router.post("/teacher", response_model=NotificationInfo, summary="Submit a notification")
def create_teacher_notification(
    req: NotificationCreate,
    identity: TeacherDep,
    notification_manager: NotificationManagerDep,
) -> NotificationInfo:
    """Submit a notification for administrator approval.

    Args:
        req: Title, message and target.
        identity: Authenticated teacher.
        notification_manager: Injected NotificationManager instance.

    Returns:
        The stored notification, status ``Pending``.
    """
    return _create(req, identity, notification_manager)


@router.get("/teacher", response_model=List[NotificationInfo], summary="My notifications")
def list_teacher_notifications(
    identity: TeacherDep,
    notification_manager: NotificationManagerDep,
    status: Optional[str] = None,
    limit: int = 20,
) -> List[NotificationInfo]:
    return notification_manager.list_for_teacher(identity.id, status=status, limit=limit)


# --- Administrator ---


@router.post("/admin", response_model=NotificationInfo, summary="Publish a notification")
def create_admin_notification(
    req: NotificationCreate,
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
) -> NotificationInfo:
    """Publish a notification. Administrator notifications skip moderation."""
    return _create(req, identity, notification_manager)


@router.get("/admin", response_model=NotificationPage, summary="All notifications")
def list_all_notifications(
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
    status: Optional[str] = None,
    mode: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1),
) -> NotificationPage:
    return notification_manager.list_all(status=status, mode=mode, page=page, limit=limit)


@router.get("/admin/pending", response_model=List[NotificationInfo], summary="Pending notifications")
def list_pending_notifications(
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
) -> List[NotificationInfo]:
    return notification_manager.list_pending()


@router.post("/admin/cleanup", response_model=DeleteResult, summary="Bulk delete notifications")
def cleanup_notifications(
    req: CleanupRequest,
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
) -> DeleteResult:
    """Delete rejected notifications, or those older than N days.

    Without ``rejected`` the age threshold defaults to the retention period.
    """
    deleted = notification_manager.bulk_delete(
        rejected=req.rejected, older_than_days=req.older_than_days
    )
    return DeleteResult(deleted=deleted)


@router.get("/admin/{notification_id}", response_model=NotificationInfo, summary="Get notification")
def get_notification(
    notification_id: int,
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
) -> NotificationInfo:
    return NotificationInfo.model_validate(notification_manager.get_notification(notification_id))


@router.patch(
    "/admin/{notification_id}/moderate",
    response_model=NotificationInfo,
    summary="Approve or reject a notification",
)
def moderate_notification(
    notification_id: int,
    req: ModerationRequest,
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
) -> NotificationInfo:
    """Approve or reject a pending notification.

    Returns 409 if another administrator moderated it first.
    """
    model = notification_manager.moderate(notification_id, identity.id, req.action)
    return NotificationInfo.model_validate(model)


@router.patch("/admin/{notification_id}", response_model=NotificationInfo, summary="Edit notification")
def update_notification(
    notification_id: int,
    req: NotificationUpdate,
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
) -> NotificationInfo:
    model = notification_manager.update_notification(
        notification_id, title=req.title, message=req.message
    )
    return NotificationInfo.model_validate(model)


@router.delete("/admin/{notification_id}", response_model=DeleteResult, summary="Delete notification")
def delete_notification(
    notification_id: int,
    identity: AdminDep,
    notification_manager: NotificationManagerDep,
) -> DeleteResult:
    notification_manager.delete_notification(notification_id)
    return DeleteResult(deleted=1)


# --- Student ---


@router.get("/student", response_model=List[StudentNotificationInfo], summary="My notifications")
def list_student_notifications(
    identity: StudentDep,
    notification_manager: NotificationManagerDep,
    limit: int = 20,
) -> List[StudentNotificationInfo]:
    return notification_manager.list_for_student(identity.id, limit=limit)


# --- Any role ---


@router.get("/stats", response_model=NotificationStats, summary="Notification statistics")
def notification_stats(
    identity: CurrentIdentity,
    notification_manager: NotificationManagerDep,
) -> NotificationStats:
    return notification_manager.get_stats(identity)
