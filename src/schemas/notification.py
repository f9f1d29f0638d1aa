"""Notification schema definitions."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class NotificationCreate(BaseModel):
    title: str = ""
    message: str = ""
    target_mode: str = Field(
        default="",
        description="One of ALUMNOS_ESPECIFICOS, ALUMNOS_CLASE, TODOS_MIS_ALUMNOS, "
        "ALUMNOS_GRADO, ALUMNOS_GRUPO, TODOS_ALUMNOS.",
    )
    recipients: Optional[List[int]] = Field(
        default=None, description="Student ids or class ids for the id-set modes."
    )
    grade: Optional[int] = None
    group: Optional[str] = None


class NotificationUpdate(BaseModel):
    title: Optional[str] = None
    message: Optional[str] = None


class ModerationRequest(BaseModel):
    action: Literal["approve", "reject"]
    comment: Optional[str] = None


class CleanupRequest(BaseModel):
    """Bulk delete selector. Exactly one of the two criteria is used."""

    rejected: bool = False
    older_than_days: Optional[int] = Field(default=None, ge=1)


class NotificationInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: int
    title: str
    message: str
    target_mode: str
    target_ids: Optional[List[int]] = None
    target_grade: Optional[int] = None
    target_group: Optional[str] = None
    status: str
    created_by_id: int
    created_by_role: str
    approved_by_id: Optional[int] = None
    created_at: datetime
    approved_at: Optional[datetime] = None
    recipients_info: Optional[str] = None
    creator_name: Optional[str] = None
    age_days: Optional[int] = None


class StudentNotificationInfo(BaseModel):
    """Notification as shown to students, without the target payload."""

    model_config = ConfigDict(from_attributes=True)

    notification_id: int
    title: str
    message: str
    target_mode: str
    created_at: datetime


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class NotificationPage(BaseModel):
    items: List[NotificationInfo]
    pagination: Pagination


class NotificationStats(BaseModel):
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total: int = 0


class CatalogClass(BaseModel):
    class_id: int
    name: str
    code: str
    total_students: int


class CatalogStudent(BaseModel):
    student_id: int
    full_name: str
    enrollment_number: str
    grade: int
    group: str
    shared_classes: str


class RecipientsCatalog(BaseModel):
    classes: List[CatalogClass]
    students: List[CatalogStudent]
    total_classes: int
    total_students: int


class DeleteResult(BaseModel):
    success: bool = True
    deleted: int
