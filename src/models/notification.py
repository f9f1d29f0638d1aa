"""Notification database model.

Id-set targets (students or classes) are stored as a JSON array in
``target_ids``. Grade and group targets use their own columns.
"""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from core.clock import utcnow
from .base import Base


class NotificationModel(Base):
    """Notification database model."""

    __tablename__ = "notifications"

    notification_id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    target_mode = Column(String, index=True, nullable=False)
    target_ids = Column(JSON, nullable=True)
    target_grade = Column(Integer, nullable=True)
    target_group = Column(String, nullable=True)
    status = Column(String, index=True, nullable=False)  # Pending, Approved, Rejected
    created_by_id = Column(Integer, index=True, nullable=False)
    created_by_role = Column(String, nullable=False)  # 'teacher' or 'administrator'
    approved_by_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, index=True, nullable=False, default=utcnow)
    approved_at = Column(DateTime, nullable=True)
