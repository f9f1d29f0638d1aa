"""Dependency injection module for FastAPI.

This module provides dependency injection functions for FastAPI routes. Each
manager is built per request around the request-scoped DB session.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.orm import Session

from config import get_auth_settings
from core.access import TokenIssuerDep
from core.database import get_db
from utils import attendance_manager
from utils import class_manager
from utils import email_service
from utils import notification_manager
from utils import otp_manager
from utils import user_manager


def get_email_dispatcher() -> email_service.EmailDispatcher:
    """Get EmailDispatcher configured from the SMTP settings."""
    return email_service.EmailDispatcher()


def get_user_manager(db: Session = Depends(get_db)) -> user_manager.UserManager:
    """Get UserManager instance with request-scoped DB session.

    Args:
        db: Database session.

    Returns:
        UserManager instance.
    """
    return user_manager.UserManager(db)


def get_otp_manager(
    token_issuer: TokenIssuerDep,
    db: Session = Depends(get_db),
    dispatcher: email_service.EmailDispatcher = Depends(get_email_dispatcher),
) -> otp_manager.OTPManager:
    """Get OTPManager instance with request-scoped DB session.

    Args:
        token_issuer: Issuer used for verified logins.
        db: Database session.
        dispatcher: Email dispatcher delivering the codes.

    Returns:
        OTPManager instance.
    """
    return otp_manager.OTPManager(
        db, get_auth_settings(), dispatcher, token_issuer=token_issuer
    )


def get_notification_manager(
    db: Session = Depends(get_db),
) -> notification_manager.NotificationManager:
    """Get NotificationManager instance with request-scoped DB session."""
    return notification_manager.NotificationManager(db)


def get_class_manager(db: Session = Depends(get_db)) -> class_manager.ClassManager:
    """Get ClassManager instance with request-scoped DB session."""
    return class_manager.ClassManager(db)


def get_attendance_manager(
    db: Session = Depends(get_db),
) -> attendance_manager.AttendanceManager:
    return attendance_manager.AttendanceManager(db)


# Type aliases for dependency injection
UserManagerDep = Annotated[
    user_manager.UserManager, Depends(get_user_manager)
]
OTPManagerDep = Annotated[
    otp_manager.OTPManager, Depends(get_otp_manager)
]
NotificationManagerDep = Annotated[
    notification_manager.NotificationManager, Depends(get_notification_manager)
]
ClassManagerDep = Annotated[
    class_manager.ClassManager, Depends(get_class_manager)
]
AttendanceManagerDep = Annotated[
    attendance_manager.AttendanceManager, Depends(get_attendance_manager)
]
