from .base import Base
from .user import AdministratorModel, StudentModel, TeacherModel
from .class_model import ClassModel
from .enrollment import EnrollmentModel
from .attendance import AttendanceModel
from .notification import NotificationModel
from .otp_code import OTPCodeModel

__all__ = [
    "Base",
    "AdministratorModel",
    "StudentModel",
    "TeacherModel",
    "ClassModel",
    "EnrollmentModel",
    "AttendanceModel",
    "NotificationModel",
    "OTPCodeModel",
]
