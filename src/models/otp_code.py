"""One-time login code database model."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from core.clock import utcnow
from .base import Base


class OTPCodeModel(Base):
    """One-time login code database model."""

    __tablename__ = "otp_codes"

    code_id = Column(Integer, primary_key=True, index=True)
    email = Column(String, index=True, nullable=False)
    code = Column(String, nullable=False)
    user_role = Column(String, nullable=False)  # 'student' or 'teacher'
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
