"""One-time login codes for students and teachers.

A code is issued per email, delivered by mail and exchanged once for an
identity token. Issuing a new code retires the previous ones, requests are
throttled by a resend cooldown, and wrong guesses count against every live
code of the email until the attempt limit burns them.
"""

import logging
import math
import re
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from config import AuthSettings
from core.clock import Clock, utcnow
from core.database import transaction
from core.exceptions import (
    AlreadyUsedError,
    ExpiredCodeError,
    InvalidCodeError,
    NotFoundError,
    RateLimitError,
    TooManyAttemptsError,
    ValidationError,
)
from core.security import Identity, TokenIssuer
from models.otp_code import OTPCodeModel
from schemas.auth import UserProfile
from utils.email_service import EmailDispatcher
from utils.user_manager import UserManager, build_profile, validate_email

logger = logging.getLogger(__name__)


def generate_code(length: int) -> str:
    """Return ``length`` independent, uniformly drawn decimal digits."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


@dataclass(frozen=True)
class CodeIssued:
    email: str
    expires_in_minutes: int


@dataclass(frozen=True)
class VerifiedLogin:
    token: str
    user: UserProfile


class OTPManager:
    """Issues and verifies emailed one-time login codes."""

    def __init__(
        self,
        db: Session,
        settings: AuthSettings,
        email_dispatcher: EmailDispatcher,
        clock: Clock = utcnow,
        token_issuer: Optional[TokenIssuer] = None,
    ):
        """Initialize OTPManager.

        Args:
            db: SQLAlchemy Session.
            settings: Code length, lifetime, cooldown and attempt limit.
            email_dispatcher: Delivers the codes.
            clock: Returns the current naive UTC time.
            token_issuer: Mints tokens after a successful verification.
        """
        self.db = db
        self.settings = settings
        self.email_dispatcher = email_dispatcher
        self.clock = clock
        self.token_issuer = token_issuer or TokenIssuer(settings)
        self.user_manager = UserManager(db)

    def request_code(self, email: str) -> CodeIssued:
        """Issue a new code for a registered student or teacher and mail it.

        Raises:
            ValidationError: If the email is missing or malformed.
            NotFoundError: If no student or teacher uses the email.
            RateLimitError: If the last code is younger than the cooldown.
            DeliveryError: If the email cannot be sent. Nothing is stored.
        """
        email = validate_email(email)
        owner = self.user_manager.find_identity_by_email(email)
        if owner is None:
            raise NotFoundError("Email is not registered", "EMAIL_NOT_FOUND")

        now = self.clock()
        latest = (
            self.db.query(OTPCodeModel)
            .filter(
                OTPCodeModel.email == email,
                OTPCodeModel.used.is_(False),
                OTPCodeModel.expires_at > now,
            )
            .order_by(OTPCodeModel.created_at.desc(), OTPCodeModel.code_id.desc())
            .first()
        )
        cooldown = self.settings.otp_resend_cooldown_seconds
        if latest is not None:
            elapsed = (now - latest.created_at).total_seconds()
            if elapsed < cooldown:
                retry_after = math.ceil(cooldown - elapsed)
                raise RateLimitError(
                    f"Please wait {retry_after} seconds before requesting a new code",
                    retry_after,
                )

        minutes = self.settings.otp_expiration_minutes
        code = generate_code(self.settings.otp_length)
        with transaction(self.db):
            self.db.query(OTPCodeModel).filter(
                OTPCodeModel.email == email, OTPCodeModel.used.is_(False)
            ).update({OTPCodeModel.used: True}, synchronize_session=False)
            self.db.add(
                OTPCodeModel(
                    email=email,
                    code=code,
                    user_role=owner.role,
                    expires_at=now + timedelta(minutes=minutes),
                    used=False,
                    attempts=0,
                    created_at=now,
                )
            )
            self.db.flush()
            self.email_dispatcher.send_login_code(email, code, owner.name, minutes)

        logger.info("Login code issued for %s %s", owner.role, owner.id)
        return CodeIssued(email=email, expires_in_minutes=minutes)

    def resend_code(self, email: str) -> CodeIssued:
        return self.request_code(email)

    def verify_code(self, email: str, code: str) -> VerifiedLogin:
        """Exchange a code for an identity token.

        Raises:
            ValidationError: If the email is missing or the code is not
                exactly the configured number of digits.
            InvalidCodeError: If no code matches. Counts as a failed attempt.
            TooManyAttemptsError: If the code hit the attempt limit.
            AlreadyUsedError: If the code was consumed or superseded.
            ExpiredCodeError: If the code is past its lifetime.
            NotFoundError: If the account behind the code no longer exists.
        """
        email = (email or "").strip()
        code = (code or "").strip()
        length = self.settings.otp_length
        if not email:
            raise ValidationError("Email is required", "EMAIL_REQUIRED")
        if not re.fullmatch(rf"\d{{{length}}}", code):
            raise ValidationError(f"The code must have {length} digits", "INVALID_CODE_FORMAT")

        row = (
            self.db.query(OTPCodeModel)
            .filter(OTPCodeModel.email == email, OTPCodeModel.code == code)
            .order_by(OTPCodeModel.created_at.desc(), OTPCodeModel.code_id.desc())
            .first()
        )
        max_attempts = self.settings.otp_max_attempts

        if row is None:
            self._record_failed_attempt(email, max_attempts)
            raise InvalidCodeError("Invalid code")

        # The limit is checked first: the last failed attempt burns the code.
        if row.attempts >= max_attempts:
            if not row.used:
                with transaction(self.db):
                    row.used = True
            raise TooManyAttemptsError("Too many failed attempts, request a new code")
        if row.used:
            raise AlreadyUsedError("This code has already been used")
        if row.expires_at <= self.clock():
            raise ExpiredCodeError("This code has expired, request a new one")

        with transaction(self.db):
            row.used = True

        account = self.user_manager.get_by_role(row.user_role, email)
        if account is None:
            raise NotFoundError("User not found", "USER_NOT_FOUND")
        profile = build_profile(row.user_role, account)
        token = self.token_issuer.issue(
            Identity(
                id=profile.id,
                email=profile.email,
                role=profile.role,
                name=f"{profile.first_name} {profile.last_name}",
            )
        )
        logger.info("Login code verified for %s %s", profile.role, profile.id)
        return VerifiedLogin(token=token, user=profile)

    def _record_failed_attempt(self, email: str, max_attempts: int) -> None:
        live_codes = (
            self.db.query(OTPCodeModel)
            .filter(OTPCodeModel.email == email, OTPCodeModel.used.is_(False))
            .all()
        )
        with transaction(self.db):
            for otp in live_codes:
                otp.attempts = (otp.attempts or 0) + 1
                if otp.attempts >= max_attempts:
                    otp.used = True
        if live_codes:
            logger.warning("Failed login code attempt for %s", email)
