"""Unit tests for OTPManager.

Codes are made deterministic by patching ``generate_code`` and time is driven
by the ``FakeClock`` fixture.
"""

import itertools

import pytest

from core.exceptions import (
    AlreadyUsedError,
    DeliveryError,
    ExpiredCodeError,
    InvalidCodeError,
    NotFoundError,
    RateLimitError,
    TooManyAttemptsError,
    ValidationError,
)
from core.security import ROLE_STUDENT, ROLE_TEACHER
from models.otp_code import OTPCodeModel
from models.user import TeacherModel
from utils.otp_manager import OTPManager, generate_code

STUDENT_EMAIL = "student1@school.edu"
TEACHER_EMAIL = "laura.mendez@school.edu"


@pytest.fixture
def codes(monkeypatch):
    """Hand out 111111, 222222, ... as generated codes."""
    sequence = (str(d) * 6 for d in itertools.cycle(range(1, 10)))
    monkeypatch.setattr("utils.otp_manager.generate_code", lambda length: next(sequence))


@pytest.fixture
def otp(db_session, auth_settings, dispatcher, clock, token_issuer, school, codes) -> OTPManager:
    return OTPManager(
        db_session,
        auth_settings,
        dispatcher,
        clock=clock,
        token_issuer=token_issuer,
    )


class TestGenerateCode:
    """Tests for the code generator."""

    def test_digits_only(self) -> None:
        code = generate_code(6)

        assert len(code) == 6
        assert code.isdigit()


class TestRequestCode:
    """Tests for issuing codes."""

    def test_issues_and_mails_code(self, otp, dispatcher, db_session, clock) -> None:
        issued = otp.request_code(STUDENT_EMAIL)

        assert issued.email == STUDENT_EMAIL
        assert issued.expires_in_minutes == 10
        assert dispatcher.last_code == "111111"
        assert dispatcher.sent[-1].name == "Student1 Lopez"

        row = db_session.query(OTPCodeModel).one()
        assert row.user_role == ROLE_STUDENT
        assert row.used is False
        assert row.attempts == 0
        assert (row.expires_at - row.created_at).total_seconds() == 600

    def test_teacher_email(self, otp, db_session) -> None:
        otp.request_code(TEACHER_EMAIL)

        assert db_session.query(OTPCodeModel).one().user_role == ROLE_TEACHER

    def test_unknown_email(self, otp, dispatcher) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            otp.request_code("nobody@school.edu")

        assert exc_info.value.code == "EMAIL_NOT_FOUND"
        assert dispatcher.sent == []

    @pytest.mark.parametrize("email, code", [("", "EMAIL_REQUIRED"), ("not-an-email", "INVALID_EMAIL")])
    def test_malformed_email(self, otp, email, code) -> None:
        with pytest.raises(ValidationError) as exc_info:
            otp.request_code(email)

        assert exc_info.value.code == code

    def test_cooldown(self, otp, clock) -> None:
        otp.request_code(STUDENT_EMAIL)
        clock.advance(20)

        with pytest.raises(RateLimitError) as exc_info:
            otp.request_code(STUDENT_EMAIL)

        assert exc_info.value.retry_after == 40

    def test_new_code_supersedes_previous(self, otp, clock, dispatcher) -> None:
        otp.request_code(STUDENT_EMAIL)
        first = dispatcher.last_code
        clock.advance(61)
        otp.resend_code(STUDENT_EMAIL)
        second = dispatcher.last_code

        with pytest.raises(AlreadyUsedError):
            otp.verify_code(STUDENT_EMAIL, first)

        assert otp.verify_code(STUDENT_EMAIL, second).user.id == 1

    def test_delivery_failure_stores_nothing(self, otp, dispatcher, db_session) -> None:
        dispatcher.fail = True

        with pytest.raises(DeliveryError):
            otp.request_code(STUDENT_EMAIL)

        assert db_session.query(OTPCodeModel).count() == 0

    def test_delivery_failure_keeps_previous_code(
        self, otp, db_session, dispatcher, clock
    ) -> None:
        otp.request_code(STUDENT_EMAIL)
        first = dispatcher.last_code
        clock.advance(61)
        dispatcher.fail = True

        with pytest.raises(DeliveryError):
            otp.request_code(STUDENT_EMAIL)

        assert otp.verify_code(STUDENT_EMAIL, first).user.email == STUDENT_EMAIL


class TestVerifyCode:
    """Tests for exchanging codes for tokens."""

    def test_success_returns_token_and_profile(self, otp, dispatcher, token_issuer) -> None:
        otp.request_code(STUDENT_EMAIL)

        login = otp.verify_code(STUDENT_EMAIL, dispatcher.last_code)

        assert login.user.role == ROLE_STUDENT
        assert login.user.grade == 3
        assert login.user.enrollment_number == "M0001"
        identity = token_issuer.verify(login.token)
        assert (identity.id, identity.role, identity.name) == (1, ROLE_STUDENT, "Student1 Lopez")

    def test_code_works_once(self, otp, dispatcher) -> None:
        otp.request_code(STUDENT_EMAIL)
        code = dispatcher.last_code
        otp.verify_code(STUDENT_EMAIL, code)

        with pytest.raises(AlreadyUsedError):
            otp.verify_code(STUDENT_EMAIL, code)

    def test_expired(self, otp, dispatcher, clock) -> None:
        otp.request_code(STUDENT_EMAIL)
        clock.advance(minutes=10)

        with pytest.raises(ExpiredCodeError):
            otp.verify_code(STUDENT_EMAIL, dispatcher.last_code)

    def test_wrong_code(self, otp, db_session) -> None:
        otp.request_code(STUDENT_EMAIL)

        with pytest.raises(InvalidCodeError):
            otp.verify_code(STUDENT_EMAIL, "999999")

        assert db_session.query(OTPCodeModel).one().attempts == 1

    def test_attempt_limit_burns_code(self, otp, dispatcher, db_session) -> None:
        otp.request_code(STUDENT_EMAIL)
        code = dispatcher.last_code

        for _ in range(3):
            with pytest.raises(InvalidCodeError):
                otp.verify_code(STUDENT_EMAIL, "000000")

        with pytest.raises(TooManyAttemptsError):
            otp.verify_code(STUDENT_EMAIL, code)

        row = db_session.query(OTPCodeModel).one()
        assert row.used is True
        assert row.attempts == 3

    def test_burned_code_allows_new_request(self, otp, dispatcher, clock) -> None:
        otp.request_code(STUDENT_EMAIL)
        for _ in range(3):
            with pytest.raises(InvalidCodeError):
                otp.verify_code(STUDENT_EMAIL, "000000")

        # No live code remains, so the cooldown does not apply
        otp.request_code(STUDENT_EMAIL)

        assert otp.verify_code(STUDENT_EMAIL, dispatcher.last_code).user.id == 1

    @pytest.mark.parametrize("code", ["", "12345", "1234567", "12a456", " "])
    def test_bad_format(self, otp, code) -> None:
        with pytest.raises(ValidationError) as exc_info:
            otp.verify_code(STUDENT_EMAIL, code)

        assert exc_info.value.code == "INVALID_CODE_FORMAT"

    def test_missing_email(self, otp) -> None:
        with pytest.raises(ValidationError) as exc_info:
            otp.verify_code("", "123456")

        assert exc_info.value.code == "EMAIL_REQUIRED"

    def test_deleted_account(self, otp, dispatcher, db_session) -> None:
        otp.request_code(TEACHER_EMAIL)
        db_session.query(TeacherModel).filter(TeacherModel.email == TEACHER_EMAIL).delete()
        db_session.commit()

        with pytest.raises(NotFoundError) as exc_info:
            otp.verify_code(TEACHER_EMAIL, dispatcher.last_code)

        assert exc_info.value.code == "USER_NOT_FOUND"
