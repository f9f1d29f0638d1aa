"""Authentication routes.

This module handles HTTP endpoints for the emailed one-time code login used
by students and teachers.
"""

import logging

from fastapi import APIRouter, Response

from config import AUTH_COOKIE_NAME, ENVIRONMENT, get_auth_settings
from core.access import CurrentIdentity, StudentOrTeacherDep
from core.dependencies import OTPManagerDep, UserManagerDep
from schemas.auth import (
    LoginResponse,
    MessageResponse,
    RequestCodeRequest,
    RequestCodeResponse,
    UpdateProfileRequest,
    UserProfile,
    VerifyCodeRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/request-code", response_model=RequestCodeResponse, summary="Request a login code")
def request_code(
    req: RequestCodeRequest,
    otp_manager: OTPManagerDep,
) -> RequestCodeResponse:
    """Send a one-time login code to a registered student or teacher.

    Args:
        req: Request with the account email.
        otp_manager: Injected OTPManager instance.

    Returns:
        RequestCodeResponse with the email and code lifetime.
    """
    issued = otp_manager.request_code(req.email)
    return RequestCodeResponse(email=issued.email, expires_in_minutes=issued.expires_in_minutes)


@router.post("/resend-code", response_model=RequestCodeResponse, summary="Resend a login code")
def resend_code(
    req: RequestCodeRequest,
    otp_manager: OTPManagerDep,
) -> RequestCodeResponse:
    issued = otp_manager.resend_code(req.email)
    return RequestCodeResponse(
        message="New code sent to your email",
        email=issued.email,
        expires_in_minutes=issued.expires_in_minutes,
    )


@router.post("/verify-code", response_model=LoginResponse, summary="Verify a login code")
def verify_code(
    req: VerifyCodeRequest,
    response: Response,
    otp_manager: OTPManagerDep,
) -> LoginResponse:
    """Exchange a one-time code for an identity token.

    The token is returned in the body and also set as an HTTP-only cookie for
    browser clients.

    Args:
        req: Request with email and code.
        response: Outgoing response used to set the cookie.
        otp_manager: Injected OTPManager instance.

    Returns:
        LoginResponse with the token and the user's profile.
    """
    login = otp_manager.verify_code(req.email, req.code)
    response.set_cookie(
        key=AUTH_COOKIE_NAME,
        value=login.token,
        max_age=get_auth_settings().access_token_expire_hours * 3600,
        httponly=True,
        secure=ENVIRONMENT == "production",
        samesite="lax",
    )
    return LoginResponse(token=login.token, user=login.user)


@router.get("/profile", response_model=UserProfile, summary="Get current user profile")
def get_profile(
    identity: CurrentIdentity,
    user_manager: UserManagerDep,
) -> UserProfile:
    return user_manager.get_profile(identity)


@router.put("/profile", response_model=UserProfile, summary="Update current user profile")
def update_profile(
    req: UpdateProfileRequest,
    identity: StudentOrTeacherDep,
    user_manager: UserManagerDep,
) -> UserProfile:
    return user_manager.update_profile(identity, req)


@router.post("/logout", response_model=MessageResponse, summary="Log out")
def logout(response: Response) -> MessageResponse:
    """Logout endpoint.

    Tokens are stateless, so logging out only clears the auth cookie. Clients
    holding the token in memory discard it themselves.
    """
    response.delete_cookie(AUTH_COOKIE_NAME)
    return MessageResponse(message="Logged out successfully")
