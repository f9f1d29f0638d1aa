"""Administrator authentication routes.

Administrators sign in with email and password. The very first administrator
can register without a token; later ones are registered by an administrator.
"""

import logging

from fastapi import APIRouter

from core.access import AdminDep, TokenIssuerDep
from core.dependencies import UserManagerDep
from core.security import ROLE_ADMINISTRATOR, Identity
from models.user import AdministratorModel
from schemas.auth import (
    AdminLoginRequest,
    AdminRegisterRequest,
    AdminsExistResponse,
    ChangePasswordRequest,
    LoginResponse,
    MessageResponse,
    UserProfile,
)
from utils.user_manager import build_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/auth", tags=["Admin Auth"])


def _login_response(admin: AdministratorModel, token_issuer, message: str) -> LoginResponse:
    token = token_issuer.issue(
        Identity(
            id=admin.admin_id,
            email=admin.email,
            role=ROLE_ADMINISTRATOR,
            name=f"{admin.first_name} {admin.last_name}",
        )
    )
    return LoginResponse(
        message=message, token=token, user=build_profile(ROLE_ADMINISTRATOR, admin)
    )


@router.get("/check-admins", response_model=AdminsExistResponse, summary="Check for administrators")
def check_admins(user_manager: UserManagerDep) -> AdminsExistResponse:
    count = user_manager.count_admins()
    return AdminsExistResponse(exists=count > 0, count=count)


@router.post("/register-first", response_model=LoginResponse, summary="Register the first administrator")
def register_first(
    req: AdminRegisterRequest,
    user_manager: UserManagerDep,
    token_issuer: TokenIssuerDep,
) -> LoginResponse:
    """Register the initial administrator and log them in.

    Only allowed while no administrator exists.
    """
    admin = user_manager.register_first_admin(req)
    logger.info("First administrator registered: %s", admin.admin_id)
    return _login_response(admin, token_issuer, "Administrator registered successfully")


@router.post("/login", response_model=LoginResponse, summary="Administrator login")
def login(
    req: AdminLoginRequest,
    user_manager: UserManagerDep,
    token_issuer: TokenIssuerDep,
) -> LoginResponse:
    admin = user_manager.login_admin(req.email, req.password)
    return _login_response(admin, token_issuer, "Login successful")


@router.post("/register", response_model=UserProfile, summary="Register an administrator")
def register(
    req: AdminRegisterRequest,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> UserProfile:
    admin = user_manager.register_admin(req)
    logger.info("Administrator %s registered by %s", admin.admin_id, identity.id)
    return build_profile(ROLE_ADMINISTRATOR, admin)


@router.post("/change-password", response_model=MessageResponse, summary="Change password")
def change_password(
    req: ChangePasswordRequest,
    identity: AdminDep,
    user_manager: UserManagerDep,
) -> MessageResponse:
    user_manager.change_password(identity.id, req.current_password, req.new_password)
    return MessageResponse(message="Password updated successfully")


@router.get("/profile", response_model=UserProfile, summary="Administrator profile")
def profile(identity: AdminDep, user_manager: UserManagerDep) -> UserProfile:
    return user_manager.get_profile(identity)
