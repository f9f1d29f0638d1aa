"""Authentication schema definitions."""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class RequestCodeRequest(BaseModel):
    email: str = Field(default="", description="Institutional email of a student or teacher.")


class RequestCodeResponse(BaseModel):
    success: bool = True
    message: str = "Code sent to your email"
    email: str
    expires_in_minutes: int


class VerifyCodeRequest(BaseModel):
    email: str = ""
    code: str = ""


class UserProfile(BaseModel):
    """Profile returned after login and by the profile endpoint.

    Student-only fields stay empty for teachers and administrators.
    """

    id: int
    role: str
    email: str
    first_name: str
    last_name: str
    second_last_name: Optional[str] = None
    phone: Optional[str] = None
    grade: Optional[int] = None
    group: Optional[str] = None
    enrollment_number: Optional[str] = None
    address: Optional[str] = None
    birth_date: Optional[date] = None


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    token: str
    user: UserProfile


class UpdateProfileRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    second_last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class AdminLoginRequest(BaseModel):
    email: str = ""
    password: str = ""


class AdminRegisterRequest(BaseModel):
    email: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    second_last_name: Optional[str] = None
    phone: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    current_password: str = ""
    new_password: str = ""


class AdminsExistResponse(BaseModel):
    exists: bool
    count: int


class MessageResponse(BaseModel):
    success: bool = True
    message: str
