"""Role-scoped access guard.

Routes declare the roles they accept through the ``*Dep`` aliases below. The
caller's token is read from the ``Authorization: Bearer`` header first and
from the auth cookie otherwise.
"""

from typing import Annotated, Callable, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import AUTH_COOKIE_NAME, get_auth_settings
from core.exceptions import AuthenticationError, AuthorizationError
from core.security import (
    ROLE_ADMINISTRATOR,
    ROLE_STUDENT,
    ROLE_TEACHER,
    Identity,
    TokenIssuer,
)

# auto_error=False so a missing header falls through to the cookie
bearer_scheme = HTTPBearer(auto_error=False)


def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(get_auth_settings())


TokenIssuerDep = Annotated[TokenIssuer, Depends(get_token_issuer)]


def get_current_identity(
    request: Request,
    token_issuer: TokenIssuerDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    """Resolve the caller identity from the request.

    Raises:
        AuthenticationError: If no token is present or it does not verify.
    """
    token = credentials.credentials if credentials else request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        raise AuthenticationError("Access token required", "NO_TOKEN")
    return token_issuer.verify(token)


CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]


def require_roles(*roles: str) -> Callable[[Identity], Identity]:
    """Build a dependency that admits only the given roles."""

    def dependency(identity: CurrentIdentity) -> Identity:
        if identity.role not in roles:
            raise AuthorizationError(
                f"Access restricted to: {', '.join(roles)}", "ACCESS_DENIED"
            )
        return identity

    return dependency


StudentDep = Annotated[Identity, Depends(require_roles(ROLE_STUDENT))]
TeacherDep = Annotated[Identity, Depends(require_roles(ROLE_TEACHER))]
AdminDep = Annotated[Identity, Depends(require_roles(ROLE_ADMINISTRATOR))]
StudentOrTeacherDep = Annotated[Identity, Depends(require_roles(ROLE_STUDENT, ROLE_TEACHER))]
