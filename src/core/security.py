"""Identity tokens and password hashing.

Tokens are signed JWTs carrying ``{id, email, role, name}``. Their validity is a
function of signature and expiry only; nothing is stored server side.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import bcrypt
import pytz
from jose import ExpiredSignatureError, JWTError, jwt

from config import AuthSettings
from core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ROLE_STUDENT = "student"
ROLE_TEACHER = "teacher"
ROLE_ADMINISTRATOR = "administrator"
ROLES = (ROLE_STUDENT, ROLE_TEACHER, ROLE_ADMINISTRATOR)

# Bcrypt rounds for password hashing (higher = more secure but slower)
BCRYPT_ROUNDS = 12


@dataclass(frozen=True)
class Identity:
    """Caller identity decoded from a token."""

    id: int
    email: str
    role: str
    name: str


class TokenIssuer:
    """Mints and validates signed identity tokens."""

    def __init__(self, settings: AuthSettings):
        self.settings = settings

    def issue(self, identity: Identity, expires_delta: Optional[timedelta] = None) -> str:
        """Create a signed token for an identity.

        Args:
            identity: The identity to encode.
            expires_delta: Optional lifetime override.

        Returns:
            Encoded JWT string.
        """
        if identity.role not in ROLES:
            raise ValueError(f"Invalid role: {identity.role}")
        now = datetime.now(pytz.utc)
        if expires_delta is None:
            expires_delta = timedelta(hours=self.settings.access_token_expire_hours)
        claims: Dict[str, Any] = {
            "sub": str(identity.id),
            "id": identity.id,
            "email": identity.email,
            "role": identity.role,
            "name": identity.name,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
            "iss": self.settings.jwt_issuer,
            "aud": self.settings.jwt_audience,
        }
        return jwt.encode(
            claims, self.settings.jwt_secret_key, algorithm=self.settings.jwt_algorithm
        )

    def verify(self, token: str) -> Identity:
        """Decode and validate a token.

        Raises:
            AuthenticationError: If the token is expired, tampered with or
                missing required claims.
        """
        try:
            claims = jwt.decode(
                token,
                self.settings.jwt_secret_key,
                algorithms=[self.settings.jwt_algorithm],
                audience=self.settings.jwt_audience,
                issuer=self.settings.jwt_issuer,
            )
        except ExpiredSignatureError:
            raise AuthenticationError("Token expired", "TOKEN_EXPIRED")
        except JWTError:
            raise AuthenticationError("Invalid or expired token", "INVALID_TOKEN")

        role = claims.get("role")
        if claims.get("id") is None or role not in ROLES:
            raise AuthenticationError("Invalid authentication credentials", "INVALID_TOKEN")
        return Identity(
            id=int(claims["id"]),
            email=claims.get("email", ""),
            role=role,
            name=claims.get("name", ""),
        )


class PasswordHasher:
    """Bcrypt password hashing for administrator accounts."""

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt.

        Args:
            password: Plain text password.

        Returns:
            Hashed password (bcrypt hash string).
        """
        # Truncate password if it exceeds bcrypt's 72-byte limit
        password_bytes = password.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """Verify a password against a bcrypt hash.

        Returns:
            True if password matches, False otherwise.
        """
        password_bytes = plain_password.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
        except ValueError as e:
            logger.error("Password verification error: %s", e)
            return False
