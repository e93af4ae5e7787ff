"""JWT token creation and verification.

Learn: The clinic API signs HS256 access tokens with claims
{sub, role, iat, exp} and, for doctors, an optional doctor_id.
We share the secret so a handshake can be verified without a
round trip to the API.

create_access_token exists for development and tests; production
tokens come from the clinic API's login flow.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from clinicpush.config import settings

ROLE_RECEPTION = "RECEPTION"
ROLE_DOCTOR = "DOCTOR"
ROLE_ADMIN = "ADMIN"

ROLES = (ROLE_RECEPTION, ROLE_DOCTOR, ROLE_ADMIN)


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_access_token(
    user_id: str,
    role: str,
    doctor_id: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """Create a JWT access token."""
    if role not in ROLES:
        raise TokenError(f"Unknown role: {role}")
    now = datetime.now(timezone.utc)
    expires = now + timedelta(
        minutes=expires_minutes or settings.access_token_expire_minutes
    )
    payload = {
        "sub": user_id,
        "role": role,
        "exp": expires,
        "iat": now,
    }
    if doctor_id:
        payload["doctor_id"] = doctor_id
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict:
    """Verify and decode a JWT access token.

    Returns the payload dict on success.
    Raises TokenError on failure, including tokens without a known role.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if not payload.get("sub"):
        raise TokenError("Invalid token: missing subject")
    if payload.get("role") not in ROLES:
        raise TokenError("Invalid token: missing or unknown role")
    return payload
