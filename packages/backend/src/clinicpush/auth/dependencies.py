"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current identity from the Authorization header.
The WebSocket handshake uses identity_from_token directly since the
gateway hands us the token in the handshake event, not a header.
"""

from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException

from clinicpush.auth.jwt import ROLE_DOCTOR, TokenError, verify_token


class CurrentIdentity:
    """Represents the authenticated user behind a request or channel.

    Learn: doctor_id defaults to the user id. Doctors are users, and the
    clinic API only adds an explicit doctor_id claim when the two differ.
    """

    def __init__(
        self,
        user_id: str,
        role: str,
        doctor_id: Optional[str] = None,
    ):
        self.user_id = user_id
        self.role = role
        self.doctor_id = doctor_id or (user_id if role == ROLE_DOCTOR else None)

    @property
    def is_doctor(self) -> bool:
        return self.role == ROLE_DOCTOR


def identity_from_token(token: str) -> CurrentIdentity:
    """Verify a token and build the identity. Raises TokenError."""
    payload = verify_token(token)
    return CurrentIdentity(
        user_id=payload["sub"],
        role=payload["role"],
        doctor_id=payload.get("doctor_id"),
    )


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an 'Authorization: Bearer ...' header value."""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


async def get_current_user(
    authorization: Optional[str] = Header(None),
) -> CurrentIdentity:
    """Extract current identity (required — 401 if no auth)."""
    token = bearer_token(authorization)
    if not token:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return identity_from_token(token)
    except TokenError as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def require_role(*allowed: str) -> Callable:
    """Build a dependency that rejects identities outside `allowed` with 403."""

    async def _check(
        identity: CurrentIdentity = Depends(get_current_user),
    ) -> CurrentIdentity:
        if identity.role not in allowed:
            raise HTTPException(status_code=403, detail="Forbidden")
        return identity

    return _check
