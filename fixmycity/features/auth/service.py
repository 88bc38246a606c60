import logging
from dataclasses import dataclass, replace
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from fixmycity.models.user import Role, User
from fixmycity.utils.errors import InvalidToken
from fixmycity.utils.security import TokenService, verify_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """The verified caller of a request, as read from its token."""

    user_id: int
    email: str
    role: Role
    department: Optional[int] = None


def identity_from_payload(payload: dict) -> Identity:
    try:
        department = payload.get("department")
        return Identity(
            user_id=int(payload["userId"]),
            email=str(payload["email"]),
            role=Role(payload["role"]),
            department=int(department) if department is not None else None,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidToken(f"Malformed token payload: {exc}") from exc


def token_payload_for(user: User) -> dict:
    return {
        "userId": str(user.id),
        "email": user.email,
        "role": user.role,
        "department": str(user.department_id) if user.department_id is not None else None,
    }


def authenticate_user(db: Session, email: str, password: str, role: str):
    user = db.query(User).filter(
        User.email == email,
        User.role == role,
        User.is_active.is_(True),
    ).first()
    if not user:
        return False
    if not verify_password(password, user.hashed_password):
        return False
    return user


def issue_tokens(tokens: TokenService, user: User):
    payload = token_payload_for(user)
    return tokens.sign_access_token(payload), tokens.sign_refresh_token(payload)


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization")
    if header and header.startswith("Bearer "):
        return header[len("Bearer "):].strip()
    return None


def identity_for_active_user(db: Session, identity: Identity) -> Optional[Identity]:
    """Re-check a cookie identity against the user record.

    The refresh token carries no department and outlives deactivation, so the
    user is loaded and its current department filled in.
    """
    user = db.get(User, identity.user_id)
    if user is None or not user.is_active:
        logger.warning("Refresh cookie for inactive or missing user", extra={"user_id": identity.user_id})
        return None
    return replace(identity, department=user.department_id)


def verify_token_from_request(request: Request, tokens: TokenService, db: Session) -> Optional[Identity]:
    """Resolve the caller of ``request`` or return None.

    The bearer access token is tried first. When it is missing or no longer
    valid the refresh cookie is accepted instead, so a request sent just after
    the access token expired still goes through. Cookie callers must still be
    active users.
    """
    access_token = _bearer_token(request)
    if access_token:
        try:
            return identity_from_payload(tokens.verify_access_token(access_token))
        except InvalidToken as exc:
            logger.warning("Access token verification failed", extra={"reason": str(exc)})

    refresh_token = request.cookies.get(tokens.settings.REFRESH_COOKIE_NAME)
    if not refresh_token:
        return None
    try:
        identity = identity_from_payload(tokens.verify_refresh_token(refresh_token))
    except InvalidToken as exc:
        logger.warning("Refresh token verification failed", extra={"reason": str(exc)})
        return None
    return identity_for_active_user(db, identity)
