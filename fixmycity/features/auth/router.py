import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from fixmycity.config.database import get_db
from fixmycity.config.settings import Settings, get_settings
from fixmycity.features.auth.service import (
    Identity,
    authenticate_user,
    identity_from_payload,
    issue_tokens,
    token_payload_for,
    verify_token_from_request,
)
from fixmycity.features.users.schemas import EmailAddress, UserResponse
from fixmycity.models.user import Role, User
from fixmycity.utils.errors import Conflict, Forbidden, InvalidToken, Unauthenticated, ValidationFailed
from fixmycity.utils.security import TokenService, get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

SELF_REGISTER_ROLES = (Role.CITIZEN, Role.ADMIN)


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_current_identity(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    db: Session = Depends(get_db),
) -> Identity:
    identity = verify_token_from_request(request, tokens, db)
    if identity is None:
        raise Unauthenticated()
    return identity


def require_roles(*roles: Role):
    allowed = set(roles)

    def dependency(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role not in allowed:
            logger.warning(
                "Unauthorized role access attempt",
                extra={"user_id": identity.user_id, "role": identity.role.value},
            )
            raise Forbidden()
        return identity

    return dependency


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1)
    email: EmailAddress
    password: str = Field(min_length=1)
    role: Role
    phone: Optional[str] = None
    address: Optional[str] = None


class LoginRequest(BaseModel):
    email: str
    password: str
    role: Role


def _session_response(response: Response, tokens: TokenService, user: User) -> dict:
    access_token, refresh_token = issue_tokens(tokens, user)
    tokens.set_refresh_cookie(response, refresh_token)
    return {
        "success": True,
        "token": access_token,
        "user": UserResponse.model_validate(user),
    }


@router.post("/register")
def register(
    body: RegisterRequest,
    response: Response,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
    settings: Settings = Depends(get_settings),
):
    if body.role not in SELF_REGISTER_ROLES:
        raise ValidationFailed("Role must be citizen or admin")

    existing = db.query(User).filter(User.email == body.email).first()
    if existing:
        raise Conflict("User already exists with this email")

    user = User(
        name=body.name.strip(),
        email=body.email,
        hashed_password=get_password_hash(body.password, rounds=settings.BCRYPT_ROUNDS),
        role=body.role.value,
        phone=body.phone,
        address=body.address,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User registered", extra={"user_id": user.id, "role": user.role})
    return _session_response(response, tokens, user)


@router.post("/login")
def login(
    body: LoginRequest,
    response: Response,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    user = authenticate_user(db, body.email, body.password, body.role.value)
    if not user:
        logger.info("Login failed", extra={"email": body.email, "role": body.role.value})
        raise Unauthenticated("Invalid credentials")

    logger.info("Login successful", extra={"user_id": user.id})
    return _session_response(response, tokens, user)


@router.post("/refresh")
def refresh(
    request: Request,
    db: Session = Depends(get_db),
    tokens: TokenService = Depends(get_token_service),
):
    refresh_token = request.cookies.get(tokens.settings.REFRESH_COOKIE_NAME)
    if not refresh_token:
        raise Unauthenticated("No refresh token")

    try:
        identity = identity_from_payload(tokens.verify_refresh_token(refresh_token))
    except InvalidToken as exc:
        logger.warning("Refresh rejected", extra={"reason": str(exc)})
        raise Unauthenticated()

    # The refresh token has no department claim; read it fresh from the user
    user = db.get(User, identity.user_id)
    if user is None or not user.is_active:
        raise Unauthenticated()

    return {"success": True, "token": tokens.sign_access_token(token_payload_for(user))}


@router.post("/logout")
def logout(response: Response, tokens: TokenService = Depends(get_token_service)):
    tokens.clear_refresh_cookie(response)
    return {"success": True}
