import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from fastapi import Response
from jose import JWTError, jwt

from fixmycity.utils.errors import InvalidToken

logger = logging.getLogger(__name__)

ACCESS_CLAIMS = ("userId", "email", "role", "department")
REFRESH_CLAIMS = ("userId", "email", "role")


def get_password_hash(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


class TokenService:
    """Signs and verifies the access/refresh token pair and owns the refresh cookie.

    Access tokens carry ``{userId, email, role, department}`` and live for
    ``ACCESS_TOKEN_EXPIRE_MINUTES``; refresh tokens carry ``{userId, email, role}``
    and live for ``REFRESH_TOKEN_EXPIRE_DAYS``. Each kind is signed with its own
    secret so one leaking does not let an attacker mint the other.
    """

    def __init__(self, settings):
        if settings.JWT_SECRET == settings.JWT_REFRESH_SECRET:
            raise ValueError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        self.settings = settings

    @property
    def refresh_max_age(self) -> int:
        return int(timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS).total_seconds())

    def _encode(self, claims: dict, secret: str, expires_delta: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = dict(claims)
        to_encode.update({"iat": now, "exp": now + expires_delta})
        return jwt.encode(to_encode, secret, algorithm=self.settings.ALGORITHM)

    def _decode(self, token: str, secret: str) -> dict:
        if not token:
            raise InvalidToken("Token missing")
        try:
            return jwt.decode(token, secret, algorithms=[self.settings.ALGORITHM])
        except JWTError as exc:
            # Expired, tampered and malformed tokens all end up here
            raise InvalidToken(str(exc)) from exc

    def sign_access_token(self, payload: dict, expires_delta: Optional[timedelta] = None) -> str:
        claims = {key: payload.get(key) for key in ACCESS_CLAIMS}
        if expires_delta is None:
            expires_delta = timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        return self._encode(claims, self.settings.JWT_SECRET, expires_delta)

    def verify_access_token(self, token: str) -> dict:
        return self._decode(token, self.settings.JWT_SECRET)

    def sign_refresh_token(self, payload: dict, expires_delta: Optional[timedelta] = None) -> str:
        claims = {key: payload.get(key) for key in REFRESH_CLAIMS}
        if expires_delta is None:
            expires_delta = timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)
        return self._encode(claims, self.settings.JWT_REFRESH_SECRET, expires_delta)

    def verify_refresh_token(self, token: str) -> dict:
        return self._decode(token, self.settings.JWT_REFRESH_SECRET)

    def set_refresh_cookie(self, response: Response, token: str):
        response.set_cookie(
            key=self.settings.REFRESH_COOKIE_NAME,
            value=token,
            max_age=self.refresh_max_age,
            path="/",
            domain=self.settings.COOKIE_DOMAIN,
            secure=self.settings.is_production,
            httponly=True,
            samesite="strict",
        )

    def clear_refresh_cookie(self, response: Response):
        response.set_cookie(
            key=self.settings.REFRESH_COOKIE_NAME,
            value="",
            max_age=0,
            expires=datetime(1970, 1, 1, tzinfo=timezone.utc),
            path="/",
            domain=self.settings.COOKIE_DOMAIN,
            secure=self.settings.is_production,
            httponly=True,
            samesite="strict",
        )
