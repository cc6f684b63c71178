"""Admin authentication: password hashing, JWTs, session timing and cookies."""

import os
import re
import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Response

from config import (
    ACCESS_TOKEN_TTL,
    AUTH_COOKIE,
    BCRYPT_ROUNDS,
    REFRESH_COOKIE,
    REFRESH_TOKEN_TTL,
    REFRESH_TOKEN_TTL_REMEMBER,
    SESSION_ABSOLUTE_TIMEOUT,
    SESSION_COOKIE,
    SESSION_IDLE_TIMEOUT,
    SESSION_REMEMBER_ME_TIMEOUT,
    SESSION_WARNING_BEFORE_TIMEOUT,
)

JWT_ALGORITHM = "HS256"


class AuthenticationError(Exception):
    """Missing, invalid or expired credentials (401)."""

    status_code = 401


class AuthorizationError(Exception):
    """Authenticated but not allowed (403)."""

    status_code = 403


def _get_secret() -> str:
    return os.getenv("JWT_SECRET", "gift-mockup-dev-secret")


def _get_refresh_secret() -> str:
    return os.getenv("JWT_REFRESH_SECRET", "gift-mockup-dev-refresh-secret")


def cookies_secure() -> bool:
    return os.getenv("COOKIE_SECURE", "").lower() in ("true", "1", "yes")


# --- Passwords ---

def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


_SEQUENTIAL = re.compile(r"123|abc|qwe", re.IGNORECASE)
_REPEATED = re.compile(r"(.)\1{2,}")


def password_strength(password: str) -> int:
    score = 0
    if len(password) >= 8:
        score += 1
    if len(password) >= 12:
        score += 1
    if re.search(r"[a-z]", password):
        score += 1
    if re.search(r"[A-Z]", password):
        score += 1
    if re.search(r"[0-9]", password):
        score += 1
    if re.search(r"[^A-Za-z0-9]", password):
        score += 1
    if not _REPEATED.search(password):
        score += 1
    if not _SEQUENTIAL.search(password):
        score += 1
    return score


def is_password_strong(password: str) -> bool:
    if len(password) < 8:
        return False
    return password_strength(password) >= 5


def generate_reset_token() -> str:
    return secrets.token_hex(32)


# --- JWT ---

@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    session_id: str
    expires_at: datetime


def _encode(payload: dict, secret: str, ttl: int) -> str:
    now = int(time.time())
    claims = dict(payload, iat=now, exp=now + ttl)
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def generate_access_token(user_id: str, email: str, role: str, session_id: str) -> str:
    return _encode(
        {"userId": user_id, "email": email, "role": role, "sessionId": session_id},
        _get_secret(),
        ACCESS_TOKEN_TTL,
    )


def generate_tokens(user_id: str, email: str, role: str, remember_me: bool = False) -> TokenPair:
    """Issue an access/refresh pair bound to a fresh session id."""
    session_id = str(uuid.uuid4())
    refresh_ttl = REFRESH_TOKEN_TTL_REMEMBER if remember_me else REFRESH_TOKEN_TTL
    refresh_token = _encode(
        {"userId": user_id, "sessionId": session_id, "type": "refresh"},
        _get_refresh_secret(),
        refresh_ttl,
    )
    return TokenPair(
        access_token=generate_access_token(user_id, email, role, session_id),
        refresh_token=refresh_token,
        session_id=session_id,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=refresh_ttl),
    )


def verify_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, _get_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid or expired access token")


def verify_refresh_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, _get_refresh_secret(), algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        raise AuthenticationError("Invalid or expired refresh token")
    if payload.get("type") != "refresh":
        raise AuthenticationError("Invalid token type")
    return payload


# --- Session timing ---

@dataclass
class SessionValidation:
    is_valid: bool
    reason: Optional[str] = None  # expired, idle_timeout, invalid
    remaining_minutes: Optional[float] = None
    show_warning: bool = False

    def to_dict(self):
        return {
            "isValid": self.is_valid,
            "reason": self.reason,
            "remainingTime": self.remaining_minutes,
            "showWarning": self.show_warning,
        }


def absolute_expiry(now: datetime, remember_me: bool = False) -> datetime:
    ttl = SESSION_REMEMBER_ME_TIMEOUT if remember_me else SESSION_ABSOLUTE_TIMEOUT
    return now + timedelta(seconds=ttl)


def idle_expiry(now: datetime) -> datetime:
    return now + timedelta(seconds=SESSION_IDLE_TIMEOUT)


def check_session_expiry(session: dict, now: Optional[datetime] = None) -> SessionValidation:
    """Check a session row against its absolute expiry and the idle timeout.

    Absolute expiry wins over idle timeout. Remaining time is the smaller of
    the two windows, in minutes.
    """
    now = now or datetime.now(timezone.utc)
    if not session or not session.get("is_active", True):
        return SessionValidation(is_valid=False, reason="invalid")

    expires_at = session["expires_at"]
    if expires_at < now:
        return SessionValidation(is_valid=False, reason="expired")

    idle_seconds = (now - session["last_activity"]).total_seconds()
    if idle_seconds > SESSION_IDLE_TIMEOUT:
        return SessionValidation(is_valid=False, reason="idle_timeout")

    remaining = min(
        (expires_at - now).total_seconds(),
        SESSION_IDLE_TIMEOUT - idle_seconds,
    ) / 60
    return SessionValidation(
        is_valid=True,
        remaining_minutes=remaining,
        show_warning=remaining <= SESSION_WARNING_BEFORE_TIMEOUT / 60,
    )


def parse_device_info(user_agent: Optional[str]) -> str:
    ua = (user_agent or "").lower()
    if "mobile" in ua:
        if "android" in ua:
            return "Android Mobile"
        if "iphone" in ua:
            return "iPhone"
        return "Mobile Device"
    if "tablet" in ua or "ipad" in ua:
        return "Tablet"
    if "windows" in ua:
        return "Windows PC"
    if "mac" in ua:
        return "Mac"
    if "linux" in ua:
        return "Linux"
    return "Unknown Device"


# --- Cookies ---

def set_auth_cookies(response: Response, tokens: TokenPair) -> None:
    secure = cookies_secure()
    refresh_max_age = int((tokens.expires_at - datetime.now(timezone.utc)).total_seconds())
    response.set_cookie(
        AUTH_COOKIE, tokens.access_token, max_age=ACCESS_TOKEN_TTL,
        httponly=True, secure=secure, samesite="lax", path="/",
    )
    response.set_cookie(
        REFRESH_COOKIE, tokens.refresh_token, max_age=refresh_max_age,
        httponly=True, secure=secure, samesite="lax", path="/",
    )
    response.set_cookie(
        SESSION_COOKIE, tokens.session_id, max_age=refresh_max_age,
        httponly=True, secure=secure, samesite="lax", path="/",
    )


def set_access_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        AUTH_COOKIE, access_token, max_age=ACCESS_TOKEN_TTL,
        httponly=True, secure=cookies_secure(), samesite="lax", path="/",
    )


def clear_auth_cookies(response: Response) -> None:
    for name in (AUTH_COOKIE, REFRESH_COOKIE, SESSION_COOKIE):
        response.delete_cookie(name, path="/")
