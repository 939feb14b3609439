from __future__ import annotations

import threading
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID, uuid4

from fastapi import Request
from fastapi.security import HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from lgu_sso.errors import RateLimited, Unauthenticated
from lgu_sso.settings import get_settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

_LOCK = threading.Lock()
_FAILED_ATTEMPTS: dict[str, deque[datetime]] = defaultdict(deque)
# Verified against when the email is unknown so response time does not reveal it.
_DUMMY_HASH = pwd_context.hash("lgu-sso-dummy-password")

ACCESS_TOKEN_TYPE = "access"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _attempt_window() -> timedelta:
    return timedelta(minutes=max(1, get_settings().login_attempt_window_minutes))


def _cleanup_attempts(ip: str, now: datetime) -> None:
    queue = _FAILED_ATTEMPTS[ip]
    threshold = now - _attempt_window()
    while queue and queue[0] < threshold:
        queue.popleft()
    if not queue:
        _FAILED_ATTEMPTS.pop(ip, None)


def ensure_login_attempt_allowed(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        queue = _FAILED_ATTEMPTS.get(ip, deque())
        if len(queue) >= get_settings().login_max_attempts:
            raise RateLimited("Too many failed login attempts. Please try again later.")


def register_login_failure(ip: str) -> None:
    now = _utcnow()
    with _LOCK:
        _cleanup_attempts(ip, now)
        _FAILED_ATTEMPTS[ip].append(now)


def register_login_success(ip: str) -> None:
    with _LOCK:
        _FAILED_ATTEMPTS.pop(ip, None)


def reset_login_attempts() -> None:
    with _LOCK:
        _FAILED_ATTEMPTS.clear()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError, UnknownHashError):
        # Malformed or foreign hash formats count as a mismatch.
        return False


def burn_password_check(password: str) -> None:
    verify_password(password, _DUMMY_HASH)


def create_access_token(*, employee_uuid: UUID) -> tuple[str, int, dict[str, Any]]:
    settings = get_settings()
    now = _utcnow()
    lifetime = timedelta(minutes=settings.access_token_minutes)
    claims = {
        "sub": str(employee_uuid),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        "jti": uuid4().hex,
        "typ": ACCESS_TOKEN_TYPE,
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm="HS256")
    return token, int(lifetime.total_seconds()), claims


def decode_token(token: str) -> dict[str, Any]:
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require_sub": True, "require_iat": True, "require_exp": True, "require_jti": True},
        )
    except JWTError as exc:
        raise Unauthenticated("Token is invalid.", code="INVALID_TOKEN") from exc

    if payload.get("typ") != ACCESS_TOKEN_TYPE:
        raise Unauthenticated("Token type is invalid.", code="INVALID_TOKEN")

    try:
        UUID(str(payload.get("sub")))
    except ValueError as exc:
        raise Unauthenticated("Token subject is invalid.", code="INVALID_TOKEN") from exc

    return payload


def client_ip(request: Request) -> str | None:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def user_agent(request: Request) -> str | None:
    return request.headers.get("user-agent")
