from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from jose import JWTError, jwt
from werkzeug.security import check_password_hash, generate_password_hash

from app.crm.errors import AuthenticationError
from app.crm.models import User
from app.crm.scope import Identity


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def create_access_token(user: User, config: Mapping[str, Any], *, expires_delta: timedelta | None = None) -> str:
    """Signed bearer token carrying subject id, username, role, issued-at and expiry."""
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=int(config["JWT_EXPIRES_MINUTES"]))
    claims = {
        "sub": user.id,
        "username": user.username,
        "role": user.role,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, config["JWT_SECRET"], algorithm=config["JWT_ALGORITHM"])


def decode_access_token(token: str, config: Mapping[str, Any]) -> Identity:
    try:
        claims = jwt.decode(token, config["JWT_SECRET"], algorithms=[config["JWT_ALGORITHM"]])
    except JWTError:
        raise AuthenticationError("Invalid or expired token.", error="Token verification failed")
    sub = claims.get("sub")
    role = claims.get("role")
    if not sub or role not in ("admin", "agent"):
        raise AuthenticationError("Invalid or expired token.", error="Token verification failed")
    return Identity(id=str(sub), username=str(claims.get("username") or ""), role=role)


def bearer_token(authorization: str | None) -> str | None:
    """Extract the token from an `Authorization: Bearer <token>` header."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
