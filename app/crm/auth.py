from __future__ import annotations

import logging
import uuid
from typing import Any

from flask import Blueprint, current_app, g, request
from sqlalchemy import func, or_, select

from app.crm.db import db_session
from app.crm.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from app.crm.fields import Field, extract
from app.crm.models import USER_ROLES, User, utcnow
from app.crm.rbac import current_identity, require_auth
from app.crm.scope import Identity
from app.crm.security import bearer_token, create_access_token, decode_access_token, hash_password, verify_password
from app.crm.utils import json_payload, ok

bp = Blueprint("auth", __name__)
logger = logging.getLogger(__name__)

REGISTER_FIELDS = (
    Field("username", "Username", required=True, max_length=50),
    Field("email", "Email", kind="email", required=True, max_length=100),
    Field("first_name", "First name", required=True, max_length=50),
    Field("last_name", "Last name", required=True, max_length=50),
    Field("role", "Role", kind="choice", choices=USER_ROLES, default="agent"),
)

_INVALID_CREDENTIALS = "Invalid username or password."


def load_current_identity() -> None:
    """
    Resolves g.identity from the bearer token (None when absent or invalid).
    Also assigns a simple per-request request_id (for log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    g.identity = None
    g.auth_error = None
    if request.path.startswith(("/health", "/healthz")):
        return

    token = bearer_token(request.headers.get("Authorization"))
    if not token:
        return
    try:
        claims = decode_access_token(token, current_app.config)
        # The token names the user; role and status come from the current record.
        user = db_session().get(User, claims.id)
        if user is None or not user.is_active:
            raise AuthenticationError("Account not found or inactive.", error="Token verification failed")
    except AuthenticationError as e:
        current_app.logger.warning("Rejected bearer token (request_id=%s): %s", g.request_id, e.message)
        g.auth_error = e
        return

    g.identity = Identity(id=user.id, username=user.username, role=user.role)


def register_user(s, payload: dict[str, Any]) -> User:
    password = payload.get("password")
    if not isinstance(password, str) or not password:
        raise ValidationError("Required fields missing: Password.", error="Missing required fields")
    values = extract(payload, REGISTER_FIELDS)
    if len(password) < 6:
        raise ValidationError("Password must be at least 6 characters.")
    existing = s.execute(
        select(User.id).where(
            or_(User.username == values["username"], func.lower(User.email) == values["email"].lower())
        )
    ).first()
    if existing:
        raise ConflictError("Username or email already in use.", error="User already exists")
    now = utcnow()
    user = User(
        username=values["username"],
        email=values["email"],
        password_hash=hash_password(password),
        first_name=values["first_name"],
        last_name=values["last_name"],
        role=values["role"],
        status="active",
        created_at=now,
        updated_at=now,
    )
    s.add(user)
    s.flush()
    logger.info("user.register id=%s username=%s role=%s", user.id, user.username, user.role)
    return user


def authenticate(s, username: str, password: str) -> User:
    username = (username or "").strip()
    if not username or not password:
        raise ValidationError("Username and password are required.", error="Missing required fields")
    user = s.execute(select(User).where(User.username == username, User.status == "active")).scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("auth.login_failed username=%s", username)
        raise AuthenticationError(_INVALID_CREDENTIALS, error="Invalid credentials")
    return user


@bp.post("/register")
def register():
    s = db_session()
    user = register_user(s, json_payload())
    s.commit()
    return ok("User registered.", user.to_dict(), 201)


@bp.post("/login")
def login():
    s = db_session()
    payload = json_payload()
    user = authenticate(s, str(payload.get("username") or ""), str(payload.get("password") or ""))
    token = create_access_token(user, current_app.config)
    logger.info("auth.login id=%s username=%s", user.id, user.username)
    return ok("Login successful.", {"user": user.to_dict(), "token": token})


@bp.get("/profile")
@require_auth
def profile():
    s = db_session()
    user = s.get(User, current_identity().id)
    if user is None:
        raise NotFoundError("User not found.", error="User not found")
    return ok("Profile retrieved.", user.to_dict())
