from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.crm.errors import AuthenticationError, AuthorizationError
from app.crm.scope import Identity


def current_identity() -> Identity:
    identity: Identity | None = getattr(g, "identity", None)
    if identity is None:
        # Either no token at all or one that failed verification (see auth.load_current_identity).
        raise getattr(g, "auth_error", None) or AuthenticationError("Access token required.", error="No token provided")
    return identity


def require_auth(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        current_identity()
        return fn(*args, **kwargs)

    return wrapped


def require_role(*roles: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            identity = current_identity()
            # Authenticated but unauthorized → 403
            if identity.role not in roles:
                g.missing_role = ",".join(roles)
                raise AuthorizationError("Insufficient permissions.", error="Role not authorized")
            return fn(*args, **kwargs)

        return wrapped

    return decorator


require_admin = require_role("admin")
