import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    log_level: str

    jwt_secret: str
    jwt_algorithm: str
    jwt_expires_minutes: int

    db_pool_size: int
    db_max_overflow: int
    db_pool_timeout: int

    cors_origins: tuple[str, ...]


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer (got {raw!r}).")


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///crm.db"),
        log_level=_getenv("LOG_LEVEL", "INFO").upper(),
        # Tokens are signed with SECRET_KEY unless a dedicated secret is configured.
        jwt_secret=_getenv("JWT_SECRET", secret_key),
        jwt_algorithm=_getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=_getenv_int("JWT_EXPIRES_MINUTES", 24 * 60),
        db_pool_size=_getenv_int("DB_POOL_SIZE", 5),
        db_max_overflow=_getenv_int("DB_MAX_OVERFLOW", 10),
        db_pool_timeout=_getenv_int("DB_POOL_TIMEOUT", 30),
        # Comma-separated list of browser origins allowed to call the API.
        cors_origins=tuple(o.strip() for o in _getenv("CORS_ORIGIN", "http://localhost:8080").split(",") if o.strip()),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "LOG_LEVEL": s.log_level,
        "JWT_SECRET": s.jwt_secret,
        "JWT_ALGORITHM": s.jwt_algorithm,
        "JWT_EXPIRES_MINUTES": s.jwt_expires_minutes,
        "DB_POOL_SIZE": s.db_pool_size,
        "DB_MAX_OVERFLOW": s.db_max_overflow,
        "DB_POOL_TIMEOUT": s.db_pool_timeout,
        "CORS_ORIGINS": list(s.cors_origins),
        # JSON API: keep key order as built
        "JSON_SORT_KEYS": False,
        # request bodies are small JSON documents
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
