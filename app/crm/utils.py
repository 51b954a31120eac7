from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, Mapping, TypeVar

from flask import jsonify, request

from app.crm.errors import ValidationError

T = TypeVar("T")

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, "totalPages": self.total_pages}


def _positive_int(raw: str | None, default: int) -> int:
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def page_args(args: Mapping[str, str]) -> tuple[int, int]:
    """(page, limit) from query args; bad values fall back to defaults, limit is capped."""
    page = _positive_int(args.get("page"), DEFAULT_PAGE)
    limit = min(_positive_int(args.get("limit"), DEFAULT_LIMIT), MAX_LIMIT)
    return page, limit


def like_pattern(text: str) -> str:
    """Substring pattern for `ilike(..., escape="\\")`; `%` and `_` in `text` match literally."""
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def text_arg(args: Mapping[str, str], name: str) -> str | None:
    return (args.get(name) or "").strip() or None


def json_payload() -> dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.", error="Invalid body")
    return payload


def ok(message: str, data: Any = None, status_code: int = 200):
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    return jsonify(body), status_code


def paginated(message: str, page: Page) -> Any:
    return jsonify(
        {
            "success": True,
            "message": message,
            "data": [item.to_dict() for item in page.items],
            "pagination": page.pagination(),
        }
    )
