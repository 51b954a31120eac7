"""
Payload field coercion shared by the customer and property services.

`extract(payload, fields)` builds a full value dict for create; with `partial=True`
it only returns keys present in the payload (merge-update). In partial mode an
explicit null clears an optional field and is rejected for a required one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from app.crm.errors import ValidationError

# Upper bounds of the backing columns: Numeric(12, 2), Numeric(8, 2), Integer.
MONEY_MAX = 9_999_999_999.99
AREA_MAX = 999_999.99
INT_MAX = 2**31 - 1


@dataclass(frozen=True)
class Field:
    name: str
    label: str
    kind: str = "str"  # str | email | number | int | choice
    required: bool = False
    nullable: bool = True
    max_length: int | None = None
    choices: tuple[str, ...] = ()
    max_value: float | None = None
    default: Any = None


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_number(f: Field, value: Any) -> float | int:
    if isinstance(value, bool):
        raise ValidationError(f"{f.label} must be a number.")
    try:
        number = int(value) if f.kind == "int" else float(value)
    except (TypeError, ValueError, OverflowError):
        kind = "a whole number" if f.kind == "int" else "a number"
        raise ValidationError(f"{f.label} must be {kind}.")
    if f.kind == "int" and isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{f.label} must be a whole number.")
    if isinstance(number, float) and not math.isfinite(number):
        raise ValidationError(f"{f.label} must be a finite number.")
    if number < 0:
        raise ValidationError(f"{f.label} cannot be negative.")
    if f.max_value is not None and number > f.max_value:
        raise ValidationError(f"{f.label} cannot exceed {f.max_value}.")
    return number


def coerce(f: Field, value: Any) -> Any:
    if f.kind in ("number", "int"):
        return _coerce_number(f, value)
    if not isinstance(value, (str, int, float)) or isinstance(value, bool):
        raise ValidationError(f"{f.label} must be a string.")
    text = str(value).strip()
    if f.kind == "email":
        local, _, domain = text.partition("@")
        if not local or "." not in domain:
            raise ValidationError(f"{f.label} must be a valid email address.")
    if f.kind == "choice" and text not in f.choices:
        raise ValidationError(f"{f.label} must be one of: {', '.join(f.choices)}.")
    if f.max_length is not None and len(text) > f.max_length:
        raise ValidationError(f"{f.label} must be at most {f.max_length} characters.")
    return text


def extract(payload: Mapping[str, Any], fields: tuple[Field, ...], *, partial: bool = False) -> dict[str, Any]:
    values: dict[str, Any] = {}
    missing: list[str] = []
    for f in fields:
        if partial and f.name not in payload:
            continue
        raw = payload.get(f.name)
        if _blank(raw):
            if partial:
                if f.required or not f.nullable:
                    raise ValidationError(f"{f.label} cannot be empty.")
                values[f.name] = None
            elif f.required:
                missing.append(f.label)
            else:
                values[f.name] = f.default
            continue
        values[f.name] = coerce(f, raw)
    if missing:
        raise ValidationError(f"Required fields missing: {', '.join(missing)}.", error="Missing required fields")
    return values
