# Overview: Request payload coercion shared by API routes.

from __future__ import annotations

from decimal import Decimal
from typing import Any

from .errors import ValidationError
from .money import round_money
from .time_utils import parse_day

MAX_LIST_LIMIT = 500


def field(data: dict, *keys: str, default: Any = None) -> Any:
    """First non-null value among snake_case/camelCase aliases."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def require_json(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def money_field(data: dict, *keys: str, required: bool = True, default=None) -> Decimal | None:
    value = field(data, *keys)
    if value is None:
        if required:
            raise ValidationError(f"{keys[0]} is required", {"field": keys[0]})
        return default
    try:
        return round_money(value)
    except ValueError as exc:
        raise ValidationError(f"{keys[0]} must be a number", {"field": keys[0]}) from exc


def int_field(data: dict, *keys: str, required: bool = True) -> int | None:
    value = field(data, *keys)
    if value is None:
        if required:
            raise ValidationError(f"{keys[0]} is required", {"field": keys[0]})
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{keys[0]} must be an integer", {"field": keys[0]})
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{keys[0]} must be an integer", {"field": keys[0]})


def text_field(data: dict, *keys: str, required: bool = True, default: str | None = None) -> str | None:
    value = field(data, *keys)
    if value is None or not str(value).strip():
        if required:
            raise ValidationError(f"{keys[0]} is required", {"field": keys[0]})
        return default
    return str(value).strip()


def limit_arg(args, default: int = 50) -> int:
    raw = args.get("limit")
    if raw is None or raw == "":
        return default
    if not raw.isdigit() or int(raw) <= 0:
        raise ValidationError("limit must be a positive integer", {"field": "limit"})
    return min(int(raw), MAX_LIST_LIMIT)


def int_arg(args, name: str) -> int | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    if not raw.isdigit():
        raise ValidationError(f"{name} must be an integer", {"field": name})
    return int(raw)


def day_arg(args, name: str):
    try:
        return parse_day(args.get(name))
    except ValueError as exc:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)", {"field": name}) from exc
