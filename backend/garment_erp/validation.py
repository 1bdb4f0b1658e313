# Overview: Domain exception types and strict payload coercion helpers shared by services.

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable

from .time_utils import parse_iso_datetime, to_naive_utc


QTY_PLACES = Decimal("0.001")
MONEY_PLACES = Decimal("0.01")

# Upper bound that fits Numeric(14, 3) / Numeric(14, 2)
MAX_DECIMAL = Decimal("99999999999")


class ValidationError(ValueError):
    """400-level input problem."""

    status_code = 400

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.field:
            body["field"] = self.field
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., a second store entry for one purchase)."""

    status_code = 409

    def to_dict(self) -> dict:
        return {"error": str(self), "code": "already_exists"}


class StateError(ValueError):
    """409-level: operation is invalid for the document's current status."""

    status_code = 409

    def to_dict(self) -> dict:
        return {"error": str(self), "code": "invalid_state"}


class NotFoundError(LookupError):
    """404-level: referenced record does not exist."""

    status_code = 404

    def to_dict(self) -> dict:
        return {"error": str(self)}


class InsufficientStockError(ValidationError):
    """A store movement asks for more of an item than the store currently holds."""

    def __init__(self, item_name: str, available: Decimal, requested: Decimal):
        super().__init__(
            f"Insufficient stock for '{item_name}': requested {to_number(requested)}, "
            f"available {to_number(available)}",
            field="items",
        )
        self.item_name = item_name
        self.available = available
        self.requested = requested

    def to_dict(self) -> dict:
        body = super().to_dict()
        body.update(
            {
                "item_name": self.item_name,
                "available": to_number(self.available),
                "requested": to_number(self.requested),
            }
        )
        return body


def to_number(value: Decimal | int | float | None):
    """JSON-friendly number: integral decimals become int, others float."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    return value


def clean_str(
    value: Any,
    field: str,
    *,
    required: bool = False,
    max_len: int | None = None,
) -> str | None:
    if value is None:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if not isinstance(value, (str, int)) or isinstance(value, bool):
        raise ValidationError(f"{field} must be a string", field=field)
    text = str(value).strip()
    if not text:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if max_len is not None and len(text) > max_len:
        raise ValidationError(f"{field} must be at most {max_len} characters", field=field)
    return text


def parse_int(value: Any, field: str, *, minimum: int | None = None, required: bool = True) -> int | None:
    """
    Strict integer coercion.

    Rejects booleans, floats and scientific notation so "1.5" or "1e3" never
    silently become a quantity.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", field=field)
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        digits = stripped[1:] if stripped[:1] in {"-", "+"} else stripped
        if not digits.isdigit():
            raise ValidationError(f"{field} must be an integer", field=field)
        result = int(stripped)
    else:
        raise ValidationError(f"{field} must be an integer", field=field)

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be at least {minimum}", field=field)
    return result


def _parse_decimal(value: Any, field: str, places: Decimal) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    if isinstance(value, (int, Decimal)):
        raw = Decimal(value)
    elif isinstance(value, (float, str)):
        try:
            raw = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number", field=field)
    else:
        raise ValidationError(f"{field} must be a number", field=field)

    if not raw.is_finite():
        raise ValidationError(f"{field} must be a finite number", field=field)
    if abs(raw) > MAX_DECIMAL:
        raise ValidationError(f"{field} is too large", field=field)
    return raw.quantize(places, rounding=ROUND_HALF_UP)


def parse_quantity(
    value: Any,
    field: str,
    *,
    default: Decimal | None = None,
    positive: bool = False,
) -> Decimal:
    """Store quantity: non-negative decimal with three places (strictly positive when asked)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required", field=field)

    qty = _parse_decimal(value, field, QTY_PLACES)
    if positive and qty <= 0:
        raise ValidationError(f"{field} must be greater than 0", field=field)
    if qty < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return qty


def parse_money(value: Any, field: str, *, default: Decimal | None = Decimal("0.00")) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is not None:
            return default
        raise ValidationError(f"{field} is required", field=field)
    amount = _parse_decimal(value, field, MONEY_PLACES)
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative", field=field)
    return amount


def parse_choice(value: Any, field: str, choices: Iterable[str], *, required: bool = True) -> str | None:
    if value is None or value == "":
        if required:
            raise ValidationError(
                f"{field} is required. Must be one of: {', '.join(choices)}", field=field
            )
        return None
    if value not in choices:
        raise ValidationError(
            f"Invalid {field} '{value}'. Must be one of: {', '.join(choices)}", field=field
        )
    return value


def parse_date_field(value: Any, field: str, *, default: datetime | None = None) -> datetime | None:
    """Accept datetime/date objects or ISO-8601 strings; normalize to UTC-naive."""
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            parsed = parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"Invalid {field} format", field=field)
        return parsed if parsed is not None else default
    raise ValidationError(f"Invalid {field} format", field=field)


def require_list(value: Any, field: str, *, allow_empty: bool = False) -> list:
    if value is None:
        value = []
    if not isinstance(value, list):
        raise ValidationError(f"{field} must be a list", field=field)
    if not value and not allow_empty:
        raise ValidationError(f"At least one entry is required in {field}", field=field)
    return value


def require_mapping(value: Any, field: str) -> dict:
    if not isinstance(value, dict):
        raise ValidationError(f"{field} must be an object", field=field)
    return value


def parse_pagination(args, *, default_limit: int = 100) -> tuple[int, int]:
    """limit/offset from query args, clamped to 1..500 and >= 0."""
    limit = args.get("limit", default_limit, type=int)
    offset = args.get("offset", 0, type=int)
    if limit is None or limit < 1:
        limit = 1
    if limit > 500:
        limit = 500
    if offset is None or offset < 0:
        offset = 0
    return limit, offset
