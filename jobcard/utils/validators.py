"""Payload validation for work orders, line items and estimates.

Each ``validate_*`` function returns ``(cleaned, errors)``. ``errors`` maps a
dotted field path (``estimated_labour.0.hours``) to a message; callers raise
``ValidationError(errors)`` when it is non-empty. Nothing is coerced silently:
a negative amount is an error, not a zero.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Optional, Tuple

from jobcard.utils.helpers import CENT

Errors = Dict[str, str]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")

DISCOUNT_TYPES = ("percentage", "fixed")

# Largest value a NUMERIC(12,2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def clean_str(val: Any, max_len: int = 255) -> Optional[str]:
    """
    Collapse whitespace, trim, enforce max length. Returns None if empty after cleaning.
    """
    if val is None:
        return None
    s = re.sub(r"\s+", " ", str(val)).strip()
    if not s:
        return None
    return s[:max_len]


def is_valid_email(val: Optional[str]) -> bool:
    if not val:
        return True
    return bool(_EMAIL_RE.match(val))


def _path(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def parse_number(
    raw: Any,
    field: str,
    errors: Errors,
    *,
    required: bool = True,
    maximum: Optional[Decimal] = MAX_AMOUNT,
) -> Optional[Decimal]:
    """Non-negative decimal quantized to cents (the NUMERIC(12,2) storage scale)."""
    if raw is None or raw == "":
        if required:
            errors[field] = "This field is required."
        return None
    if isinstance(raw, bool):
        errors[field] = "Must be a number."
        return None
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        errors[field] = "Must be a number."
        return None
    if not value.is_finite():
        errors[field] = "Must be a number."
        return None
    if value < 0:
        errors[field] = "Must be zero or greater."
        return None
    if maximum is not None and value > maximum:
        errors[field] = f"Must be {maximum} or less."
        return None
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        errors[field] = "Must be a number."
        return None


def parse_text(raw: Any, field: str, errors: Errors, *, required: bool = True, max_len: int = 255) -> Optional[str]:
    value = clean_str(raw, max_len=max_len)
    if value is None and required:
        errors[field] = "This field is required."
    return value


def parse_date(raw: Any, field: str, errors: Errors, *, required: bool = True) -> Optional[date]:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = clean_str(raw, max_len=32)
    if s is None:
        if required:
            errors[field] = "This field is required."
        return None
    try:
        # accept full ISO timestamps, keep only the calendar day
        return datetime.strptime(s[:10], "%Y-%m-%d").date()
    except ValueError:
        errors[field] = "Must be a date (YYYY-MM-DD)."
        return None


def parse_int(raw: Any, field: str, errors: Errors, *, required: bool = True) -> Optional[int]:
    if raw is None or raw == "":
        if required:
            errors[field] = "This field is required."
        return None
    if isinstance(raw, bool) or not str(raw).strip().isdigit():
        errors[field] = "Must be a positive integer."
        return None
    return int(str(raw).strip())


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------

def validate_labour_entry(data: Any, prefix: str = "") -> Tuple[dict, Errors]:
    errors: Errors = {}
    if not isinstance(data, dict):
        return {}, {prefix or "labour": "Must be an object."}
    cleaned = dict(
        date=parse_date(data.get("date"), _path(prefix, "date"), errors),
        description=parse_text(data.get("description"), _path(prefix, "description"), errors),
        hours=parse_number(data.get("hours"), _path(prefix, "hours"), errors),
        employee_id=parse_int(data.get("employee_id"), _path(prefix, "employee_id"), errors),
        cost_per_hour=parse_number(data.get("cost_per_hour"), _path(prefix, "cost_per_hour"), errors),
        total_cost=parse_number(data.get("total_cost"), _path(prefix, "total_cost"), errors),
    )
    return cleaned, errors


def validate_material_entry(data: Any, prefix: str = "") -> Tuple[dict, Errors]:
    errors: Errors = {}
    if not isinstance(data, dict):
        return {}, {prefix or "material": "Must be an object."}
    cleaned = dict(
        description=parse_text(data.get("description"), _path(prefix, "description"), errors),
        quantity=parse_number(data.get("quantity"), _path(prefix, "quantity"), errors),
        unit=parse_text(data.get("unit"), _path(prefix, "unit"), errors, max_len=32),
        unit_price=parse_number(data.get("unit_price"), _path(prefix, "unit_price"), errors),
        amount=parse_number(data.get("amount"), _path(prefix, "amount"), errors),
        supplier=parse_text(data.get("supplier"), _path(prefix, "supplier"), errors, required=False),
    )
    return cleaned, errors


def validate_charge(data: Any, prefix: str = "") -> Tuple[dict, Errors]:
    errors: Errors = {}
    if not isinstance(data, dict):
        return {}, {prefix or "charge": "Must be an object."}
    cleaned = dict(
        description=parse_text(data.get("description"), _path(prefix, "description"), errors),
        amount=parse_number(data.get("amount"), _path(prefix, "amount"), errors),
    )
    return cleaned, errors


def validate_discount(data: Any, prefix: str = "") -> Tuple[dict, Errors]:
    # Any client-sent "amount" is dropped here; money.recalculate_discounts derives it.
    errors: Errors = {}
    if not isinstance(data, dict):
        return {}, {prefix or "discount": "Must be an object."}
    dtype = clean_str(data.get("type"), max_len=16)
    if dtype not in DISCOUNT_TYPES:
        errors[_path(prefix, "type")] = "Must be one of: percentage, fixed."
    cleaned = dict(
        description=parse_text(data.get("description"), _path(prefix, "description"), errors),
        type=dtype,
        value=parse_number(data.get("value"), _path(prefix, "value"), errors),
    )
    return cleaned, errors


def validate_line_list(raw: Any, key: str, validator: Callable[[Any, str], Tuple[dict, Errors]], errors: Errors) -> List[dict]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        errors[key] = "Must be a list."
        return []
    out = []
    for i, item in enumerate(raw):
        cleaned, item_errors = validator(item, f"{key}.{i}")
        errors.update(item_errors)
        out.append(cleaned)
    return out


# ---------------------------------------------------------------------------
# Estimates
# ---------------------------------------------------------------------------

_ESTIMATE_LINE_FIELDS = {
    "estimated_labour": validate_labour_entry,
    "estimated_materials": validate_material_entry,
    "additional_charges": validate_charge,
    "discounts": validate_discount,
}


def validate_estimate_payload(data: Any, *, partial: bool = False) -> Tuple[dict, Errors]:
    """
    Clean an estimate create (partial=False) or update (partial=True) payload.
    Only keys present in ``data`` appear in the result, so callers can tell
    "not provided" from "provided as empty".
    """
    if not isinstance(data, dict):
        return {}, {"payload": "Must be a JSON object."}

    errors: Errors = {}
    cleaned: dict = {}

    if partial and "status" in data:
        errors["status"] = "Use the estimate status endpoint to change status."

    for key in ("estimate_date", "valid_until"):
        if key in data:
            cleaned[key] = parse_date(data.get(key), key, errors, required=partial)

    for key, validator in _ESTIMATE_LINE_FIELDS.items():
        if key in data:
            cleaned[key] = validate_line_list(data.get(key), key, validator, errors)

    if "tax_percentage" in data:
        tax = parse_number(data.get("tax_percentage"), "tax_percentage", errors, required=False, maximum=Decimal("100"))
        cleaned["tax_percentage"] = tax if tax is not None else Decimal("0")

    if "notes" in data:
        cleaned["notes"] = clean_str(data.get("notes"), max_len=5000)
    terms_key = "terms_and_conditions" if "terms_and_conditions" in data else ("terms" if "terms" in data else None)
    if terms_key:
        cleaned["terms_and_conditions"] = clean_str(data.get(terms_key), max_len=10000)

    start = cleaned.get("estimate_date")
    end = cleaned.get("valid_until")
    if start and end and end < start:
        errors["valid_until"] = "Must be on or after estimate_date."

    return cleaned, errors


# ---------------------------------------------------------------------------
# Work orders / employees
# ---------------------------------------------------------------------------

def validate_work_order_payload(data: Any) -> Tuple[dict, Errors]:
    if not isinstance(data, dict):
        return {}, {"payload": "Must be a JSON object."}
    errors: Errors = {}

    client = data.get("client") if isinstance(data.get("client"), dict) else {}
    contact = client.get("contact_info") if isinstance(client.get("contact_info"), dict) else {}
    detail = data.get("order_detail") if isinstance(data.get("order_detail"), dict) else {}
    job = data.get("job_info") if isinstance(data.get("job_info"), dict) else {}

    email = clean_str(contact.get("email"))
    if not is_valid_email(email):
        errors["client.contact_info.email"] = "Invalid email address."

    order_time = clean_str(detail.get("order_time"), max_len=8)
    if order_time and not _TIME_RE.match(order_time):
        errors["order_detail.order_time"] = "Must be a time (HH:MM)."

    cleaned = dict(
        order_number=parse_text(data.get("order_number"), "order_number", errors, max_len=64),
        client_code=parse_text(client.get("code"), "client.code", errors, max_len=64),
        client_name=parse_text(client.get("name"), "client.name", errors),
        client_phone=clean_str(contact.get("phone"), max_len=32),
        client_email=email,
        received_by=clean_str(detail.get("received_by")),
        order_date=parse_date(detail.get("order_date"), "order_detail.order_date", errors, required=False),
        order_time=order_time,
        job_start_date=parse_date(detail.get("job_start_date"), "order_detail.job_start_date", errors, required=False),
        date_promised=parse_date(detail.get("date_promised"), "order_detail.date_promised", errors, required=False),
        priority=clean_str(job.get("priority"), max_len=32),
        job_type=clean_str(job.get("type"), max_len=64),
        description=clean_str(job.get("description"), max_len=5000),
        labour_entry=validate_line_list(data.get("labour_entry"), "labour_entry", validate_labour_entry, errors),
        material_entry=validate_line_list(data.get("material_entry"), "material_entry", validate_material_entry, errors),
    )
    return cleaned, errors


_EMPLOYEE_SOURCES = {
    "employee_code": ("employee_id", "employee_code"),
    "first_name": ("first_name",),
    "last_name": ("last_name",),
    "email": ("email",),
    "phone": ("phone",),
    "minimum_wage": ("minimum_wage",),
    "is_active": ("is_active",),
}


def validate_employee_payload(data: Any, *, partial: bool = False) -> Tuple[dict, Errors]:
    """
    Clean an employee create (partial=False) or update (partial=True) payload.
    On update only the keys present in ``data`` are returned.
    """
    if not isinstance(data, dict):
        return {}, {"payload": "Must be a JSON object."}
    errors: Errors = {}
    email = clean_str(data.get("email"))
    if not is_valid_email(email):
        errors["email"] = "Invalid email address."
    wage = parse_number(data.get("minimum_wage"), "minimum_wage", errors, required=False)
    is_active = data.get("is_active", True)
    if not isinstance(is_active, bool):
        errors["is_active"] = "Must be true or false."
    cleaned = dict(
        employee_code=parse_text(data.get("employee_id") or data.get("employee_code"), "employee_code", errors, max_len=32),
        first_name=parse_text(data.get("first_name"), "first_name", errors, max_len=100),
        last_name=parse_text(data.get("last_name"), "last_name", errors, max_len=100),
        email=email,
        phone=clean_str(data.get("phone"), max_len=32),
        minimum_wage=wage if wage is not None else Decimal("0"),
        is_active=is_active,
    )
    if partial:
        present = {k for k, sources in _EMPLOYEE_SOURCES.items() if any(s in data for s in sources)}
        cleaned = {k: v for k, v in cleaned.items() if k in present}
        errors = {k: v for k, v in errors.items() if k in present}
    return cleaned, errors
