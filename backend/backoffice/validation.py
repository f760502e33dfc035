from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from backoffice.time_utils import parse_iso_datetime


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400/422-level input problem. `errors` maps field -> message."""

    def __init__(self, message: str, errors: dict | None = None):
        super().__init__(message)
        self.errors = errors


class ConflictError(ValueError):
    """
    Business rule conflict (duplicate email, confirming an order without
    items, not enough raw material). status_code is the HTTP status the
    route answers with: 409 for state conflicts, 422 for rejected requests.
    """

    def __init__(self, message: str, data: Any = None, status_code: int = 409):
        super().__init__(message)
        self.data = data
        self.status_code = status_code


class NotFoundError(LookupError):
    """Record is gone (or trashed); the client should fetch again."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - choices: allowed values per field
    - aliases: camelCase request keys accepted for snake_case columns
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)
    choices: dict[str, set[str]] = field(default_factory=dict)
    aliases: dict[str, str] = field(default_factory=dict)


def is_valid_email(value: str | None) -> bool:
    return bool(value) and bool(EMAIL_RE.match(value))


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, str)) and str(value).strip().lower() in {"0", "1", "true", "false"}:
            return str(value).strip().lower() in {"1", "true"}
        raise ValidationError(f"{col.key} must be a boolean", {col.key: "must be a boolean"})

    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError(f"{col.key} must be an integer", {col.key: "must be an integer"})

    if isinstance(coltype, Float):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        try:
            return float(str(value).strip())
        except ValueError:
            raise ValidationError(f"{col.key} must be a number", {col.key: "must be a number"})

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                dt = None
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", {col.key: "must be a datetime"})
            return dt
        raise ValidationError(f"{col.key} must be a datetime", {col.key: "must be a datetime"})

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value).strip()[:10])
        except ValueError:
            raise ValidationError(f"{col.key} must be an ISO-8601 date", {col.key: "must be a date"})

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict | None,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against SQLAlchemy column metadata
    and the policy. Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)

    Keys that are neither writable nor aliased are ignored, so callers can
    pass the whole request body (which may carry nested items).
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    normalized: dict = {}
    for key, value in payload.items():
        key = policy.aliases.get(key, key)
        if key in policy.writable_fields:
            normalized[key] = value

    errors: dict[str, str] = {}
    if not partial:
        for name in sorted(policy.required_on_create):
            if normalized.get(name) in (None, ""):
                errors[name] = "is required"
    if errors:
        raise ValidationError("Validation error.", errors)

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in normalized.items():
        col = cols[k]

        if raw is None:
            if not col.nullable and k in policy.required_on_create:
                errors[k] = "cannot be null"
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except ValidationError as e:
            errors.update(e.errors or {k: str(e)})
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            errors[k] = "cannot be blank"
            continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors[k] = f"exceeds max length {col.type.length}"
                continue

        allowed = policy.choices.get(k)
        if allowed is not None and val not in allowed:
            errors[k] = f"must be one of: {', '.join(sorted(allowed))}"
            continue

        patch[k] = val

    if errors:
        raise ValidationError("Validation error.", errors)

    return patch


def validate_data_blob(
    payload: dict | None,
    *,
    allowed: dict[str, type | tuple],
    required: set[str] = frozenset(),
    partial: bool = False,
    strict: bool = False,
) -> dict:
    """
    Validate fields that end up inside a JSON `data` column.

    allowed maps key -> accepted python type(s). strict=True rejects unknown
    keys (window payloads); otherwise unknown keys are dropped.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if strict:
        extra = sorted(set(payload) - set(allowed))
        if extra:
            raise ValidationError(f"Invalid fields: {', '.join(extra)}")

    errors: dict[str, str] = {}
    if not partial:
        for name in sorted(required):
            if payload.get(name) in (None, ""):
                errors[name] = "is required"

    cleaned: dict = {}
    for key, types in allowed.items():
        if key not in payload:
            continue
        value = payload[key]
        if value is None:
            if key in required:
                errors[key] = "cannot be null"
            else:
                cleaned[key] = None
            continue
        if isinstance(value, bool) and bool not in (types if isinstance(types, tuple) else (types,)):
            errors[key] = "has an invalid type"
            continue
        if not isinstance(value, types):
            errors[key] = "has an invalid type"
            continue
        cleaned[key] = value.strip() if isinstance(value, str) else value

    if errors:
        raise ValidationError("Validation error.", errors)
    return cleaned


def require_id_list(payload: dict | None, key: str = "ids") -> list[str]:
    """Body of mass-delete style requests: {"ids": ["...", ...]}."""
    ids = (payload or {}).get(key)
    if not isinstance(ids, list) or not ids:
        raise ValidationError("Validation error.", {key: "must be a non-empty list"})
    if not all(isinstance(i, str) and i for i in ids):
        raise ValidationError("Validation error.", {key: "must contain string ids"})
    return ids
