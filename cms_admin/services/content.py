"""Helpers shared by the blog and job board services."""

import math
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Query

from cms_admin.core.exceptions import ValidationError


def paginate(query: Query, page: int, limit: int) -> Dict[str, Any]:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def required_text(value: Optional[str], message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(message)
    return value


def plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def apply_changes(record: Any, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Assign ``fields`` onto ``record``; returns the ``{"from", "to"}`` changes."""
    changes: Dict[str, Any] = {}
    for key, value in fields.items():
        current = getattr(record, key)
        if value != current:
            changes[key] = {"from": current, "to": value}
            setattr(record, key, value)
    return changes


def _audit_value(value: Any) -> Any:
    # Long bodies are noted, not copied, into the audit trail
    if isinstance(value, str) and len(value) > 200:
        return f"<{len(value)} characters>"
    if isinstance(value, datetime):
        return value.isoformat()
    return getattr(value, "value", value)


def audit_changes(changes: Dict[str, Any]) -> Dict[str, Any]:
    """JSON-safe copy of an ``apply_changes`` result for the audit log."""
    return {
        key: {"from": _audit_value(change["from"]), "to": _audit_value(change["to"])}
        for key, change in changes.items()
    }
