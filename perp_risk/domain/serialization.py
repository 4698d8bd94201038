"""Convert domain values into JSON-safe payloads for the audit trail."""

from __future__ import annotations

import enum
import math
from dataclasses import fields, is_dataclass
from datetime import date, datetime
from typing import Any


def to_payload(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_payload(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): to_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    if isinstance(value, float) and not math.isfinite(value):
        # JSON has no NaN/inf
        return None
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return value
