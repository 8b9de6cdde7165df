from __future__ import annotations

import math


class ValidationError(ValueError):
    """Raised when validation constraints are violated."""


def require_finite(name: str, value: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{name} must be a number.") from exc
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be finite.")
    return number


def require_positive(name: str, value: float) -> float:
    number = require_finite(name, value)
    if number <= 0:
        raise ValidationError(f"{name} must be positive.")
    return number


def require_non_negative(name: str, value: float) -> float:
    number = require_finite(name, value)
    if number < 0:
        raise ValidationError(f"{name} must be >= 0.")
    return number

