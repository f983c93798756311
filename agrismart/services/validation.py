"""Input checks and rounding helpers shared by the estimation services."""
import math
from typing import Any


class InvalidInputError(ValueError):
    """Raised when a farm parameter is non-numeric or outside its domain."""
    pass


def require_number(name: str, value: Any) -> float:
    """Return value as float, rejecting bools, strings, NaN and infinities."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInputError(f"{name} must be numeric, got {value!r}")
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        raise InvalidInputError(f"{name} must be a finite number, got {value!r}")
    return value


def require_non_negative(name: str, value: Any) -> float:
    value = require_number(name, value)
    if value < 0:
        raise InvalidInputError(f"{name} must be >= 0, got {value}")
    return value


def require_positive_area(area_ha: Any) -> float:
    """Area divides fertilizer rates downstream, so zero is rejected up front."""
    area_ha = require_number("area_ha", area_ha)
    if area_ha <= 0:
        raise InvalidInputError(f"area_ha must be > 0, got {area_ha}")
    return area_ha


def round_half_up(value: float, decimals: int = 0) -> float:
    """Round halves away from the floor (2.5 -> 3), unlike banker's round()."""
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def round_to_int(value: float) -> int:
    return int(math.floor(value + 0.5))


def require_name(name: str, value: Any) -> str:
    """Crop and product names must be text; unknown names are still accepted."""
    if not isinstance(value, str):
        raise InvalidInputError(f"{name} must be a string, got {value!r}")
    return value.strip()
