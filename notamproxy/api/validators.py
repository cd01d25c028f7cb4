"""
Query parameter validation for the NOTAM endpoints.

Every check runs before any cache or network access.
"""

import math
import re
from typing import Mapping

from notamproxy.datasource.base import NotamQuery
from notamproxy.services.errors import ValidationError

DEGREE_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")

MAX_PAGE_SIZE = 1000
DEFAULT_PAGE_SIZE = 1000
LEGACY_MAX_RADIUS = 500
NMS_MAX_RADIUS = 100

# (long name, short alias)
LONGITUDE_PARAMS = ("locationLongitude", "lon")
LATITUDE_PARAMS = ("locationLatitude", "lat")
RADIUS_PARAMS = ("locationRadius", "radius")


def _first(params: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = params.get(name)
        if value is not None and value.strip() != "":
            return value.strip()
    return None


def _number(value: str | None, field: str) -> float:
    if value is None:
        raise ValidationError(f"Missing required parameter: {field}")
    try:
        number = float(value)
    except ValueError:
        raise ValidationError(f"{field} must be numeric") from None
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be numeric")
    return number


def validate_degree(value: str | None, field: str, limit: float) -> float:
    if value is None:
        raise ValidationError(f"Missing required parameter: {field}")
    if not DEGREE_PATTERN.match(value):
        raise ValidationError(f"{field} must be a decimal number")
    degree = float(value)
    if not -limit <= degree <= limit:
        raise ValidationError(f"{field} must be between {-limit:g} and {limit:g}")
    return degree


def validate_radius(value: str | None, variant: str) -> float:
    radius = _number(value, "locationRadius")
    if variant == "nms":
        if not 0 <= radius <= NMS_MAX_RADIUS:
            raise ValidationError(
                f"locationRadius must be between 0 and {NMS_MAX_RADIUS}"
            )
        return radius

    if not radius.is_integer() or not 0 < radius < LEGACY_MAX_RADIUS:
        raise ValidationError(
            f"locationRadius must be an integer between 1 and {LEGACY_MAX_RADIUS - 1}"
        )
    return radius


def validate_page_size(value: str | None, variant: str) -> int | None:
    if value is None:
        return DEFAULT_PAGE_SIZE if variant == "legacy" else None
    page_size = _number(value, "pageSize")
    if not page_size.is_integer() or not 0 < page_size <= MAX_PAGE_SIZE:
        raise ValidationError(f"pageSize must be an integer between 1 and {MAX_PAGE_SIZE}")
    return int(page_size)


def parse_query(params: Mapping[str, str], variant: str = "legacy") -> NotamQuery:
    """
    Build a NotamQuery from request query parameters.

    Raises:
        ValidationError: If any parameter is missing or out of range
    """
    longitude = validate_degree(_first(params, LONGITUDE_PARAMS), "locationLongitude", 180)
    latitude = validate_degree(_first(params, LATITUDE_PARAMS), "locationLatitude", 90)
    radius = validate_radius(_first(params, RADIUS_PARAMS), variant)
    page_size = validate_page_size(_first(params, ("pageSize",)), variant)

    return NotamQuery(
        longitude=longitude,
        latitude=latitude,
        radius=radius,
        page_size=page_size,
    )
