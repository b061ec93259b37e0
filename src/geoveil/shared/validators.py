"""
Input validation for search requests and POI ingestion.

These checks run before the query core is invoked; the core itself does
not repeat them.
"""
import math
from typing import Any, Dict

from geoveil.shared.errors import ValidationError

DEFAULT_MAX_RADIUS_KM = 50.0


def _parse_float(value: Any, label: str) -> float:
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number") from None
    if math.isnan(parsed):
        raise ValidationError(f"{label} must be a number")
    return parsed


def validate_latitude(lat: Any) -> float:
    """Parse a latitude and check it lies in [-90, 90]."""
    latitude = _parse_float(lat, "Latitude")
    if latitude < -90 or latitude > 90:
        raise ValidationError("Latitude must be between -90 and 90")
    return latitude


def validate_longitude(lng: Any) -> float:
    """Parse a longitude and check it lies in [-180, 180]."""
    longitude = _parse_float(lng, "Longitude")
    if longitude < -180 or longitude > 180:
        raise ValidationError("Longitude must be between -180 and 180")
    return longitude


def validate_radius(radius: Any, max_radius: float = DEFAULT_MAX_RADIUS_KM) -> float:
    """
    Parse a search radius in kilometers.

    Args:
        radius: Requested radius
        max_radius: Largest radius accepted

    Returns:
        The radius as a float

    Raises:
        ValidationError: radius is not a number, not positive, or too large
    """
    radius_km = _parse_float(radius, "Radius")
    if radius_km <= 0:
        raise ValidationError("Radius must be positive")
    if radius_km > max_radius:
        raise ValidationError(f"Radius cannot exceed {max_radius:g} km")
    return radius_km


def validate_poi(poi: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate raw POI data before it is encrypted and indexed.

    Collects every problem and raises a single ValidationError listing them.

    Returns:
        Cleaned copy with parsed coordinates and stripped text fields
    """
    errors = []

    name = str(poi.get("name") or "").strip()
    if len(name) < 2:
        errors.append("POI name must be at least 2 characters")

    latitude = longitude = None
    try:
        latitude = validate_latitude(poi.get("latitude"))
    except ValidationError as e:
        errors.append(str(e))
    try:
        longitude = validate_longitude(poi.get("longitude"))
    except ValidationError as e:
        errors.append(str(e))

    category = str(poi.get("category") or "").strip()
    if not category:
        errors.append("Category is required")

    if errors:
        raise ValidationError("; ".join(errors))

    return {
        "name": name,
        "latitude": latitude,
        "longitude": longitude,
        "category": category,
        "description": str(poi.get("description") or "").strip(),
        "address": str(poi.get("address") or "").strip(),
        "phone": str(poi.get("phone") or "").strip(),
    }
