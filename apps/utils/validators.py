import re
from datetime import date

from .exceptions import ValidationError


def validate_phone(value):
    pattern = r"^\+?\d{10,15}$"
    if not re.match(pattern, str(value)):
        raise ValidationError("Invalid phone number format.")
    return value


def validate_lat_lng(lat, lng):
    try:
        lat, lng = float(lat), float(lng)
    except (TypeError, ValueError):
        raise ValidationError("Latitude and longitude must be numbers.")
    if not (-90 <= lat <= 90):
        raise ValidationError("Latitude must be between -90 and 90.")
    if not (-180 <= lng <= 180):
        raise ValidationError("Longitude must be between -180 and 180.")


def validate_positive_quantity(value, field="quantity"):
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"{field} must be at least 1")
    return value


def parse_non_negative_int(value, field="value"):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number.")
    if number < 0:
        raise ValidationError(f"{field} cannot be negative.")
    return number


def parse_iso_date(value, field="date"):
    """
    yyyy-MM-dd -> date. Blank values mean 'no bound'.
    """
    if value is None or isinstance(value, date):
        return value
    value = str(value).strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid {field} '{value}', expected yyyy-MM-dd.")
