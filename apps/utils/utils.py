from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from .exceptions import ValidationError

TWO_PLACES = Decimal("0.01")


def money(value, field="amount") -> Decimal:
    """
    Quantize to 2 decimals, half-up (bill/total arithmetic).
    NaN, infinity and unparsable input raise ValidationError.
    """
    try:
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        if not value.is_finite():
            raise ValidationError(f"Invalid {field}: {value}")
        return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid {field}: {value}")


def blank_to_none(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None
