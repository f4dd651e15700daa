"""Amount helpers for swap forms."""

from decimal import Decimal, InvalidOperation


def has_valid_decimals(amount: str, decimals: int) -> bool:
    """Check an amount has no more fractional digits than the token allows.

    Returns False for anything that is not a finite decimal number.
    """
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        return False
    if not value.is_finite():
        return False
    exponent = value.as_tuple().exponent
    return -exponent <= decimals if exponent < 0 else True
