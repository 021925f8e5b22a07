from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

SCALE = Decimal("0.0001")
ZERO = Decimal("0.0000")


def to_decimal(value) -> Decimal:
    """Coerce a money or quantity value to a 4-place Decimal.

    Floats go through ``str`` first so ``0.1`` becomes ``Decimal("0.1000")``
    rather than its binary expansion.
    """
    if value is None:
        raise ValueError("amount must not be None")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError("invalid decimal amount: {!r}".format(value)) from exc
    if not amount.is_finite():
        raise ValueError("amount must be finite: {!r}".format(value))
    return amount.quantize(SCALE, rounding=ROUND_HALF_UP)


def optional_decimal(value):
    if value is None:
        return None
    return to_decimal(value)


def multiply(quantity, unit_price) -> Decimal:
    return to_decimal(to_decimal(quantity) * to_decimal(unit_price))
