from decimal import Decimal, ROUND_HALF_UP

Q2 = Decimal("0.01")
ZERO = Decimal("0.00")


def d2(x: Decimal) -> Decimal:
    return x.quantize(Q2, rounding=ROUND_HALF_UP)


def to_dec(v) -> Decimal:
    if v is None:
        return ZERO
    if isinstance(v, Decimal):
        return v
    return Decimal(str(v))


def money_str(v) -> str | None:
    return str(d2(to_dec(v))) if v is not None else None
