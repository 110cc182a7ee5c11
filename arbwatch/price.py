# arbwatch/price.py
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Union

SCALE = 8
UNIT = 10 ** SCALE  # 1 coin = 100_000_000 "satoshi" price units
_QUANT = Decimal(1).scaleb(-SCALE)

# Scaled prices must fit a signed 64-bit integer (about 92 billion per coin)
MAX_PRICE = 2 ** 63 - 1
_MAX_ADJUSTED = len(str(MAX_PRICE // UNIT)) - 1
_PREC = _MAX_ADJUSTED + SCALE + 2


class PriceError(ValueError):
    """Raised when a venue value cannot be normalized into a fixed-point price."""


def _bounded(units: int, value) -> int:
    if abs(units) > MAX_PRICE:
        raise PriceError(f"Price out of range: {value!r}")
    return units


def to_price(value: Union[str, Decimal, int]) -> int:
    """
    Converts a decimal price (as sent by the venue) into integer price units.
    Extra precision beyond 8 decimals is truncated toward zero.
    Floats are refused: they are already lossy by the time they get here.
    Magnitudes whose scaled value would not fit 64 bits raise PriceError.
    """
    if isinstance(value, bool):
        raise PriceError(f"Not a price: {value!r}")
    if isinstance(value, float):
        raise PriceError(f"Refusing binary float price: {value!r}")
    if isinstance(value, int):
        if abs(value) > MAX_PRICE // UNIT:
            raise PriceError(f"Price out of range: {value!r}")
        return value * UNIT

    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation:
        raise PriceError(f"Not a decimal price: {value!r}") from None

    if not dec.is_finite():
        raise PriceError(f"Non-finite price: {value!r}")
    # Checked on the exponent first so 1E+999999999 never gets expanded
    if dec.adjusted() > _MAX_ADJUSTED:
        raise PriceError(f"Price out of range: {value!r}")

    with localcontext() as ctx:
        ctx.prec = _PREC
        try:
            units = int(dec.quantize(_QUANT, rounding=ROUND_DOWN).scaleb(SCALE))
        except InvalidOperation:
            raise PriceError(f"Not a decimal price: {value!r}") from None
    return _bounded(units, value)


def format_price(price: int) -> str:
    """Renders price units back to a decimal string with all 8 digits."""
    sign = "-" if price < 0 else ""
    whole, frac = divmod(abs(price), UNIT)
    return f"{sign}{whole}.{frac:0{SCALE}d}"
