"""Exact decimal money arithmetic.

Amounts are plain :class:`decimal.Decimal` values evaluated in
:data:`MONEY_CONTEXT` (34 significant digits, far beyond the 64-bit mantissa
needed to keep cents exact after ``/ 100`` and after an exchange-rate
multiply). Currency travels separately, on the posting.

Parsing follows bank-export conventions:

- an empty cell is zero;
- one optional leading ``+``/``-`` sign is honoured;
- everything but decimal digits and ``.`` is discarded (currency symbols,
  thousands separators, whitespace);
- a *debit* column is always negative, whatever sign it was written with.

Exchange-rate normalization rounds ``ROUND_HALF_EVEN`` to a whole minor unit.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_EVEN, Context, Decimal, InvalidOperation, localcontext

from .errors import ConfigurationError, MoneyColumnCountError, MoneyParseError

type Money = Decimal

MONEY_CONTEXT = Context(prec=34, rounding=ROUND_HALF_EVEN)

# Postings sharing a currency must sum to within this of zero.
EPSILON = Decimal("1e-8")

_CENTS = Decimal("0.01")
_MINOR_UNITS_PER_UNIT = Decimal(100)


def zero() -> Money:
    return Decimal(0)


def parse_money(raw: str | bytes, *, is_debit: bool = False) -> Money:
    """Parse a raw money cell into a signed :class:`~decimal.Decimal`.

    Raises :class:`~slc.errors.MoneyParseError` when the value is not valid
    UTF-8 text or when what remains after stripping is not a decimal literal.
    """

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MoneyParseError(raw, "not valid UTF-8") from exc
    if not raw:
        return zero()
    try:
        raw.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise MoneyParseError(raw, "not valid UTF-8") from exc

    text = raw
    negative = False
    if text[0] in "+-":
        negative = text[0] == "-"
        text = text[1:]

    # Debit columns (the left-hand one) are negative by convention
    if is_debit:
        negative = True

    digits = "".join(ch for ch in text if ch.isdecimal() or ch == ".")
    try:
        with localcontext(MONEY_CONTEXT):
            value = Decimal(digits)
    except InvalidOperation as exc:
        raise MoneyParseError(raw) from exc

    return -value if negative else value


def coerce_money_columns(record: Sequence[str], money_cols: Sequence[int]) -> Money:
    """Return the signed amount held by one or two 1-based money columns.

    With a single column the value is taken as written. With two columns the
    first is a debit (forced negative) and the second a credit; the result is
    their sum. Any other column count is a configuration error.
    """

    if len(money_cols) < 1 or len(money_cols) > 2:
        raise MoneyColumnCountError(len(money_cols))

    for col in money_cols:
        if col < 1 or col > len(record):
            raise ConfigurationError(f"Invalid money column {col!r}")

    debit = parse_money(record[money_cols[0] - 1], is_debit=len(money_cols) == 2)
    credit = zero()
    if len(money_cols) == 2:
        credit = parse_money(record[money_cols[1] - 1], is_debit=False)

    with localcontext(MONEY_CONTEXT):
        return debit + credit


def from_minor_units(amount: int | Decimal) -> Money:
    """Convert an amount in minor units (cents) to units."""

    with localcontext(MONEY_CONTEXT):
        return Decimal(amount) / _MINOR_UNITS_PER_UNIT


def normalize_minor_units(amount: int, exchange_rate: float | Decimal | None) -> int:
    """Convert ``amount`` minor units with ``exchange_rate``, rounding half to even.

    The rate is taken through its shortest ``repr`` so that ``0.5`` means
    exactly one half rather than its binary approximation.
    """

    if exchange_rate is None:
        return int(amount)
    rate = exchange_rate if isinstance(exchange_rate, Decimal) else Decimal(repr(exchange_rate))
    with localcontext(MONEY_CONTEXT):
        product = Decimal(amount) * rate
        return int(product.to_integral_value(rounding=ROUND_HALF_EVEN))


def approx_zero(value: Money, tolerance: Decimal = EPSILON) -> bool:
    return abs(value) <= tolerance


def approx_equal(a: Money, b: Money, tolerance: Decimal = EPSILON) -> bool:
    with localcontext(MONEY_CONTEXT):
        return approx_zero(a - b, tolerance)


def format_amount(value: Money) -> str:
    """Format to exactly two decimals (half-even); negative zero prints as ``0.00``."""

    q = value.quantize(_CENTS, rounding=ROUND_HALF_EVEN)
    if q.is_zero():
        q = abs(q)
    return f"{q:.2f}"


def format_minor_units(amount: int, currency: str) -> str:
    """Format minor units with the uppercased currency code, e.g. ``10.00 USD``."""

    return f"{format_amount(from_minor_units(amount))} {currency.upper()}"
