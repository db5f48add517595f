"""Ledger transactions and their plain-text rendering.

A :class:`LedgerTransaction` is built once per input record, validated on
construction (postings sharing a currency must sum to zero within
:data:`~slc.money.EPSILON`), optionally given comments and a date format,
then rendered::

    2021-03-11 * Stripe Payout
        ; Correlates to Stripe payout po_123 from 2021-03-13 for amount 9.70 USD
        Income:Stripe         -10.00 USD
        Expenses:Stripe Fees  0.30 USD
        Assets:Bank           9.70 USD

Dates are always rendered in UTC.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, localcontext
from typing import TextIO

from .config import DEFAULT_DATE_FORMAT
from .errors import EmptyTransactionError, UnbalancedTransactionError
from .money import MONEY_CONTEXT, Money, approx_zero, format_amount, format_minor_units

INDENT = "    "
CLEARED_MARKER = "*"
PENDING_MARKER = "!"


def to_utc(value: datetime | int | float) -> datetime:
    """Unix timestamps and naive datetimes are taken as UTC."""

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    return datetime.fromtimestamp(value, tz=UTC)


def sanitize_description(description: str) -> str:
    return " ".join(description.split())


@dataclass(frozen=True, slots=True)
class TransactionPosting:
    account: str
    amount: Money
    currency: str


def _check_balance(postings: Iterable[TransactionPosting], description: str) -> None:
    totals: dict[str, Decimal] = {}
    with localcontext(MONEY_CONTEXT):
        for p in postings:
            key = p.currency.lower()
            totals[key] = totals.get(key, Decimal(0)) + p.amount
    for currency, total in totals.items():
        if not approx_zero(total):
            raise UnbalancedTransactionError(currency, total, description)


class LedgerTransaction:
    """Validated date + description + comments + postings."""

    def __init__(
        self,
        date: datetime | int,
        description: str,
        postings: Sequence[TransactionPosting],
        *,
        cleared: bool = True,
        date_format: str = DEFAULT_DATE_FORMAT,
    ) -> None:
        if not postings:
            raise EmptyTransactionError(description)
        _check_balance(postings, description)

        self.date = to_utc(date)
        self.description = description
        self.postings: tuple[TransactionPosting, ...] = tuple(postings)
        self.cleared = cleared
        self.date_format = date_format
        self.comments: list[str] = []

    def add_comment(self, comment: str) -> None:
        self.comments.append(comment)

    def add_key_val_comment(self, key: str, value: str | None) -> None:
        """Add ``key: value`` unless ``value`` is empty."""

        if value:
            self.add_comment(f"{key}: {value}")

    def set_date_format(self, date_format: str) -> None:
        if date_format:
            self.date_format = date_format

    def format_date(self, value: datetime | int) -> str:
        return to_utc(value).strftime(self.date_format)

    def format_unit_amount(self, amount: int, currency: str) -> str:
        return format_minor_units(amount, currency)

    def render(self) -> str:
        marker = CLEARED_MARKER if self.cleared else PENDING_MARKER
        lines = [f"{self.format_date(self.date)} {marker} {sanitize_description(self.description)}"]
        lines.extend(f"{INDENT}; {c}" for c in self.comments)

        width = max(len(p.account) for p in self.postings)
        lines.extend(
            f"{INDENT}{p.account.ljust(width)}  {format_amount(p.amount)} {p.currency.upper()}"
            for p in self.postings
        )
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.render()

    def write_to(self, stream: TextIO) -> None:
        """Append the rendered block plus the separating blank line."""

        stream.write(self.render())
        stream.write("\n")
