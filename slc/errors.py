"""Typed exception hierarchy for ``slc``.

Every error raised by the ledger engine derives from :class:`SlcError` and
carries a machine-readable ``code``. None of these are retried: the first one
raised aborts the run, and ledger text already written stays written.

    SlcError
    +-- ConfigurationError
    |   +-- MissingConfigKeyError
    |   +-- InvalidLookupPatternError
    |   +-- ColumnRangeError
    |   +-- MoneyColumnCountError
    +-- LedgerParseError
    |   +-- MoneyParseError
    |   +-- DateParseError
    +-- UnbalancedTransactionError
    +-- EmptyTransactionError
    +-- IngestionError
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal


class SlcError(Exception):
    """Base exception for all ``slc`` errors."""

    code: str = "SLC_ERROR"


# Configuration


class ConfigurationError(SlcError):
    """Missing or invalid configuration."""

    code: str = "CONFIGURATION_ERROR"


class MissingConfigKeyError(ConfigurationError):
    code: str = "MISSING_CONFIG_KEY"

    def __init__(self, key: str, hint: str | None = None):
        self.key = key
        msg = f"Missing required configuration key {key!r}"
        if hint:
            msg = f"{msg}. {hint}"
        super().__init__(msg)


class InvalidLookupPatternError(ConfigurationError):
    """An account lookup ``search`` value is not a valid regular expression."""

    code: str = "INVALID_LOOKUP_PATTERN"

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid account lookup pattern {pattern!r}: {reason}")


class ColumnRangeError(ConfigurationError):
    """One or more configured CSV columns fall outside the record."""

    code: str = "COLUMN_OUT_OF_RANGE"

    def __init__(self, mapping_key: str, record: Sequence[str], columns: Sequence[int]):
        self.mapping_key = mapping_key
        self.record = list(record)
        self.columns = list(columns)
        super().__init__(
            f"There are currently {len(record)} columns in the CSV record {list(record)!r}. "
            f"Columns {list(columns)} specified in the config key {mapping_key!r} are out of range."
        )


class MoneyColumnCountError(ConfigurationError):
    code: str = "MONEY_COLUMN_COUNT"

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"You should have only 1 or 2 designated 'money_cols' (got {count})")


# Parsing


class LedgerParseError(SlcError):
    """Input text could not be parsed."""

    code: str = "PARSE_ERROR"


class MoneyParseError(LedgerParseError):
    code: str = "MONEY_PARSE_ERROR"

    def __init__(self, raw: object, reason: str = "not a valid money representation"):
        self.raw = raw
        super().__init__(f"Value {raw!r} does not appear to be a valid money representation: {reason}")


class DateParseError(LedgerParseError):
    code: str = "DATE_PARSE_ERROR"

    def __init__(self, raw: str, fmt: str):
        self.raw = raw
        self.fmt = fmt
        super().__init__(f"Unable to parse date {raw!r} with format {fmt!r}")


# Domain invariant


class UnbalancedTransactionError(SlcError):
    """Postings sharing a currency do not sum to zero."""

    code: str = "UNBALANCED_TRANSACTION"

    def __init__(self, currency: str, total: Decimal, description: str = ""):
        self.currency = currency
        self.total = total
        self.description = description
        super().__init__(
            f"Unbalanced transaction {description!r}: postings in {currency.upper()} sum to {total}"
        )


class EmptyTransactionError(SlcError):
    """A transaction was built without any postings."""

    code: str = "EMPTY_TRANSACTION"

    def __init__(self, description: str = ""):
        self.description = description
        super().__init__(f"Transaction {description!r} has no postings")


# Ingestion


class IngestionError(SlcError):
    """The record source failed; the underlying error is chained as ``__cause__``."""

    code: str = "INGESTION_ERROR"
