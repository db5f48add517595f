"""Public interface for the ``slc`` package.

Symbol re-exports only: runners, the building blocks they are made of, and
the error taxonomy.
"""

from .account_lookup import AccountLookupCache
from .config import ConfigStore
from .csv_ledger import CsvRunner
from .errors import (
    ColumnRangeError,
    ConfigurationError,
    DateParseError,
    EmptyTransactionError,
    IngestionError,
    InvalidLookupPatternError,
    LedgerParseError,
    MissingConfigKeyError,
    MoneyColumnCountError,
    MoneyParseError,
    SlcError,
    UnbalancedTransactionError,
)
from .ledger import LedgerTransaction, TransactionPosting
from .models import (
    AccountLookupEntry,
    BalanceRecord,
    CsvAccountMapping,
    CustomerAddress,
    Payout,
    TaxAmount,
)
from .money import coerce_money_columns, format_amount, normalize_minor_units, parse_money
from .stripe_ledger import StripeRunner
from .stripe_source import PayoutSource, StripePayoutSource

__all__ = [
    # Runners
    "CsvRunner",
    "StripeRunner",
    # Building blocks
    "AccountLookupCache",
    "ConfigStore",
    "LedgerTransaction",
    "TransactionPosting",
    "PayoutSource",
    "StripePayoutSource",
    "parse_money",
    "coerce_money_columns",
    "normalize_minor_units",
    "format_amount",
    # Models
    "AccountLookupEntry",
    "BalanceRecord",
    "CsvAccountMapping",
    "CustomerAddress",
    "Payout",
    "TaxAmount",
    # Errors
    "SlcError",
    "ConfigurationError",
    "MissingConfigKeyError",
    "InvalidLookupPatternError",
    "ColumnRangeError",
    "MoneyColumnCountError",
    "LedgerParseError",
    "MoneyParseError",
    "DateParseError",
    "UnbalancedTransactionError",
    "EmptyTransactionError",
    "IngestionError",
]
