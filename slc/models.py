"""Data models for ``slc``.

Two families live here:

- Normalized input records (:class:`Payout`, :class:`BalanceRecord` and their
  parts). Ingestion adapters build these; the posting builders consume them.
  Amounts are integers in minor units (cents), exactly as the processor
  reports them.
- Pydantic DTOs for the persisted configuration (:class:`AccountLookupEntry`,
  :class:`CsvAccountMapping`). They validate what comes out of the YAML file
  and dump back to the same shape.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Reporting categories
# ---------------------------------------------------------------------------

CATEGORY_CHARGE = "charge"
CATEGORY_REFUND = "refund"
CATEGORY_DISPUTE = "dispute"
CATEGORY_FEE = "fee"
CATEGORY_PAYOUT = "payout"

SUPPORTED_CATEGORIES: frozenset[str] = frozenset(
    {CATEGORY_CHARGE, CATEGORY_REFUND, CATEGORY_DISPUTE, CATEGORY_FEE}
)


# ---------------------------------------------------------------------------
# Normalized input records
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Payout:
    """A paid transfer of accumulated funds to a destination.

    ``created`` and ``arrival_date`` are Unix timestamps (seconds).
    ``destination_type`` is ``"bank_account"`` or ``"card"``.
    """

    id: str
    created: int
    arrival_date: int
    amount: int
    currency: str
    destination_id: str
    destination_type: str = "bank_account"
    type: str = "bank_account"

    @property
    def is_card(self) -> bool:
        return self.type == "card" or self.destination_type == "card"


@dataclass(frozen=True, slots=True)
class TaxAmount:
    tax_rate_id: str
    amount: int


@dataclass(frozen=True, slots=True)
class CustomerAddress:
    city: str = ""
    state: str = ""
    country: str = ""
    postal_code: str = ""


@dataclass(frozen=True, slots=True)
class BalanceRecord:
    """One balance transaction, flattened to what the posting builders need.

    Attributes
    ----------
    amount, fee, net:
        Minor units in ``currency`` (the balance currency).
    exchange_rate:
        Rate from ``source_currency`` into ``currency`` when they differ.
    source_currency:
        Currency of the underlying charge; tax amounts are expressed in it.
    tax_amounts:
        Per-tax-rate amounts from the charge's invoice, in ``source_currency``.
    original_fee:
        For refunds, the fee charged on the refunded charge (0 when unknown).
    """

    id: str
    reporting_category: str
    created: int
    amount: int
    fee: int
    net: int
    currency: str
    exchange_rate: Decimal | float | None = None
    source_currency: str | None = None
    tax_amounts: tuple[TaxAmount, ...] = ()
    customer_id: str | None = None
    address: CustomerAddress | None = None
    original_fee: int = 0

    @property
    def needs_conversion(self) -> bool:
        return bool(self.source_currency) and (
            (self.source_currency or "").lower() != self.currency.lower()
        )


# ---------------------------------------------------------------------------
# Configuration DTOs
# ---------------------------------------------------------------------------


class AccountLookupEntry(BaseModel):
    """One ordered row of ``ledger_account_lookups``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=False)

    search: str
    account_name: str
    description: str = ""
    discard: bool = Field(default=False, alias="discard_transaction")

    def to_config(self) -> dict[str, object]:
        return {
            "search": self.search,
            "account_name": self.account_name,
            "description": self.description,
            "discard_transaction": self.discard,
        }


class CsvAccountMapping(BaseModel):
    """CSV column mapping stored under ``csv.account.<name>``.

    Column indices are 1-based; ``0`` means "unset".
    """

    model_config = ConfigDict(extra="ignore")

    ledger_account_name: str = ""
    csv_date_format: str = ""
    date_col: int = 0
    desc_col: int = 0
    money_cols: list[int] = Field(default_factory=list)
    negate_amount: bool = False
    note_cols: list[int] = Field(default_factory=list)
    currency: str = ""
    header_row: int = 0

    @field_validator("money_cols", "note_cols", mode="before")
    @classmethod
    def _none_is_empty(cls, v: object) -> object:
        return [] if v is None else v

    @classmethod
    def stub(cls) -> CsvAccountMapping:
        """Generic profile written for a mapping name seen for the first time."""

        return cls(
            ledger_account_name="Assets:Bank",
            csv_date_format="%d-%b-%Y",
            date_col=1,
            desc_col=2,
            money_cols=[3],
            negate_amount=False,
            note_cols=[4, 5],
            currency="eur",
            header_row=0,
        )

    def referenced_columns(self) -> list[int]:
        return [self.date_col, self.desc_col, *self.note_cols, *self.money_cols]
