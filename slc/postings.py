"""Per-category posting builders.

Each Stripe builder turns one :class:`~slc.models.BalanceRecord` (amounts in
minor units) into a :class:`~slc.ledger.LedgerTransaction`. Accounts come from
:class:`StripeAccountResolver`, which routes every lookup through the
:class:`~slc.account_lookup.AccountLookupCache` so that learned mappings
persist between runs.

Signed amounts, in units (minor units / 100), with ``T`` the total of the
exchange-rate-normalized tax amounts:

========  ===========================  ==========  ================  ================
category  income                       fees        destination       tax lines
========  ===========================  ==========  ================  ================
charge    ``-(amount - T)``            ``+fee``    ``+net``          ``-tax`` each
refund    ``-(amount - T + orig_fee)`` ``+fee``    ``+(net + orig)`` ``-tax`` each
dispute   ``-amount``                  ``+fee``    ``+net``          none
fee       (none)                       ``-amount`` ``+amount``       none
========  ===========================  ==========  ================  ================

Since ``net == amount - fee`` every row sums to zero; the ledger transaction
re-checks that on construction.

:func:`build_csv_transaction` covers generic CSV rows: the profile's primary
account receives the amount and the classified counter-account its negation
(both flipped with ``negate_amount``).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from decimal import localcontext

from .account_lookup import AccountLookupCache
from .config import DEFAULT_DATE_FORMAT, ConfigStore
from .ledger import LedgerTransaction, TransactionPosting
from .logging_setup import get_logger
from .models import AccountLookupEntry, BalanceRecord, Payout
from .money import MONEY_CONTEXT, Money, from_minor_units, normalize_minor_units

DEFAULT_BANK_ACCOUNT = "Assets:Bank"
DEFAULT_TAX_ACCOUNT = "Liabilities:SalesTax"
DEFAULT_INCOME_ACCOUNT = "Income:Stripe"
DEFAULT_FEES_ACCOUNT = "Expenses:Stripe Fees"

INCOME_KEY = "ledger_accounts.income"
FEES_KEY = "ledger_accounts.stripe_fees"

# Search keys handed to the classifier. No key is a substring of another, so
# an unanchored learned pattern never captures a different kind of record.
INCOME_TOKEN = "Stripe Income"
FEES_TOKEN = "Stripe Fees"

DESC_CHARGE = "Stripe Payout"
DESC_REFUND = "Stripe Customer Refund"
DESC_DISPUTE = "Stripe Dispute Charge"
DESC_FEE = "Stripe Account Fees"

_logger = get_logger("slc.postings")


def bank_account_key(destination_id: str) -> str:
    return f"ledger_accounts.bank_account_{destination_id.lower()}"


def tax_account_key(tax_rate_id: str) -> str:
    return f"ledger_accounts.tax_account_{tax_rate_id.lower()}"


def destination_token(destination_id: str) -> str:
    return f"Stripe Destination <{destination_id}>"


def tax_rate_token(tax_rate_id: str) -> str:
    return f"Stripe Tax Rate <{tax_rate_id}>"


def customer_income_token(customer_id: str) -> str:
    return f"Stripe Customer <{customer_id}> Income"


class StripeAccountResolver:
    """Resolve ledger accounts for Stripe records.

    Every record kind is looked up in the classifier, which decides the
    discard flag and, absent configuration, the account. An explicitly set
    ``ledger_accounts.*`` key overrides the entry's account. A missing bank or
    tax key is seeded with the resolved account and a warning, so it can be
    edited in the config file after the run. Per-customer income accounts
    have no key of their own; their lookup entry is the place to edit them.
    """

    def __init__(
        self,
        config: ConfigStore,
        lookups: AccountLookupCache,
        *,
        honor_discard: bool = False,
    ) -> None:
        self.config = config
        self.lookups = lookups
        self.honor_discard = honor_discard
        config.set_default(INCOME_KEY, DEFAULT_INCOME_ACCOUNT)
        config.set_default(FEES_KEY, DEFAULT_FEES_ACCOUNT)

    def _resolve(
        self, key: str, token: str, fallback: str, *, seed: bool = False
    ) -> AccountLookupEntry:
        entry = self.lookups.get_or_add(token, self.config.get_str(key, fallback))
        if self.config.is_set(key):
            account = self.config.get_str(key)
            if account and account != entry.account_name:
                return entry.model_copy(update={"account_name": account})
            return entry
        if seed:
            _logger.warning(
                "No account map set for %s, using %s; edit this key to change it",
                key,
                entry.account_name,
            )
            self.config.set(key, entry.account_name)
        return entry

    def destination(self, payout: Payout) -> AccountLookupEntry:
        return self._resolve(
            bank_account_key(payout.destination_id),
            destination_token(payout.destination_id),
            DEFAULT_BANK_ACCOUNT,
            seed=True,
        )

    def tax(self, tax_rate_id: str) -> AccountLookupEntry:
        return self._resolve(
            tax_account_key(tax_rate_id),
            tax_rate_token(tax_rate_id),
            DEFAULT_TAX_ACCOUNT,
            seed=True,
        )

    def income(self, customer_id: str | None) -> AccountLookupEntry:
        if customer_id:
            income = self.config.get_str(INCOME_KEY, DEFAULT_INCOME_ACCOUNT)
            return self.lookups.get_or_add(
                customer_income_token(customer_id), f"{income}:Customer-{customer_id}"
            )
        return self._resolve(INCOME_KEY, INCOME_TOKEN, DEFAULT_INCOME_ACCOUNT)

    def fees(self) -> AccountLookupEntry:
        return self._resolve(FEES_KEY, FEES_TOKEN, DEFAULT_FEES_ACCOUNT)

    def discards(self, entries: Sequence[AccountLookupEntry]) -> bool:
        return self.honor_discard and any(e.discard for e in entries)


def _neg(value: Money) -> Money:
    with localcontext(MONEY_CONTEXT):
        return -value


def _tax_postings(
    record: BalanceRecord, resolver: StripeAccountResolver
) -> tuple[list[TransactionPosting], int, list[AccountLookupEntry]]:
    """Tax liability postings plus the normalized tax total in minor units."""

    postings: list[TransactionPosting] = []
    entries: list[AccountLookupEntry] = []
    total = 0
    for tax in record.tax_amounts:
        entry = resolver.tax(tax.tax_rate_id)
        entries.append(entry)
        normalized = tax.amount
        if record.needs_conversion:
            normalized = normalize_minor_units(tax.amount, record.exchange_rate)
        total += normalized
        postings.append(
            TransactionPosting(
                account=entry.account_name,
                amount=_neg(from_minor_units(normalized)),
                currency=record.currency,
            )
        )
    return postings, total, entries


def _annotate(
    tr: LedgerTransaction,
    record: BalanceRecord,
    payout: Payout,
    *,
    add_customer_metadata: bool,
) -> None:
    tr.add_comment(
        f"Correlates to Stripe payout {payout.id} from {tr.format_date(payout.arrival_date)} "
        f"for amount {tr.format_unit_amount(payout.amount, payout.currency)}"
    )
    if add_customer_metadata and record.address is not None:
        tr.add_key_val_comment("CustomerCity", record.address.city)
        tr.add_key_val_comment("CustomerState", record.address.state)
        tr.add_key_val_comment("CustomerCountry", record.address.country)
        tr.add_key_val_comment("CustomerPostalCode", record.address.postal_code)


def build_charge(
    record: BalanceRecord,
    payout: Payout,
    resolver: StripeAccountResolver,
    *,
    add_customer_metadata: bool = True,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> LedgerTransaction | None:
    destination = resolver.destination(payout)
    postings, total_tax, entries = _tax_postings(record, resolver)
    income = resolver.income(record.customer_id)
    fees = resolver.fees()
    if resolver.discards([destination, income, fees, *entries]):
        _logger.debug("Discarding balance transaction %s as per lookup config", record.id)
        return None

    postings.extend(
        [
            TransactionPosting(
                income.account_name,
                _neg(from_minor_units(record.amount - total_tax)),
                record.currency,
            ),
            TransactionPosting(fees.account_name, from_minor_units(record.fee), record.currency),
            TransactionPosting(
                destination.account_name, from_minor_units(record.net), record.currency
            ),
        ]
    )

    tr = LedgerTransaction(record.created, DESC_CHARGE, postings, date_format=date_format)
    _annotate(tr, record, payout, add_customer_metadata=add_customer_metadata)
    return tr


def build_refund(
    record: BalanceRecord,
    payout: Payout,
    resolver: StripeAccountResolver,
    *,
    add_customer_metadata: bool = True,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> LedgerTransaction | None:
    """Refunds also give back the refunded charge's original fee.

    The fee is noted in a comment in the payout's currency, the one it was
    settled in.
    """

    destination = resolver.destination(payout)
    postings, total_tax, entries = _tax_postings(record, resolver)
    income = resolver.income(record.customer_id)
    fees = resolver.fees()
    if resolver.discards([destination, income, fees, *entries]):
        _logger.debug("Discarding balance transaction %s as per lookup config", record.id)
        return None

    orig_fee = record.original_fee
    postings.extend(
        [
            TransactionPosting(
                income.account_name,
                _neg(from_minor_units(record.amount - total_tax + orig_fee)),
                record.currency,
            ),
            TransactionPosting(fees.account_name, from_minor_units(record.fee), record.currency),
            TransactionPosting(
                destination.account_name,
                from_minor_units(record.net + orig_fee),
                record.currency,
            ),
        ]
    )

    tr = LedgerTransaction(record.created, DESC_REFUND, postings, date_format=date_format)
    _annotate(tr, record, payout, add_customer_metadata=add_customer_metadata)
    if orig_fee > 0:
        tr.add_key_val_comment(
            "Original Stripe fee", tr.format_unit_amount(orig_fee, payout.currency)
        )
    return tr


def build_dispute(
    record: BalanceRecord,
    payout: Payout,
    resolver: StripeAccountResolver,
    *,
    add_customer_metadata: bool = True,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> LedgerTransaction | None:
    destination = resolver.destination(payout)
    income = resolver.income(record.customer_id)
    fees = resolver.fees()
    if resolver.discards([destination, income, fees]):
        _logger.debug("Discarding balance transaction %s as per lookup config", record.id)
        return None

    postings = [
        TransactionPosting(income.account_name, _neg(from_minor_units(record.amount)), record.currency),
        TransactionPosting(fees.account_name, from_minor_units(record.fee), record.currency),
        TransactionPosting(destination.account_name, from_minor_units(record.net), record.currency),
    ]
    tr = LedgerTransaction(record.created, DESC_DISPUTE, postings, date_format=date_format)
    _annotate(tr, record, payout, add_customer_metadata=add_customer_metadata)
    return tr


def build_fee(
    record: BalanceRecord,
    payout: Payout,
    resolver: StripeAccountResolver,
    *,
    add_customer_metadata: bool = True,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> LedgerTransaction | None:
    """Standalone account fees (not tied to a charge)."""

    destination = resolver.destination(payout)
    fees = resolver.fees()
    if resolver.discards([destination, fees]):
        _logger.debug("Discarding balance transaction %s as per lookup config", record.id)
        return None

    postings = [
        TransactionPosting(fees.account_name, _neg(from_minor_units(record.amount)), record.currency),
        TransactionPosting(destination.account_name, from_minor_units(record.amount), record.currency),
    ]
    tr = LedgerTransaction(record.created, DESC_FEE, postings, date_format=date_format)
    _annotate(tr, record, payout, add_customer_metadata=add_customer_metadata)
    return tr


def build_csv_transaction(
    date: datetime,
    lookup: AccountLookupEntry,
    *,
    primary_account: str,
    amount: Money,
    currency: str,
    negate_amount: bool = False,
    notes: Sequence[str] = (),
    date_format: str = DEFAULT_DATE_FORMAT,
) -> LedgerTransaction:
    primary, counter = amount, _neg(amount)
    if negate_amount:
        primary, counter = counter, primary

    postings = [
        TransactionPosting(primary_account, primary, currency),
        TransactionPosting(lookup.account_name, counter, currency),
    ]
    tr = LedgerTransaction(date, lookup.description, postings, date_format=date_format)
    for note in notes:
        tr.add_comment(note)
    return tr
