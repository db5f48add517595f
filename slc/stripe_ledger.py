"""Stripe ingestion runner.

Walks every paid payout after the saved cursor and, for each one, its balance
transactions in listed order, writing one ledger block per supported record:

- ``charge`` / ``refund`` / ``dispute`` / ``fee`` go through the matching
  builder in :mod:`slc.postings`;
- ``payout`` records are the settlement itself and are skipped silently;
- any other category is skipped with a warning;
- payouts to a card rather than a bank account are skipped with a warning.

The cursor saved at ``stripe.most_recently_processed_payout`` is the ID of the
payout with the greatest ``created`` timestamp seen during the run, not the
last one listed. It is stored, together with the learned account lookups,
only after every payout has been processed. A failed run leaves the config
file untouched.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TextIO

from .account_lookup import AccountLookupCache
from .config import DATE_FORMAT_KEY, DEFAULT_DATE_FORMAT, ConfigStore
from .errors import ConfigurationError
from .ledger import LedgerTransaction
from .logging_setup import get_logger
from .models import (
    CATEGORY_CHARGE,
    CATEGORY_DISPUTE,
    CATEGORY_FEE,
    CATEGORY_PAYOUT,
    CATEGORY_REFUND,
    BalanceRecord,
    Payout,
)
from .postings import (
    StripeAccountResolver,
    build_charge,
    build_dispute,
    build_fee,
    build_refund,
)
from .stripe_source import PayoutSource

CURSOR_KEY = "stripe.most_recently_processed_payout"
ADD_CUSTOMER_METADATA_KEY = "stripe.add_customer_metadata"
HONOR_DISCARD_KEY = "stripe.honor_discard"

type Builder = Callable[..., LedgerTransaction | None]

BUILDERS: dict[str, Builder] = {
    CATEGORY_CHARGE: build_charge,
    CATEGORY_REFUND: build_refund,
    CATEGORY_DISPUTE: build_dispute,
    CATEGORY_FEE: build_fee,
}

_logger = get_logger("slc.stripe_ledger")


class StripeRunner:
    def __init__(self, source: PayoutSource, output: TextIO, config: ConfigStore) -> None:
        self.source = source
        self.output = output
        self.config = config
        config.set_default(ADD_CUSTOMER_METADATA_KEY, True)
        config.set_default(HONOR_DISCARD_KEY, False)

    def generate_ledger_entries(self) -> int:
        """Process all new payouts; return how many were processed."""

        config = self.config
        lookups = AccountLookupCache.from_config(config)
        resolver = StripeAccountResolver(
            config, lookups, honor_discard=config.get_bool(HONOR_DISCARD_KEY)
        )
        add_customer_metadata = config.get_bool(ADD_CUSTOMER_METADATA_KEY, True)
        date_format = config.get_str(DATE_FORMAT_KEY, DEFAULT_DATE_FORMAT)

        cursor = config.get_str(CURSOR_KEY) or None
        if cursor:
            _logger.debug("Resuming after previously processed payout %s", cursor)

        latest: Payout | None = None
        processed = 0
        for payout in self.source.list_payouts(starting_after=cursor):
            if latest is None or payout.created > latest.created:
                latest = payout

            if payout.is_card:
                _logger.warning(
                    "Skipping payout %s: payouts to a card are not supported", payout.id
                )
                continue

            for record in self.source.list_balance_transactions(payout.id):
                self._process_record(
                    record,
                    payout,
                    resolver,
                    add_customer_metadata=add_customer_metadata,
                    date_format=date_format,
                )
            processed += 1

        if latest is not None:
            config.set(CURSOR_KEY, latest.id)
        lookups.persist()
        try:
            config.write()
        except (OSError, ConfigurationError) as exc:
            _logger.warning("Unable to write config file: %s", exc)

        _logger.info("Successfully processed %d Stripe payouts", processed)
        return processed

    def _process_record(
        self,
        record: BalanceRecord,
        payout: Payout,
        resolver: StripeAccountResolver,
        *,
        add_customer_metadata: bool,
        date_format: str,
    ) -> None:
        category = record.reporting_category
        if category == CATEGORY_PAYOUT:
            # Already covered by the records that make up the payout
            _logger.debug("Skipping payout settlement record %s", record.id)
            return

        builder = BUILDERS.get(category)
        if builder is None:
            _logger.warning(
                "Skipping balance transaction %s: unsupported reporting category %r",
                record.id,
                category,
            )
            return

        _logger.debug("Processing %s balance transaction %s", category, record.id)
        tr = builder(
            record,
            payout,
            resolver,
            add_customer_metadata=add_customer_metadata,
            date_format=date_format,
        )
        if tr is not None:
            tr.write_to(self.output)
