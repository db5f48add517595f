"""CSV ingestion runner.

Rows are read with :mod:`csv` and mapped through a named profile stored at
``csv.account.<name>`` (see :class:`~slc.models.CsvAccountMapping`). Column
indices are 1-based. For each row:

1. the configured header row (1-based, ``0`` for none) is skipped;
2. every referenced column is range-checked before anything is parsed, and
   all offenders are reported in one :class:`~slc.errors.ColumnRangeError`;
3. the date is parsed with the profile's ``strptime`` pattern, the amount
   from one or two money columns;
4. the description is classified; entries flagged ``discard_transaction``
   drop the row when ``csv.honor_discard`` is on (the default);
5. the remaining row becomes a two-posting transaction between the profile's
   account and the classified one, with note columns as comments.

A profile name seen for the first time gets a stub profile written to the
config file and the run stops there so the user can edit it. Learned lookup
entries are written back even when a later row fails.
"""

from __future__ import annotations

import csv
from collections.abc import Sequence
from datetime import datetime
from typing import TextIO

from .account_lookup import AccountLookupCache
from .config import DATE_FORMAT_KEY, DEFAULT_DATE_FORMAT, ConfigStore
from .errors import ColumnRangeError, ConfigurationError, DateParseError, IngestionError
from .logging_setup import get_logger
from .models import CsvAccountMapping
from .money import coerce_money_columns
from .postings import DEFAULT_BANK_ACCOUNT, build_csv_transaction

HONOR_DISCARD_KEY = "csv.honor_discard"
DEFAULT_CURRENCY = "eur"
DEFAULT_COUNTER_ACCOUNT = "Expenses:Unknown"

_logger = get_logger("slc.csv_ledger")


def mapping_key(name: str) -> str:
    return f"csv.account.{name}"


def _out_of_range(record: Sequence[str], columns: Sequence[int]) -> list[int]:
    return [c for c in columns if c < 0 or c > len(record)]


def _cell(record: Sequence[str], col: int, what: str) -> str:
    if col < 1:
        raise ConfigurationError(f"Invalid {what} column {col!r}")
    return record[col - 1]


class CsvRunner:
    def __init__(self, output: TextIO, config: ConfigStore) -> None:
        self.output = output
        self.config = config
        config.set_default(HONOR_DISCARD_KEY, True)

    def write_stub_mapping(self, name: str) -> None:
        key = mapping_key(name)
        self.config.set(key, CsvAccountMapping.stub().model_dump())
        _logger.warning(
            "No CSV mapping found for %r. A default one was written to %s; "
            "review it and run again.",
            key,
            self.config.path,
        )
        self.config.write()

    def generate_ledger_entries(self, stream: TextIO, mapping_name: str) -> int:
        """Write ledger blocks for every row in ``stream``; return how many were written."""

        config = self.config
        key = mapping_key(mapping_name)
        if not config.is_set(key):
            self.write_stub_mapping(mapping_name)
            return 0

        mapping = config.get_model(key, CsvAccountMapping)
        lookups = AccountLookupCache.from_config(config)
        try:
            return self._process(stream, key, mapping, lookups)
        finally:
            lookups.persist()
            try:
                config.write()
            except (OSError, ConfigurationError) as exc:
                _logger.warning("Unable to write config file: %s", exc)

    def _process(
        self,
        stream: TextIO,
        key: str,
        mapping: CsvAccountMapping,
        lookups: AccountLookupCache,
    ) -> int:
        honor_discard = self.config.get_bool(HONOR_DISCARD_KEY, True)
        date_format = self.config.get_str(DATE_FORMAT_KEY, DEFAULT_DATE_FORMAT)
        primary_account = mapping.ledger_account_name or DEFAULT_BANK_ACCOUNT
        currency = mapping.currency or DEFAULT_CURRENCY

        written = 0
        try:
            for line, record in enumerate(csv.reader(stream), start=1):
                if mapping.header_row > 0 and line == mapping.header_row:
                    _logger.debug("Skipping header row %d", line)
                    continue

                bad = _out_of_range(record, mapping.referenced_columns())
                if bad:
                    raise ColumnRangeError(key, record, bad)

                raw_date = _cell(record, mapping.date_col, "date")
                try:
                    date = datetime.strptime(raw_date, mapping.csv_date_format)
                except ValueError as exc:
                    raise DateParseError(raw_date, mapping.csv_date_format) from exc

                amount = coerce_money_columns(record, mapping.money_cols)
                description = _cell(record, mapping.desc_col, "description")

                lookup = lookups.get_or_add(description, DEFAULT_COUNTER_ACCOUNT)
                if honor_discard and lookup.discard:
                    _logger.debug("Discarding CSV row %d (%r) as per lookup config", line, description)
                    continue

                notes = [record[c - 1] for c in mapping.note_cols if c > 0 and record[c - 1]]
                tr = build_csv_transaction(
                    date,
                    lookup,
                    primary_account=primary_account,
                    amount=amount,
                    currency=currency,
                    negate_amount=mapping.negate_amount,
                    notes=notes,
                    date_format=date_format,
                )
                tr.write_to(self.output)
                written += 1
        except csv.Error as exc:
            raise IngestionError(f"Unable to read CSV input: {exc}") from exc

        _logger.info("Successfully processed %d CSV records", written)
        return written
