"""In-memory stand-in for :class:`slc.stripe_source.StripePayoutSource`.

Payouts are yielded in the order given; balance records are looked up by
payout ID. ``fail_on`` names payout IDs whose balance-transaction listing
raises :class:`~slc.errors.IngestionError`, mimicking a network failure
halfway through a run. Every call is recorded on ``calls`` so tests can make
lightweight assertions about cursor use and which payouts were fetched.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from slc.errors import IngestionError
from slc.models import BalanceRecord, CustomerAddress, Payout, TaxAmount


class StubPayoutSource:
    def __init__(
        self,
        payouts: Sequence[Payout],
        records: Mapping[str, Iterable[BalanceRecord]] | None = None,
        *,
        fail_on: Iterable[str] = (),
    ) -> None:
        self.payouts = list(payouts)
        self.records = {k: list(v) for k, v in (records or {}).items()}
        self.fail_on = set(fail_on)
        self.calls: list[tuple[str, Any]] = []

    def list_payouts(self, *, starting_after: str | None = None) -> Iterator[Payout]:
        self.calls.append(("list_payouts", starting_after))
        yield from self.payouts

    def list_balance_transactions(self, payout_id: str) -> Iterator[BalanceRecord]:
        self.calls.append(("list_balance_transactions", payout_id))
        if payout_id in self.fail_on:
            raise IngestionError(f"stubbed failure listing balance transactions for {payout_id}")
        yield from self.records.get(payout_id, ())


# 2021-03-11 and 2021-03-12, 00:00 UTC
MAR_11 = 1615420800
MAR_12 = 1615507200


def make_payout(
    id: str = "po_1",
    *,
    created: int = MAR_12,
    amount: int = 970,
    currency: str = "usd",
    destination_id: str = "ba_1",
    destination_type: str = "bank_account",
) -> Payout:
    return Payout(
        id=id,
        created=created,
        arrival_date=MAR_12,
        amount=amount,
        currency=currency,
        destination_id=destination_id,
        destination_type=destination_type,
        type="card" if destination_type == "card" else "bank_account",
    )


def make_record(
    category: str = "charge",
    *,
    id: str = "txn_1",
    amount: int = 1000,
    fee: int = 30,
    net: int | None = None,
    currency: str = "usd",
    created: int = MAR_11,
    tax: Sequence[tuple[str, int]] = (),
    customer_id: str | None = None,
    address: CustomerAddress | None = None,
    original_fee: int = 0,
    source_currency: str | None = None,
    exchange_rate: Any = None,
) -> BalanceRecord:
    return BalanceRecord(
        id=id,
        reporting_category=category,
        created=created,
        amount=amount,
        fee=fee,
        net=amount - fee if net is None else net,
        currency=currency,
        exchange_rate=exchange_rate,
        source_currency=source_currency,
        tax_amounts=tuple(TaxAmount(tax_rate_id=r, amount=a) for r, a in tax),
        customer_id=customer_id,
        address=address,
        original_fee=original_fee,
    )
