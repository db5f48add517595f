"""Stripe adapter: paid payouts and their balance transactions.

The runner only depends on the :class:`PayoutSource` protocol. This module's
:class:`StripePayoutSource` implements it on top of the ``stripe`` library:

- ``list_payouts``: ``status=paid``, destination expanded, optionally
  ``starting_after`` a saved cursor;
- ``list_balance_transactions``: the payout's balance transactions with the
  invoice / charge / charge balance-transaction chain expanded.

Both iterate across pages lazily. Any ``stripe.StripeError`` raised while
listing surfaces as :class:`~slc.errors.IngestionError` with the Stripe error
chained. Retries are the Stripe library's own (``max_network_retries``).

The ``*_from_stripe`` helpers flatten Stripe objects (or plain dicts with the
same shape) into :mod:`slc.models` records and are usable without network
access.
"""

from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from decimal import Decimal
from typing import Any, Protocol

import stripe

from .errors import IngestionError
from .logging_setup import get_logger
from .models import (
    CATEGORY_CHARGE,
    CATEGORY_REFUND,
    BalanceRecord,
    CustomerAddress,
    Payout,
    TaxAmount,
)

APP_NAME = "slc"
APP_URL = "https://github.com/marvinpinto/slc"
MAX_NETWORK_RETRIES = 5

PAYOUT_EXPAND = ["data.destination"]
BALANCE_TRANSACTION_EXPAND = [
    "data.source.invoice",
    "data.source.charge",
    "data.source.charge.invoice",
    "data.source.charge.balance_transaction",
]

_logger = get_logger("slc.stripe_source")


class PayoutSource(Protocol):
    def list_payouts(self, *, starting_after: str | None = None) -> Iterator[Payout]: ...

    def list_balance_transactions(self, payout_id: str) -> Iterator[BalanceRecord]: ...


# ---------------------------------------------------------------------------
# Stripe object -> record conversion
# ---------------------------------------------------------------------------


def _plain(obj: Any) -> Any:
    """Return ``obj`` as plain JSON-like data (dicts, lists, scalars)."""

    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    if type(obj) is dict:
        return obj
    # StripeObject renders itself as JSON
    return json.loads(str(obj))


def _obj(value: Any) -> Mapping[str, Any] | None:
    """An expanded sub-object, or ``None`` when it is absent or only an ID."""

    return value if isinstance(value, Mapping) else None


def _id(value: Any) -> str | None:
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        return value.get("id")
    return None


def _int(value: Any) -> int:
    return int(value) if value is not None else 0


def payout_from_stripe(obj: Any) -> Payout:
    data = _plain(obj)
    destination = data.get("destination")
    dest_obj = _obj(destination)
    dest_type = "bank_account"
    if dest_obj is not None:
        dest_type = dest_obj.get("object") or dest_type
    return Payout(
        id=data["id"],
        created=_int(data.get("created")),
        arrival_date=_int(data.get("arrival_date")),
        amount=_int(data.get("amount")),
        currency=data.get("currency") or "",
        destination_id=_id(destination) or "",
        destination_type=dest_type,
        type=data.get("type") or "bank_account",
    )


def _charge_of(source: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if source is None:
        return None
    if source.get("object") == "charge":
        return source
    return _obj(source.get("charge"))


def _tax_amounts(charge: Mapping[str, Any] | None) -> tuple[TaxAmount, ...]:
    invoice = _obj(charge.get("invoice")) if charge is not None else None
    if invoice is None:
        return ()
    return tuple(
        TaxAmount(tax_rate_id=_id(item.get("tax_rate")) or "", amount=_int(item.get("amount")))
        for item in invoice.get("total_tax_amounts") or ()
    )


def _address(charge: Mapping[str, Any] | None) -> CustomerAddress | None:
    billing = _obj(charge.get("billing_details")) if charge is not None else None
    address = _obj(billing.get("address")) if billing is not None else None
    if address is None:
        return None
    return CustomerAddress(
        city=address.get("city") or "",
        state=address.get("state") or "",
        country=address.get("country") or "",
        postal_code=address.get("postal_code") or "",
    )


def balance_record_from_stripe(obj: Any) -> BalanceRecord:
    data = _plain(obj)
    category = data.get("reporting_category") or data.get("type") or ""
    source = _obj(data.get("source"))
    charge = _charge_of(source)

    # Refunds carry the refunded charge, whose own balance transaction holds its fee
    original_fee = 0
    if category == CATEGORY_REFUND and charge is not None:
        charge_bt = _obj(charge.get("balance_transaction"))
        if charge_bt is not None:
            original_fee = _int(charge_bt.get("fee"))

    rate = data.get("exchange_rate")
    return BalanceRecord(
        id=data["id"],
        reporting_category=category,
        created=_int(data.get("created")),
        amount=_int(data.get("amount")),
        fee=_int(data.get("fee")),
        net=_int(data.get("net")),
        currency=data.get("currency") or "",
        exchange_rate=Decimal(repr(rate)) if rate is not None else None,
        source_currency=charge.get("currency") if charge is not None else None,
        tax_amounts=_tax_amounts(charge),
        customer_id=_id(charge.get("customer")) if charge is not None else None,
        address=_address(charge) if category == CATEGORY_CHARGE else None,
        original_fee=original_fee,
    )


# ---------------------------------------------------------------------------
# Live source
# ---------------------------------------------------------------------------


class StripePayoutSource:
    """:class:`PayoutSource` backed by the Stripe API."""

    def __init__(self, api_key: str, *, app_version: str | None = None) -> None:
        self._api_key = api_key
        stripe.max_network_retries = MAX_NETWORK_RETRIES
        stripe.enable_telemetry = False
        stripe.set_app_info(APP_NAME, version=app_version, url=APP_URL)

    def list_payouts(self, *, starting_after: str | None = None) -> Iterator[Payout]:
        params: dict[str, Any] = {"status": "paid", "expand": PAYOUT_EXPAND}
        if starting_after:
            params["starting_after"] = starting_after
        try:
            page = stripe.Payout.list(api_key=self._api_key, **params)
            for obj in page.auto_paging_iter():
                yield payout_from_stripe(obj)
        except stripe.StripeError as exc:
            _logger.error("Unable to retrieve payout list from Stripe: %s", exc)
            raise IngestionError(f"Unable to retrieve payout list from Stripe: {exc}") from exc

    def list_balance_transactions(self, payout_id: str) -> Iterator[BalanceRecord]:
        _logger.debug(
            "Retrieving a list of all the balance transactions associated with payout %s",
            payout_id,
        )
        try:
            page = stripe.BalanceTransaction.list(
                api_key=self._api_key, payout=payout_id, expand=BALANCE_TRANSACTION_EXPAND
            )
            for obj in page.auto_paging_iter():
                yield balance_record_from_stripe(obj)
        except stripe.StripeError as exc:
            _logger.error(
                "Unable to retrieve the balance transactions for payout %s: %s", payout_id, exc
            )
            raise IngestionError(
                f"Unable to retrieve the balance transactions for payout {payout_id}: {exc}"
            ) from exc
