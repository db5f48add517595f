import io
import textwrap
from datetime import UTC, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from slc.errors import EmptyTransactionError, SlcError, UnbalancedTransactionError
from slc.ledger import LedgerTransaction, TransactionPosting, sanitize_description


def _dedent(s: str) -> str:
    return textwrap.dedent(s).lstrip("\n")


def _charge_postings():
    return [
        TransactionPosting("Income:Stripe", Decimal("-10.00"), "usd"),
        TransactionPosting("Expenses:Stripe Fees", Decimal("0.30"), "usd"),
        TransactionPosting("Assets:Bank", Decimal("9.70"), "usd"),
    ]


def test_render_snapshot():
    tr = LedgerTransaction(
        datetime(2021, 3, 11, tzinfo=UTC), "  Stripe \t Payout ", _charge_postings()
    )
    tr.add_comment("Correlates to Stripe payout po_1")
    tr.add_key_val_comment("CustomerCity", "Toronto")
    tr.add_key_val_comment("CustomerState", "")

    expected = _dedent(
        """
        2021-03-11 * Stripe Payout
            ; Correlates to Stripe payout po_1
            ; CustomerCity: Toronto
            Income:Stripe         -10.00 USD
            Expenses:Stripe Fees  0.30 USD
            Assets:Bank           9.70 USD
        """
    )
    assert tr.render() == expected
    assert str(tr) == expected


def test_write_to_appends_separator_line():
    out = io.StringIO()
    tr = LedgerTransaction(0, "x", _charge_postings())
    tr.write_to(out)
    tr.write_to(out)
    assert out.getvalue() == tr.render() + "\n" + tr.render() + "\n"


def test_unbalanced_postings_are_rejected():
    postings = [
        TransactionPosting("Income:Stripe", Decimal("-10.00"), "usd"),
        TransactionPosting("Assets:Bank", Decimal("9.99"), "usd"),
    ]
    with pytest.raises(UnbalancedTransactionError) as ei:
        LedgerTransaction(0, "Broken", postings)
    assert ei.value.currency == "usd"
    assert ei.value.total == Decimal("-0.01")
    assert ei.value.code == "UNBALANCED_TRANSACTION"


def test_balance_is_checked_per_currency():
    postings = [
        TransactionPosting("A", Decimal("-1"), "usd"),
        TransactionPosting("B", Decimal("1"), "USD"),
        TransactionPosting("C", Decimal("-2"), "eur"),
    ]
    with pytest.raises(UnbalancedTransactionError) as ei:
        LedgerTransaction(0, "Mixed", postings)
    assert ei.value.currency == "eur"


def test_sub_epsilon_residue_is_balanced():
    postings = [
        TransactionPosting("A", Decimal("-1.000000001"), "usd"),
        TransactionPosting("B", Decimal("1"), "usd"),
    ]
    LedgerTransaction(0, "Close enough", postings)


def test_no_postings():
    with pytest.raises(EmptyTransactionError) as ei:
        LedgerTransaction(0, "Empty", [])
    assert isinstance(ei.value, SlcError)
    assert ei.value.code == "EMPTY_TRANSACTION"


def test_dates_render_in_utc():
    plus_five = timezone(timedelta(hours=5))
    tr = LedgerTransaction(datetime(2021, 3, 12, 2, 0, tzinfo=plus_five), "x", _charge_postings())
    assert tr.render().startswith("2021-03-11 * x\n")

    # 2021-03-12T00:00:00Z
    assert tr.format_date(1615507200) == "2021-03-12"


def test_custom_date_format_and_pending_marker():
    tr = LedgerTransaction(
        1615507200, "x", _charge_postings(), cleared=False, date_format="%d/%m/%Y"
    )
    assert tr.render().startswith("12/03/2021 ! x\n")
    tr.set_date_format("")
    assert tr.date_format == "%d/%m/%Y"


def test_sanitize_description():
    assert sanitize_description("  a \n b\t\tc ") == "a b c"
