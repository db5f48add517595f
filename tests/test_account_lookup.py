import pytest

from slc.account_lookup import AccountLookupCache
from slc.config import LOOKUPS_KEY, ConfigStore
from slc.errors import ConfigurationError, InvalidLookupPatternError
from slc.models import AccountLookupEntry


def _entries():
    return [
        AccountLookupEntry(search="(?i)stripe", account_name="Income:Stripe", description="Stripe"),
        AccountLookupEntry(search=".*", account_name="Expenses:Unknown", description="Anything"),
    ]


def test_first_match_wins():
    cache = AccountLookupCache(_entries())
    found = cache.find("STRIPE PAYOUT")
    assert found is not None
    assert found.account_name == "Income:Stripe"

    assert cache.find("Coffee").account_name == "Expenses:Unknown"


def test_unmatched_key_appends_exactly_one_entry():
    cache = AccountLookupCache()
    entry = cache.get_or_add("ACME CORP", "Expenses:Unknown")

    assert len(cache) == 1
    assert entry.search == "ACME CORP"
    assert entry.description == "ACME CORP"
    assert entry.account_name == "Expenses:Unknown"
    assert entry.discard is False

    # Reused on the next lookup, not appended again
    again = cache.get_or_add("ACME CORP", "Expenses:Other")
    assert again is entry
    assert len(cache) == 1


def test_matching_entry_is_not_duplicated():
    cache = AccountLookupCache(_entries())
    cache.get_or_add("stripe transfer", "Expenses:Unknown")
    assert len(cache) == 2


def test_malformed_pattern_is_a_configuration_error():
    with pytest.raises(InvalidLookupPatternError) as ei:
        AccountLookupCache([AccountLookupEntry(search="([", account_name="X")])
    assert isinstance(ei.value, ConfigurationError)
    assert ei.value.pattern == "(["


def test_learned_key_with_regex_metacharacters_is_escaped():
    cache = AccountLookupCache()
    entry = cache.get_or_add("COFFEE (LARGE", "Expenses:Unknown")
    assert entry.search == r"COFFEE\ \(LARGE"
    assert entry.description == "COFFEE (LARGE"
    assert cache.find("COFFEE (LARGE") is entry


def test_from_config_reads_discard_flag():
    config = ConfigStore(
        {
            LOOKUPS_KEY: [
                {
                    "search": "(?i)transfer",
                    "account_name": "Assets:Savings",
                    "description": "Transfer",
                    "discard_transaction": True,
                }
            ]
        }
    )
    cache = AccountLookupCache.from_config(config)
    assert len(cache) == 1
    assert cache.find("INTERNAL TRANSFER").discard is True


def test_from_config_absent_key_is_empty():
    assert len(AccountLookupCache.from_config(ConfigStore())) == 0


@pytest.mark.parametrize(
    "raw",
    [
        {"search": "x"},
        [{"account_name": "missing search"}],
    ],
)
def test_from_config_rejects_bad_shapes(raw):
    with pytest.raises(ConfigurationError):
        AccountLookupCache.from_config(ConfigStore({LOOKUPS_KEY: raw}))


def test_persist_writes_learned_entries_back(config_path):
    config = ConfigStore(path=config_path)
    cache = AccountLookupCache.from_config(config)
    cache.get_or_add("ACME CORP", "Expenses:Unknown")
    cache.persist()
    config.write()

    reloaded = AccountLookupCache.from_config(ConfigStore.load(config_path))
    assert [e.search for e in reloaded] == ["ACME CORP"]
    assert ConfigStore.load(config_path).get(LOOKUPS_KEY) == [
        {
            "search": "ACME CORP",
            "account_name": "Expenses:Unknown",
            "description": "ACME CORP",
            "discard_transaction": False,
        }
    ]


def test_persist_requires_a_bound_config():
    with pytest.raises(ConfigurationError):
        AccountLookupCache().persist()
