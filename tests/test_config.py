import pytest

from slc.config import ConfigStore, default_config_path
from slc.errors import ConfigurationError
from slc.models import CsvAccountMapping


def test_missing_file_is_an_empty_store(config_path):
    config = ConfigStore.load(config_path)
    assert config.as_dict() == {}
    assert config.path == config_path
    assert config.get("date_format_string") == "%Y-%m-%d"


def test_default_path_is_in_home(tmp_path):
    assert default_config_path() == tmp_path / "home" / ".slc.yaml"


def test_round_trip_through_yaml(config_path):
    config = ConfigStore.load(config_path)
    config.set("ledger_accounts.income", "Income:Sales")
    config.set("stripe.most_recently_processed_payout", "po_1")
    config.write()

    text = config_path.read_text(encoding="utf-8")
    assert "ledger_accounts:\n  income: Income:Sales\n" in text

    reloaded = ConfigStore.load(config_path)
    assert reloaded.get("ledger_accounts.income") == "Income:Sales"
    assert reloaded.get_str("stripe.most_recently_processed_payout") == "po_1"
    assert not config_path.with_suffix(".yaml.tmp").exists()


def test_defaults_are_layered_but_not_written(config_path):
    config = ConfigStore(path=config_path)
    config.set_default("stripe.add_customer_metadata", True)
    assert config.get_bool("stripe.add_customer_metadata") is True
    assert not config.is_set("stripe.add_customer_metadata")

    config.set("stripe.add_customer_metadata", False)
    assert config.get_bool("stripe.add_customer_metadata") is False

    config.write()
    assert "date_format_string" not in config_path.read_text(encoding="utf-8")


def test_environment_overrides_file(config_path, monkeypatch):
    config = ConfigStore({"stripe_api_key": "sk_file", "csv": {"honor_discard": True}})
    monkeypatch.setenv("SLC_STRIPE_API_KEY", "sk_env")
    monkeypatch.setenv("SLC_CSV_HONOR_DISCARD", "false")

    assert config.get("stripe_api_key") == "sk_env"
    assert config.get_bool("csv.honor_discard") is False
    assert config.is_set("ledger_accounts.income") is False
    monkeypatch.setenv("SLC_LEDGER_ACCOUNTS_INCOME", "Income:Env")
    assert config.is_set("ledger_accounts.income")


def test_bad_boolean_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        ConfigStore({"csv": {"honor_discard": "maybe"}}).get_bool("csv.honor_discard")


@pytest.mark.parametrize("text", ["a: [unclosed\n", "- just\n- a list\n"])
def test_unreadable_files(config_path, text):
    config_path.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigStore.load(config_path)


def test_write_without_path():
    with pytest.raises(ConfigurationError):
        ConfigStore().write()


def test_get_model(config_path):
    config = ConfigStore({"csv": {"account": {"bank": {"date_col": 2, "money_cols": None}}}})
    mapping = config.get_model("csv.account.bank", CsvAccountMapping)
    assert mapping.date_col == 2
    assert mapping.money_cols == []

    with pytest.raises(ConfigurationError):
        config.get_model("csv.account.other", CsvAccountMapping)

    bad = ConfigStore({"csv": {"account": {"bank": {"date_col": "first"}}}})
    with pytest.raises(ConfigurationError):
        bad.get_model("csv.account.bank", CsvAccountMapping)
