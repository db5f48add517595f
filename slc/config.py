"""Flat key-value configuration store persisted as YAML.

Keys are dotted paths (``ledger_accounts.income``) over a nested mapping, so
the YAML file stays readable::

    date_format_string: "%Y-%m-%d"
    ledger_accounts:
      income: Income:Stripe
      bank_account_ba_123: Assets:Checking
    ledger_account_lookups:
      - search: (?i)stripe
        account_name: Income:Stripe
        description: Stripe
        discard_transaction: false

Lookup order for :meth:`ConfigStore.get`:

1. environment variable ``SLC_<KEY>`` (dots become underscores, uppercased);
2. values read from the file or set during the run;
3. defaults registered with :meth:`ConfigStore.set_default`.

Defaults are never written back; :meth:`ConfigStore.write` persists only
explicit values. Writes target ``.tmp`` first and then ``os.replace`` into
place.
"""

from __future__ import annotations

import contextlib
import copy
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from .errors import ConfigurationError
from .logging_setup import get_logger

ENV_PREFIX = "SLC"
DEFAULT_CONFIG_NAME = ".slc.yaml"

DATE_FORMAT_KEY = "date_format_string"
DEFAULT_DATE_FORMAT = "%Y-%m-%d"
LOOKUPS_KEY = "ledger_account_lookups"

_MISSING = object()

_logger = get_logger("slc.config")


def default_config_path() -> Path:
    return Path.home() / DEFAULT_CONFIG_NAME


def _split(key: str) -> list[str]:
    parts = [p for p in key.split(".") if p]
    if not parts:
        raise ValueError(f"invalid configuration key: {key!r}")
    return parts


def _lookup(tree: Mapping[str, Any], key: str) -> Any:
    node: Any = tree
    for part in _split(key):
        if not isinstance(node, Mapping) or part not in node:
            return _MISSING
        node = node[part]
    return node


def _assign(tree: dict[str, Any], key: str, value: Any) -> None:
    parts = _split(key)
    node = tree
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        v = value.strip().lower()
        if v in {"1", "true", "yes", "on"}:
            return True
        if v in {"0", "false", "no", "off", ""}:
            return False
    raise ConfigurationError(f"expected a boolean value, got {value!r}")


class ConfigStore:
    """Configuration passed explicitly to every runner; there is no global instance."""

    def __init__(
        self,
        data: Mapping[str, Any] | None = None,
        *,
        path: Path | None = None,
        env_prefix: str | None = ENV_PREFIX,
    ) -> None:
        self.path = path
        self._env_prefix = env_prefix
        self._values: dict[str, Any] = copy.deepcopy(dict(data or {}))
        self._defaults: dict[str, Any] = {}
        self.set_default(DATE_FORMAT_KEY, DEFAULT_DATE_FORMAT)

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> ConfigStore:
        """Read ``path`` (default ``~/.slc.yaml``); a missing file yields an empty store."""

        p = Path(path).expanduser() if path is not None else default_config_path()
        data: dict[str, Any] = {}
        if p.exists():
            try:
                loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Unable to parse config file {os.fspath(p)}: {exc}") from exc
            if loaded is None:
                loaded = {}
            if not isinstance(loaded, dict):
                raise ConfigurationError(
                    f"Config file {os.fspath(p)} must contain a mapping at the top level"
                )
            data = loaded
        else:
            _logger.debug("Config file %s does not exist yet; starting empty", os.fspath(p))
        _logger.debug("Using config file: %s", os.fspath(p))
        return cls(data, path=p)

    # -- reads ----------------------------------------------------------------

    def _env_name(self, key: str) -> str | None:
        if not self._env_prefix:
            return None
        return f"{self._env_prefix}_{key.replace('.', '_')}".upper()

    def get(self, key: str, default: Any = None) -> Any:
        env_name = self._env_name(key)
        if env_name:
            env_val = os.getenv(env_name)
            if env_val is not None:
                return env_val
        value = _lookup(self._values, key)
        if value is not _MISSING:
            return value
        value = _lookup(self._defaults, key)
        if value is not _MISSING:
            return value
        return default

    def get_str(self, key: str, default: str = "") -> str:
        value = self.get(key)
        if value is None:
            return default
        return str(value)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        return _parse_bool(value)

    def is_set(self, key: str) -> bool:
        """True when ``key`` was read, set, or comes from the environment (defaults excluded)."""

        env_name = self._env_name(key)
        if env_name and os.getenv(env_name) is not None:
            return True
        return _lookup(self._values, key) is not _MISSING

    def get_model[M: BaseModel](self, key: str, model: type[M]) -> M:
        """Validate the value at ``key`` into ``model``."""

        raw = self.get(key)
        if raw is None:
            raise ConfigurationError(f"Configuration key {key!r} is not set")
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            raise ConfigurationError(f"Unable to decode configuration key {key!r}: {exc}") from exc

    # -- writes ---------------------------------------------------------------

    def set(self, key: str, value: Any) -> None:
        _assign(self._values, key, copy.deepcopy(value))

    def set_default(self, key: str, value: Any) -> None:
        _assign(self._defaults, key, copy.deepcopy(value))

    def as_dict(self) -> dict[str, Any]:
        """A deep copy of the explicit values (what :meth:`write` would persist)."""

        return copy.deepcopy(self._values)

    def write(self) -> None:
        """Persist explicit values back to :attr:`path` atomically."""

        if self.path is None:
            raise ConfigurationError("No config file path is associated with this configuration")

        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp.write_text(
                yaml.safe_dump(self._values, sort_keys=False, allow_unicode=True),
                encoding="utf-8",
            )
            os.replace(tmp, path)
        except Exception:
            with contextlib.suppress(FileNotFoundError):
                tmp.unlink()
            raise
