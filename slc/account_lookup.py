"""Ordered, regex-matched, self-extending account classifier.

The lookup list lives in configuration under ``ledger_account_lookups``. Each
entry's ``search`` is a regular expression tested with :func:`re.search`
against a search key (a CSV description, a payout destination token, ...).
The first matching entry wins, so order is significant.

When nothing matches, a new entry is appended whose ``search`` and
``description`` are the key itself and whose account is the caller's default.
Later records in the same run, and later runs once :meth:`persist` has been
called and the config written, reuse that learned entry.

Patterns are compiled once, when the list is loaded or an entry is appended.
A malformed user-supplied pattern is a :class:`~slc.errors.InvalidLookupPatternError`.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from pydantic import ValidationError

from .config import LOOKUPS_KEY, ConfigStore
from .errors import ConfigurationError, InvalidLookupPatternError
from .logging_setup import get_logger
from .models import AccountLookupEntry

_logger = get_logger("slc.account_lookup")


@dataclass(frozen=True, slots=True)
class _CompiledEntry:
    entry: AccountLookupEntry
    pattern: re.Pattern[str]


def _compile(search: str) -> re.Pattern[str]:
    try:
        return re.compile(search)
    except re.error as exc:
        raise InvalidLookupPatternError(search, str(exc)) from exc


class AccountLookupCache:
    """First-match-wins classifier over :class:`~slc.models.AccountLookupEntry` rows."""

    def __init__(
        self,
        entries: Iterable[AccountLookupEntry] = (),
        *,
        config: ConfigStore | None = None,
    ) -> None:
        self._config = config
        self._entries: list[_CompiledEntry] = [
            _CompiledEntry(entry=e, pattern=_compile(e.search)) for e in entries
        ]

    @classmethod
    def from_config(cls, config: ConfigStore) -> AccountLookupCache:
        """Load ``ledger_account_lookups`` from ``config`` (absent means empty)."""

        raw = config.get(LOOKUPS_KEY)
        if raw is None:
            raw = []
        if not isinstance(raw, list):
            raise ConfigurationError(
                f"Unable to decode configuration key {LOOKUPS_KEY!r}: expected a list, "
                f"got {type(raw).__name__}"
            )
        try:
            entries = [AccountLookupEntry.model_validate(item) for item in raw]
        except ValidationError as exc:
            raise ConfigurationError(
                f"Unable to decode configuration key {LOOKUPS_KEY!r}: {exc}"
            ) from exc
        _logger.debug("Decoded lookup list key %s to %d entries", LOOKUPS_KEY, len(entries))
        return cls(entries, config=config)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AccountLookupEntry]:
        return (c.entry for c in self._entries)

    @property
    def entries(self) -> list[AccountLookupEntry]:
        return [c.entry for c in self._entries]

    def find(self, search_key: str) -> AccountLookupEntry | None:
        for compiled in self._entries:
            if compiled.pattern.search(search_key):
                return compiled.entry
        return None

    def get_or_add(self, search_key: str, default_account_name: str) -> AccountLookupEntry:
        """Return the first entry matching ``search_key``, learning a new one if none does."""

        found = self.find(search_key)
        if found is not None:
            return found

        # A key that is not itself a valid pattern is stored escaped so the
        # persisted list still loads next run.
        try:
            pattern = re.compile(search_key)
            search = search_key
        except re.error:
            search = re.escape(search_key)
            pattern = re.compile(search)

        entry = AccountLookupEntry(
            search=search,
            account_name=default_account_name,
            description=search_key,
            discard=False,
        )
        _logger.debug("Updating lookup list %r with new entry %r", LOOKUPS_KEY, entry)
        self._entries.append(_CompiledEntry(entry=entry, pattern=pattern))
        return entry

    def to_config(self) -> list[dict[str, object]]:
        return [c.entry.to_config() for c in self._entries]

    def persist(self) -> None:
        """Write the (possibly grown) list back into the configuration it came from."""

        if self._config is None:
            raise ConfigurationError("This lookup list is not bound to a configuration store")
        self._config.set(LOOKUPS_KEY, self.to_config())
