"""Pytest configuration for test isolation.

The engine reads and writes a YAML config file (``~/.slc.yaml`` by default)
and lets ``SLC_*`` environment variables override any key. Either can leak
state between tests: a developer's real config or a ``SLC_STRIPE_API_KEY`` in
the shell would change what the runners see.

To keep tests hermetic, an autouse fixture points ``HOME`` at the test's own
temporary directory, clears every ``SLC_*`` variable, and returns the
package logger to its unconfigured state afterwards (the CLI configures it).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from slc import logging_setup


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    home = tmp_path / "home"
    home.mkdir(parents=True, exist_ok=True)
    monkeypatch.setenv("HOME", os.fspath(home))
    for name in list(os.environ):
        if name.startswith("SLC_"):
            monkeypatch.delenv(name)
    # A .env in the developer's checkout must not feed the CLI tests
    monkeypatch.chdir(tmp_path)

    monkeypatch.setattr(logging_setup, "_CONFIGURED", False)
    yield
    pkg_logger = logging.getLogger("slc")
    for h in list(pkg_logger.handlers):
        pkg_logger.removeHandler(h)
    pkg_logger.setLevel(logging.NOTSET)
    pkg_logger.propagate = True
    logging.getLogger("stripe").setLevel(logging.NOTSET)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Where the config file under test lives (not created up front)."""

    return tmp_path / "slc.yaml"
