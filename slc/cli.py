# ruff: noqa: I001
"""CLI for the ``slc`` package.

Two subcommands share one root callback:

- ``slc stripe``: ledger entries for every Stripe payout since the last run;
- ``slc csv --mapping NAME --csv-input FILE``: ledger entries for a bank CSV
  export, mapped through the named profile.

The root callback loads ``.env`` from the current working directory with
``python-dotenv`` (existing environment wins), configures logging, and opens
the config file. Ledger text goes to stdout, or is appended to
``--output-file``. Any ``slc`` error is logged and the process exits with
status 1.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path
from collections.abc import Iterator
from typing import Annotated, TextIO

import typer
from dotenv import load_dotenv
from typer.models import OptionInfo

from .config import ConfigStore
from .errors import MissingConfigKeyError, SlcError
from .logging_setup import configure_logging, get_logger

STRIPE_API_KEY = "stripe_api_key"

_logger = get_logger("slc.cli")


@dataclass
class _State:
    config_path: Path | None
    output_file: Path | None


def _version() -> str | None:
    try:
        return metadata.version("slc")
    except metadata.PackageNotFoundError:
        return None


@contextmanager
def _output(state: _State) -> Iterator[TextIO]:
    if state.output_file is None:
        yield sys.stdout
        return
    with open(state.output_file, "a", encoding="utf-8") as fh:
        yield fh


def _load_config(state: _State) -> ConfigStore:
    return ConfigStore.load(state.config_path)


def _fail(exc: Exception) -> typer.Exit:
    _logger.error("%s", exc)
    return typer.Exit(1)


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Generate ledger-format double-entry transactions from Stripe payouts "
        "or bank CSV exports. Loads SLC_* settings from a local .env before running."
    ),
)


@app.command("stripe")
def stripe_cmd(ctx: typer.Context) -> None:
    """Write ledger entries for all Stripe payouts since the last run."""

    # Deferred import keeps the stripe client off the csv path
    from .stripe_ledger import StripeRunner
    from .stripe_source import StripePayoutSource

    state: _State = ctx.obj
    try:
        config = _load_config(state)
        api_key = config.get_str(STRIPE_API_KEY)
        if not api_key:
            raise MissingConfigKeyError(
                STRIPE_API_KEY, "Set it in the config file or via SLC_STRIPE_API_KEY."
            )
        source = StripePayoutSource(api_key, app_version=_version())
        with _output(state) as out:
            StripeRunner(source, out, config).generate_ledger_entries()
    except (SlcError, OSError) as exc:
        raise _fail(exc) from exc


# Module-level option objects to satisfy ruff B008 (no calls in parameter
# defaults).
MAPPING_OPTION: OptionInfo = typer.Option(
    ...,
    "--mapping",
    "-m",
    help="Name of the CSV mapping profile (config key csv.account.<name>).",
)
CSV_INPUT_OPTION: OptionInfo = typer.Option(
    ...,
    "--csv-input",
    "-i",
    help="Path to the CSV file to convert.",
    dir_okay=False,
    file_okay=True,
    exists=False,  # the handler reports a missing file itself
)


@app.command("csv")
def csv_cmd(
    ctx: typer.Context,
    mapping: Annotated[str, MAPPING_OPTION],
    csv_input: Annotated[Path, CSV_INPUT_OPTION],
) -> None:
    """Write ledger entries for every row of a CSV export."""

    from .csv_ledger import CsvRunner

    state: _State = ctx.obj
    try:
        config = _load_config(state)
        with open(csv_input, encoding="utf-8", newline="") as f, _output(state) as out:
            CsvRunner(out, config).generate_ledger_entries(f, mapping)
    except (SlcError, OSError) as exc:
        raise _fail(exc) from exc


@app.callback()
def _root(
    ctx: typer.Context,
    *,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Config file (default ~/.slc.yaml)."
    ),
    output_file: Path | None = typer.Option(
        None, "--output-file", "-o", help="Append ledger entries to this file instead of stdout."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Root command: load ``.env``, set up logging, remember global options."""

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(verbose=verbose)

    ctx.obj = _State(config_path=config, output_file=output_file)


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover - exercised via the console script
    main()
