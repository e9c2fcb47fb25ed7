"""clubcrawl CLI: run a crawl, inspect its state, export its output.

Usage:
    clubcrawl run                              # Crawl with the default settings
    clubcrawl run --config crawl.json -v       # Settings from a JSON file
    clubcrawl run --transport http --db clubs.db
    clubcrawl status                           # Progress and record counts
    clubcrawl export --format json --out clubs.json

Exit codes of ``clubcrawl run``:
    0    every discovered club is processed
    1    some clubs failed (re-run to retry them) or discovery failed
    2    aborted: the site redirected to its login page
    130  stopped by SIGINT/SIGTERM
"""

from __future__ import annotations

import asyncio
import csv
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from clubcrawl.common.exceptions import DiscoveryError, StoreCorruptedError
from clubcrawl.config import ConfigError, CrawlConfig
from clubcrawl.data_types import Record, RunReport, RunStatus
from clubcrawl.fetcher import HttpFetcher, PlaywrightFetcher
from clubcrawl.orchestrator import CrawlOrchestrator
from clubcrawl.storage import open_store

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from clubcrawl.fetcher import EntityFetcher

EXIT_FAILURES = 1
EXIT_ABORTED = 2
EXIT_STOPPED = 130


def _load_config(config_path: str | None, **overrides: Any) -> CrawlConfig:
    """Build the effective configuration: file values, then CLI flags."""
    try:
        config = (
            CrawlConfig.from_file(Path(config_path))
            if config_path
            else CrawlConfig()
        )
        return config.with_overrides(**overrides)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@asynccontextmanager
async def _open_fetcher(config: CrawlConfig) -> AsyncIterator[EntityFetcher]:
    if config.transport == "http":
        async with HttpFetcher(
            timeout=config.fetch_timeout,
            redirect_statuses=config.redirect_statuses,
            login_marker=config.login_marker,
            user_agent=config.user_agent,
        ) as fetcher:
            yield fetcher
    else:
        async with PlaywrightFetcher.open(
            num_pages=config.num_workers,
            headless=config.headless,
            user_agent=config.user_agent,
            timeout=config.fetch_timeout,
            redirect_statuses=config.redirect_statuses,
            login_marker=config.login_marker,
        ) as fetcher:
            yield fetcher


async def _crawl(config: CrawlConfig) -> RunReport:
    async with _open_fetcher(config) as fetcher:
        async with open_store(
            config.progress_path, config.output_path, config.db_path
        ) as store:
            orchestrator = CrawlOrchestrator(
                fetcher,
                store,
                config.listing_url,
                detail_url_template=config.detail_url_template,
                num_workers=config.num_workers,
            )
            return await orchestrator.run(setup_signal_handlers=True)


def _exit_code(report: RunReport) -> int:
    if report.status == RunStatus.ABORTED:
        return EXIT_ABORTED
    if report.status == RunStatus.STOPPED:
        return EXIT_STOPPED
    return 0 if report.fully_processed else EXIT_FAILURES


def _echo_report(report: RunReport) -> None:
    click.echo(f"Status:     {report.status.value}")
    click.echo(f"Discovered: {report.discovered}")
    click.echo(f"Persisted:  {report.persisted} ({report.records_written} records)")
    click.echo(f"Skipped:    {report.skipped}")
    click.echo(f"Failed:     {len(report.failures)}")
    click.echo(f"Remaining:  {report.remaining}")
    for failure in report.failures:
        click.echo(f"  {failure.link_id}: {failure.error}")
    if report.abort_error is not None:
        click.echo(f"Aborted: {report.abort_error}", err=True)
        click.echo(
            "The site is redirecting to its login page. Wait, or use a "
            "fresh session, then run again to resume.",
            err=True,
        )


def _store_options(func: Any) -> Any:
    """Options shared by every command that touches the crawl state."""
    options = [
        click.option(
            "--config",
            "config_path",
            type=click.Path(exists=True, dir_okay=False),
            default=None,
            help="JSON configuration file.",
        ),
        click.option(
            "--progress",
            "progress_path",
            type=click.Path(dir_okay=False, path_type=Path),
            default=None,
            help="Progress file (default: progress.json).",
        ),
        click.option(
            "--output",
            "output_path",
            type=click.Path(dir_okay=False, path_type=Path),
            default=None,
            help="JSON Lines output file (default: clubs.jsonl).",
        ),
        click.option(
            "--db",
            "db_path",
            type=click.Path(dir_okay=False, path_type=Path),
            default=None,
            help="Use a SQLite store at this path instead of files.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(package_name="clubcrawl")
def cli() -> None:
    """clubcrawl: resumable club directory crawler."""


@cli.command()
@_store_options
@click.option("--listing-url", default=None, help="Listing page URL.")
@click.option(
    "--transport",
    type=click.Choice(["playwright", "http"]),
    default=None,
    help="Fetch with a browser (default) or plain HTTP.",
)
@click.option(
    "--workers", type=int, default=None, help="Number of concurrent workers."
)
@click.option(
    "--timeout", type=float, default=None, help="Per-page timeout in seconds."
)
@click.option("--headful", is_flag=True, help="Show the browser window.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging.")
@click.pass_context
def run(
    ctx: click.Context,
    config_path: str | None,
    progress_path: Path | None,
    output_path: Path | None,
    db_path: Path | None,
    listing_url: str | None,
    transport: str | None,
    workers: int | None,
    timeout: float | None,
    headful: bool,
    verbose: bool,
) -> None:
    """Crawl the directory, resuming from previous progress.

    \b
    Examples:
        clubcrawl run
        clubcrawl run --transport http --workers 4
        clubcrawl run --config crawl.json --db clubs.db
    """
    log_level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = _load_config(
        config_path,
        listing_url=listing_url,
        progress_path=progress_path,
        output_path=output_path,
        db_path=db_path,
        transport=transport,
        num_workers=workers,
        fetch_timeout=timeout,
        headless=False if headful else None,
    )

    click.echo(f"Listing:   {config.listing_url}")
    click.echo(f"Transport: {config.transport}")
    if config.db_path:
        click.echo(f"Database:  {config.db_path}")
    else:
        click.echo(f"Progress:  {config.progress_path}")
        click.echo(f"Output:    {config.output_path}")

    try:
        report = asyncio.run(_crawl(config))
    except DiscoveryError as e:
        raise click.ClickException(f"Discovery failed: {e}") from e
    except StoreCorruptedError as e:
        raise click.ClickException(str(e)) from e

    _echo_report(report)
    ctx.exit(_exit_code(report))


async def _read_state(
    config: CrawlConfig,
) -> tuple[set[str], list[Record]]:
    async with open_store(
        config.progress_path, config.output_path, config.db_path, readonly=True
    ) as store:
        return await store.load_progress(), await store.read_records()


@cli.command()
@_store_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
)
def status(
    config_path: str | None,
    progress_path: Path | None,
    output_path: Path | None,
    db_path: Path | None,
    output_format: str,
) -> None:
    """Show how many clubs are processed and how many records exist."""
    config = _load_config(
        config_path,
        progress_path=progress_path,
        output_path=output_path,
        db_path=db_path,
    )
    try:
        processed, records = asyncio.run(_read_state(config))
    except StoreCorruptedError as e:
        raise click.ClickException(str(e)) from e

    with_records = {record.link_id for record in records}
    empty = sorted(processed - with_records)

    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "processed": len(processed),
                    "records": len(records),
                    "clubs_without_records": empty,
                },
                indent=2,
            )
        )
        return

    click.echo(f"Processed clubs: {len(processed)}")
    click.echo(f"Records:         {len(records)}")
    click.echo(f"Clubs without records: {len(empty)}")
    for link_id in empty:
        click.echo(f"  {link_id}")


@cli.command()
@_store_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "jsonl", "csv"]),
    default="json",
    show_default=True,
)
@click.option(
    "--out",
    "out_path",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="File to write.",
)
def export(
    config_path: str | None,
    progress_path: Path | None,
    output_path: Path | None,
    db_path: Path | None,
    output_format: str,
    out_path: Path,
) -> None:
    """Export every persisted record as one JSON array, JSON Lines or CSV."""
    config = _load_config(
        config_path,
        progress_path=progress_path,
        output_path=output_path,
        db_path=db_path,
    )
    try:
        _, records = asyncio.run(_read_state(config))
    except StoreCorruptedError as e:
        raise click.ClickException(str(e)) from e

    rows = [record.model_dump() for record in records]
    out_path.parent.mkdir(parents=True, exist_ok=True)
    if output_format == "json":
        out_path.write_text(
            json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8"
        )
    elif output_format == "jsonl":
        out_path.write_text(
            "".join(json.dumps(row, ensure_ascii=False) + "\n" for row in rows),
            encoding="utf-8",
        )
    else:
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=list(Record.model_fields))
            writer.writeheader()
            writer.writerows(rows)

    click.echo(f"Exported {len(records)} records to {out_path}")


def main() -> None:
    """Entry point for the ``clubcrawl`` console script."""
    cli()
