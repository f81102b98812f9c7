#!/usr/bin/env python3
"""
Tally audit CLI.

Recomputes a Livepeer poll's tally from chain state and compares it with
the subgraph's cached tally. Exit status reports the outcome:

    0  tallies match
    1  tally mismatch
    2  chain or subgraph lookup failed
    3  data-integrity fault
    4  configuration error
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tally_audit.chain.web3_reader import Web3ChainReader
from tally_audit.core.config import AuditConfig
from tally_audit.core.exceptions import (
    AuditError,
    ConfigurationError,
    DataIntegrityError,
    LookupFailure,
)
from tally_audit.core.logging_config import setup_logging
from tally_audit.core.lookups import LookupRunner
from tally_audit.core.models import AuditReport
from tally_audit.core.poll_window import resolve_poll_window
from tally_audit.core.reconciler import PollAuditor
from tally_audit.indexer.subgraph import SubgraphClient

logger = logging.getLogger(__name__)
console = Console()

EXIT_MATCH = 0
EXIT_MISMATCH = 1
EXIT_LOOKUP_FAILURE = 2
EXIT_DATA_INTEGRITY = 3
EXIT_CONFIGURATION = 4


def _exit_code_for(exc: AuditError) -> int:
    if isinstance(exc, ConfigurationError):
        return EXIT_CONFIGURATION
    if isinstance(exc, DataIntegrityError):
        return EXIT_DATA_INTEGRITY
    if isinstance(exc, LookupFailure):
        return EXIT_LOOKUP_FAILURE
    return EXIT_LOOKUP_FAILURE


def _cli_fail(ctx: click.Context, exc: AuditError) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("Audit aborted: %s", exc.message, extra={"details": exc.details})
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(exc.to_dict(), indent=2))
    else:
        label = "Data integrity fault" if isinstance(exc, DataIntegrityError) else "Error"
        console.print(f"[bold red]{label}:[/] {exc.message}")
    ctx.exit(_exit_code_for(exc))


def build_chain_reader(config: AuditConfig) -> Web3ChainReader:
    return Web3ChainReader(
        config.web3_provider,
        config.poll_address,
        rounds_manager_address=config.rounds_manager_address,
        bonding_manager_address=config.bonding_manager_address,
    )


def build_indexer(config: AuditConfig) -> SubgraphClient:
    return SubgraphClient(config.subgraph_url, timeout=config.lookup_timeout)


def _load_config(ctx: click.Context, **overrides: Any) -> AuditConfig:
    config = AuditConfig.from_env(
        log_level=ctx.obj.get("log_level"),
        log_file=ctx.obj.get("log_file"),
        **overrides,
    )
    setup_logging(level=config.log_level, log_file=config.log_file)
    return config


def render_report(report: AuditReport) -> None:
    table = Table(box=box.ROUNDED, header_style="cyan", title=f"Poll {report.poll_address}")
    table.add_column("")
    table.add_column("Yes", justify="right")
    table.add_column("No", justify="right")
    table.add_row("Subgraph", str(report.expected.yes), str(report.expected.no))
    table.add_row("Node", str(report.computed.yes), str(report.computed.no))
    console.print(table)

    window = report.window
    state = "active" if window.is_active else "closed"
    console.print(
        f"Poll {state}; stake read at block {window.evaluation_block} "
        f"(head {window.head_block}, end {window.end_block}), {report.voter_count} votes"
    )

    if report.matches:
        console.print("[bold green]Subgraph tally matches chain state.[/]")
        return

    lines = [discrepancy.describe() for discrepancy in report.discrepancies]
    console.print(Panel("\n".join(lines), title="Tally discrepancy", border_style="red"))


@click.group()
@click.option("--json-output", is_flag=True, help="Print results as JSON")
@click.option("--log-level", default=None, help="Log level (overrides TALLY_AUDIT_LOG_LEVEL)")
@click.option("--log-file", default=None, help="Write JSON logs to this file")
@click.pass_context
def cli(ctx: click.Context, json_output: bool, log_level: str | None, log_file: str | None) -> None:
    """Livepeer poll tally audit"""
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output
    ctx.obj["log_level"] = log_level
    ctx.obj["log_file"] = log_file


@cli.command()
@click.option("--poll", "poll_address", default=None, help="Poll contract address (POLL_ADDRESS)")
@click.option("--provider", "web3_provider", default=None, help="JSON-RPC endpoint (WEB3_PROVIDER)")
@click.option("--subgraph-url", default=None, help="Subgraph GraphQL endpoint (SUBGRAPH_URL)")
@click.option("--timeout", "lookup_timeout", type=float, default=None, help="Seconds per lookup")
@click.option("--concurrency", type=int, default=None, help="Maximum lookups in flight")
@click.pass_context
def run(
    ctx: click.Context,
    poll_address: str | None,
    web3_provider: str | None,
    subgraph_url: str | None,
    lookup_timeout: float | None,
    concurrency: int | None,
) -> None:
    """Recompute the poll tally and compare it with the subgraph."""
    try:
        config = _load_config(
            ctx,
            poll_address=poll_address,
            web3_provider=web3_provider,
            subgraph_url=subgraph_url,
            lookup_timeout=lookup_timeout,
            concurrency=concurrency,
        )
        auditor = PollAuditor(
            build_chain_reader(config),
            build_indexer(config),
            config.poll_address,
            runner=LookupRunner(timeout=config.lookup_timeout, concurrency=config.concurrency),
        )
        if ctx.obj["json_output"]:
            report = asyncio.run(auditor.run())
        else:
            with console.status("[bold cyan]Auditing poll tally..."):
                report = asyncio.run(auditor.run())
    except AuditError as exc:
        _cli_fail(ctx, exc)
        return

    if ctx.obj["json_output"]:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        render_report(report)
    ctx.exit(EXIT_MATCH if report.matches else EXIT_MISMATCH)


@cli.command()
@click.option("--poll", "poll_address", default=None, help="Poll contract address (POLL_ADDRESS)")
@click.option("--provider", "web3_provider", default=None, help="JSON-RPC endpoint (WEB3_PROVIDER)")
@click.pass_context
def window(ctx: click.Context, poll_address: str | None, web3_provider: str | None) -> None:
    """Show whether the poll is open and the block stake would be read at."""

    async def _resolve(reader, runner: LookupRunner):
        head = await runner.call("currentBlockHeight", reader.current_block_height)
        end_block = await runner.call("pollEndBlock", reader.poll_end_block)
        return resolve_poll_window(head, end_block)

    try:
        config = _load_config(ctx, poll_address=poll_address, web3_provider=web3_provider)
        runner = LookupRunner(timeout=config.lookup_timeout)
        state = asyncio.run(_resolve(build_chain_reader(config), runner))
    except AuditError as exc:
        _cli_fail(ctx, exc)
        return

    if ctx.obj["json_output"]:
        click.echo(json.dumps(state.to_dict(), indent=2))
        return

    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("Status", "active" if state.is_active else "closed")
    table.add_row("Head block", str(state.head_block))
    table.add_row("End block", str(state.end_block))
    table.add_row("Evaluation block", str(state.evaluation_block))
    console.print(table)


def main() -> int:
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
