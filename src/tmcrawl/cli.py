from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

import typer

from .core.ids import parse_date
from .core.keys import T_COVERAGE, T_MARK, T_NAVIGATION
from .sources.my import compose_case_number_request, compose_requests
from .workflows.crawl_config import CrawlSettings
from .workflows.doctor import build_doctor_report, format_doctor_report
from .workflows.record_sink import RecordSink
from .workflows.request_keys import derive_key

app = typer.Typer(add_help_option=False, no_args_is_help=False)

TABLES = (T_NAVIGATION, T_MARK, T_COVERAGE)


def _minimal_help() -> str:
    return """tmcrawl (trademark registry crawl tooling)

Usage:
  tmcrawl doctor
  tmcrawl key <OFFICE> <FILTER_KEY> <STRATEGY> <DATE> <PAGE>
  tmcrawl compose-my --start <DATE> [--end <DATE>] [--case-number <N> ...]
  tmcrawl replay <PATH> --table <navigations|marks|coverages>

Common options:
  --log-level <LEVEL>  Logging level for diagnostics on stderr (default: WARNING).
  --find <query>       Search commands, flags, env vars.
  --doctor             Run environment diagnostics and exit.
"""


_FIND_INDEX = [
    ("command", "doctor", "Print sink, browser and proxy diagnostics."),
    ("command", "key", "Print the request key for one unit of work."),
    ("command", "compose-my", "Print MyIPO search requests as JSON lines."),
    ("command", "replay", "Re-insert local fallback records into ClickHouse."),
    ("env", "CLICKHOUSE_URL", "ClickHouse HTTP endpoint; inserts disabled when unset."),
    ("env", "CLICKHOUSE_DB", "ClickHouse database (default tmc_development)."),
    ("env", "S3_ENDPOINT", "S3-compatible endpoint for page artifacts."),
    ("env", "S3_BUCKET", "Bucket for page artifacts."),
    ("env", "CORSEARCH_ENV", "Environment prefix for artifact keys (default development)."),
    ("env", "NAVIGATION_WRITE_LOCAL_PATH", "Local fallback directory for navigation rows."),
    ("env", "CRAWL_CONCURRENCY_MAX", "Concurrent pages (default 5)."),
    ("env", "CRAWL_REQUEST_ATTEMPTS_MAX", "Attempts per request (default 5)."),
    ("env", "PROXY_URL_TEMPLATE", "Proxy URL with {{HOST}} {{PORT}} {{USERNAME}} {{PASSWORD}} {{SESSION}}."),
]


def _run_find(query: str) -> str:
    needle = (query or "").strip().lower()
    if not needle:
        return ""
    lines = []
    for category, name, desc in _FIND_INDEX:
        haystack = f"{category} {name} {desc}".lower()
        if needle in haystack:
            lines.append(f"{category} {name} - {desc}")
    return "\n".join(lines)


def _parse_day(value: str) -> date:
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise typer.BadParameter(f"Not a date: {value!r} (use YYYY-MM-DD or dd/MM/yyyy)")
    return parsed


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars."),
    doctor: bool = typer.Option(False, "--doctor", is_eager=True, help="Run environment diagnostics and exit."),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."),
) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=0)
    if doctor:
        report = build_doctor_report()
        typer.echo(format_doctor_report(report))
        raise typer.Exit(code=0 if report.get("ok", True) else 2)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)


@app.command("doctor", add_help_option=True)
def doctor_cmd(
    no_ping: bool = typer.Option(False, "--no-ping", help="Skip the ClickHouse reachability check."),
    json_out: bool = typer.Option(False, "--json", help="Print the report as JSON."),
) -> None:
    """Print sink, browser and proxy diagnostics."""
    report = build_doctor_report(ping=not no_ping)
    if json_out:
        sys.stdout.write(json.dumps(report, ensure_ascii=False) + "\n")
    else:
        typer.echo(format_doctor_report(report))
    raise typer.Exit(code=0 if report.get("ok", True) else 2)


@app.command("key", add_help_option=True)
def key_cmd(
    office: str = typer.Argument(..., help="Office code, e.g. MY."),
    filter_key: str = typer.Argument(..., help="Filter key, e.g. ApplicationDate."),
    strategy: str = typer.Argument(..., help="Filter strategy, e.g. Day."),
    day: str = typer.Argument(..., help="Reference date (YYYY-MM-DD)."),
    page: int = typer.Argument(..., min=1, help="Result page number."),
) -> None:
    """Print the request key for one unit of work."""
    typer.echo(derive_key(office, filter_key, strategy, _parse_day(day), page))


@app.command("compose-my", add_help_option=True)
def compose_my_cmd(
    start: Optional[str] = typer.Option(None, "--start", help="First day to search (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, "--end", help="Last day to search; defaults to --start."),
    case_numbers: List[str] = typer.Option([], "--case-number", help="Case number to look up (repeatable)."),
) -> None:
    """Print MyIPO search requests as JSON lines."""
    if start is None and not case_numbers:
        typer.echo("error: pass --start and/or --case-number", err=True)
        raise typer.Exit(code=2)
    requests = []
    if start is not None:
        first = _parse_day(start)
        last = _parse_day(end) if end else first
        if last < first:
            typer.echo("error: --end is before --start", err=True)
            raise typer.Exit(code=2)
        requests.extend(compose_requests(first, last))
    requests.extend(compose_case_number_request(number) for number in case_numbers)
    for request in requests:
        payload = {
            "url": request.url,
            "unique_key": request.unique_key,
            "user_data": {k: v for k, v in dict(request.user_data).items() if not k.startswith("__")},
        }
        sys.stdout.write(json.dumps(payload, ensure_ascii=False, default=str) + "\n")


@app.command("replay", add_help_option=True)
def replay_cmd(
    path: Path = typer.Argument(..., exists=True, help="Local fallback file or directory."),
    table: str = typer.Option(..., "--table", help="Target table: navigations, marks or coverages."),
) -> None:
    """Re-insert local fallback records into ClickHouse."""
    if table not in TABLES:
        raise typer.BadParameter(f"Unknown table {table!r}; expected one of {', '.join(TABLES)}")
    settings = CrawlSettings.from_env()
    if not settings.clickhouse_enabled:
        typer.echo("error: CLICKHOUSE_URL is not set", err=True)
        raise typer.Exit(code=2)
    summary = asyncio.run(RecordSink(settings).replay(path, table))
    sys.stdout.write(json.dumps(summary) + "\n")
    raise typer.Exit(code=0 if summary["failed"] == 0 and summary["invalid"] == 0 else 1)
