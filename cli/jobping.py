#!/usr/bin/env python
"""JobPing Typer-based CLI.

Commands:
  - config show / validate   layered config with JSON Schema validation
  - match run / visa         run the matching engine for one user
  - stats cycle              jobs scraped in the last cycle, per source
  - db init                  create tables on the configured database
  - serve                    run the HTTP API with uvicorn
  - global --dry-run         no AI calls, no database writes
"""
from __future__ import annotations
import asyncio
import contextvars
import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.table import Table

from libs.automation.stats import collect_cycle_stats
from libs.config import Settings, load_config, load_settings, validate_config
from libs.errors import ConfigError
from libs.db import models
from libs.db.repository import get_job_by_hash, load_active_jobs, load_user_preferences
from libs.db.session import configure_engine, get_engine, get_session, make_engine
from libs.matching.engine import build_matching_engine
from libs.matching.models import MatchingOptions
from libs.matching.visa_confidence import calculate_visa_confidence
from libs.observability import configure_logging

APP = typer.Typer(add_completion=False, help="JobPing CLI")
console = Console()

config_app = typer.Typer(help="Config management")
match_app = typer.Typer(help="Matching operations")
stats_app = typer.Typer(help="Scrape cycle statistics")
db_app = typer.Typer(help="Database maintenance")

APP.add_typer(config_app, name="config")
APP.add_typer(match_app, name="match")
APP.add_typer(stats_app, name="stats")
APP.add_typer(db_app, name="db")

SECRET_KEYS = {"api_key", "access_token", "cron_secret", "dsn"}


class Context:
    def __init__(self):
        self.config_path: Optional[Path] = None
        self.dry_run: bool = False
        self._settings: Optional[Settings] = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            try:
                self._settings = load_settings(self.config_path)
            except ConfigError as e:
                console.print(f"[red]{e}[/red]")
                raise typer.Exit(code=1)
        return self._settings


pass_context = contextvars.ContextVar("jobping_ctx")


def _ctx() -> Context:
    try:
        return pass_context.get()
    except LookupError:
        c = Context()
        pass_context.set(c)
        return c


@APP.callback()
def main(
    config: Optional[Path] = typer.Option(None, '--config', help='Config file path'),
    db_url: Optional[str] = typer.Option(None, '--db-url', help='Database URL (overrides config)'),
    dry_run: bool = typer.Option(False, '--dry-run', help='No AI calls and no database writes'),
):
    c = Context()
    c.config_path = config
    c.dry_run = dry_run
    pass_context.set(c)
    if db_url:
        configure_engine(make_engine(db_url))


def print_config(conf: Dict[str, Any]):
    table = Table(title="Effective Config")
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="magenta")

    def _walk(prefix: str, obj: Any):
        if isinstance(obj, dict):
            for k, v in obj.items():
                _walk(f"{prefix}.{k}" if prefix else k, v)
            return
        key = prefix.rsplit(".", 1)[-1]
        shown = "****" if key in SECRET_KEYS and obj else obj
        table.add_row(prefix, json.dumps(shown) if isinstance(shown, (list, dict)) else str(shown))

    _walk('', conf)
    console.print(table)


# --------------- Config Commands ---------------
@config_app.command('show')
def config_show():
    print_config(load_config(_ctx().config_path))


@config_app.command('validate')
def config_validate():
    try:
        validate_config(load_config(_ctx().config_path))
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    console.print("[green]Config OK[/green]")


# --------------- Match Commands ---------------
@match_app.command('run')
def match_run(
    email: str = typer.Argument(..., help="User email"),
    no_ai: bool = typer.Option(False, '--no-ai', help="Rule-based fallback only"),
    limit: int = typer.Option(500, help="Maximum jobs loaded from the database"),
    json_out: bool = typer.Option(False, '--json', help="Output as JSON"),
):
    """Run the matching engine for one user against active jobs"""
    ctx = _ctx()
    settings = ctx.settings
    with get_session() as session:
        user = load_user_preferences(session, email)
        if user is None:
            console.print(f"[red]User not found: {email}[/red]")
            raise typer.Exit(1)
        options = MatchingOptions.for_tier(user.subscription_tier)
        since = datetime.utcnow() - timedelta(days=options.job_freshness_days)
        jobs = load_active_jobs(session, limit=limit, since=since)

    if no_ai or ctx.dry_run:
        options.use_ai = False
    engine = build_matching_engine(settings)
    result = asyncio.run(engine.find_matches_for_user(user, jobs, options))

    if json_out:
        console.print_json(json.dumps(result.to_dict(), default=str))
        return

    if not result.matches:
        console.print(f"[yellow]No matches for {email} ({result.total_jobs_processed} jobs checked)[/yellow]")
        return

    table = Table(title=f"{len(result.matches)} matches for {email} ({result.method.value})")
    table.add_column("Score", style="green")
    table.add_column("Conf", style="cyan")
    table.add_column("Title", style="white")
    table.add_column("Company", style="yellow")
    table.add_column("City", style="magenta")
    table.add_column("Reason", style="dim")
    for m in result.matches:
        table.add_row(
            f"{m.match_score:.0f}",
            f"{m.confidence_score:.2f}",
            m.job.title[:50],
            m.job.company[:30],
            m.job.city or m.job.location or "",
            m.match_reason[:80],
        )
    console.print(table)
    if result.ai_error:
        console.print(f"[yellow]AI stage failed ({result.ai_error}); fallback matches shown[/yellow]")
    console.print(f"[dim]Prefilter level: {result.prefilter_results.match_level.value}, "
                  f"{result.processing_time:.2f}s[/dim]")


@match_app.command('visa')
def match_visa(job_hash: str, email: str):
    """Placeholder visa-sponsorship confidence for one job and user"""
    with get_session() as session:
        user = load_user_preferences(session, email)
        job = get_job_by_hash(session, job_hash)
    if user is None or job is None:
        console.print("[red]User or job not found[/red]")
        raise typer.Exit(1)
    visa = calculate_visa_confidence(job, user)
    console.print(f"{job.title} @ {job.company}: [bold]{visa.label}[/bold] ({visa.score:.0f}/100)")


# --------------- Stats Commands ---------------
@stats_app.command('cycle')
def stats_cycle(
    hours: int = typer.Option(24, '--hours', help="Cycle length in hours"),
    json_out: bool = typer.Option(False, '--json', help="Output as JSON"),
):
    since = datetime.utcnow() - timedelta(hours=hours)
    with get_session() as session:
        stats = collect_cycle_stats(session, since)
    if json_out:
        console.print_json(json.dumps(stats))
        return
    table = Table(title=f"Jobs in the last {hours}h: {stats['total']}")
    table.add_column("Source", style="cyan")
    table.add_column("Jobs", style="green")
    for source, count in sorted(stats["per_source"].items(), key=lambda kv: -kv[1]):
        table.add_row(source, str(count))
    console.print(table)


# --------------- DB Commands ---------------
@db_app.command('init')
def db_init():
    """Create all tables (use alembic for upgrades)"""
    tables = sorted(models.Base.metadata.tables)
    if _ctx().dry_run:
        console.print(f"[yellow]Dry run: would create {', '.join(tables)}[/yellow]")
        return
    models.Base.metadata.create_all(get_engine())
    console.print(f"[green]Created tables: {', '.join(tables)}[/green]")


@APP.command('serve')
def serve(host: str = typer.Option("0.0.0.0", help="Bind address"),
          port: int = typer.Option(3000, envvar="PORT", help="Port")):
    """Run the HTTP API"""
    import uvicorn
    from apps.api.main import create_app

    settings = _ctx().settings
    configure_logging(settings.logging.level)
    uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == '__main__':
    APP()
