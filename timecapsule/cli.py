import json

import click
from flask import current_app
from flask.cli import with_appcontext

from timecapsule.models.settings import PolicySettings
from timecapsule.services import clock, rate_limiter, settings_store


@click.group()
def capsules():
    """Capsule delivery ops."""


@capsules.command("sweep")
@click.option("--batch-size", type=int, default=None, help="Override SWEEP_BATCH_SIZE")
@with_appcontext
def capsules_sweep(batch_size):
    from timecapsule.services.sweeper import run_sweep

    report = run_sweep(batch_size=batch_size)
    click.echo(json.dumps(report.to_dict()))


@capsules.command("prune-counters")
@click.option("--days", type=int, default=None, help="Keep counters touched within N days")
@with_appcontext
def capsules_prune_counters(days):
    days = days if days is not None else int(current_app.config.get("RATE_LIMIT_RETENTION_DAYS", 7))
    if days < 1:
        raise click.ClickException("--days must be >= 1")
    daily, bucket = rate_limiter.prune(clock.now() - days * 24 * 3600)
    click.echo(f"Pruned rate counters: daily={daily} bucket={bucket}")


@click.group()
def settings():
    """Intake policy settings."""


@settings.command("show")
@with_appcontext
def settings_show():
    click.echo(json.dumps(settings_store.read().to_dict(), indent=2))


@settings.command("set")
@click.option("--ip-daily-limit", type=click.IntRange(min=0), default=None)
@click.option("--ip-10min-limit", type=click.IntRange(min=0), default=None)
@click.option("--min-lead-seconds", type=click.IntRange(min=0), default=None)
@click.option("--daily-create-limit", type=click.IntRange(min=0), default=None)
@with_appcontext
def settings_set(ip_daily_limit, ip_10min_limit, min_lead_seconds, daily_create_limit):
    current = settings_store.read()
    updated = PolicySettings(
        ip_daily_limit=current.ip_daily_limit if ip_daily_limit is None else ip_daily_limit,
        ip_10min_limit=current.ip_10min_limit if ip_10min_limit is None else ip_10min_limit,
        min_lead_seconds=current.min_lead_seconds if min_lead_seconds is None else min_lead_seconds,
        daily_create_limit=current.daily_create_limit if daily_create_limit is None else daily_create_limit,
    )
    settings_store.update(updated)
    click.echo(json.dumps(updated.to_dict(), indent=2))


def register_cli(app):
    app.cli.add_command(capsules)
    app.cli.add_command(settings)
