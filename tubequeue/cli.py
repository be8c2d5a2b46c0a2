import json

import click

from .bot import TelegramPoller
from .config import ConfigError, load_settings
from .extract import extract_video_id
from .models import ALL_STATES
from .notifier import EchoNotifier, TelegramNotifier
from .repository import enqueue_job, list_jobs, counts, failed_list, failed_retry
from .store import JobStore, StoreError
from .utils import iso_from_epoch, setup_logging
from .worker import DrainScheduler, _stop, setup_signal_handlers, start_scheduler


def _fail(message):
    click.secho(f"Error: {message}", fg="red", err=True)
    raise SystemExit(1)


@click.group(help="tubequeue: durable YouTube download queue")
@click.option("--log-level", default="INFO", show_default=True, help="Python logging level")
@click.pass_context
def cli(ctx, log_level):
    setup_logging(log_level)
    try:
        ctx.obj = load_settings()
    except ConfigError as e:
        _fail(e)


def _store(ctx) -> JobStore:
    return JobStore(ctx.obj.store_path)


def _downstream_settings(ctx):
    settings = ctx.obj
    try:
        settings.require_downstream()
    except ConfigError as e:
        _fail(e)
    return settings


# ---------- Enqueue ----------
@cli.command("enqueue", help="Queue a YouTube link or 11-char video ID")
@click.argument("text")
@click.option("--origin", default=None, help="Requester reference passed back to the notifier")
@click.pass_context
def enqueue_cmd(ctx, text, origin):
    video_id = extract_video_id(text)
    if not video_id:
        _fail("Please send a valid YouTube video link or 11-char ID.")
    try:
        queued = enqueue_job(_store(ctx), job_id=video_id, origin=origin)
    except (ValueError, StoreError) as e:
        _fail(e)
    if queued:
        click.secho(f"Queued {video_id}", fg="green")
    else:
        click.secho(f"{video_id} is already queued", fg="yellow")


# ---------- Drain ----------
@cli.command("drain", help="Run a single drain cycle")
@click.pass_context
def drain_cmd(ctx):
    settings = _downstream_settings(ctx)
    scheduler = DrainScheduler.from_settings(settings, EchoNotifier())
    try:
        attempted = scheduler.run_cycle()
    except StoreError as e:
        _fail(e)
    click.echo(f"Attempted {attempted or 0} job(s).")


@cli.group("worker", help="Manage the drain scheduler")
def worker_group():
    pass


@worker_group.command("start")
@click.pass_context
def worker_start(ctx):
    settings = _downstream_settings(ctx)
    click.secho(f"Draining every {settings.poll_interval_ms}ms. Press Ctrl+C to stop…", fg="cyan")
    setup_signal_handlers()
    scheduler = DrainScheduler.from_settings(settings, EchoNotifier())
    scheduler.run_forever(settings.poll_interval_seconds)
    click.secho("Worker stopped.", fg="yellow")


@cli.command("bot", help="Run the Telegram bot together with the drain scheduler")
@click.pass_context
def bot_cmd(ctx):
    settings = _downstream_settings(ctx)
    try:
        settings.require_telegram()
    except ConfigError as e:
        _fail(e)

    setup_signal_handlers()
    notifier = TelegramNotifier(settings.telegram_token, timeout=settings.timeout_seconds)
    drain = start_scheduler(settings, notifier)
    poller = TelegramPoller(settings.telegram_token, _store(ctx), notifier)
    try:
        poller.run_forever(_stop)
    except StoreError as e:
        _stop.set()
        _fail(e)
    finally:
        _stop.set()
        drain.join()
    click.secho("Bot stopped.", fg="yellow")


# ---------- Jobs ----------
@cli.command("list")
@click.option("--status", type=click.Choice(list(ALL_STATES)), default=None)
@click.pass_context
def list_cmd(ctx, status):
    try:
        rows = list_jobs(_store(ctx), status=status)
    except StoreError as e:
        _fail(e)

    if not rows:
        click.echo("No jobs.")
        return

    for r in rows:
        click.echo(
            f"{r.id:>12} | {r.status:<8} | attempts={r.attempts} "
            f"| next={iso_from_epoch(r.next_attempt_at)} | origin={r.origin} | last_error={r.last_error}"
        )


@cli.command("status")
@click.pass_context
def status_cmd(ctx):
    try:
        click.echo(json.dumps(counts(_store(ctx)), indent=2))
    except StoreError as e:
        _fail(e)


# ---------- Failed ----------
@cli.group("failed", help="Jobs that ran out of attempts")
def failed_group():
    pass


@failed_group.command("list")
@click.pass_context
def failed_list_cmd(ctx):
    try:
        rows = failed_list(_store(ctx))
    except StoreError as e:
        _fail(e)

    if not rows:
        click.echo("No failed jobs.")
        return

    for r in rows:
        click.echo(f"{r.id} | attempts={r.attempts} | last_error={r.last_error}")


@failed_group.command("retry")
@click.argument("job_id")
@click.pass_context
def failed_retry_cmd(ctx, job_id):
    try:
        if failed_retry(_store(ctx), job_id):
            click.secho(f"Re-queued failed job {job_id}.", fg="green")
        else:
            _fail(f"Job {job_id} not found among failed jobs.")
    except (ValueError, StoreError) as e:
        _fail(e)


# ---------- Config ----------
@cli.group("config", help="Configuration")
def config_group():
    pass


@config_group.command("get")
@click.pass_context
def config_get(ctx):
    click.echo(json.dumps(ctx.obj.as_dict(), indent=2))


def main():
    cli()
