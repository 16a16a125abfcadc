"""Typer CLI entrypoint for release-watcher."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config.loader import StoreLocator, StoreRepository
from .config.models import AppSettings, SourceInput, SourceType, SourceView
from .errors import WatcherError
from .logging_conf import configure_logging, tail_log
from .poller import ChangeEvent, WatcherHooks
from .scheduler import APSchedulerAdapter
from .service import ReleaseWatcher

app = typer.Typer(
    help="Track a single value on web pages and JSON APIs and report when it changes.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
source_app = typer.Typer(name="source", help="Manage tracked sources.", no_args_is_help=True)
settings_app = typer.Typer(name="settings", help="Show or change auto-poll settings.", no_args_is_help=True)
unseen_app = typer.Typer(name="unseen", help="Unseen update counter.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Inspect log files.", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    locator: StoreLocator
    hooks: WatcherHooks
    scheduler: APSchedulerAdapter
    watcher: ReleaseWatcher | None = None
    attended: bool = True
    changes: list[ChangeEvent] = field(default_factory=list)


def _print_change(event: ChangeEvent) -> None:
    console.print(f"{event.title}: {event.body}", style="bold green")


def build_state(verbose: bool) -> AppState:
    locator = StoreLocator()
    locator.ensure_directories()
    configure_logging(verbose=verbose, log_dir=locator.logs_dir)
    hooks = WatcherHooks()
    state = AppState(locator=locator, hooks=hooks, scheduler=APSchedulerAdapter())
    hooks.on_change.append(state.changes.append)
    hooks.on_change.append(_print_change)
    state.watcher = ReleaseWatcher(
        repository=StoreRepository(locator),
        hooks=hooks,
        is_attended=lambda: state.attended,
    )
    return state


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _fail(exc: Exception) -> None:
    console.print(f"Error: {exc}", style="red")
    raise typer.Exit(code=1)


def _resolve_source_id(state: AppState, text: str) -> str:
    """Accept a full id or an unambiguous id prefix."""

    ids = [source.id for source in state.watcher.list_sources()]
    if text in ids:
        return text
    matches = [source_id for source_id in ids if source_id.startswith(text)]
    return matches[0] if len(matches) == 1 else text


def _format_time(value) -> str:
    return value.astimezone().strftime("%Y-%m-%d %H:%M") if value else "-"


def _render_sources_table(sources: Sequence[SourceView]) -> Table:
    table = Table(title=f"Sources · {len(sources)}", box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Status")
    table.add_column("Last value", style="green", overflow="fold")
    table.add_column("Polled", style="dim")
    table.add_column("Changed", style="yellow")
    for source in sources:
        status = source.last_status.value
        if source.last_error:
            status = f"{status}: {source.last_error}"
        changed = _format_time(source.last_change_at)
        if source.is_new:
            changed = f"{changed} (new)"
        table.add_row(
            source.id[:8],
            source.name,
            source.type.value,
            status,
            source.last_value or "-",
            _format_time(source.last_polled_at),
            changed,
        )
    return table


def _render_settings(settings: AppSettings) -> Table:
    table = Table(title="Settings", box=box.SIMPLE_HEAD)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("schema_version", str(settings.schema_version))
    table.add_row("auto_poll_enabled", str(settings.auto_poll_enabled).lower())
    table.add_row("auto_poll_minutes", str(settings.auto_poll_minutes))
    table.add_row("unseen_update_count", str(settings.unseen_update_count))
    return table


app.add_typer(source_app, name="source")
app.add_typer(settings_app, name="settings")
app.add_typer(unseen_app, name="unseen")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@source_app.command("list", help="List tracked sources and their last values.")
def source_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(_render_sources_table(state.watcher.list_sources()))


@source_app.command("add", help="Create a new source.")
def source_add(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", help="Display name."),
    url: str = typer.Option(..., "--url", help="URL to fetch."),
    source_type: SourceType = typer.Option(SourceType.HTML, "--type", help="json or html."),
    output_selector: str = typer.Option("", "--output-selector", help="JSON path, e.g. items[].version."),
    selector: str = typer.Option("", "--selector", help="CSS selector (html), defaults to body."),
    attribute: str = typer.Option("", "--attribute", help="Attribute to read instead of text (html)."),
    regex: str = typer.Option("", "--regex", help="Refinement regex, bare or /pattern/flags."),
    headers: str = typer.Option("", "--headers", help="JSON object or 'Key: Value' lines."),
    notes: str = typer.Option("", "--notes", help="Free-text notes."),
) -> None:
    state = _get_state(ctx)
    payload = SourceInput(
        name=name,
        url=url,
        type=source_type.value,
        output_selector=output_selector,
        selector=selector,
        attribute=attribute,
        regex=regex,
        request_headers=headers,
        notes=notes,
    )
    try:
        source = state.watcher.save_source(payload)
    except WatcherError as exc:
        _fail(exc)
    console.print(f"Created {source.name} ({source.id})", style="green")


@source_app.command("edit", help="Edit an existing source; extraction changes reset its run state.")
def source_edit(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source id or unique id prefix."),
    name: Optional[str] = typer.Option(None, "--name"),
    url: Optional[str] = typer.Option(None, "--url"),
    source_type: Optional[SourceType] = typer.Option(None, "--type"),
    output_selector: Optional[str] = typer.Option(None, "--output-selector"),
    selector: Optional[str] = typer.Option(None, "--selector"),
    attribute: Optional[str] = typer.Option(None, "--attribute"),
    regex: Optional[str] = typer.Option(None, "--regex"),
    headers: Optional[str] = typer.Option(None, "--headers"),
    notes: Optional[str] = typer.Option(None, "--notes"),
) -> None:
    state = _get_state(ctx)
    changes = {
        "name": name,
        "url": url,
        "type": source_type.value if source_type else None,
        "output_selector": output_selector,
        "selector": selector,
        "attribute": attribute,
        "regex": regex,
        "request_headers": headers,
        "notes": notes,
    }
    payload = SourceInput(
        id=_resolve_source_id(state, source_id),
        **{key: value for key, value in changes.items() if value is not None},
    )
    try:
        existing = state.watcher.get_source(payload.id)
        source = state.watcher.save_source(payload)
    except WatcherError as exc:
        _fail(exc)
    console.print(f"Updated {source.name}", style="green")
    if existing.last_fingerprint and source.last_fingerprint is None:
        console.print("Extraction settings changed; the baseline will be re-established.", style="yellow")


@source_app.command("remove", help="Delete a source.")
def source_remove(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source id or unique id prefix."),
) -> None:
    state = _get_state(ctx)
    try:
        state.watcher.delete_source(_resolve_source_id(state, source_id))
    except WatcherError as exc:
        _fail(exc)
    console.print("Source removed.", style="green")


@source_app.command("poll", help="Poll one source now.")
def source_poll(
    ctx: typer.Context,
    source_id: str = typer.Argument(..., help="Source id or unique id prefix."),
) -> None:
    state = _get_state(ctx)
    try:
        source = state.watcher.poll_source(_resolve_source_id(state, source_id))
    except WatcherError as exc:
        _fail(exc)
    console.print(_render_sources_table([source]))
    if source.last_error:
        raise typer.Exit(code=1)


@source_app.command("poll-all", help="Poll every source sequentially.")
def source_poll_all(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    sources = state.watcher.poll_all()
    console.print(_render_sources_table(sources))
    failed = [source for source in sources if source.last_error]
    console.print(
        f"{len(sources)} polled, {len(state.changes)} changed, {len(failed)} failed",
        style="red" if failed else "green",
    )


@settings_app.command("show", help="Show current settings.")
def settings_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(_render_settings(state.watcher.get_settings()))


@settings_app.command("set", help="Change auto-poll settings.")
def settings_set(
    ctx: typer.Context,
    auto_poll: Optional[bool] = typer.Option(None, "--auto-poll/--no-auto-poll", help="Toggle auto-poll."),
    minutes: Optional[int] = typer.Option(None, "--minutes", help="Auto-poll interval (5-1440)."),
) -> None:
    state = _get_state(ctx)
    try:
        settings = state.watcher.update_settings(
            {"auto_poll_enabled": auto_poll, "auto_poll_minutes": minutes}
        )
    except WatcherError as exc:
        _fail(exc)
    console.print(_render_settings(settings))


@unseen_app.command("clear", help="Reset the unseen update counter.")
def unseen_clear(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    cleared = state.watcher.clear_unseen()
    console.print(f"Cleared {cleared} unseen update(s).", style="green")


@app.command("watch", help="Run auto-poll in the foreground until interrupted.")
def watch(
    ctx: typer.Context,
    poll_now: bool = typer.Option(True, "--poll-now/--no-poll-now", help="Poll once before waiting."),
) -> None:
    state = _get_state(ctx)
    state.attended = False
    watcher = state.watcher
    scheduler = state.scheduler
    scheduler.bind(watcher.poll_all)
    state.hooks.on_settings_changed.append(scheduler.apply_settings)

    settings = watcher.get_settings()
    if not settings.auto_poll_enabled:
        console.print("Auto-poll is disabled; enable it with `settings set --auto-poll`.", style="yellow")
        raise typer.Exit(code=1)

    if poll_now:
        watcher.poll_all()
    scheduler.apply_settings(settings)
    scheduler.start()
    console.print(f"Watching every {settings.auto_poll_minutes} minute(s). Ctrl+C to stop.", style="cyan")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping…", style="dim")
    finally:
        scheduler.shutdown()
        watcher.close()


@log_app.command("show", help="Show the tail of the watcher log.")
def log_show(
    ctx: typer.Context,
    tail: int = typer.Option(100, "--tail", help="Number of lines."),
    errors: bool = typer.Option(False, "--errors", help="Show the error log instead."),
) -> None:
    state = _get_state(ctx)
    path = state.locator.logs_dir / ("error.log" if errors else "watcher.log")
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print("".join(lines))


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
