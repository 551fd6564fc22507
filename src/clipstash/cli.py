"""Command line interface for clipstash."""

from __future__ import annotations

import difflib
import signal
from pathlib import Path
from typing import Any

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from clipstash.capture import ClipboardItem, ContentCategory, format_bytes
from clipstash.clipboard import ClipboardError
from clipstash.config import ClipstashConfig, ConfigError, ConfigManager, resolve_with_precedence
from clipstash.history import ItemNotFoundError
from clipstash.logs import configure_logging
from clipstash.session import ClipboardSession
from clipstash.watch import TickOutcome

console = Console()

LOG_FILENAME = "clipstash.log"
_CATEGORY_CHOICE = click.Choice([category.value for category in ContentCategory])


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output.
        click.ClickException: For non-JSON flows.
    """
    if json_output:
        console.print_json(data={"error": {"code": code, "message": message}})
        raise SystemExit(1)
    raise click.ClickException(message) from original


def _emit_message(message: Any, *, quiet: bool, error: bool = False) -> None:
    if quiet and not error:
        return
    console.print(message)


def _resolve_quiet(ctx: click.Context, quiet: bool, config: ClipstashConfig) -> bool:
    if ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE:
        return quiet
    return config.cli.quiet_default


def _load_config(json_output: bool) -> ClipstashConfig:
    """Load configuration and initialise logging for a command."""
    try:
        manager = ConfigManager()
        manager.ensure_exists()
        config = manager.load()
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        raise  # pragma: no cover - _handle_cli_error always raises

    log_path = Path(config.storage.directory).expanduser() / "logs" / LOG_FILENAME
    configure_logging(config.logging, log_path)
    return config


def _find_item(session: ClipboardSession, reference: str, *, json_output: bool) -> ClipboardItem:
    try:
        return session.find(reference)
    except ItemNotFoundError as exc:
        _handle_cli_error(str(exc), code="not_found", json_output=json_output, original=exc)
        raise  # pragma: no cover


def _item_payload(item: ClipboardItem) -> dict[str, Any]:
    payload = item.model_dump(mode="json", exclude={"thumbnail"})
    payload["has_thumbnail"] = item.has_thumbnail
    payload["label"] = item.category.label
    return payload


def _single_line(text: str, width: int = 60) -> str:
    flattened = " ".join(text.split())
    if len(flattened) > width:
        return flattened[: width - 1] + "…"
    return flattened


def _format_capture(item: ClipboardItem) -> str:
    return (
        f"[green]Captured[/green] {item.category.label} "
        f"[dim]{str(item.id)[:8]}[/dim] {escape(_single_line(item.preview_text))} "
        f"[dim]({item.formatted_size})[/dim]"
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="clipstash")
def cli() -> None:
    """clipstash keeps a searchable history of everything you copy."""


@cli.command()
@click.option("--interval", type=float, help="Override the poll interval in seconds.")
@click.option("--paused", is_flag=True, help="Start with capturing paused.")
@click.option("--once", is_flag=True, help="Capture the current clipboard contents and exit.")
@click.option("--json", "json_output", is_flag=True, help="Emit captures as JSON.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def watch(
    ctx: click.Context,
    interval: float | None,
    paused: bool,
    once: bool,
    json_output: bool,
    quiet: bool,
) -> None:
    """Monitor the clipboard and record every change.

    Send SIGUSR1 to a running watcher to toggle pausing.

    Args:
        ctx: Click context for parameter source inspection.
        interval: Optional poll interval override.
        paused: Whether capturing starts paused.
        once: When True, capture the current contents once and exit.
        json_output: When True, emit JSON payloads instead of text.
        quiet: When True, suppress non-error output.

    Raises:
        click.ClickException: If options are invalid or the clipboard is unavailable.
    """
    if interval is not None and interval <= 0:
        raise click.ClickException("--interval must be greater than zero.")

    config = _load_config(json_output)
    quiet_enabled = _resolve_quiet(ctx, quiet, config)

    def _report(item: ClipboardItem) -> None:
        if json_output:
            console.print_json(data={"captured": _item_payload(item)})
        else:
            _emit_message(_format_capture(item), quiet=quiet_enabled)

    session = ClipboardSession(
        config, maintenance=True, paused=paused, interval=interval, on_capture=_report
    )
    with session:
        try:
            detector = session.detector
        except ClipboardError as exc:
            _handle_cli_error(str(exc), code="clipboard_error", json_output=json_output, original=exc)
            return

        if once:
            outcome = detector.tick(force=True)
            if outcome is TickOutcome.CAPTURED:
                return
            if json_output:
                console.print_json(data={"captured": None, "outcome": outcome.value})
            else:
                _emit_message(
                    f"[yellow]Nothing captured ({outcome.value}).[/yellow]", quiet=quiet_enabled
                )
            return

        if hasattr(signal, "SIGUSR1"):

            def _toggle(_signum: int, _frame: object) -> None:
                state = session.toggle_pause()
                _emit_message(
                    f"[cyan]Capturing {'paused' if state else 'resumed'}.[/cyan]", quiet=quiet_enabled
                )

            signal.signal(signal.SIGUSR1, _toggle)

        if not json_output:
            state = " (paused)" if paused else ""
            _emit_message(
                f"[cyan]Watching the {session.clipboard.name} clipboard{state}. Press Ctrl+C to stop.[/cyan]",
                quiet=quiet_enabled,
            )
        try:
            detector.run()
        except KeyboardInterrupt:
            detector.stop()
            if not json_output:
                _emit_message("[yellow]Watch stopped by user request.[/yellow]", quiet=quiet_enabled)


@cli.command("list")
@click.option("--category", type=_CATEGORY_CHOICE, help="Only show items of this category.")
@click.option("--search", "query", type=str, help="Case-insensitive preview substring.")
@click.option("--limit", type=click.IntRange(min=1), help="Maximum number of rows.")
@click.option("--json", "json_output", is_flag=True, help="Emit items as JSON.")
def list_items(
    category: str | None,
    query: str | None,
    limit: int | None,
    json_output: bool,
) -> None:
    """List history items, most recent first.

    Args:
        category: Optional category tag filter.
        query: Optional preview substring filter.
        limit: Optional maximum number of rows.
        json_output: When True, emit JSON instead of a table.
    """
    config = _load_config(json_output)
    with ClipboardSession(config) as session:
        items = session.list_items(
            category=ContentCategory(category) if category else None,
            query=query,
        )
    shown = items[: limit or config.cli.list_limit]

    if json_output:
        console.print_json(
            data={"items": [_item_payload(item) for item in shown], "total": len(items)}
        )
        return

    if not items:
        console.print("[yellow]No history items.[/yellow]")
        return

    table = Table(title="Clipboard history", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Category")
    table.add_column("Preview", overflow="fold")
    table.add_column("Size", justify="right")
    table.add_column("Captured", no_wrap=True)
    for position, item in enumerate(shown, start=1):
        table.add_row(
            str(position),
            str(item.id)[:8],
            item.category.label,
            escape(_single_line(item.preview_text)),
            item.formatted_size,
            item.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
        )
    console.print(table)
    if len(items) > len(shown):
        console.print(f"[dim]Showing {len(shown)} of {len(items)} items.[/dim]")


@cli.command()
@click.argument("item_id")
@click.option("--json", "json_output", is_flag=True, help="Emit the item as JSON.")
def show(item_id: str, json_output: bool) -> None:
    """Show details for the item whose id starts with ITEM_ID."""
    config = _load_config(json_output)
    with ClipboardSession(config) as session:
        item = _find_item(session, item_id, json_output=json_output)

    if json_output:
        console.print_json(data={"item": _item_payload(item)})
        return

    summary = Table.grid(padding=(0, 2))
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("ID", str(item.id))
    summary.add_row("Category", f"{item.category.label} ({item.category.value})")
    summary.add_row("Captured", item.timestamp.astimezone().isoformat(timespec="seconds"))
    summary.add_row("Size", item.formatted_size)
    summary.add_row("Hash", item.content_hash)
    summary.add_row("Thumbnail", "yes" if item.has_thumbnail else "no")
    console.print(summary)

    representations = Table(title="Representations")
    representations.add_column("Type")
    representations.add_column("Size", justify="right")
    for info in item.representation_infos:
        representations.add_row(info.type, format_bytes(info.size))
    console.print(representations)
    console.print(item.preview_text, markup=False, highlight=False)


@cli.command()
@click.argument("item_id")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
def restore(item_id: str, json_output: bool) -> None:
    """Copy the item whose id starts with ITEM_ID back to the clipboard."""
    config = _load_config(json_output)
    with ClipboardSession(config) as session:
        item = _find_item(session, item_id, json_output=json_output)
        try:
            restored = session.restore(item.id)
        except ClipboardError as exc:
            _handle_cli_error(str(exc), code="clipboard_error", json_output=json_output, original=exc)
            return

    if not restored:
        _handle_cli_error(
            f"Stored data for {item.id} is unavailable; nothing was restored.",
            code="blobs_missing",
            json_output=json_output,
        )
        return

    if json_output:
        console.print_json(data={"restored": _item_payload(item)})
        return
    label = item.category.label.lower()
    console.print(f"[green]Restored {label} {str(item.id)[:8]} to the clipboard.[/green]")


@cli.command()
@click.argument("item_id")
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
def remove(item_id: str, json_output: bool) -> None:
    """Delete the item whose id starts with ITEM_ID from the history."""
    config = _load_config(json_output)
    with ClipboardSession(config) as session:
        item = _find_item(session, item_id, json_output=json_output)
        session.remove(item.id)

    if json_output:
        console.print_json(data={"removed": str(item.id)})
        return
    console.print(f"[green]Removed {str(item.id)[:8]}.[/green]")


@cli.command()
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
def clear(yes: bool) -> None:
    """Delete the whole history."""
    if not yes:
        click.confirm("Delete every clipboard history item?", abort=True)
    config = _load_config(False)
    with ClipboardSession(config) as session:
        count = session.remove_all()
    console.print(f"[green]Removed {count} item(s).[/green]")


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit statistics as JSON.")
def stats(json_output: bool) -> None:
    """Summarise history size and category counts."""
    config = _load_config(json_output)
    with ClipboardSession(config) as session:
        engine = session.engine
        count = len(engine)
        total = engine.total_size()
        counts = engine.category_counts()

    limit_bytes = config.history.max_total_size_bytes
    if json_output:
        console.print_json(
            data={
                "items": count,
                "max_items": config.history.max_items,
                "total_size": total,
                "max_total_size": limit_bytes,
                "categories": {category.value: value for category, value in counts.items()},
            }
        )
        return

    table = Table(title="History statistics")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Items", f"{count} / {config.history.max_items}")
    table.add_row("Total size", f"{format_bytes(total)} / {format_bytes(limit_bytes)}")
    for category, value in counts.items():
        table.add_row(category.label, str(value))
    console.print(table)


@cli.group()
def config() -> None:
    """Manage clipstash configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules.

    Raises:
        click.ClickException: If configuration cannot be loaded.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        config = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY.

    Args:
        key: Dotted path describing the configuration field to update.
        value: YAML-literal value to write into the configuration file.

    Raises:
        click.ClickException: If parsing, assignment, or validation fails.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        before = manager.read_text().splitlines()
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        manager.set_value(key, parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()
    # The timestamp header always changes; compare the body only.
    diff = [
        line
        for line in difflib.unified_diff(
            [line for line in before if not line.startswith("# Last updated:")],
            [line for line in after if not line.startswith("# Last updated:")],
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    ]
    if not diff:
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {key.strip()}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session.

    Raises:
        click.ClickException: If edited content is invalid or cannot be saved.
    """
    manager = ConfigManager()
    try:
        manager.ensure_exists()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=ClipstashConfig(), file_overrides=parsed)
        manager.save(parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()

