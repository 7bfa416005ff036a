"""Command line interface for tagsync."""

from __future__ import annotations

import difflib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NoReturn

import click
import yaml
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.syntax import Syntax

from tagsync.catalog import CatalogError, Tag
from tagsync.config import ConfigError, ConfigManager, TagsyncConfig, resolve_with_precedence
from tagsync.logs import configure_logging
from tagsync.service import DailyScheduler, SyncService, create_app
from tagsync.state import CacheRepository, StateError
from tagsync.sync import SyncReport, find_unexported_files

console = Console()


def _fail(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    cause: Exception | None = None,
) -> NoReturn:
    """Abort the command, as a JSON error document when ``json_output`` is set.

    Raises:
        SystemExit: In JSON mode, after printing ``{"error": {...}}``.
        click.ClickException: Otherwise.
    """
    if json_output:
        error: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            error["details"] = details
        console.print_json(data={"error": error})
        raise SystemExit(1)
    if isinstance(cause, click.ClickException):
        raise cause
    raise click.ClickException(message) from cause


@dataclass(frozen=True)
class _Output:
    """Console verbosity for one command invocation."""

    quiet: bool = False
    summary_only: bool = False

    def emit(self, message: Any, mode: str = "detail") -> None:
        # Errors always print; summary mode keeps summaries and warnings too.
        if mode == "error":
            console.print(message)
        elif self.quiet:
            return
        elif not self.summary_only or mode in {"summary", "warning"}:
            console.print(message)


def _summary_line(command: str, target: Path | str, metrics: dict[str, Any]) -> str:
    rendered = ", ".join(f"{name}={count}" for name, count in metrics.items())
    return f"[green]{command} summary for {target}: {rendered}.[/green]"


def _set_dotted(data: dict[str, Any], segments: list[str], value: Any) -> None:
    """Store ``value`` under ``segments``, creating sections as needed.

    Raises:
        ConfigError: If an intermediate key holds a scalar.
    """
    node = data
    for depth, segment in enumerate(segments[:-1]):
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            blocked = ".".join(segments[: depth + 1])
            raise ConfigError(f"Cannot set '{'.'.join(segments)}': '{blocked}' is not a section.")
        node = child
    node[segments[-1]] = value


def _load_config(cli_overrides: dict[str, Any] | None = None) -> TagsyncConfig:
    return ConfigManager().load(cli_overrides=cli_overrides or None)


def _repository(config: TagsyncConfig) -> CacheRepository:
    return CacheRepository(Path(config.storage.cache_dir).expanduser())


def _render_report(report: SyncReport, out: _Output) -> None:
    for error in report.errors:
        out.emit(f"[red]  - {error}[/red]", "error")

    for heading, names in (
        ("file(s) not claimed by any tag", report.orphans),
        ("active tag(s) without an external id", report.missing_external_ids),
    ):
        if not names:
            continue
        out.emit(f"[yellow]{len(names)} {heading}:[/yellow]", "warning")
        for name in names:
            out.emit(f"  - {name}")

    counts = report.counts()
    metrics = {
        "processed": counts["processed"],
        "updated": counts["updated"],
        "unchanged": counts["unchanged"],
        "seeded": counts["seeded"],
        "cache_hit": counts["cache_hit"],
        "skipped": counts["skipped_default"],
        "failed": counts["failed"],
        "collisions": counts["collision"],
    }
    out.emit(_summary_line("Sync", report.export_path or "-", metrics), "summary")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="tagsync")
def cli() -> None:
    """tagsync mirrors catalog tag images and videos into a local directory."""


@cli.command()
@click.option("--force", is_flag=True, help="Download every tag regardless of local state.")
@click.option("--full", is_flag=True, help="Treat every tag as changed since the last sync.")
@click.option("--recheck", is_flag=True, help="Revalidate cached assets with conditional requests.")
@click.option("--json", "json_output", is_flag=True, help="Emit the run summary as JSON.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only print warnings and totals.")
@click.option("--quiet", is_flag=True, help="Only print errors.")
def run(
    force: bool,
    full: bool,
    recheck: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Synchronize tag media once and write the inventory export."""
    flags = {
        "sync.force_refresh": force,
        "sync.full_scan": full,
        "sync.recheck_validators": recheck,
    }
    out = _Output(quiet=quiet, summary_only=summary_mode)

    try:
        config = _load_config({key: True for key, enabled in flags.items() if enabled})
        repository = _repository(config)
        repository.initialize()
        configure_logging(config.logging, log_path=repository.log_path, quiet=quiet or json_output)

        with Progress(
            TextColumn("{task.description}", markup=False),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
            disable=quiet or json_output or summary_mode,
        ) as progress:
            task_id = progress.add_task("Querying catalog", total=None)

            def _advance(index: int, total: int, tag: Tag) -> None:
                progress.update(task_id, completed=index, total=total, description=tag.name)

            report = SyncService(config).run(progress=_advance)
    except ConfigError as exc:
        _fail(str(exc), code="config_error", json_output=json_output, cause=exc)
    except CatalogError as exc:
        _fail(str(exc), code="catalog_error", json_output=json_output, cause=exc)
    except click.ClickException as exc:
        _fail(str(exc), code="cli_error", json_output=json_output, cause=exc)
    except Exception as exc:
        _fail(
            f"Unexpected error while synchronizing tags: {exc}",
            code="internal_error",
            json_output=json_output,
            details={"exception": type(exc).__name__},
            cause=exc,
        )

    if json_output:
        console.print_json(data=report.to_payload())
    else:
        _render_report(report, out)


@cli.command()
@click.option("--host", type=str, help="Interface to bind (defaults to server.host).")
@click.option("--port", type=int, help="Port to bind (defaults to server.port).")
@click.option("--no-schedule", is_flag=True, help="Do not start the daily scheduler.")
def serve(host: str | None, port: int | None, no_schedule: bool) -> None:
    """Expose HTTP sync triggers and run the daily schedule."""
    try:
        config = _load_config()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    repository = _repository(config)
    repository.initialize()
    configure_logging(config.logging, log_path=repository.log_path)

    service = SyncService(config)
    scheduler: DailyScheduler | None = None
    if config.schedule.enabled and not no_schedule:
        scheduler = DailyScheduler(service, config.schedule.daily_at)
        scheduler.start()

    bind_host = host or config.server.host
    bind_port = port or config.server.port
    console.print(f"[cyan]Serving sync triggers on http://{bind_host}:{bind_port}[/cyan]")
    try:
        create_app(service).run(host=bind_host, port=bind_port, threaded=True)
    finally:
        if scheduler is not None:
            scheduler.stop()


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Emit the result as JSON.")
def validate(json_output: bool) -> None:
    """List asset files that the inventory export does not reference."""
    try:
        config = _load_config()
        export_path = (
            Path(config.storage.export_path).expanduser()
            if config.storage.export_path
            else _repository(config).default_export_path
        )
        extra = find_unexported_files(export_path, Path(config.storage.asset_dir).expanduser())
    except ConfigError as exc:
        _fail(str(exc), code="config_error", json_output=json_output, cause=exc)
    except StateError as exc:
        _fail(str(exc), code="state_error", json_output=json_output, cause=exc)

    if json_output:
        console.print_json(data={"export": str(export_path), "extra_files": extra})
    elif not extra:
        console.print("[green]Every asset file is referenced by the export.[/green]")
    else:
        console.print(f"[yellow]{len(extra)} extra file(s):[/yellow]")
        for name in extra:
            console.print(f"  - {name}")


@cli.group()
def config() -> None:
    """Inspect and change the tagsync configuration file."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Show file values without environment overrides.")
def config_view(no_env: bool) -> None:
    """Print the effective configuration as YAML."""
    try:
        effective = ConfigManager().load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    rendered = yaml.safe_dump(effective.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(rendered, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="YAML value stored under KEY.")
def config_set(key: str, value: str) -> None:
    """Store VALUE under a dotted KEY such as ``catalog.endpoint``."""
    segments = [part.strip() for part in key.split(".") if part.strip()]
    if not segments:
        raise click.ClickException("KEY must be a dotted path such as 'catalog.endpoint'.")
    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"VALUE is not valid YAML: {exc}") from exc

    manager = ConfigManager()
    manager.ensure_exists()
    previous = manager.read_text()
    stored = manager.load_file_overrides()
    try:
        _set_dotted(stored, segments, parsed)
        resolve_with_precedence(defaults=TagsyncConfig(), file_overrides=stored)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(stored)
    changes = list(
        difflib.unified_diff(
            previous.splitlines(),
            manager.read_text().splitlines(),
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
    )
    # The timestamp comment changes on every save.
    edited = [
        line
        for line in changes
        if line.startswith(("+", "-"))
        and not line.startswith(("+++", "---"))
        and not line[1:].startswith("# Last updated")
    ]
    if not edited:
        console.print(f"[yellow]{'.'.join(segments)} already had that value.[/yellow]")
        return
    console.print(Syntax("\n".join(changes), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Edit the configuration file in $EDITOR and validate the result."""
    manager = ConfigManager()
    manager.ensure_exists()
    current = manager.read_text()

    edited = click.edit(current, extension=".yaml")
    if edited is None or edited == current:
        console.print("[yellow]No changes applied.[/yellow]")
        return

    try:
        data = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")
    try:
        resolve_with_precedence(defaults=TagsyncConfig(), file_overrides=data)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(data)
    console.print("[green]Configuration updated.[/green]")


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
