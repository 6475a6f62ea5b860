"""savekeep CLI — Typer application for backups, restores and cloud sync."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple

import typer
from rich.console import Console

from savekeep import __version__

if TYPE_CHECKING:
    from savekeep.config.schema import SaveKeepConfig
    from savekeep.games.models import Game
    from savekeep.layout.manager import BackupLayout
    from savekeep.report.builder import Report

app = typer.Typer(
    name="savekeep",
    help="Back up and restore application save data.",
    add_completion=False,
    no_args_is_help=True,
)
cloud_app = typer.Typer(help="Synchronize the backup folder with a remote folder.", no_args_is_help=True)
app.add_typer(cloud_app, name="cloud")

console = Console(stderr=True)

_FORMATS = ("standard", "json")


def _load(
    config: Optional[str],
    format: Optional[str] = None,
    verbose: bool = False,
) -> Tuple["SaveKeepConfig", Path]:
    """Load config from the working directory, apply CLI overrides, set up logging."""
    from savekeep.config.loader import ConfigError, load_config
    from savekeep.config.schema import expand_path
    from savekeep.logger import setup_logging

    config_root = Path.cwd()
    try:
        cfg = load_config(config_root, config)
    except ConfigError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    if format:
        if format not in _FORMATS:
            console.print(f"[bold red]Invalid format:[/bold red] {format}")
            raise typer.Exit(code=2)
        cfg.output.format = format  # type: ignore[assignment]

    log_file = expand_path(cfg.logging.file) if cfg.logging.file else None
    setup_logging("INFO" if verbose else cfg.logging.level, log_file)
    return cfg, config_root


def _emit(report: "Report", cfg: "SaveKeepConfig") -> None:
    from savekeep.output import json_report, terminal

    if cfg.output.format == "json":
        print(json_report.render(report))
    else:
        terminal.render(report, show_summary=cfg.output.show_summary)


def _finish(report: "Report") -> None:
    raise typer.Exit(code=1 if report.failed else 0)


def _layout(root: Path) -> "BackupLayout":
    from savekeep.layout.manager import BackupLayout

    return BackupLayout(root)


def _backed_up_games(
    cfg: "SaveKeepConfig", config_root: Path, layout: "BackupLayout", names: List[str]
) -> Tuple[List["Game"], List[str]]:
    """Games to restore or list: configured definitions where known, else bare names."""
    from savekeep.games.models import Game
    from savekeep.games.registry import CatalogError, build_registry

    try:
        registry = build_registry(cfg, config_root)
    except CatalogError as exc:
        console.print(f"[bold red]Catalog error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    stored = layout.find_games()
    wanted = names or stored
    games: List[Game] = []
    unknown: List[str] = []
    for name in wanted:
        game = registry.get(name)
        if game is None and name in stored:
            game = Game(name=name, source="backup")
        if game is None:
            unknown.append(name)
        else:
            games.append(game)
    return games, unknown


# ── backup ────────────────────────────────────────────────────────────────────


@app.command()
def backup(
    games: Optional[List[str]] = typer.Argument(None, help="Games to back up (default: all)"),
    preview: bool = typer.Option(False, "--preview", help="Scan and report without writing anything"),
    path: Optional[str] = typer.Option(None, "--path", help="Backup folder"),
    comment: Optional[str] = typer.Option(None, "--comment", help="Comment stored with each new snapshot"),
    cloud_sync: bool = typer.Option(False, "--cloud-sync", help="Upload to the configured remote afterwards"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: standard | json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Back up save data of configured games."""
    from savekeep.games.registry import CatalogError, build_registry
    from savekeep.report.builder import Report
    from savekeep.scanner.engine import build_ignore_filter, run_backup
    from savekeep.scanner.registry import default_registry

    cfg, config_root = _load(config, format, verbose)
    if path:
        cfg.backup.path = path

    try:
        registry = build_registry(cfg, config_root)
    except CatalogError as exc:
        console.print(f"[bold red]Catalog error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    selected, unknown = registry.select(games or [])
    root = cfg.backup_root()
    report = Report(location=root.as_posix())
    if unknown:
        report.trip_unknown_games(unknown)

    result = run_backup(
        selected,
        _layout(root),
        cfg,
        preview=preview,
        ignore=build_ignore_filter(cfg, config_root),
        registry=default_registry(),
        comment=comment,
    )
    report.add_result(result)

    if cloud_sync and not preview:
        _sync_into(report, cfg, root, "upload", remote=None, preview=False)

    _emit(report, cfg)
    _finish(report)


# ── restore ───────────────────────────────────────────────────────────────────


@app.command()
def restore(
    games: Optional[List[str]] = typer.Argument(None, help="Games to restore (default: all backed up)"),
    preview: bool = typer.Option(False, "--preview", help="Report what would be restored"),
    path: Optional[str] = typer.Option(None, "--path", help="Folder to restore from"),
    backup_name: Optional[str] = typer.Option(None, "--backup", help="Snapshot to restore (default: newest)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: standard | json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Restore save data from the backup folder."""
    from savekeep.report.builder import Report
    from savekeep.scanner.engine import build_ignore_filter, run_restore
    from savekeep.scanner.registry import default_registry

    cfg, config_root = _load(config, format, verbose)
    if path:
        cfg.restore.path = path

    root = cfg.restore_root()
    layout = _layout(root)
    selected, unknown = _backed_up_games(cfg, config_root, layout, games or [])
    report = Report(location=root.as_posix())
    if unknown:
        report.trip_unknown_games(unknown)

    result = run_restore(
        selected,
        layout,
        cfg,
        preview=preview,
        ignore=build_ignore_filter(cfg, config_root),
        registry=default_registry(),
        backup_name=backup_name,
    )
    report.add_result(result)
    _emit(report, cfg)
    _finish(report)


# ── backups ───────────────────────────────────────────────────────────────────


@app.command()
def backups(
    games: Optional[List[str]] = typer.Argument(None, help="Games to list (default: all)"),
    path: Optional[str] = typer.Option(None, "--path", help="Backup folder"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: standard | json"),
) -> None:
    """List the snapshots stored for each game."""
    from savekeep.layout.models import LayoutError
    from savekeep.report.builder import Report

    cfg, config_root = _load(config, format)
    if path:
        cfg.restore.path = path

    layout = _layout(cfg.restore_root())
    selected, unknown = _backed_up_games(cfg, config_root, layout, games or [])
    report = Report()
    report.suppress_overall()
    if unknown:
        report.trip_unknown_games(unknown)

    for game in selected:
        game_layout = layout.game_layout(game.name)
        try:
            stored = game_layout.list()
        except LayoutError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            report.trip_some_games_failed()
            continue
        report.add_backups(game.name, game_layout.path.as_posix(), stored)

    _emit(report, cfg)
    _finish(report)


# ── find ──────────────────────────────────────────────────────────────────────


@app.command()
def find(
    games: Optional[List[str]] = typer.Argument(None, help="Names to look up (default: all)"),
    backup: bool = typer.Option(False, "--backup", help="Only games that have snapshots"),
    disabled: bool = typer.Option(False, "--disabled", help="Include disabled games"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: standard | json"),
) -> None:
    """Look up known games by name."""
    from savekeep.games.registry import CatalogError, build_registry
    from savekeep.report.builder import Report

    cfg, config_root = _load(config, format)
    try:
        registry = build_registry(cfg, config_root)
    except CatalogError as exc:
        console.print(f"[bold red]Catalog error:[/bold red] {exc}")
        raise typer.Exit(code=2) from exc

    selected, unknown = registry.select(games or [])
    names = {g.name for g in selected if disabled or g.enabled}
    if backup:
        names &= set(_layout(cfg.backup_root()).find_games())

    report = Report()
    report.suppress_overall()
    if unknown:
        report.trip_unknown_games(unknown)
    report.add_found_titles(names)
    _emit(report, cfg)
    _finish(report)


# ── lock / unlock / comment ───────────────────────────────────────────────────


def _edit_backup(game: str, name: str, config: Optional[str], action: str, text: Optional[str] = None) -> None:
    from savekeep.layout.models import LayoutError

    cfg, _ = _load(config)
    game_layout = _layout(cfg.backup_root()).game_layout(game)
    try:
        if action == "lock":
            game_layout.lock(name)
        elif action == "unlock":
            game_layout.unlock(name)
        else:
            game_layout.set_comment(name, text)
    except LayoutError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
    console.print(f"[green]✓[/green] {game}: {name} updated")


@app.command()
def lock(
    game: str = typer.Argument(..., help="Game name"),
    name: str = typer.Argument(..., help="Snapshot name"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
) -> None:
    """Protect a snapshot from pruning."""
    _edit_backup(game, name, config, "lock")


@app.command()
def unlock(
    game: str = typer.Argument(..., help="Game name"),
    name: str = typer.Argument(..., help="Snapshot name"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
) -> None:
    """Allow a snapshot to be pruned again."""
    _edit_backup(game, name, config, "unlock")


@app.command()
def comment(
    game: str = typer.Argument(..., help="Game name"),
    name: str = typer.Argument(..., help="Snapshot name"),
    text: str = typer.Argument("", help="Comment (empty to clear)"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
) -> None:
    """Set or clear a snapshot's comment."""
    _edit_backup(game, name, config, "comment", text)


# ── prune ─────────────────────────────────────────────────────────────────────


@app.command()
def prune(
    games: Optional[List[str]] = typer.Argument(None, help="Games to prune (default: all backed up)"),
    keep: Optional[int] = typer.Option(None, "--keep", min=1, help="Unlocked snapshots to keep per game"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
) -> None:
    """Remove old unlocked snapshots according to the retention policy."""
    from savekeep.layout.models import LayoutError, RetentionPolicy

    cfg, _ = _load(config)
    policy = RetentionPolicy(
        full=keep or cfg.backup.retention_full,
        max_age_days=cfg.backup.retention_max_age_days,
    )
    layout = _layout(cfg.backup_root())
    failed = False
    for name in games or layout.find_games():
        try:
            removed = layout.game_layout(name).prune(policy)
        except LayoutError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            failed = True
            continue
        for backup_name in removed:
            print(f"{name}: removed {backup_name}")
    raise typer.Exit(code=1 if failed else 0)


# ── cloud ─────────────────────────────────────────────────────────────────────


def _sync_into(
    report: "Report",
    cfg: "SaveKeepConfig",
    root: Path,
    direction: str,
    *,
    remote: Optional[str],
    preview: bool,
) -> None:
    from savekeep.cloud.models import SyncDirection
    from savekeep.cloud.remote import FolderRemote
    from savekeep.cloud.sync import STATE_FILENAME, synchronize
    from savekeep.config.schema import expand_path

    remote_path = remote or cfg.cloud.remote
    if not remote_path:
        console.print("[bold red]Error:[/bold red] no cloud remote configured ([cloud] remote)")
        raise typer.Exit(code=2)

    result = synchronize(
        root,
        FolderRemote(expand_path(remote_path)),
        SyncDirection(direction),
        root / STATE_FILENAME,
        preview=preview,
    )
    report.add_cloud(result)


def _cloud(direction: str, remote: Optional[str], preview: bool, config: Optional[str], format: Optional[str]) -> None:
    from savekeep.report.builder import Report

    cfg, _ = _load(config, format)
    report = Report()
    report.suppress_overall()
    _sync_into(report, cfg, cfg.backup_root(), direction, remote=remote, preview=preview)
    if not report.cloud and not report.cloud_conflicts and cfg.output.format != "json":
        console.print("[dim]No cloud changes.[/dim]")
    _emit(report, cfg)
    _finish(report)


@cloud_app.command()
def upload(
    remote: Optional[str] = typer.Option(None, "--remote", help="Remote folder (default: [cloud] remote)"),
    preview: bool = typer.Option(False, "--preview", help="Show changes without transferring"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: standard | json"),
) -> None:
    """Copy local snapshots to the remote."""
    _cloud("upload", remote, preview, config, format)


@cloud_app.command()
def download(
    remote: Optional[str] = typer.Option(None, "--remote", help="Remote folder (default: [cloud] remote)"),
    preview: bool = typer.Option(False, "--preview", help="Show changes without transferring"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to savekeep.toml"),
    format: Optional[str] = typer.Option(None, "--format", "-f", help="Output format: standard | json"),
) -> None:
    """Copy remote snapshots into the local backup folder."""
    _cloud("download", remote, preview, config, format)


# ── init ──────────────────────────────────────────────────────────────────────


@app.command()
def init() -> None:
    """Generate a starter savekeep.toml in the current directory."""
    from savekeep.config.defaults import DEFAULT_TOML
    from savekeep.config.loader import CONFIG_FILENAME

    config_path = Path.cwd() / CONFIG_FILENAME
    if config_path.exists():
        console.print(f"[yellow]⚠[/yellow]  {CONFIG_FILENAME} already exists at {config_path}")
        raise typer.Exit(code=1)

    config_path.write_text(DEFAULT_TOML, encoding="utf-8")
    console.print(f"[green]✓[/green] Created {config_path}")


# ── version ───────────────────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        print(f"savekeep {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V", callback=_version_callback,
        is_eager=True, help="Show version and exit",
    ),
) -> None:
    """savekeep — back up and restore application save data."""
