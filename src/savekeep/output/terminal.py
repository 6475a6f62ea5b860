"""Standard (human-readable) reporter."""

from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.text import Text

from savekeep.report.builder import Report
from savekeep.report.models import GameKind, OperativeGame, StoredGame
from savekeep.scan.change import ScanChange
from savekeep.scan.models import OperationStepDecision
from savekeep.scan.status import OperationStatus

_UNITS = ("KiB", "MiB", "GiB", "TiB")

_DECISION_LABEL = {
    OperationStepDecision.IGNORED: "[IGNORED]",
    OperationStepDecision.CANCELLED: "[CANCELLED]",
}

_STYLES = {
    "[FAILED]": "bold red",
    "[DUPLICATED]": "yellow",
    "[DUPLICATES]": "yellow",
    "[IGNORED]": "dim",
    "[CANCELLED]": "dim",
    "[+]": "green",
    "[Δ]": "cyan",
}


def format_bytes(size: int) -> str:
    """``1 B``, ``100.00 KiB``, ``1.50 GiB``."""
    if size < 1024:
        return f"{size} B"
    value = float(size)
    unit = "B"
    for unit in _UNITS:
        value /= 1024
        if value < 1024:
            break
    return f"{value:.2f} {unit}"


def _change_marker(change: ScanChange) -> Optional[str]:
    if change.is_changed():
        return f"[{change.symbol}]"
    return None


def _line_item(
    label: str,
    *,
    indent: str = "  ",
    failed: bool = False,
    ignored: bool = False,
    duplicated: bool = False,
    change: ScanChange = ScanChange.UNKNOWN,
) -> str:
    markers: List[str] = []
    if failed:
        markers.append("[FAILED]")
    if ignored:
        markers.append("[IGNORED]")
    if duplicated:
        markers.append("[DUPLICATED]")
    marker = _change_marker(change)
    if marker and not ignored:
        markers.append(marker)
    return f"{indent}- " + " ".join(markers + [label])


def _operative_lines(name: str, game: OperativeGame) -> List[str]:
    header = f"{name} [{format_bytes(game.bytes)}]"
    if game.decision in _DECISION_LABEL:
        header += f" {_DECISION_LABEL[game.decision]}"
    if game.duplicated:
        header += " [DUPLICATES]"
    marker = _change_marker(game.change)
    if marker:
        header += f" {marker}"
    lines = [header + ":"]

    for path, item in game.files.items():
        lines.append(
            _line_item(
                path,
                failed=item.failed,
                ignored=item.ignored,
                duplicated=bool(item.duplicated_by),
                change=item.change,
            )
        )
        if item.original_path is not None:
            lines.append(f"    - Redirected from: {item.original_path}")
        if item.redirected_path is not None:
            lines.append(f"    - Redirecting to: {item.redirected_path}")
        if item.error is not None:
            lines.append(f"    - {item.error}")

    for path, key in game.registry.items():
        lines.append(
            _line_item(
                path,
                failed=key.failed,
                ignored=key.ignored,
                duplicated=bool(key.duplicated_by),
                change=key.change,
            )
        )
        if key.error is not None:
            lines.append(f"    - {key.error}")
        for value_name, value in key.values.items():
            lines.append(
                _line_item(
                    value_name,
                    indent="    ",
                    ignored=value.ignored,
                    duplicated=bool(value.duplicated_by),
                    change=value.change,
                )
            )
    return lines


def _stored_lines(name: str, game: StoredGame) -> List[str]:
    lines = [f"{name}:", f"  Backup folder: {game.backup_dir}"]
    for backup in game.backups:
        line = f'  - "{backup.name}" ({backup.when.astimezone():%Y-%m-%dT%H:%M:%S})'
        if backup.os:
            line += f" [{backup.os}]"
        if backup.locked:
            line += " [locked]"
        if backup.comment:
            line += f" - {backup.comment}"
        lines.append(line)
    return lines


def _summary_lines(status: OperationStatus, location: Optional[str]) -> List[str]:
    games = str(status.total_games)
    if not status.processed_all_games():
        games = f"{status.processed_games} / {status.total_games}"
    changed = status.changed_games
    if changed.new:
        games += f" [+{changed.new}]"
    if changed.different:
        games += f" [Δ{changed.different}]"

    size = format_bytes(status.processed_bytes)
    if not status.processed_all_bytes():
        size += f" / {format_bytes(status.total_bytes)}"

    lines = ["Overall:", f"  Games: {games}", f"  Size: {size}"]
    if location:
        lines.append(f"  Location: {location}")
    return lines


def _cloud_lines(report: Report) -> List[str]:
    lines = [f"[{change.symbol}] {path}" for path, change in sorted(report.cloud.items())]
    lines.extend(f"[CONFLICT] {path}" for path in report.cloud_conflicts)
    return lines


def render_text(report: Report) -> str:
    """Render *report* as plain text."""
    parts: List[str] = []
    for name, game in report.games.items():
        if game.kind is GameKind.OPERATIVE:
            parts.extend(_operative_lines(name, game))
            parts.append("")
        elif game.kind is GameKind.STORED:
            parts.extend(_stored_lines(name, game))
            parts.append("")
        else:
            parts.append(name)

    parts.extend(_cloud_lines(report))

    if report.errors.unknown_games:
        parts.append("No info for these games: " + ", ".join(report.errors.unknown_games))

    if report.overall is None:
        out = "\n".join(parts)
    else:
        out = "\n".join(parts + _summary_lines(report.overall, report.location))
    for message in report.errors.messages():
        out += f"\n\n{message}"
    return out.strip("\n")


def _styled(line: str) -> Text:
    text = Text(line)
    for marker, style in _STYLES.items():
        text.highlight_words([marker], style=style)
    return text


def render(report: Report, *, console: Optional[Console] = None, show_summary: bool = True) -> None:
    """Print *report* to the terminal using Rich."""
    console = console or Console()
    if not show_summary:
        report.suppress_overall()
    for line in render_text(report).split("\n"):
        console.print(_styled(line), highlight=False, soft_wrap=True)
