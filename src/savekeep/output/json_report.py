"""JSON reporter for scripts and launchers.

Keys are camelCase. Flags that are false and collections that are empty are
left out.
"""

from __future__ import annotations

import json
from typing import Any, Dict

from savekeep.report.builder import Report
from savekeep.report.models import (
    GameKind,
    OperativeGame,
    ReportErrors,
    ReportFile,
    ReportGame,
    ReportRegistryKey,
    StoredGame,
)


def _errors_dict(errors: ReportErrors) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if errors.some_games_failed:
        data["someGamesFailed"] = True
    if errors.unknown_games:
        data["unknownGames"] = list(errors.unknown_games)
    if errors.cloud_conflict:
        data["cloudConflict"] = {}
    if errors.cloud_sync_failed:
        data["cloudSyncFailed"] = {}
    return data


def _file_dict(item: ReportFile) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if item.failed:
        data["failed"] = True
    if item.error is not None:
        data["error"] = {"message": item.error}
    if item.ignored:
        data["ignored"] = True
    data["change"] = item.change.value
    data["bytes"] = item.bytes
    if item.original_path is not None:
        data["originalPath"] = item.original_path
    if item.redirected_path is not None:
        data["redirectedPath"] = item.redirected_path
    if item.duplicated_by:
        data["duplicatedBy"] = list(item.duplicated_by)
    return data


def _registry_dict(key: ReportRegistryKey) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if key.failed:
        data["failed"] = True
    if key.error is not None:
        data["error"] = {"message": key.error}
    if key.ignored:
        data["ignored"] = True
    data["change"] = key.change.value
    if key.duplicated_by:
        data["duplicatedBy"] = list(key.duplicated_by)
    if key.values:
        values: Dict[str, Any] = {}
        for name, value in key.values.items():
            entry: Dict[str, Any] = {}
            if value.ignored:
                entry["ignored"] = True
            entry["change"] = value.change.value
            if value.duplicated_by:
                entry["duplicatedBy"] = list(value.duplicated_by)
            values[name] = entry
        data["values"] = values
    return data


def _operative_dict(game: OperativeGame) -> Dict[str, Any]:
    return {
        "decision": game.decision.value,
        "change": game.change.value,
        "files": {path: _file_dict(item) for path, item in game.files.items()},
        "registry": {path: _registry_dict(key) for path, key in game.registry.items()},
    }


def _stored_dict(game: StoredGame) -> Dict[str, Any]:
    backups = []
    for backup in game.backups:
        entry: Dict[str, Any] = {
            "name": backup.name,
            "when": backup.when.isoformat().replace("+00:00", "Z"),
        }
        if backup.os:
            entry["os"] = backup.os
        if backup.comment:
            entry["comment"] = backup.comment
        entry["locked"] = backup.locked
        backups.append(entry)
    return {"backupDir": game.backup_dir, "backups": backups}


def _game_dict(game: ReportGame) -> Dict[str, Any]:
    if game.kind is GameKind.OPERATIVE:
        return _operative_dict(game)
    if game.kind is GameKind.STORED:
        return _stored_dict(game)
    return {}


def to_dict(report: Report) -> Dict[str, Any]:
    """Convert a Report to a JSON-serialisable dict."""
    data: Dict[str, Any] = {}
    errors = _errors_dict(report.errors)
    if errors:
        data["errors"] = errors
    if report.overall is not None:
        data["overall"] = report.overall.to_dict()
    data["games"] = {name: _game_dict(game) for name, game in report.games.items()}
    if report.cloud:
        data["cloud"] = {
            path: {"change": change.value} for path, change in sorted(report.cloud.items())
        }
    if report.cloud_conflicts:
        data["cloudConflicts"] = list(report.cloud_conflicts)
    return data


def render(report: Report) -> str:
    """Return formatted JSON string."""
    return json.dumps(to_dict(report), indent=2, ensure_ascii=False)
