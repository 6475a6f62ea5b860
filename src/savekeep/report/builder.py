"""Report builder — turns operation results into report data.

The builder is format-agnostic; ``savekeep.output`` renders it as text or
JSON.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence

from savekeep.layout.models import Backup
from savekeep.report.models import (
    FoundGame,
    OperativeGame,
    ReportBackup,
    ReportErrors,
    ReportFile,
    ReportGame,
    ReportRegistryKey,
    ReportRegistryValue,
    StoredGame,
)
from savekeep.scan.change import ScanChange
from savekeep.scan.duplicates import DuplicateIndex
from savekeep.scan.models import BackupInfo, OperationStepDecision, ScanInfo
from savekeep.scan.status import OperationStatus

if TYPE_CHECKING:
    from savekeep.cloud.models import CloudReport
    from savekeep.scanner.engine import GameOutcome, OperationResult


class Report:
    """Everything one command wants to show."""

    def __init__(self, location: Optional[str] = None) -> None:
        self.location = location
        self.games: Dict[str, ReportGame] = {}
        self.overall: Optional[OperationStatus] = OperationStatus()
        self.errors = ReportErrors()
        self.cloud: Dict[str, ScanChange] = {}
        self.cloud_conflicts: List[str] = []

    # ---- error flags ----

    def trip_some_games_failed(self) -> None:
        self.errors.some_games_failed = True

    def trip_unknown_games(self, games: Sequence[str]) -> None:
        self.errors.unknown_games = list(games)

    def trip_cloud_conflict(self) -> None:
        self.errors.cloud_conflict = True

    def trip_cloud_sync_failed(self) -> None:
        self.errors.cloud_sync_failed = True

    def suppress_overall(self) -> None:
        self.overall = None

    @property
    def failed(self) -> bool:
        return self.errors.any()

    # ---- games ----

    def add_game(
        self,
        name: str,
        scan_info: ScanInfo,
        backup_info: BackupInfo,
        decision: OperationStepDecision,
        duplicates: DuplicateIndex,
    ) -> bool:
        """Add one game's backup/restore outcome. Returns False if any entry failed.

        Games with nothing found are left out entirely.
        """
        if not scan_info.can_report_game():
            return True

        restoring = scan_info.restoring
        successful = True
        files: Dict[str, ReportFile] = {}
        for entry in sorted(scan_info.found_files, key=lambda f: f.readable(restoring)):
            error = backup_info.file_error(entry)
            item = ReportFile(
                change=entry.change,
                bytes=entry.size,
                failed=error is not None,
                error=error.message if error is not None else None,
                ignored=entry.ignored,
                duplicated_by=duplicates.file_duplicated_by(entry, name),
            )
            alt = entry.alt_readable(restoring)
            if alt is not None:
                if restoring:
                    item.original_path = alt
                else:
                    item.redirected_path = alt
            if item.failed:
                successful = False
            files[entry.readable(restoring)] = item

        registry: Dict[str, ReportRegistryKey] = {}
        for key in sorted(scan_info.found_registry_keys):
            error = backup_info.registry_error(key.path)
            registry[key.path] = ReportRegistryKey(
                change=key.change,
                failed=error is not None,
                error=error.message if error is not None else None,
                ignored=key.ignored,
                duplicated_by=duplicates.registry_duplicated_by(key, name),
                values={
                    value_name: ReportRegistryValue(
                        change=value.change,
                        ignored=value.ignored,
                        duplicated_by=duplicates.registry_value_duplicated_by(
                            key, value_name, name
                        ),
                    )
                    for value_name, value in sorted(key.values.items())
                },
            )
            if error is not None:
                successful = False

        self.games[name] = OperativeGame(
            decision=decision,
            change=scan_info.overall_change(),
            bytes=scan_info.sum_bytes(backup_info),
            duplicated=not duplicates.is_game_duplicated(name).resolved(),
            files=files,
            registry=registry,
        )
        if not successful:
            self.trip_some_games_failed()
        return successful

    def add_outcome(self, outcome: "GameOutcome", duplicates: DuplicateIndex) -> bool:
        successful = self.add_game(
            outcome.name,
            outcome.scan_info,
            outcome.backup_info,
            outcome.decision,
            duplicates,
        )
        if outcome.error is not None:
            self.trip_some_games_failed()
            return False
        return successful

    def add_result(self, result: "OperationResult") -> bool:
        """Add every game of *result* and take over its operation status."""
        if self.overall is not None:
            self.overall = result.status
        successful = True
        for outcome in result.games:
            if not self.add_outcome(outcome, result.duplicates):
                successful = False
        return successful

    def add_backups(self, name: str, backup_dir: str, backups: Sequence[Backup]) -> None:
        if not backups:
            return
        self.games[name] = StoredGame(
            backup_dir=backup_dir,
            backups=[
                ReportBackup(
                    name=b.name,
                    when=b.when,
                    locked=b.locked,
                    os=b.os,
                    comment=b.comment,
                )
                for b in backups
            ],
        )

    def add_found_titles(self, names: Iterable[str]) -> None:
        for name in sorted(names):
            self.games[name] = FoundGame()

    # ---- cloud ----

    def add_cloud(self, cloud: "CloudReport") -> None:
        for change in cloud.changes:
            if change.change.is_changed():
                self.cloud[change.path] = change.change
        self.cloud_conflicts = sorted(cloud.conflicts)
        if cloud.conflict:
            self.trip_cloud_conflict()
        if cloud.sync_failed:
            self.trip_cloud_sync_failed()
