"""Operation engine — runs a backup or restore across many games.

Every operation runs in four steps:

1. scan each game in parallel (no shared state between scans);
2. register every ScanInfo with one ``DuplicateDetector``, then seal it;
3. process each game in parallel (write or restore snapshots), with the
   sealed index available for reporting;
4. fold the per-game outcomes into one ``OperationStatus`` in game order.

Cancellation is checked once per game before it is processed. A cancelled
game never leaves a partial snapshot behind and games finished before the
cancellation keep their results.
"""

from __future__ import annotations

import platform
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, TypeVar

from savekeep.config.schema import SaveKeepConfig
from savekeep.games.models import Game
from savekeep.layout.manager import BackupLayout
from savekeep.layout.models import Backup, LayoutError, RetentionPolicy
from savekeep.logger import get_logger
from savekeep.scan.duplicates import DuplicateDetector, DuplicateIndex
from savekeep.scan.models import BackupError, BackupInfo, OperationStepDecision, ScanInfo
from savekeep.scan.status import OperationStatus
from savekeep.scanner.filters import IGNORE_FILENAME, IgnoreFilter
from savekeep.scanner.registry import RegistryAccess
from savekeep.scanner.walker import scan_game_for_backup

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class GameOutcome:
    """What happened to one game during an operation."""

    game: Game
    scan_info: ScanInfo
    decision: OperationStepDecision = OperationStepDecision.PROCESSED
    backup_info: BackupInfo = field(default_factory=BackupInfo)
    backup: Optional[Backup] = None  # snapshot written, or restored from
    pruned: List[str] = field(default_factory=list)
    error: Optional[str] = None  # layout-level failure

    @property
    def name(self) -> str:
        return self.game.name

    @property
    def failed(self) -> bool:
        return self.error is not None or not self.backup_info.successful()


@dataclass
class OperationResult:
    restoring: bool
    games: List[GameOutcome]
    status: OperationStatus
    duplicates: DuplicateIndex
    preview: bool = False
    cancelled: bool = False

    @property
    def failed(self) -> bool:
        return any(outcome.failed for outcome in self.games)

    def outcome(self, name: str) -> Optional[GameOutcome]:
        for outcome in self.games:
            if outcome.name == name:
                return outcome
        return None


def build_ignore_filter(config: SaveKeepConfig, config_root: Optional[Path] = None) -> IgnoreFilter:
    """Configured ignore rules, extended by a .savekeepignore in *config_root*."""
    base = IgnoreFilter(config.ignore.files, config.ignore.registry)
    if config_root is None:
        return base
    return IgnoreFilter.from_file(config_root / IGNORE_FILENAME, base=base)


def _parallel(func: Callable[[T], R], items: Sequence[T], workers: int) -> List[R]:
    if workers <= 1 or len(items) <= 1:
        return [func(item) for item in items]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(func, items))


def _register(outcomes: Sequence[GameOutcome]) -> DuplicateIndex:
    detector = DuplicateDetector()
    for outcome in outcomes:
        detector.add_game(outcome.scan_info, outcome.game.enabled)
    return detector.seal()


def _fold(outcomes: Sequence[GameOutcome]) -> OperationStatus:
    status = OperationStatus()
    for outcome in outcomes:
        status.add_game(
            outcome.scan_info,
            outcome.backup_info,
            outcome.decision is OperationStepDecision.PROCESSED,
        )
    return status


def _fail_layout(outcome: GameOutcome, error: str) -> GameOutcome:
    outcome.error = error
    outcome.backup_info.mark_all_failed(outcome.scan_info, BackupError(error))
    return outcome


def _pre_decision(
    outcome: GameOutcome, cancel: Optional[threading.Event]
) -> Optional[OperationStepDecision]:
    """Decision reached without touching the layout, if any."""
    if cancel is not None and cancel.is_set():
        return OperationStepDecision.CANCELLED
    if not outcome.game.enabled or outcome.scan_info.all_ignored():
        return OperationStepDecision.IGNORED
    return None


def run_backup(
    games: Sequence[Game],
    layout: BackupLayout,
    config: SaveKeepConfig,
    *,
    preview: bool = False,
    ignore: Optional[IgnoreFilter] = None,
    registry: Optional[RegistryAccess] = None,
    cancel: Optional[threading.Event] = None,
    comment: Optional[str] = None,
    os_name: Optional[str] = None,
) -> OperationResult:
    """Back up *games* into *layout*."""
    ignore = ignore or build_ignore_filter(config)
    os_name = os_name or platform.system().lower()
    policy = RetentionPolicy(
        full=config.backup.retention_full,
        max_age_days=config.backup.retention_max_age_days,
    )

    def scan(game: Game) -> GameOutcome:
        game_layout = layout.game_layout(game.name)
        try:
            available = game_layout.list()
        except LayoutError as exc:
            logger.error("Cannot read backups of %s: %s", game.name, exc)
            scan_info = scan_game_for_backup(
                game, baseline=None, ignore=ignore, redirects=config.redirects, registry=registry
            )
            return _fail_layout(GameOutcome(game, scan_info), str(exc))
        baseline = available[0].baseline() if available else None
        scan_info = scan_game_for_backup(
            game, baseline=baseline, ignore=ignore, redirects=config.redirects, registry=registry
        )
        scan_info.available_backups = available
        return GameOutcome(game, scan_info)

    def process(outcome: GameOutcome) -> GameOutcome:
        if outcome.error is not None:
            return outcome
        decision = _pre_decision(outcome, cancel)
        if decision is not None:
            outcome.decision = decision
            return outcome
        scan_info = outcome.scan_info
        if preview or not scan_info.can_report_game():
            return outcome
        if (
            config.backup.only_changed
            and scan_info.available_backups
            and not scan_info.overall_change().is_changed()
        ):
            logger.info("No changes for %s; keeping %s", outcome.name, scan_info.available_backups[0].name)
            return outcome

        game_layout = layout.game_layout(outcome.name)
        backup, backup_info = game_layout.create(scan_info, os_name=os_name, comment=comment)
        outcome.backup_info = backup_info
        if backup is None:
            outcome.error = "Unable to write snapshot"
            return outcome
        outcome.backup = backup
        if config.backup.auto_prune:
            try:
                outcome.pruned = game_layout.prune(policy)
            except LayoutError as exc:
                logger.warning("Pruning %s failed: %s", outcome.name, exc)
        return outcome

    workers = config.scan.workers
    scanned = _parallel(scan, list(games), workers)
    duplicates = _register(scanned)
    outcomes = _parallel(process, scanned, workers)
    for name in sorted(duplicates.duplicated_games()):
        logger.info("%s shares files with other games", name)

    return OperationResult(
        restoring=False,
        games=outcomes,
        status=_fold(outcomes),
        duplicates=duplicates,
        preview=preview,
        cancelled=cancel is not None and cancel.is_set(),
    )


def run_restore(
    games: Sequence[Game],
    layout: BackupLayout,
    config: SaveKeepConfig,
    *,
    preview: bool = False,
    ignore: Optional[IgnoreFilter] = None,
    registry: Optional[RegistryAccess] = None,
    cancel: Optional[threading.Event] = None,
    backup_name: Optional[str] = None,
) -> OperationResult:
    """Restore *games* from *layout*, newest snapshot unless *backup_name* is given."""
    ignore = ignore or build_ignore_filter(config)

    def scan(game: Game) -> GameOutcome:
        game_layout = layout.game_layout(game.name)
        empty = ScanInfo(game_name=game.name, restoring=True)
        try:
            available = game_layout.list()
        except LayoutError as exc:
            logger.error("Cannot read backups of %s: %s", game.name, exc)
            return _fail_layout(GameOutcome(game, empty), str(exc))
        if backup_name:
            backup = next((b for b in available if b.name == backup_name), None)
            if backup is None and available:
                return _fail_layout(
                    GameOutcome(game, empty), f"No backup named {backup_name!r}"
                )
        else:
            backup = available[0] if available else None
        if backup is None:
            return GameOutcome(game, empty)
        scan_info = game_layout.scan_for_restore(
            backup, config.redirects, registry=registry, ignore=ignore
        )
        return GameOutcome(game, scan_info, backup=backup)

    def process(outcome: GameOutcome) -> GameOutcome:
        if outcome.error is not None:
            return outcome
        decision = _pre_decision(outcome, cancel)
        if decision is not None:
            outcome.decision = decision
            return outcome
        if preview or not outcome.scan_info.can_report_game():
            return outcome
        game_layout = layout.game_layout(outcome.name)
        outcome.backup_info = game_layout.restore(outcome.scan_info, registry)
        logger.info("Restored %s from %s", outcome.name, outcome.backup.name if outcome.backup else "?")
        return outcome

    workers = config.scan.workers
    scanned = _parallel(scan, list(games), workers)
    duplicates = _register(scanned)
    outcomes = _parallel(process, scanned, workers)

    return OperationResult(
        restoring=True,
        games=outcomes,
        status=_fold(outcomes),
        duplicates=duplicates,
        preview=preview,
        cancelled=cancel is not None and cancel.is_set(),
    )
