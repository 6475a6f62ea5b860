"""Running totals across every game handled by one operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from savekeep.scan.change import ScanChange
from savekeep.scan.models import BackupInfo, ScanInfo


@dataclass
class ChangedGames:
    new: int = 0
    different: int = 0
    same: int = 0


@dataclass
class OperationStatus:
    """Game-granularity tallies; only ever incremented.

    A game lands in at most one of the change buckets, picked by its overall
    change. Unknown lands in none of them.
    """

    total_games: int = 0
    total_bytes: int = 0
    processed_games: int = 0
    processed_bytes: int = 0
    changed_games: ChangedGames = field(default_factory=ChangedGames)

    def add_game(
        self,
        scan_info: ScanInfo,
        backup_info: Optional[BackupInfo],
        processed: bool,
    ) -> None:
        if not scan_info.can_report_game():
            return

        self.total_games += 1
        self.total_bytes += scan_info.total_possible_bytes()
        if processed:
            self.processed_games += 1
            self.processed_bytes += scan_info.sum_bytes(backup_info)

        change = scan_info.overall_change()
        if change is ScanChange.NEW:
            self.changed_games.new += 1
        elif change is ScanChange.DIFFERENT:
            self.changed_games.different += 1
        elif change is ScanChange.SAME:
            self.changed_games.same += 1

    def processed_all_games(self) -> bool:
        return self.total_games == self.processed_games

    def processed_all_bytes(self) -> bool:
        return self.total_bytes == self.processed_bytes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalGames": self.total_games,
            "totalBytes": self.total_bytes,
            "processedGames": self.processed_games,
            "processedBytes": self.processed_bytes,
            "changedGames": {
                "new": self.changed_games.new,
                "different": self.changed_games.different,
                "same": self.changed_games.same,
            },
        }
