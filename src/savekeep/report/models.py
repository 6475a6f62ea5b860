"""Report data — what renderers show for each game, backup and cloud path.

Games appear in one of three forms, told apart by ``kind``:

- ``OperativeGame`` for ``backup`` and ``restore``;
- ``StoredGame`` for ``backups``;
- ``FoundGame`` for ``find``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Union

from savekeep.scan.change import ScanChange
from savekeep.scan.models import OperationStepDecision


class GameKind(str, Enum):
    OPERATIVE = "operative"
    STORED = "stored"
    FOUND = "found"


@dataclass
class ReportFile:
    change: ScanChange
    bytes: int
    failed: bool = False
    error: Optional[str] = None
    ignored: bool = False
    original_path: Optional[str] = None  # restore: where the game expects it
    redirected_path: Optional[str] = None  # backup: where the snapshot records it
    duplicated_by: List[str] = field(default_factory=list)


@dataclass
class ReportRegistryValue:
    change: ScanChange
    ignored: bool = False
    duplicated_by: List[str] = field(default_factory=list)


@dataclass
class ReportRegistryKey:
    change: ScanChange
    failed: bool = False
    error: Optional[str] = None
    ignored: bool = False
    duplicated_by: List[str] = field(default_factory=list)
    values: Dict[str, ReportRegistryValue] = field(default_factory=dict)


@dataclass
class OperativeGame:
    decision: OperationStepDecision
    change: ScanChange
    bytes: int
    duplicated: bool = False
    files: Dict[str, ReportFile] = field(default_factory=dict)
    registry: Dict[str, ReportRegistryKey] = field(default_factory=dict)
    kind: GameKind = field(default=GameKind.OPERATIVE, init=False)


@dataclass
class ReportBackup:
    name: str
    when: datetime
    locked: bool = False
    os: Optional[str] = None
    comment: Optional[str] = None


@dataclass
class StoredGame:
    backup_dir: str
    backups: List[ReportBackup] = field(default_factory=list)
    kind: GameKind = field(default=GameKind.STORED, init=False)


@dataclass
class FoundGame:
    kind: GameKind = field(default=GameKind.FOUND, init=False)


ReportGame = Union[OperativeGame, StoredGame, FoundGame]


@dataclass
class ReportErrors:
    some_games_failed: bool = False
    unknown_games: List[str] = field(default_factory=list)
    cloud_conflict: bool = False
    cloud_sync_failed: bool = False

    def any(self) -> bool:
        return bool(
            self.some_games_failed
            or self.unknown_games
            or self.cloud_conflict
            or self.cloud_sync_failed
        )

    def messages(self) -> List[str]:
        """Warnings appended to the standard report."""
        out: List[str] = []
        if self.cloud_conflict:
            out.append("WARNING: Unable to synchronize with cloud because of conflicting data.")
        if self.cloud_sync_failed:
            out.append("WARNING: Unable to synchronize with cloud.")
        return out
