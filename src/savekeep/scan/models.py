"""Scan data models — entries discovered for one game in one operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Set, Union

from savekeep.scan.change import ScanChange, normalize_registry_path, registry_key_id

if TYPE_CHECKING:
    from savekeep.layout.models import Backup


class OperationStepDecision(str, Enum):
    """How the engine decided to handle one game."""

    PROCESSED = "Processed"
    CANCELLED = "Cancelled"
    IGNORED = "Ignored"


@dataclass(frozen=True)
class BackupError:
    """Why a single entry could not be copied or restored."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ScannedFile:
    """A file found during a scan.

    Identity is the resolved ``path`` alone; the other fields ride along.
    When backing up, ``path`` is the live location and ``redirected`` is where
    the payload is recorded instead. When restoring, ``path`` is the payload
    inside the snapshot, ``original_path`` the recorded live location and
    ``redirected`` the location it will actually be written to.
    """

    path: str
    size: int = field(default=0, compare=False)
    hash: str = field(default="", compare=False)
    original_path: Optional[str] = field(default=None, compare=False)
    redirected: Optional[str] = field(default=None, compare=False)
    ignored: bool = field(default=False, compare=False)
    change: ScanChange = field(default=ScanChange.UNKNOWN, compare=False)

    @property
    def logical_path(self) -> str:
        """The path as the game sees it (before any redirect)."""
        return self.original_path or self.path

    def readable(self, restoring: bool) -> str:
        if restoring and self.redirected is not None:
            return self.redirected
        return self.logical_path

    def alt_readable(self, restoring: bool) -> Optional[str]:
        """The other side of a redirect, if there is one."""
        if restoring:
            return self.logical_path if self.redirected is not None else None
        return self.redirected

    def effective_target(self) -> str:
        """Where a restore writes this entry."""
        return self.redirected or self.logical_path

    def change_as(self, change: ScanChange) -> "ScannedFile":
        return ScannedFile(
            path=self.path,
            size=self.size,
            hash=self.hash,
            original_path=self.original_path,
            redirected=self.redirected,
            ignored=self.ignored,
            change=change,
        )


@dataclass
class ScannedRegistryValue:
    ignored: bool = False
    change: ScanChange = ScanChange.UNKNOWN
    hash: Optional[str] = None
    kind: Optional[str] = None
    data: Any = None


@dataclass(eq=False)
class ScannedRegistryKey:
    """A registry key and its values.

    The key's own ``change`` only reflects whether the key existed before;
    each value carries its own classification.
    """

    path: str
    ignored: bool = False
    change: ScanChange = ScanChange.UNKNOWN
    values: Dict[str, ScannedRegistryValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.path = normalize_registry_path(self.path)

    @property
    def key(self) -> str:
        return registry_key_id(self.path)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ScannedRegistryKey):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __lt__(self, other: "ScannedRegistryKey") -> bool:
        return self.key < other.key

    def changes(self) -> Iterator[ScanChange]:
        if not self.ignored:
            yield self.change
        for value in self.values.values():
            if not value.ignored:
                yield value.change


@dataclass
class ChangeCount:
    new: int = 0
    different: int = 0
    same: int = 0
    unknown: int = 0

    def add(self, change: ScanChange) -> None:
        if change is ScanChange.NEW:
            self.new += 1
        elif change is ScanChange.DIFFERENT:
            self.different += 1
        elif change is ScanChange.SAME:
            self.same += 1
        else:
            self.unknown += 1

    def brand_new(self) -> bool:
        return self.new > 0 and self.different == 0 and self.same == 0

    def updated(self) -> bool:
        return self.new > 0 or self.different > 0


@dataclass
class BackupInfo:
    """Per-entry failures from copying a ScanInfo's entries.

    Entries absent from both maps succeeded.
    """

    failed_files: Dict[ScannedFile, BackupError] = field(default_factory=dict)
    failed_registry: Dict[str, BackupError] = field(default_factory=dict)

    def successful(self) -> bool:
        return not self.failed_files and not self.failed_registry

    def file_error(self, entry: Union[ScannedFile, str]) -> Optional[BackupError]:
        if isinstance(entry, str):
            entry = ScannedFile(entry)
        return self.failed_files.get(entry)

    def registry_error(self, path: str) -> Optional[BackupError]:
        return self.failed_registry.get(registry_key_id(path))

    def fail_file(self, entry: ScannedFile, error: BackupError) -> None:
        self.failed_files[entry] = error

    def fail_registry(self, path: str, error: BackupError) -> None:
        self.failed_registry[registry_key_id(path)] = error

    def mark_all_failed(self, scan_info: "ScanInfo", error: BackupError) -> None:
        """Attach *error* to every entry that would have been processed."""
        for entry in scan_info.found_files:
            if not entry.ignored:
                self.fail_file(entry, error)
        for key in scan_info.found_registry_keys:
            if not key.ignored:
                self.fail_registry(key.path, error)


@dataclass
class ScanInfo:
    """Everything found for one game in one backup or restore operation."""

    game_name: str = ""
    found_files: Set[ScannedFile] = field(default_factory=set)
    found_registry_keys: Set[ScannedRegistryKey] = field(default_factory=set)
    restoring: bool = False
    backup: Optional["Backup"] = None
    available_backups: List["Backup"] = field(default_factory=list)

    def sum_bytes(self, backup_info: Optional[BackupInfo] = None) -> int:
        """Bytes of found files, minus any that failed in *backup_info*."""
        total = 0
        for entry in self.found_files:
            if backup_info is not None and entry in backup_info.failed_files:
                continue
            total += entry.size
        return total

    def total_possible_bytes(self) -> int:
        return self.sum_bytes(None)

    def can_report_game(self) -> bool:
        return bool(self.found_files or self.found_registry_keys)

    def all_ignored(self) -> bool:
        if not self.can_report_game():
            return False
        return all(f.ignored for f in self.found_files) and all(
            k.ignored and all(v.ignored for v in k.values.values())
            for k in self.found_registry_keys
        )

    def _changes(self) -> Iterator[ScanChange]:
        for entry in self.found_files:
            if not entry.ignored:
                yield entry.change
        for key in self.found_registry_keys:
            yield from key.changes()

    def overall_change(self) -> ScanChange:
        """Most-changed classification among non-ignored entries."""
        return ScanChange.worst(self._changes())

    def count_changes(self) -> ChangeCount:
        count = ChangeCount()
        for change in self._changes():
            count.add(change)
        return count

    def file(self, path: str) -> Optional[ScannedFile]:
        for entry in self.found_files:
            if entry.path == path or entry.logical_path == path:
                return entry
        return None

    def registry_key(self, path: str) -> Optional[ScannedRegistryKey]:
        wanted = registry_key_id(path)
        for key in self.found_registry_keys:
            if key.key == wanted:
                return key
        return None
