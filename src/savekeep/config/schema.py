"""Configuration schema — dataclasses for every config section."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Literal, Optional

OutputFormat = Literal["standard", "json"]
SyncDirection = Literal["upload", "download"]
RedirectKind = Literal["backup", "restore", "bidirectional"]

OUTPUT_FORMATS = ("standard", "json")
SYNC_DIRECTIONS = ("upload", "download")
REDIRECT_KINDS = ("backup", "restore", "bidirectional")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def expand_path(raw: str) -> Path:
    """Expand ``~`` and environment variables in a configured path."""
    return Path(os.path.expandvars(os.path.expanduser(raw)))


@dataclass
class BackupConfig:
    path: str = "~/savekeep-backup"
    retention_full: int = 5  # snapshots kept per game (locked ones not counted)
    retention_max_age_days: Optional[int] = None
    only_changed: bool = True  # skip the snapshot when nothing changed
    auto_prune: bool = True


@dataclass
class RestoreConfig:
    path: str = ""  # empty = same as backup.path


@dataclass
class ScanConfig:
    workers: int = 4


@dataclass
class RedirectConfig:
    source: str = ""
    target: str = ""
    kind: RedirectKind = "bidirectional"


@dataclass
class GameConfig:
    """A game defined directly in savekeep.toml."""

    name: str = ""
    files: List[str] = field(default_factory=list)
    registry: List[str] = field(default_factory=list)
    enabled: bool = True


@dataclass
class GamesFilterConfig:
    enable: List[str] = field(default_factory=list)  # empty = all enabled
    disable: List[str] = field(default_factory=list)


@dataclass
class IgnoreConfig:
    files: List[str] = field(default_factory=list)
    registry: List[str] = field(default_factory=list)


@dataclass
class OutputConfig:
    format: OutputFormat = "standard"
    show_summary: bool = True


@dataclass
class CloudConfig:
    remote: str = ""  # folder backing the remote store
    direction: SyncDirection = "upload"


@dataclass
class LoggingConfig:
    level: str = "WARNING"
    file: Optional[str] = None


@dataclass
class SaveKeepConfig:
    version: str = "1.0"
    backup: BackupConfig = field(default_factory=BackupConfig)
    restore: RestoreConfig = field(default_factory=RestoreConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)
    redirects: List[RedirectConfig] = field(default_factory=list)
    games: List[GameConfig] = field(default_factory=list)
    games_filter: GamesFilterConfig = field(default_factory=GamesFilterConfig)
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    cloud: CloudConfig = field(default_factory=CloudConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def backup_root(self) -> Path:
        return expand_path(self.backup.path)

    def restore_root(self) -> Path:
        return expand_path(self.restore.path or self.backup.path)
