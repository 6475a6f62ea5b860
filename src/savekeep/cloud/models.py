"""Cloud reconciliation results and the persisted synchronization state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from savekeep.scan.change import ScanChange


class CloudError(Exception):
    """Raised when the remote or the sync state cannot be used at all."""


class SyncDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


@dataclass(frozen=True, order=True)
class CloudChange:
    """How a path on the sending side compares to the receiving side."""

    path: str
    change: ScanChange


@dataclass
class CloudPlan:
    changes: List[CloudChange] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)

    def transfers(self) -> List[CloudChange]:
        if self.conflicts:
            return []
        return [c for c in self.changes if c.change.is_changed()]


@dataclass
class CloudReport:
    direction: SyncDirection
    changes: List[CloudChange] = field(default_factory=list)
    conflicts: List[str] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)  # path -> reason
    transferred: List[str] = field(default_factory=list)
    error: Optional[str] = None
    preview: bool = False

    @property
    def conflict(self) -> bool:
        return bool(self.conflicts)

    @property
    def sync_failed(self) -> bool:
        return self.error is not None or bool(self.failures)


class SyncState:
    """Hash of every path as of its last successful synchronization."""

    def __init__(self, hashes: Optional[Dict[str, str]] = None) -> None:
        self._hashes: Dict[str, str] = dict(hashes or {})

    def get(self, path: str) -> Optional[str]:
        return self._hashes.get(path)

    def record(self, path: str, digest: str) -> None:
        self._hashes[path] = digest

    def as_dict(self) -> Dict[str, str]:
        return dict(self._hashes)

    @classmethod
    def load(cls, path: Path) -> "SyncState":
        if not path.is_file():
            return cls()
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise CloudError(f"Cannot read sync state {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise CloudError(f"{path}: expected a mapping")
        return cls({str(k): str(v) for k, v in (data.get("files") or {}).items()})

    def save(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"files": dict(sorted(self._hashes.items()))}, f)
