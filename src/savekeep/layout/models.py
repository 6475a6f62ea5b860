"""Snapshot data model — what one backup recorded, and how it is persisted."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from savekeep.scan.change import Baseline, normalize_registry_path
from savekeep.scanner.registry import RegistryValueData

SNAPSHOT_FILENAME = "snapshot.yaml"
NAME_PREFIX = "backup-"
NAME_FORMAT = "%Y%m%dT%H%M%SZ"


class LayoutError(Exception):
    """Raised when a game's backup directory cannot be read or written."""


@dataclass(frozen=True)
class FileRecord:
    hash: str
    size: int = 0


@dataclass(frozen=True)
class RetentionPolicy:
    """How many unlocked snapshots to keep, and for how long.

    The newest snapshot and every locked snapshot survive regardless.
    """

    full: int = 5
    max_age_days: Optional[int] = None


def _parse_when(raw: Any) -> datetime:
    if isinstance(raw, datetime):
        when = raw
    else:
        when = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.astimezone(timezone.utc)


@dataclass
class Backup:
    """One immutable capture of a game's files and registry state.

    ``files`` maps the recorded path (the redirect target when a backup
    redirect applied) to its hash and size. ``registry`` maps a registry key
    path to its values.
    """

    name: str
    when: datetime
    os: Optional[str] = None
    comment: Optional[str] = None
    locked: bool = False
    files: Dict[str, FileRecord] = field(default_factory=dict)
    registry: Dict[str, Dict[str, RegistryValueData]] = field(default_factory=dict)

    def when_local(self) -> datetime:
        return self.when.astimezone()

    def baseline(self) -> Baseline:
        return Baseline(
            files={path: record.hash for path, record in self.files.items()},
            registry={
                path: {name: value.hash for name, value in values.items()}
                for path, values in self.registry.items()
            },
        )

    def total_bytes(self) -> int:
        return sum(record.size for record in self.files.values())

    # ---- persistence ----

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "when": self.when.astimezone(timezone.utc).isoformat(),
            "locked": self.locked,
        }
        if self.os:
            data["os"] = self.os
        if self.comment:
            data["comment"] = self.comment
        data["files"] = {
            path: {"hash": record.hash, "size": record.size}
            for path, record in sorted(self.files.items())
        }
        data["registry"] = {
            path: {
                name: {"kind": value.kind, "data": value.data}
                for name, value in values.items()
            }
            for path, values in sorted(self.registry.items())
        }
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Backup":
        """Inverse of ``to_dict``; unknown keys are ignored."""
        files = {
            str(path): FileRecord(hash=str(entry.get("hash", "")), size=int(entry.get("size", 0)))
            for path, entry in (data.get("files") or {}).items()
        }
        registry = {
            normalize_registry_path(str(path)): {
                str(name): RegistryValueData(
                    kind=str(value.get("kind", "")), data=value.get("data")
                )
                for name, value in (values or {}).items()
            }
            for path, values in (data.get("registry") or {}).items()
        }
        return cls(
            name=str(data["name"]),
            when=_parse_when(data["when"]),
            os=data.get("os"),
            comment=data.get("comment"),
            locked=bool(data.get("locked", False)),
            files=files,
            registry=registry,
        )


def payload_path(recorded: str) -> str:
    """Location of a file's payload inside a snapshot directory.

    ``/home/me/save.dat`` becomes ``drive-0/home/me/save.dat`` and
    ``C:/Games/save.dat`` becomes ``drive-C/Games/save.dat``.
    """
    path = recorded.replace("\\", "/")
    if len(path) >= 2 and path[1] == ":" and path[0].isalpha():
        return f"drive-{path[0].upper()}/{path[2:].lstrip('/')}"
    return f"drive-0/{path.lstrip('/')}"
