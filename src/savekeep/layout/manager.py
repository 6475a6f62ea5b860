"""Backup layout — one directory per game, one sub-directory per snapshot.

Snapshots are written into a hidden temporary directory and renamed into
place once complete, so a listing never sees a half-written snapshot.
Writes to the same game directory are serialised through a per-directory
lock owned by ``BackupLayout``; different games proceed independently.
"""

from __future__ import annotations

import os
import re
import shutil
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import yaml

from savekeep.config.schema import RedirectConfig
from savekeep.layout.models import (
    NAME_FORMAT,
    NAME_PREFIX,
    SNAPSHOT_FILENAME,
    Backup,
    FileRecord,
    LayoutError,
    RetentionPolicy,
    payload_path,
)
from savekeep.logger import get_logger
from savekeep.scan.change import Baseline, ScanChange, classify
from savekeep.scan.models import (
    BackupError,
    BackupInfo,
    ScanInfo,
    ScannedFile,
    ScannedRegistryKey,
    ScannedRegistryValue,
)
from savekeep.scanner.filters import IgnoreFilter
from savekeep.scanner.redirect import apply_redirects
from savekeep.scanner.registry import RegistryAccess, RegistryValueData
from savekeep.scanner.walker import hash_file

MAPPING_FILENAME = "mapping.yaml"
TEMP_PREFIX = ".tmp-"

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9 ._\-()&+,'!]")


def escape_folder_name(name: str) -> str:
    """Turn a game name into a portable directory name."""
    escaped = _UNSAFE_CHARS.sub("_", name).strip(" .")
    return escaped or "_"


def _sequence(name: str) -> int:
    """Collision suffix of a snapshot name ('backup-...Z-3' -> 3)."""
    _, _, tail = name.rpartition("Z-")
    return int(tail) if tail.isdigit() else 1


def _write_yaml(path: Path, data: Dict) -> None:
    """Write *data* next to *path* first, then move it into place."""
    tmp = path.with_name(f"{TEMP_PREFIX}{path.name}")
    with open(tmp, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True)
    os.replace(tmp, path)


def _read_yaml(path: Path) -> Dict:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise LayoutError(f"{path}: expected a mapping")
    return data


class BackupLayout:
    """The backup root: maps game names to their snapshot directories."""

    def __init__(self, base: Path) -> None:
        self.base = base
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._reserved: Dict[str, Path] = {}

    def _lock_for(self, folder: Path) -> threading.Lock:
        key = str(folder)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _mappings(self) -> Dict[str, Path]:
        """Game name -> directory, for every game directory on disk."""
        found: Dict[str, Path] = {}
        if not self.base.is_dir():
            return found
        for child in sorted(self.base.iterdir()):
            mapping = child / MAPPING_FILENAME
            if not child.is_dir() or not mapping.is_file():
                continue
            try:
                name = _read_yaml(mapping).get("name")
            except (OSError, yaml.YAMLError, LayoutError) as exc:
                logger.warning("Skipping unreadable mapping %s: %s", mapping, exc)
                continue
            if name:
                found[str(name)] = child
        return found

    def find_games(self) -> List[str]:
        return sorted(self._mappings())

    def game_layout(self, name: str) -> "GameLayout":
        """Directory of *name*, allocating a free one on first use.

        A folder handed out once stays reserved for that game, even before
        anything has been written to it.
        """
        with self._guard:
            folder = self._reserved.get(name)
            if folder is None:
                mappings = self._mappings()
                folder = mappings.get(name)
                if folder is None:
                    taken = set(mappings.values()) | set(self._reserved.values())
                    base_name = escape_folder_name(name)
                    folder = self.base / base_name
                    suffix = 2
                    while folder in taken:
                        folder = self.base / f"{base_name}-{suffix}"
                        suffix += 1
                self._reserved[name] = folder
        return GameLayout(folder, name, self._lock_for(folder))


class GameLayout:
    """All snapshots of one game."""

    def __init__(self, path: Path, game_name: str, lock: Optional[threading.Lock] = None) -> None:
        self.path = path
        self.game_name = game_name
        self._lock = lock or threading.Lock()

    # ---- reading ----

    def list(self) -> List[Backup]:
        """Every committed snapshot, newest first."""
        if not self.path.is_dir():
            return []
        backups: List[Backup] = []
        try:
            children = sorted(self.path.iterdir())
        except OSError as exc:
            raise LayoutError(f"Cannot read {self.path}: {exc}") from exc
        for child in children:
            if not child.name.startswith(NAME_PREFIX):
                continue
            meta = child / SNAPSHOT_FILENAME
            if not meta.is_file():
                continue
            try:
                backups.append(Backup.from_dict(_read_yaml(meta)))
            except (OSError, yaml.YAMLError, LayoutError, KeyError, ValueError, TypeError) as exc:
                logger.warning("Skipping unreadable snapshot %s: %s", meta, exc)
        backups.sort(key=lambda b: (b.when, _sequence(b.name)), reverse=True)
        return backups

    def latest(self) -> Optional[Backup]:
        backups = self.list()
        return backups[0] if backups else None

    def find(self, name: str) -> Optional[Backup]:
        for backup in self.list():
            if backup.name == name:
                return backup
        return None

    def _require(self, name: str) -> Backup:
        backup = self.find(name)
        if backup is None:
            raise LayoutError(f"No backup named {name!r} for {self.game_name}")
        return backup

    def snapshot_dir(self, backup: Backup) -> Path:
        return self.path / backup.name

    def baseline(self, name: Optional[str] = None) -> Optional[Baseline]:
        """Baseline for the next backup: the named snapshot, or the newest."""
        backup = self._require(name) if name else self.latest()
        return backup.baseline() if backup is not None else None

    # ---- creating ----

    def _ensure_dir(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        mapping = self.path / MAPPING_FILENAME
        if not mapping.is_file():
            _write_yaml(mapping, {"name": self.game_name})
            return
        try:
            owner = _read_yaml(mapping).get("name")
        except yaml.YAMLError as exc:
            raise LayoutError(f"Unreadable {mapping}: {exc}") from exc
        if owner != self.game_name:
            raise LayoutError(f"{self.path} belongs to {owner!r}, not {self.game_name!r}")

    def _unique_name(self, when: datetime) -> str:
        base = NAME_PREFIX + when.strftime(NAME_FORMAT)
        name = base
        suffix = 2
        while (self.path / name).exists() or (self.path / f"{TEMP_PREFIX}{name}").exists():
            name = f"{base}-{suffix}"
            suffix += 1
        return name

    def create(
        self,
        scan_info: ScanInfo,
        *,
        os_name: Optional[str] = None,
        comment: Optional[str] = None,
        when: Optional[datetime] = None,
    ) -> Tuple[Optional[Backup], BackupInfo]:
        """Write a new snapshot of every non-ignored entry in *scan_info*.

        Per-entry copy failures are recorded in the returned BackupInfo and
        left out of the snapshot. If the directory itself cannot be written,
        every attempted entry is marked failed and no snapshot is returned.
        """
        info = BackupInfo()
        when = (when or datetime.now(timezone.utc)).astimezone(timezone.utc).replace(microsecond=0)

        with self._lock:
            try:
                self._ensure_dir()
                name = self._unique_name(when)
                staging = self.path / f"{TEMP_PREFIX}{name}"
                staging.mkdir()
            except (OSError, LayoutError) as exc:
                logger.error("Cannot write backup directory %s: %s", self.path, exc)
                info.mark_all_failed(scan_info, BackupError(f"Cannot write backup directory: {exc}"))
                return None, info

            backup = Backup(name=name, when=when, os=os_name, comment=comment or None)
            for entry in sorted(scan_info.found_files, key=lambda f: f.path):
                if entry.ignored:
                    continue
                recorded = entry.redirected or entry.path
                target = staging / payload_path(recorded)
                try:
                    target.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(entry.path, target)
                except OSError as exc:
                    logger.warning("Failed to back up %s: %s", entry.path, exc)
                    info.fail_file(entry, BackupError(str(exc)))
                    continue
                backup.files[recorded] = FileRecord(hash=entry.hash, size=entry.size)

            for key in sorted(scan_info.found_registry_keys):
                if key.ignored:
                    continue
                backup.registry[key.path] = {
                    value_name: RegistryValueData(kind=value.kind or "", data=value.data)
                    for value_name, value in key.values.items()
                    if not value.ignored
                }

            try:
                _write_yaml(staging / SNAPSHOT_FILENAME, backup.to_dict())
                os.rename(staging, self.path / name)
            except OSError as exc:
                logger.error("Cannot commit snapshot %s for %s: %s", name, self.game_name, exc)
                shutil.rmtree(staging, ignore_errors=True)
                info.mark_all_failed(scan_info, BackupError(f"Cannot commit snapshot: {exc}"))
                return None, info

        logger.info(
            "Created %s for %s (%d files, %d registry keys)",
            name,
            self.game_name,
            len(backup.files),
            len(backup.registry),
        )
        return backup, info

    # ---- metadata ----

    def _rewrite(self, backup: Backup) -> None:
        try:
            _write_yaml(self.snapshot_dir(backup) / SNAPSHOT_FILENAME, backup.to_dict())
        except OSError as exc:
            raise LayoutError(f"Cannot update {backup.name}: {exc}") from exc

    def lock(self, name: str) -> Backup:
        return self._set_locked(name, True)

    def unlock(self, name: str) -> Backup:
        return self._set_locked(name, False)

    def _set_locked(self, name: str, locked: bool) -> Backup:
        with self._lock:
            backup = self._require(name)
            if backup.locked != locked:
                backup.locked = locked
                self._rewrite(backup)
        return backup

    def set_comment(self, name: str, comment: Optional[str]) -> Backup:
        with self._lock:
            backup = self._require(name)
            backup.comment = comment or None
            self._rewrite(backup)
        return backup

    # ---- removal ----

    def _remove(self, backup: Backup) -> bool:
        try:
            shutil.rmtree(self.snapshot_dir(backup))
        except OSError as exc:
            logger.warning("Cannot remove %s for %s: %s", backup.name, self.game_name, exc)
            return False
        return True

    def prune(self, policy: RetentionPolicy, *, now: Optional[datetime] = None) -> List[str]:
        """Remove unlocked snapshots beyond *policy*. Returns removed names.

        The newest snapshot is never removed and locked snapshots neither
        count toward ``policy.full`` nor get removed.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = (
            now - timedelta(days=policy.max_age_days)
            if policy.max_age_days is not None
            else None
        )
        removed: List[str] = []
        with self._lock:
            backups = self.list()
            kept_unlocked = 0
            for index, backup in enumerate(backups):
                if index == 0 or backup.locked:
                    if not backup.locked:
                        kept_unlocked += 1
                    continue
                expired = cutoff is not None and backup.when < cutoff
                if kept_unlocked < policy.full and not expired:
                    kept_unlocked += 1
                    continue
                if self._remove(backup):
                    removed.append(backup.name)
        if removed:
            logger.info("Pruned %d snapshots for %s", len(removed), self.game_name)
        return removed

    def delete(self, name: str) -> None:
        with self._lock:
            backup = self._require(name)
            if backup.locked:
                raise LayoutError(f"{name} is locked; unlock it before deleting")
            if not self._remove(backup):
                raise LayoutError(f"Cannot delete {name}")

    # ---- restoring ----

    def scan_for_restore(
        self,
        backup: Backup,
        redirects: Sequence[RedirectConfig] = (),
        registry: Optional[RegistryAccess] = None,
        ignore: Optional[IgnoreFilter] = None,
    ) -> ScanInfo:
        """Describe what restoring *backup* would do to the live system."""
        ignore = ignore or IgnoreFilter()
        snapshot = self.snapshot_dir(backup)
        files = set()
        for recorded, record in backup.files.items():
            redirected = apply_redirects(recorded, redirects, restoring=True)
            target = Path(redirected or recorded)
            try:
                live: Optional[str] = hash_file(target) if target.is_file() else None
            except OSError:
                live = None
            files.add(
                ScannedFile(
                    path=(snapshot / payload_path(recorded)).as_posix(),
                    size=record.size,
                    hash=record.hash,
                    original_path=recorded,
                    redirected=redirected,
                    ignored=ignore.is_file_ignored(recorded, self.game_name),
                    change=classify(record.hash, live),
                )
            )

        keys = set()
        for path, values in backup.registry.items():
            live_values: Optional[Dict[str, RegistryValueData]] = None
            if registry is not None:
                live_values = registry.read_tree(path).get(path)
            key = ScannedRegistryKey(
                path=path,
                ignored=ignore.is_registry_ignored(path),
                change=(
                    ScanChange.UNKNOWN
                    if registry is None
                    else ScanChange.SAME if live_values is not None else ScanChange.NEW
                ),
            )
            for name, value in values.items():
                live_value = (live_values or {}).get(name)
                key.values[name] = ScannedRegistryValue(
                    ignored=key.ignored or ignore.is_registry_ignored(path, name),
                    change=classify(
                        value.hash,
                        live_value.hash if live_value is not None else None,
                        tracked=registry is not None,
                    ),
                    hash=value.hash,
                    kind=value.kind,
                    data=value.data,
                )
            keys.add(key)

        return ScanInfo(
            game_name=self.game_name,
            found_files=files,
            found_registry_keys=keys,
            restoring=True,
            backup=backup,
            available_backups=self.list(),
        )

    def restore(
        self, scan_info: ScanInfo, registry: Optional[RegistryAccess] = None
    ) -> BackupInfo:
        """Copy snapshot payloads back to their effective targets.

        Files whose live copy already matches are left alone.
        """
        info = BackupInfo()
        for entry in sorted(scan_info.found_files, key=lambda f: f.path):
            if entry.ignored or entry.change is ScanChange.SAME:
                continue
            target = Path(entry.effective_target())
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(entry.path, target)
            except OSError as exc:
                logger.warning("Failed to restore %s: %s", target, exc)
                info.fail_file(entry, BackupError(str(exc)))

        for key in sorted(scan_info.found_registry_keys):
            if key.ignored:
                continue
            if registry is None:
                info.fail_registry(key.path, BackupError("Registry is not available on this system"))
                continue
            values = {
                name: RegistryValueData(kind=value.kind or "", data=value.data)
                for name, value in key.values.items()
                if not value.ignored
            }
            try:
                registry.write_key(key.path, values)
            except OSError as exc:
                logger.warning("Failed to restore registry key %s: %s", key.path, exc)
                info.fail_registry(key.path, BackupError(str(exc)))
        return info
