"""Reconcile the local backup root with a remote and transfer the differences.

A path is in conflict when both sides hold different content and each side
has moved away from the hash recorded at the last synchronization. While
any conflict exists nothing is transferred; the conflicts are reported and
left for the user to settle.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping

from savekeep.cloud.models import (
    CloudChange,
    CloudError,
    CloudPlan,
    CloudReport,
    SyncDirection,
    SyncState,
)
from savekeep.cloud.remote import Remote, write_atomic
from savekeep.logger import get_logger
from savekeep.scan.change import ScanChange, classify
from savekeep.scanner.walker import hash_file, iter_files

STATE_FILENAME = ".savekeep-cloud.yaml"
_TEMP_PREFIX = ".tmp-"

logger = get_logger(__name__)


def local_inventory(root: Path) -> Dict[str, str]:
    """Hash every file under *root*, keyed by ``/``-separated relative path.

    In-progress snapshot directories and the sync state file are skipped.
    """
    inventory: Dict[str, str] = {}
    for file in iter_files(root):
        relative = file.relative_to(root).as_posix()
        if relative == STATE_FILENAME:
            continue
        if any(part.startswith(_TEMP_PREFIX) for part in relative.split("/")):
            continue
        inventory[relative] = hash_file(file)
    return inventory


def reconcile(
    local: Mapping[str, str],
    remote: Mapping[str, str],
    direction: SyncDirection,
    state: SyncState,
) -> CloudPlan:
    """Classify every path on the sending side against the receiving side."""
    if direction is SyncDirection.UPLOAD:
        source, destination = local, remote
    else:
        source, destination = remote, local

    plan = CloudPlan()
    for path in sorted(source):
        current = source[path]
        other = destination.get(path)
        last = state.get(path)
        if other is not None and other != current and current != last and other != last:
            plan.conflicts.append(path)
            continue
        plan.changes.append(CloudChange(path, classify(current, other)))
    return plan


def synchronize(
    local_root: Path,
    remote: Remote,
    direction: SyncDirection,
    state_path: Path,
    *,
    preview: bool = False,
) -> CloudReport:
    """Bring the receiving side in line with the sending side.

    A remote that cannot be listed fails the whole sync. Failures on
    individual paths are recorded and do not stop the other transfers.
    The sync state only advances for paths that ended up identical.
    """
    report = CloudReport(direction=direction, preview=preview)
    try:
        state = SyncState.load(state_path)
        remote_files = remote.list()
        local_files = local_inventory(local_root) if local_root.is_dir() else {}
    except (OSError, CloudError) as exc:
        logger.error("Cloud sync failed: %s", exc)
        report.error = str(exc)
        return report

    plan = reconcile(local_files, remote_files, direction, state)
    report.changes = plan.changes
    report.conflicts = plan.conflicts
    if plan.conflicts:
        logger.warning("Cloud sync has %d conflicting paths; nothing transferred", len(plan.conflicts))
        return report
    if preview:
        return report

    for change in plan.changes:
        digest = (local_files if direction is SyncDirection.UPLOAD else remote_files)[change.path]
        if change.change is ScanChange.SAME:
            state.record(change.path, digest)
            continue
        try:
            if direction is SyncDirection.UPLOAD:
                remote.write(change.path, (local_root / change.path).read_bytes())
            else:
                write_atomic(local_root / change.path, remote.read(change.path))
        except (OSError, CloudError) as exc:
            logger.warning("Cloud transfer failed for %s: %s", change.path, exc)
            report.failures[change.path] = str(exc)
            continue
        except Exception as exc:
            logger.exception("Unexpected error transferring %s", change.path)
            report.failures[change.path] = f"{type(exc).__name__}: {exc}"
            continue
        state.record(change.path, digest)
        report.transferred.append(change.path)

    try:
        state.save(state_path)
    except OSError as exc:
        logger.error("Cannot save cloud sync state %s: %s", state_path, exc)
        report.error = f"Cannot save sync state: {exc}"
    return report
