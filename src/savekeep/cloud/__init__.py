"""Cloud synchronization of the backup root."""

from savekeep.cloud.models import (
    CloudChange,
    CloudError,
    CloudPlan,
    CloudReport,
    SyncDirection,
    SyncState,
)
from savekeep.cloud.remote import FolderRemote, Remote
from savekeep.cloud.sync import STATE_FILENAME, local_inventory, reconcile, synchronize

__all__ = [
    "CloudChange",
    "CloudError",
    "CloudPlan",
    "CloudReport",
    "FolderRemote",
    "Remote",
    "STATE_FILENAME",
    "SyncDirection",
    "SyncState",
    "local_inventory",
    "reconcile",
    "synchronize",
]
