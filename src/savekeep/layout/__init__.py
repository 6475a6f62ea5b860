"""Backup layout — snapshot models and the on-disk snapshot manager."""

from savekeep.layout.manager import BackupLayout, GameLayout, escape_folder_name
from savekeep.layout.models import Backup, FileRecord, LayoutError, RetentionPolicy, payload_path

__all__ = [
    "Backup",
    "BackupLayout",
    "FileRecord",
    "GameLayout",
    "LayoutError",
    "RetentionPolicy",
    "escape_folder_name",
    "payload_path",
]
