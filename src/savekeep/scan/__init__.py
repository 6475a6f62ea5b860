"""Scan results — change classification, entry models, duplicates, status."""

from savekeep.scan.change import Baseline, ScanChange, classify
from savekeep.scan.duplicates import (
    DuplicateDetector,
    DuplicateIndex,
    DuplicateIndexSealed,
    Duplication,
)
from savekeep.scan.models import (
    BackupError,
    BackupInfo,
    OperationStepDecision,
    ScanInfo,
    ScannedFile,
    ScannedRegistryKey,
    ScannedRegistryValue,
)
from savekeep.scan.status import OperationStatus

__all__ = [
    "BackupError",
    "BackupInfo",
    "Baseline",
    "DuplicateDetector",
    "DuplicateIndex",
    "DuplicateIndexSealed",
    "Duplication",
    "OperationStatus",
    "OperationStepDecision",
    "ScanChange",
    "ScanInfo",
    "ScannedFile",
    "ScannedRegistryKey",
    "ScannedRegistryValue",
    "classify",
]
