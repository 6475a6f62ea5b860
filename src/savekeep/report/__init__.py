"""Report data shared by the terminal and JSON renderers."""

from savekeep.report.builder import Report
from savekeep.report.models import (
    FoundGame,
    GameKind,
    OperativeGame,
    ReportBackup,
    ReportErrors,
    ReportFile,
    ReportRegistryKey,
    ReportRegistryValue,
    StoredGame,
)

__all__ = [
    "FoundGame",
    "GameKind",
    "OperativeGame",
    "Report",
    "ReportBackup",
    "ReportErrors",
    "ReportFile",
    "ReportRegistryKey",
    "ReportRegistryValue",
    "StoredGame",
]
