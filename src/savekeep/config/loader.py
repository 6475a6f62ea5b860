"""Load and merge configuration from savekeep.toml, CLI flags, and env vars."""

from __future__ import annotations

import dataclasses
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from savekeep.config.schema import (
    LOG_LEVELS,
    OUTPUT_FORMATS,
    REDIRECT_KINDS,
    SYNC_DIRECTIONS,
    BackupConfig,
    CloudConfig,
    GameConfig,
    GamesFilterConfig,
    IgnoreConfig,
    LoggingConfig,
    OutputConfig,
    RedirectConfig,
    RestoreConfig,
    SaveKeepConfig,
    ScanConfig,
)
from savekeep.logger import get_logger

CONFIG_FILENAME = "savekeep.toml"

logger = get_logger(__name__)


class ConfigError(Exception):
    """Raised when config is malformed or unreadable."""


def find_config_file(config_root: Path, override: Optional[str] = None) -> Optional[Path]:
    """Locate the config file. *override* takes precedence."""
    if override:
        p = Path(override)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {override}")
        return p
    candidate = config_root / CONFIG_FILENAME
    return candidate if candidate.is_file() else None


def _parse_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


def _build(cls: type, data: Any, where: str):
    """Build a dataclass from a TOML table, ignoring unknown keys."""
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"[{where}] must be a table")
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    try:
        return cls(**filtered)
    except TypeError as exc:
        raise ConfigError(f"Invalid [{where}] section: {exc}") from exc


def _build_list(cls: type, data: Any, where: str) -> List[Any]:
    if data is None:
        return []
    if not isinstance(data, list):
        raise ConfigError(f"[[{where}]] must be an array of tables")
    return [_build(cls, item, where) for item in data]


def _validate(cfg: SaveKeepConfig) -> None:
    if cfg.output.format not in OUTPUT_FORMATS:
        raise ConfigError(f"Unknown output format: {cfg.output.format}")
    if cfg.cloud.direction not in SYNC_DIRECTIONS:
        raise ConfigError(f"Unknown cloud direction: {cfg.cloud.direction}")
    if cfg.backup.retention_full < 1:
        raise ConfigError("backup.retention_full must be at least 1")
    if cfg.scan.workers < 1:
        raise ConfigError("scan.workers must be at least 1")
    for redirect in cfg.redirects:
        if not redirect.source or not redirect.target:
            raise ConfigError("Every [[redirects]] entry needs a source and a target")
        if redirect.kind not in REDIRECT_KINDS:
            raise ConfigError(f"Unknown redirect kind: {redirect.kind}")
    names = [g.name for g in cfg.games]
    if any(not n for n in names):
        raise ConfigError("Every [[games]] entry needs a name")


def _merge_env_overrides(cfg: SaveKeepConfig) -> None:
    """Apply SAVEKEEP_* environment variable overrides."""
    if val := os.environ.get("SAVEKEEP_BACKUP_PATH"):
        cfg.backup.path = val
    if val := os.environ.get("SAVEKEEP_FORMAT"):
        if val in OUTPUT_FORMATS:
            cfg.output.format = val  # type: ignore[assignment]
    if val := os.environ.get("SAVEKEEP_DISABLE_GAMES"):
        cfg.games_filter.disable.extend(g.strip() for g in val.split(",") if g.strip())
    if val := os.environ.get("SAVEKEEP_WORKERS"):
        try:
            workers = int(val)
        except ValueError:
            logger.warning("Ignoring SAVEKEEP_WORKERS=%r: not an integer", val)
        else:
            if workers >= 1:
                cfg.scan.workers = workers
    if val := os.environ.get("SAVEKEEP_LOG_LEVEL"):
        if val.upper() in LOG_LEVELS:
            cfg.logging.level = val.upper()


def load_config(
    config_root: Path,
    config_override: Optional[str] = None,
) -> SaveKeepConfig:
    """Load, validate, and return a SaveKeepConfig."""
    config_path = find_config_file(config_root, config_override)

    if config_path is None:
        cfg = SaveKeepConfig()
    else:
        raw = _parse_toml(config_path)
        logger.debug("Loaded config from %s", config_path)
        cfg = SaveKeepConfig(
            version=str(raw.get("version", "1.0")),
            backup=_build(BackupConfig, raw.get("backup"), "backup"),
            restore=_build(RestoreConfig, raw.get("restore"), "restore"),
            scan=_build(ScanConfig, raw.get("scan"), "scan"),
            redirects=_build_list(RedirectConfig, raw.get("redirects"), "redirects"),
            games=_build_list(GameConfig, raw.get("games"), "games"),
            games_filter=_build(GamesFilterConfig, raw.get("games_filter"), "games_filter"),
            ignore=_build(IgnoreConfig, raw.get("ignore"), "ignore"),
            output=_build(OutputConfig, raw.get("output"), "output"),
            cloud=_build(CloudConfig, raw.get("cloud"), "cloud"),
            logging=_build(LoggingConfig, raw.get("logging"), "logging"),
        )

    _merge_env_overrides(cfg)
    _validate(cfg)
    return cfg
