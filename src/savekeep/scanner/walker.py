"""Filesystem scanning — expand a game's path patterns and hash what they match."""

from __future__ import annotations

import glob
import hashlib
import os
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Set

from savekeep.config.schema import RedirectConfig
from savekeep.games.models import Game
from savekeep.logger import get_logger
from savekeep.scan.change import Baseline, classify_against
from savekeep.scan.models import ScanInfo, ScannedFile
from savekeep.scanner.filters import IgnoreFilter
from savekeep.scanner.redirect import apply_redirects
from savekeep.scanner.registry import RegistryAccess, scan_registry

logger = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024
_GLOB_CHARS = frozenset("*?[")


def hash_file(path: Path) -> str:
    """SHA-1 of a file's content. Raises OSError if it cannot be read."""
    digest = hashlib.sha1()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def render_path(path: Path) -> str:
    return path.as_posix()


def expand_pattern(pattern: str) -> List[Path]:
    """Expand ``~``, environment variables and globs in *pattern*."""
    expanded = os.path.expandvars(os.path.expanduser(pattern.strip()))
    if not expanded:
        return []
    if any(ch in expanded for ch in _GLOB_CHARS):
        return [Path(p) for p in sorted(glob.glob(expanded, recursive=True))]
    path = Path(expanded)
    return [path] if path.exists() else []


def iter_files(root: Path) -> Iterator[Path]:
    """Yield *root* if it is a file, or every file below it if a directory."""
    if root.is_file():
        yield root
        return
    if not root.is_dir():
        return
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for name in sorted(filenames):
            yield Path(dirpath) / name


def _resolve(path: Path) -> Path:
    try:
        return path.resolve()
    except OSError:
        return path.absolute()


def find_files(patterns: Sequence[str]) -> List[Path]:
    """Every distinct file matched by *patterns*, resolved, in stable order."""
    seen: Set[str] = set()
    found: List[Path] = []
    for pattern in patterns:
        for match in expand_pattern(pattern):
            for file in iter_files(match):
                resolved = _resolve(file)
                key = render_path(resolved)
                if key in seen:
                    continue
                seen.add(key)
                found.append(resolved)
    return found


def scan_file(
    path: Path,
    game_name: str,
    *,
    baseline: Optional[Baseline],
    ignore: IgnoreFilter,
    redirects: Sequence[RedirectConfig],
) -> ScannedFile:
    """Build the ScannedFile for one live file, classified against *baseline*."""
    rendered = render_path(path)
    redirected = apply_redirects(rendered, redirects, restoring=False)
    try:
        size = path.stat().st_size
        digest: Optional[str] = hash_file(path)
    except OSError as exc:
        logger.warning("Unable to read %s: %s", rendered, exc)
        size = 0
        digest = None
    return ScannedFile(
        path=rendered,
        size=size,
        hash=digest or "",
        redirected=redirected,
        ignored=ignore.is_file_ignored(rendered, game_name),
        change=classify_against(baseline, redirected or rendered, digest),
    )


def scan_game_for_backup(
    game: Game,
    *,
    baseline: Optional[Baseline],
    ignore: IgnoreFilter,
    redirects: Sequence[RedirectConfig] = (),
    registry: Optional[RegistryAccess] = None,
) -> ScanInfo:
    """Discover and classify everything *game* stores on this machine."""
    files = {
        scan_file(
            path,
            game.name,
            baseline=baseline,
            ignore=ignore,
            redirects=redirects,
        )
        for path in find_files(game.files)
    }
    registry_keys = scan_registry(
        game.name,
        set(game.registry),
        registry,
        baseline=baseline,
        ignore=ignore,
    )
    logger.debug(
        "Scanned %s: %d files, %d registry keys", game.name, len(files), len(registry_keys)
    )
    return ScanInfo(
        game_name=game.name,
        found_files=files,
        found_registry_keys=registry_keys,
        restoring=False,
    )
