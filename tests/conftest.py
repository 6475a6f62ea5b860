"""Shared test fixtures — save folders, backup roots, a fake registry."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

import pytest

from savekeep.logger import reset_logging
from savekeep.scan.change import ScanChange, normalize_registry_path, registry_key_id
from savekeep.scan.models import ScannedFile
from savekeep.scanner.registry import RegistryTree, RegistryValueData


def make_file(
    path: str,
    size: int = 1,
    hash: str = "1",
    change: ScanChange = ScanChange.UNKNOWN,
    **kwargs,
) -> ScannedFile:
    return ScannedFile(path=path, size=size, hash=hash, change=change, **kwargs)


class FakeRegistry:
    """In-memory stand-in for the Windows registry."""

    def __init__(self, tree: Optional[RegistryTree] = None) -> None:
        self.tree: RegistryTree = {
            normalize_registry_path(path): dict(values) for path, values in (tree or {}).items()
        }
        self.writes: Dict[str, Dict[str, RegistryValueData]] = {}

    def read_tree(self, path: str) -> RegistryTree:
        wanted = registry_key_id(path)
        return {
            key: dict(values)
            for key, values in self.tree.items()
            if registry_key_id(key) == wanted or registry_key_id(key).startswith(wanted + "/")
        }

    def write_key(self, path: str, values: Dict[str, RegistryValueData]) -> None:
        path = normalize_registry_path(path)
        self.tree[path] = dict(values)
        self.writes[path] = dict(values)


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture
def saves_dir(tmp_path: Path) -> Path:
    """A game save folder with two files, one nested."""
    saves = tmp_path.resolve() / "saves"
    (saves / "slot1").mkdir(parents=True)
    (saves / "profile.sav").write_bytes(b"profile-data")
    (saves / "slot1" / "game.sav").write_bytes(b"slot-one")
    return saves


@pytest.fixture
def backup_root(tmp_path: Path) -> Path:
    return tmp_path.resolve() / "backups"


@pytest.fixture
def fake_registry() -> FakeRegistry:
    return FakeRegistry(
        {
            "HKEY_CURRENT_USER/Software/Studio/Game": {
                "Volume": RegistryValueData(kind="dword", data=7),
                "Player": RegistryValueData(kind="sz", data="alice"),
            },
        }
    )
