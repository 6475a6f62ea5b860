"""Remote stores the backup root can be synchronized with."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Protocol

from savekeep.scanner.walker import hash_file, iter_files


class Remote(Protocol):
    """Minimal interface a cloud store must offer.

    Paths are ``/``-separated and relative to the remote root. Transport
    failures are raised as ``CloudError`` (``OSError`` is accepted too).
    Any other exception escaping ``read`` or ``write`` is still recorded as
    a failure of that one path.
    """

    def list(self) -> Dict[str, str]: ...

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes) -> None: ...


class FolderRemote:
    """A remote that is just another directory (a mounted share, a synced folder)."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def list(self) -> Dict[str, str]:
        if not self.root.is_dir():
            raise OSError(f"Remote folder does not exist: {self.root}")
        return {
            file.relative_to(self.root).as_posix(): hash_file(file)
            for file in iter_files(self.root)
        }

    def read(self, path: str) -> bytes:
        return (self.root / path).read_bytes()

    def write(self, path: str, data: bytes) -> None:
        write_atomic(self.root / path, data)


def write_atomic(target: Path, data: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_name(f".{target.name}.part")
    tmp.write_bytes(data)
    os.replace(tmp, target)
