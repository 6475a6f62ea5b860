"""Path redirects — read from / write to a different physical location.

``backup`` redirects apply while backing up, ``restore`` ones while
restoring, and ``bidirectional`` ones apply source→target on backup and
target→source on restore.
"""

from __future__ import annotations

from typing import Optional, Sequence

from savekeep.config.schema import RedirectConfig


def _normalise(path: str) -> str:
    return path.replace("\\", "/").rstrip("/")


def _swap_prefix(path: str, source: str, target: str) -> Optional[str]:
    source = _normalise(source)
    target = _normalise(target)
    if not source:
        return None
    if path == source:
        return target
    if path.startswith(source + "/"):
        return target + path[len(source):]
    return None


def apply_redirects(
    path: str,
    redirects: Sequence[RedirectConfig],
    *,
    restoring: bool,
) -> Optional[str]:
    """Return the redirected location of *path*, or None if nothing applies.

    Redirects are applied in order, each one to the result of the previous.
    """
    current = _normalise(path)
    changed = False
    for redirect in redirects:
        if restoring:
            if redirect.kind == "restore":
                swapped = _swap_prefix(current, redirect.source, redirect.target)
            elif redirect.kind == "bidirectional":
                swapped = _swap_prefix(current, redirect.target, redirect.source)
            else:
                continue
        else:
            if redirect.kind not in ("backup", "bidirectional"):
                continue
            swapped = _swap_prefix(current, redirect.source, redirect.target)
        if swapped is not None:
            current = swapped
            changed = True
    return current if changed and current != _normalise(path) else None
