"""savekeep — snapshot, diff and restore per-game persistent state."""

__version__ = "0.4.0"
