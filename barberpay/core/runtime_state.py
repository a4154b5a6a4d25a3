"""Whether this process currently runs the stale-transfer sweep."""
from __future__ import annotations

_sweep_scheduler_running = False


def set_scheduler_active(active: bool) -> None:
    global _sweep_scheduler_running
    _sweep_scheduler_running = bool(active)


def is_scheduler_active() -> bool:
    """Reported by ``/health``; only the lock holder runs the sweep."""

    return _sweep_scheduler_running
