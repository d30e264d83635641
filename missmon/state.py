from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass
class MonitorState:
    """Rolling-window state for the miss monitor.

    Owned by the monitor loop and replaced on every tick. Misses are counted
    relative to ``baseline_count``; the window anchored at ``window_start_ts``
    keeps extending while the counter keeps rising. Timestamps are monotonic
    seconds (see ``monitor.now_s``)."""
    baseline_count: int
    window_start_ts: float
    last_sampled_count: int
    last_alert_ts: Optional[float] = None

    def missed(self, current_count: int) -> int:
        """Misses accumulated in the current window."""
        return current_count - self.baseline_count


@dataclass(frozen=True)
class Decision:
    """Outcome of one sample.

    ``alert`` is True when a notification should go out carrying
    ``miss_difference``. ``suppressed`` marks a qualifying sample that the
    alert cooldown held back."""
    alert: bool
    miss_difference: int
    state: MonitorState
    suppressed: bool = False
    window_refreshed: bool = False
    window_reset: bool = False
