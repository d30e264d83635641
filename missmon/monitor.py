from __future__ import annotations

import threading
import time
from dataclasses import replace
from typing import Callable, Optional

from .config import MonitorSettings
from .logging import JsonLogger
from .notify import NotifyError, format_alert
from .source import FetchError
from .state import Decision, MonitorState


def now_s() -> float:
    """Window and cooldown clock: monotonic seconds, immune to wall-clock jumps."""
    return time.monotonic()


def seed_state(count: int, now: float) -> MonitorState:
    """State after the first successful fetch: empty window, never alerted."""
    return MonitorState(baseline_count=count, window_start_ts=now, last_sampled_count=count)


def evaluate_sample(state: MonitorState, current_count: int, now: float, settings: MonitorSettings) -> Decision:
    """Run one sample through the miss-detection state machine.

    Order matters: the alert is judged against the window as it stood before
    this sample, then the window is refreshed (new misses) or reset (quiet for
    longer than the tolerance period). The input state is not modified.

    A counter that went backwards (node restart) yields a negative difference,
    which never alerts and never refreshes the window.
    """
    miss_difference = current_count - state.baseline_count
    baseline = state.baseline_count
    last_alert_ts = state.last_alert_ts
    window_start_ts = state.window_start_ts
    alert = suppressed = refreshed = reset = False

    if miss_difference >= settings.miss_tolerance:
        since_alert = float("inf") if last_alert_ts is None else now - last_alert_ts
        if since_alert > settings.alert_cooldown_s:
            alert = True
            last_alert_ts = now
            baseline = current_count
        else:
            suppressed = True

    if current_count > state.last_sampled_count:
        window_start_ts = now
        refreshed = True

    if now - window_start_ts > settings.miss_tolerance_period_s:
        baseline = current_count
        window_start_ts = now
        reset = True

    new_state = replace(
        state,
        baseline_count=baseline,
        window_start_ts=window_start_ts,
        last_sampled_count=current_count,
        last_alert_ts=last_alert_ts,
    )
    return Decision(
        alert=alert,
        miss_difference=miss_difference,
        state=new_state,
        suppressed=suppressed,
        window_refreshed=refreshed,
        window_reset=reset,
    )


class MissMonitor:
    """Oracle miss-counter monitor.

    Samples a counter source on a fixed cadence, feeds each value through
    ``evaluate_sample`` and sends an alert through the notifier when the
    validator misses too many price votes inside the rolling window.

    The loop is single-threaded: a tick fetches, decides and (maybe) notifies
    in sequence, then the loop sleeps ``sample_interval_s``. A hung source or
    notifier stalls the loop; timeouts are the collaborators' business."""
    def __init__(
        self,
        source,
        notifier,
        logger: JsonLogger,
        settings: MonitorSettings,
        clock: Callable[[], float] = now_s,
    ):
        self.source = source
        self.notifier = notifier
        self.logger = logger
        self.settings = settings
        self.clock = clock
        self.state: Optional[MonitorState] = None

    def sample(self, current_count: int, now: Optional[float] = None) -> Optional[Decision]:
        """Apply one counter value to the monitor state.

        The first call seeds the state and returns None (nothing to compare
        against yet). Later calls return the Decision for this sample.
        """
        if now is None:
            now = self.clock()

        if self.state is None:
            self.state = seed_state(current_count, now)
            self.logger.emit("seeded", miss_counter=current_count)
            return None

        prev = self.state
        decision = evaluate_sample(prev, current_count, now, self.settings)
        self.state = decision.state
        self._log_decision(prev, current_count, now, decision)
        return decision

    def _log_decision(self, prev: MonitorState, current_count: int, now: float, decision: Decision):
        self.logger.debug(
            "check",
            miss_counter=current_count,
            missed=decision.miss_difference,
            tolerance=self.settings.miss_tolerance,
        )
        if current_count < prev.last_sampled_count:
            self.logger.emit("counter_decreased", previous=prev.last_sampled_count, miss_counter=current_count)
        if decision.alert or decision.suppressed:
            self.logger.emit("misses_exceeded", missed=decision.miss_difference, tolerance=self.settings.miss_tolerance)
        if decision.suppressed:
            self.logger.emit(
                "alert_skipped",
                reason="sent_too_recently",
                since_last_alert_s=round(now - prev.last_alert_ts, 3),
                cooldown_s=self.settings.alert_cooldown_s,
            )
        if decision.window_refreshed:
            self.logger.emit("window_refreshed", miss_counter=current_count, missed=prev.missed(current_count))
        if decision.window_reset:
            self.logger.emit("window_reset", miss_counter=current_count, last_missed=prev.missed(current_count))

    def tick(self) -> Optional[Decision]:
        """One loop step: fetch, decide, notify.

        Cooldown and baseline are advanced before delivery, so a failed send
        does not turn into an alert storm on the next tick.

        Raises:
            FetchError: the counter could not be read; state is unchanged.
            NotifyError: the alert was decided but could not be delivered.
        """
        current_count = self.source.fetch()
        decision = self.sample(current_count)
        if decision is not None and decision.alert:
            self.notifier.send(format_alert(decision.miss_difference))
            self.logger.emit("alert_sent", missed=decision.miss_difference)
        return decision

    def prime(self) -> bool:
        """Seed the state from an initial fetch. Returns False if the fetch failed."""
        if self.state is not None:
            return True
        try:
            self.sample(self.source.fetch())
        except FetchError as e:
            self.logger.emit("fetch_error", error=str(e), phase="seed")
            return False
        return True

    def run(self, once: bool = False, stop_evt: Optional[threading.Event] = None) -> int:
        """Monitor until stopped.

        Fetch and notify failures are logged and the loop carries on after the
        normal interval. With ``once`` a single check runs and the loop returns
        without sleeping.
        """
        if stop_evt is None:
            stop_evt = threading.Event()

        # A failed seed is retried by the first tick.
        self.prime()

        while not stop_evt.is_set():
            try:
                self.tick()
            except FetchError as e:
                self.logger.emit("fetch_error", error=str(e))
            except NotifyError as e:
                self.logger.emit("notify_error", error=str(e))
            if once:
                break
            stop_evt.wait(self.settings.sample_interval_s)

        self.logger.emit("stopped")
        return 0
