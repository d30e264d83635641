"""missmon package for miss-monitor."""

from .state import MonitorState, Decision
from .monitor import MissMonitor, evaluate_sample

__all__ = ["MonitorState", "Decision", "MissMonitor", "evaluate_sample"]
