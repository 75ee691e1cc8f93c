"""Polling cycle coordination and scheduling."""

from .coordinator import PollCoordinator, PollResult, utc_now
from .scheduler import PollScheduler

__all__ = ["PollCoordinator", "PollResult", "PollScheduler", "utc_now"]
