"""Temporal confirmation of per-frame verdicts."""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Deque, Tuple

LOGGER = logging.getLogger("faceverify.tracking.confirmation")


class ConfirmationState(str, Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    CONFIRMED = "confirmed"


class ConfirmationTracker:
    """Bounded FIFO of per-frame verdicts for the current reference face.

    The stable match signal is raised only once the window is full and every
    verdict in it passed.
    """

    def __init__(self, required_pass_frames: int = 5) -> None:
        if required_pass_frames < 1:
            raise ValueError(f"required_pass_frames must be >= 1, got {required_pass_frames}")
        self.required_pass_frames = required_pass_frames
        self._history: Deque[bool] = deque(maxlen=required_pass_frames)

    def __len__(self) -> int:
        return len(self._history)

    @property
    def history(self) -> Tuple[bool, ...]:
        return tuple(self._history)

    @property
    def stable_match(self) -> bool:
        return len(self._history) == self.required_pass_frames and all(self._history)

    @property
    def state(self) -> ConfirmationState:
        if not self._history:
            return ConfirmationState.IDLE
        if self.stable_match:
            return ConfirmationState.CONFIRMED
        return ConfirmationState.ACCUMULATING

    @property
    def continuous_pass_count(self) -> int:
        """Number of passing verdicts currently in the window."""
        return sum(1 for passed in self._history if passed)

    def record(self, passed: bool) -> bool:
        """Append one verdict and return the resulting stable match signal."""
        previous = self.state
        self._history.append(bool(passed))
        current = self.state
        if current is not previous:
            LOGGER.debug("Confirmation %s -> %s (%s)", previous.value, current.value, self.history)
        return self.stable_match

    def clear(self, reason: str = "reset") -> None:
        if self._history:
            LOGGER.debug("Clearing %d verdicts: %s", len(self._history), reason)
        self._history.clear()
