"""Bounded counter for derivative evaluations."""

from typing import Optional

from nordsieck.core.exceptions import MaxCountExceededError


class EvaluationCounter:
    """Counts events and raises once a maximal count is exceeded.

    A maximal count of ``None`` means unlimited.
    """

    def __init__(self, maximal_count: Optional[int] = None, what: str = "evaluations"):
        self.maximal_count = maximal_count
        self.what = what
        self.count = 0

    def increment(self, amount: int = 1) -> None:
        self.count += amount
        if self.maximal_count is not None and self.count > self.maximal_count:
            raise MaxCountExceededError(self.maximal_count, self.what)

    def reset(self) -> None:
        self.count = 0
