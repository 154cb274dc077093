"""Exceptions raised by the integrators."""


class IntegrationError(Exception):
    """Base class for all integration errors."""


class DimensionMismatchError(IntegrationError, ValueError):
    """Two dimensions that must agree do not."""

    def __init__(self, actual: int, expected: int):
        super().__init__(f"dimension mismatch {actual} != {expected}")
        self.actual = actual
        self.expected = expected


class NumberTooSmallError(IntegrationError, ValueError):
    """A quantity is below its admissible lower bound."""

    def __init__(self, value: float, bound: float, what: str = "value"):
        super().__init__(f"{what} {value!r} is smaller than {bound!r}")
        self.value = value
        self.bound = bound


class StepSizeTooSmallError(NumberTooSmallError):
    """Step size control asked for a step below the minimal step."""

    def __init__(self, step: float, min_step: float):
        super().__init__(abs(step), min_step, what="step size")


class MaxCountExceededError(IntegrationError, RuntimeError):
    """An iteration or evaluation budget is exhausted."""

    def __init__(self, max_count: int, what: str = "evaluations"):
        super().__init__(f"maximal count ({max_count}) exceeded for {what}")
        self.max_count = max_count


class NoBracketingError(IntegrationError, RuntimeError):
    """A switching function does not change sign over the search interval."""

    def __init__(self, ta: float, tb: float, ga: float, gb: float):
        super().__init__(
            f"function values at endpoints do not have different signs, "
            f"endpoints: [{ta}, {tb}], values: [{ga}, {gb}]"
        )
        self.interval = (ta, tb)


class StarterStoppedEarlyError(IntegrationError, RuntimeError):
    """The starter integrator reached the target before the history was built."""

    def __init__(self, collected: int, needed: int):
        super().__init__(
            f"starter stopped after {collected} of the {needed} points "
            f"needed to build the Nordsieck vector"
        )
        self.collected = collected
        self.needed = needed
