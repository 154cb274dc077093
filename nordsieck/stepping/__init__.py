"""Step interpolation, step handlers and event detection."""

from nordsieck.stepping.interpolator import (
    HermiteStepInterpolator,
    NordsieckStepInterpolator,
    StepInterpolator,
    rescale_nordsieck,
)
from nordsieck.stepping.events import Action, EventHandler, EventState
from nordsieck.stepping.event_filter import EventFilter, FilterType
from nordsieck.stepping.handlers import (
    FixedStepHandler,
    NormalizerBounds,
    NormalizerMode,
    StepHandler,
    StepNormalizer,
)
from nordsieck.stepping.trajectory import ContinuousOutput

__all__ = [
    "HermiteStepInterpolator",
    "NordsieckStepInterpolator",
    "StepInterpolator",
    "rescale_nordsieck",
    "Action",
    "EventHandler",
    "EventState",
    "EventFilter",
    "FilterType",
    "FixedStepHandler",
    "NormalizerBounds",
    "NormalizerMode",
    "StepHandler",
    "StepNormalizer",
    "ContinuousOutput",
]
