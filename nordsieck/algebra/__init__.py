"""Linear algebra backends and the Adams-Nordsieck transform."""

from nordsieck.algebra.protocols import LinearAlgebraBackend
from nordsieck.algebra.dense import DenseBackend, RationalBackend
from nordsieck.algebra.transformer import (
    AdamsNordsieckTransformer,
    TransformerRegistry,
    default_registry,
    get_transformer,
)

__all__ = [
    "LinearAlgebraBackend",
    "DenseBackend",
    "RationalBackend",
    "AdamsNordsieckTransformer",
    "TransformerRegistry",
    "default_registry",
    "get_transformer",
]
