"""Library of embedded Runge-Kutta tableaux."""

from nordsieck.methods.runge_kutta import (
    bogacki_shampine32,
    dormand_prince54,
    heun_euler,
)

__all__ = [
    "bogacki_shampine32",
    "dormand_prince54",
    "heun_euler",
]
