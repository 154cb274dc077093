"""Standard embedded Runge-Kutta tableaux."""

import numpy as np
from nordsieck.core.method import ButcherTableau


def heun_euler() -> ButcherTableau:
    """Heun's method with an explicit Euler error estimate (2nd order)."""
    A = np.array([
        [0.0, 0.0],
        [1.0, 0.0],
    ])
    b = np.array([0.5, 0.5])
    e = np.array([-0.5, 0.5])
    c = np.array([0.0, 1.0])
    return ButcherTableau(A=A, b=b, e=e, c=c, order=2)


def bogacki_shampine32() -> ButcherTableau:
    """Bogacki-Shampine 3(2) pair, FSAL."""
    A = np.array([
        [0.0, 0.0, 0.0, 0.0],
        [1.0/2.0, 0.0, 0.0, 0.0],
        [0.0, 3.0/4.0, 0.0, 0.0],
        [2.0/9.0, 1.0/3.0, 4.0/9.0, 0.0],
    ])
    b = np.array([2.0/9.0, 1.0/3.0, 4.0/9.0, 0.0])
    e = np.array([-5.0/72.0, 1.0/12.0, 1.0/9.0, -1.0/8.0])
    c = np.array([0.0, 0.5, 0.75, 1.0])
    return ButcherTableau(A=A, b=b, e=e, c=c, order=3)


def dormand_prince54() -> ButcherTableau:
    """Dormand-Prince 5(4) pair, FSAL (the classic ode45 pair)."""
    A = np.array([
        [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [1.0/5.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [3.0/40.0, 9.0/40.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [44.0/45.0, -56.0/15.0, 32.0/9.0, 0.0, 0.0, 0.0, 0.0],
        [19372.0/6561.0, -25360.0/2187.0, 64448.0/6561.0, -212.0/729.0,
         0.0, 0.0, 0.0],
        [9017.0/3168.0, -355.0/33.0, 46732.0/5247.0, 49.0/176.0,
         -5103.0/18656.0, 0.0, 0.0],
        [35.0/384.0, 0.0, 500.0/1113.0, 125.0/192.0, -2187.0/6784.0,
         11.0/84.0, 0.0],
    ])
    b = np.array([35.0/384.0, 0.0, 500.0/1113.0, 125.0/192.0,
                  -2187.0/6784.0, 11.0/84.0, 0.0])
    e = np.array([71.0/57600.0, 0.0, -71.0/16695.0, 71.0/1920.0,
                  -17253.0/339200.0, 22.0/525.0, -1.0/40.0])
    c = np.array([0.0, 1.0/5.0, 3.0/10.0, 4.0/5.0, 8.0/9.0, 1.0, 1.0])
    return ButcherTableau(A=A, b=b, e=e, c=c, order=5)
