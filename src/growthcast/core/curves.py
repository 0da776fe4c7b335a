"""Growth curve functional forms for cumulative count forecasting.

Each function maps an index x (days since the first observation, starting
at 1) and a parameter vector to a predicted cumulative count.

Mathematical Background
-----------------------

Exponential:

    f(x) = a * exp(r * x)

    Unbounded growth. Appropriate only for the early phase of an outbreak.

Logistic (asymptote, midpoint, scale):

    f(x) = asym / (1 + exp((xmid - x) / scal))

    Symmetric S-curve. The growth rate peaks at x = xmid, where
    f(xmid) = asym / 2.

Gompertz:

    f(x) = asym * exp(-b2 * exp(-b3 * x))

    Asymmetric S-curve with the inflection at asym / e, earlier than the
    logistic.

Richards (Chapman-Richards form):

    f(x) = asym * (1 - exp(-k * x)) ** shape

    Flexible sigmoid; shape controls the position of the inflection point.

References:
    Richards, F.J. (1959). "A Flexible Growth Function for Empirical Use".
    Journal of Experimental Botany, 10(2), 290-301.
"""

import numpy as np


def exponential(x, a, r):
    """Exponential growth: a * exp(r * x)."""
    return a * np.exp(r * x)


def logistic(x, asym, xmid, scal):
    """Three-parameter logistic curve.

    Args:
        x: Index array
        asym: Upper asymptote
        xmid: Midpoint (x of maximal growth rate)
        scal: Scale (distance from midpoint to ~73% of asym)

    Returns:
        Predicted cumulative counts
    """
    return asym / (1.0 + np.exp((xmid - x) / scal))


def gompertz(x, asym, b2, b3):
    """Gompertz curve: asym * exp(-b2 * exp(-b3 * x))."""
    return asym * np.exp(-b2 * np.exp(-b3 * x))


def richards(x, asym, k, shape):
    """Richards curve: asym * (1 - exp(-k * x)) ** shape.

    The base is clipped at zero so a negative rate does not produce
    complex values for non-integer shapes.
    """
    base = np.clip(1.0 - np.exp(-k * x), 0.0, None)
    return asym * np.power(base, shape)
