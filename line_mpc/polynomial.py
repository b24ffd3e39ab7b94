"""
Least-squares polynomial fit of the reference waypoints and its evaluation.

Coefficients are ordered lowest degree first. polyeval/polyslope only use
+ and *, so they evaluate floats, numpy arrays and CasADi expressions alike.
"""

import numpy as np
from scipy.linalg import qr, solve_triangular

from line_mpc.errors import FitFailure, InvalidInput

# relative threshold on |R_ii| below which the fit is treated as singular
RANK_TOL = 1e-12


def polyfit(xvals, yvals, order):
    """
    Fit y = c0 + c1 x + ... + c_order x^order in the least-squares sense.

    Solves the Vandermonde system through an economic QR factorisation.

    Raises:
        InvalidInput: mismatched/non-finite points or order outside
            [1, len(points) - 1]
        FitFailure: the Vandermonde matrix is rank deficient
    """
    xs = np.asarray(xvals, dtype=np.float64).ravel()
    ys = np.asarray(yvals, dtype=np.float64).ravel()
    if xs.size != ys.size:
        raise InvalidInput(f"x/y length mismatch: {xs.size} vs {ys.size}")
    if not (np.all(np.isfinite(xs)) and np.all(np.isfinite(ys))):
        raise InvalidInput("fit points must be finite")
    if isinstance(order, bool) or int(order) != order:
        raise InvalidInput(f"order must be an integer, got {order!r}")
    order = int(order)
    if order < 1 or order > xs.size - 1:
        raise InvalidInput(
            f"order must be in [1, {xs.size - 1}] for {xs.size} points, got {order}")

    A = np.ones((xs.size, order + 1))
    for i in range(order):
        A[:, i + 1] = A[:, i] * xs

    Q, R = qr(A, mode='economic')
    diag = np.abs(np.diag(R))
    if diag.min() <= RANK_TOL * max(diag.max(), 1.0):
        raise FitFailure(f"singular least-squares system for order {order} fit")

    return solve_triangular(R, Q.T @ ys)


def polyeval(coeffs, x):
    """Evaluate the polynomial at x (Horner's scheme)."""
    result = 0.0
    for c in reversed(list(coeffs)):
        result = result * x + c
    return result


def polyderiv(coeffs):
    """Coefficients of the first derivative."""
    coeffs = list(coeffs)
    return [i * coeffs[i] for i in range(1, len(coeffs))]


def polyslope(coeffs, x):
    """First derivative of the polynomial at x."""
    return polyeval(polyderiv(coeffs), x)
