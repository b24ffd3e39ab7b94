"""
Discrete kinematic bicycle model with cross-track and heading error states.

The same update feeds the optimizer's defect constraints and the numeric
rollout used by the simulation, so the two never drift apart.
"""

from functools import lru_cache

import numpy as np
from casadi import SX, Function, atan, cos, sin, vertcat

from line_mpc.config import HorizonConfig
from line_mpc.layout import N_STATES
from line_mpc.polynomial import polyeval, polyslope


def kinematic_step(state, delta, a, coeffs, dt, Lf):
    """
    One zero-order-hold step of length dt.

    Args:
        state: (x, y, psi, v, cte, epsi), floats or CasADi expressions
        delta: Steering angle held over the step (radians)
        a: Acceleration held over the step
        coeffs: Reference polynomial coefficients (lowest degree first)

    Returns:
        [x, y, psi, v, cte, epsi] after dt
    """
    x0, y0, psi0, v0, cte0, epsi0 = state

    f0 = polyeval(coeffs, x0)
    psides0 = atan(polyslope(coeffs, x0))

    return [
        x0 + v0 * cos(psi0) * dt,
        y0 + v0 * sin(psi0) * dt,
        psi0 + v0 / Lf * delta * dt,
        v0 + a * dt,
        (f0 - y0) + v0 * sin(epsi0) * dt,
        (psi0 - psides0) + v0 * delta / Lf * dt,
    ]


@lru_cache(maxsize=32)
def build_dynamics(config: HorizonConfig) -> Function:
    """CasADi function (state[6], u[2], coeffs[order+1]) -> next state[6]."""
    state = SX.sym('state', N_STATES)
    u = SX.sym('u', 2)
    coeffs = SX.sym('coeffs', config.poly_order + 1)

    next_state = kinematic_step(
        [state[k] for k in range(N_STATES)], u[0], u[1],
        [coeffs[k] for k in range(config.poly_order + 1)],
        config.dt, config.Lf)
    return Function('dynamics', [state, u, coeffs], [vertcat(*next_state)])


def predict(state, actuation, coeffs, config: HorizonConfig) -> np.ndarray:
    """Numeric next state for the given actuation (delta, a)."""
    dynamics = build_dynamics(config)
    out = dynamics(np.asarray(state, dtype=np.float64),
                   np.asarray(actuation, dtype=np.float64),
                   np.asarray(coeffs, dtype=np.float64))
    return np.asarray(out.full()).ravel()
