"""
MPC controller: sets up and solves the line-tracking NLP each cycle.
"""

import logging
import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
from casadi import SX, inf, nlpsol

from line_mpc.config import HorizonConfig
from line_mpc.errors import InvalidInput, OptimizationFailed
from line_mpc.layout import N_STATES, VariableLayout
from line_mpc.optimizer import TrajectoryOptimizer

logger = logging.getLogger(__name__)


class VehicleState(NamedTuple):
    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float


class Actuation(NamedTuple):
    delta: float
    a: float


@dataclass
class MPCSolution:
    """Result of one solve."""

    next_state: VehicleState
    actuation: Actuation
    cost: float
    mpc_x: np.ndarray             # predicted x over the horizon (diagnostics only)
    mpc_y: np.ndarray
    status: str
    success: bool
    iterations: int
    opt: np.ndarray


class MPCController:
    """
    Receding-horizon controller over the kinematic bicycle model.

    The NLP is built once per controller with the polynomial coefficients as
    a solver parameter. Each solve cold-starts from a zero decision vector
    seeded with the current state. A controller is not meant to be shared by
    concurrent solves; use one per worker.
    """

    def __init__(self, config: HorizonConfig = None):
        self.config = config if config is not None else HorizonConfig()
        self.layout = VariableLayout.from_horizon(self.config.N)
        self._build_solver()

    def _build_solver(self):
        cfg, lay = self.config, self.layout
        n_coeffs = cfg.poly_order + 1

        opt = SX.sym('opt', lay.n_vars)
        coeffs = SX.sym('coeffs', n_coeffs)
        fg_eval = TrajectoryOptimizer([coeffs[k] for k in range(n_coeffs)], cfg)
        cost, g = fg_eval(opt)

        nlp = {'x': opt, 'f': cost, 'g': g, 'p': coeffs}
        opts = cfg.solver.to_nlpsol()
        opts['error_on_fail'] = False
        self.solver = nlpsol('solver', 'ipopt', nlp, opts)

        # Non-actuators are unbounded
        lbx = np.full(lay.n_vars, -inf)
        ubx = np.full(lay.n_vars, inf)
        lbx[lay.delta_start:lay.a_start] = -cfg.steer_limit
        ubx[lay.delta_start:lay.a_start] = cfg.steer_limit
        lbx[lay.a_start:] = -cfg.accel_limit
        ubx[lay.a_start:] = cfg.accel_limit
        self.lbx = lbx
        self.ubx = ubx

        logger.debug(f"NLP built: N={cfg.N}, dt={cfg.dt}, n_vars={lay.n_vars}, "
                     f"n_constraints={lay.n_constraints}")

    def _check_inputs(self, current_state, coeffs):
        try:
            state = np.asarray(current_state, dtype=np.float64).ravel()
            coeffs = np.asarray(coeffs, dtype=np.float64).ravel()
        except (TypeError, ValueError) as e:
            raise InvalidInput(f"state and coefficients must be numeric: {e}") from e

        if state.size != N_STATES:
            raise InvalidInput(f"state must have {N_STATES} entries, got {state.size}")
        if not np.all(np.isfinite(state)):
            raise InvalidInput(f"state must be finite, got {state.tolist()}")

        if coeffs.size != self.config.poly_order + 1:
            raise InvalidInput(
                f"expected {self.config.poly_order + 1} coefficients, got {coeffs.size}")
        if not np.all(np.isfinite(coeffs)):
            raise InvalidInput("polynomial coefficients must be finite")
        return state, coeffs

    def solve(self, current_state, coeffs) -> MPCSolution:
        """
        Solve the horizon problem from current_state.

        Args:
            current_state: (x, y, psi, v, cte, epsi) in the vehicle frame
            coeffs: Reference polynomial coefficients, lowest degree first

        Returns:
            MPCSolution with the next state and the actuation to apply now

        Raises:
            InvalidInput: malformed state or coefficients
            OptimizationFailed: solver did not converge within its budget
        """
        state, coeffs = self._check_inputs(current_state, coeffs)
        lay = self.layout

        # Initial value of the independent variables: zero except the initial state
        opt0 = np.zeros(lay.n_vars)
        starts = list(lay.state_starts)
        opt0[starts] = state

        # Constraint bounds: all zero except the initial state (equality)
        lbg = np.zeros(lay.n_constraints)
        ubg = np.zeros(lay.n_constraints)
        lbg[:N_STATES] = state
        ubg[:N_STATES] = state

        try:
            sol = self.solver(x0=opt0, lbx=self.lbx, ubx=self.ubx,
                              lbg=lbg, ubg=ubg, p=coeffs)
        except RuntimeError as e:
            logger.warning(f"MPC solver raised: {e}")
            raise OptimizationFailed(f"solver error: {e}") from e

        stats = self.solver.stats()
        status = str(stats.get('return_status', 'unknown'))
        success = bool(stats.get('success', False))

        solution = self._extract(sol, status, success, int(stats.get('iter_count', -1)))
        logger.debug(f"MPC solve: status={status}, cost={solution.cost:.4f}, "
                     f"iterations={solution.iterations}")

        if not success or not math.isfinite(solution.cost):
            logger.warning(f"MPC solver failed: {status}")
            raise OptimizationFailed(status, solution)
        return solution

    def _extract(self, sol, status, success, iterations) -> MPCSolution:
        cfg, lay = self.config, self.layout
        xopt = np.asarray(sol['x'].full()).ravel()

        next_state = VehicleState(*(float(xopt[start + 1]) for start in lay.state_starts))

        # IPOPT may relax bounds by a hair; actuators are reported within limits
        delta = float(np.clip(xopt[lay.delta_start], -cfg.steer_limit, cfg.steer_limit))
        a = float(np.clip(xopt[lay.a_start], -cfg.accel_limit, cfg.accel_limit))

        return MPCSolution(
            next_state=next_state,
            actuation=Actuation(delta, a),
            cost=float(sol['f']),
            mpc_x=xopt[lay.x_start:lay.x_start + cfg.N].copy(),
            mpc_y=xopt[lay.y_start:lay.y_start + cfg.N].copy(),
            status=status,
            success=success,
            iterations=iterations,
            opt=xopt,
        )
