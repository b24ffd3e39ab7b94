"""
Cost and constraint evaluator for the line-tracking NLP.

The evaluator is a pure function of the decision vector written with
elementary CasADi operations, so the solver gets exact sparse derivatives
through algorithmic differentiation.
"""

import numpy as np
from casadi import DM, vertcat

from line_mpc.config import HorizonConfig
from line_mpc.errors import InvalidInput
from line_mpc.layout import N_STATES, VariableLayout
from line_mpc.model import kinematic_step


class TrajectoryOptimizer:
    """
    Produces (cost, g) for a candidate decision vector.

    Coefficients may be numbers or CasADi symbols; the controller passes the
    NLP parameter so one solver serves every cycle.
    """

    def __init__(self, coeffs, config: HorizonConfig):
        self.coeffs = [float(c) if isinstance(c, (int, float, np.number)) else c for c in coeffs]
        self.config = config
        self.layout = VariableLayout.from_horizon(config.N)
        if len(self.coeffs) != config.poly_order + 1:
            raise InvalidInput(
                f"expected {config.poly_order + 1} coefficients, got {len(self.coeffs)}")

    def cost(self, opt):
        cfg, lay, w = self.config, self.layout, self.config.weights
        N = cfg.N
        cost = 0

        # Reference state tracking
        for i in range(N):
            cost += w.cte * (opt[lay.cte_start + i] - cfg.ref_cte) ** 2
            cost += w.epsi * (opt[lay.epsi_start + i] - cfg.ref_epsi) ** 2
            cost += w.v * (opt[lay.v_start + i] - cfg.ref_v) ** 2

        # Actuator magnitude
        for i in range(N - 1):
            cost += w.delta * opt[lay.delta_start + i] ** 2
            cost += w.a * opt[lay.a_start + i] ** 2

        # Gap between sequential actuations
        for i in range(N - 2):
            cost += w.delta_rate * (opt[lay.delta_start + i + 1] - opt[lay.delta_start + i]) ** 2
            cost += w.a_rate * (opt[lay.a_start + i + 1] - opt[lay.a_start + i]) ** 2

        return cost

    def constraints(self, opt):
        cfg, lay = self.config, self.layout
        g = lay.state_at(opt, 0)

        for i in range(cfg.N - 1):
            state0 = lay.state_at(opt, i)
            state1 = lay.state_at(opt, i + 1)
            delta0 = opt[lay.delta_start + i]
            a0 = opt[lay.a_start + i]

            predicted = kinematic_step(state0, delta0, a0, self.coeffs, cfg.dt, cfg.Lf)
            g += [state1[k] - predicted[k] for k in range(N_STATES)]

        return vertcat(*g)

    def __call__(self, opt):
        if opt.shape[0] != self.layout.n_vars:
            raise InvalidInput(
                f"decision vector must have {self.layout.n_vars} entries, got {opt.shape[0]}")
        return self.cost(opt), self.constraints(opt)

    def evaluate(self, opt):
        """Numeric (cost, g) for a concrete decision vector."""
        values = np.asarray(opt, dtype=np.float64).ravel()
        cost, g = self(DM(values))
        return float(cost), np.asarray(DM(g).full()).ravel()
