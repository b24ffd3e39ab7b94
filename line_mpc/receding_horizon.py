"""
Receding-horizon loop: derive the state from waypoints and pose, then solve
once per cycle and apply only the first actuation.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from line_mpc.controller import Actuation, MPCController, MPCSolution, VehicleState
from line_mpc.errors import InvalidInput, OptimizationFailed
from line_mpc.model import predict
from line_mpc.polynomial import polyeval, polyfit, polyslope
from line_mpc.transform import to_vehicle_frame

logger = logging.getLogger(__name__)

FAILURE_POLICIES = ('raise', 'hold')


def state_from_waypoints(ptsx, ptsy, x, y, psi, v, order=3) -> Tuple[VehicleState, np.ndarray]:
    """
    Build the vehicle-frame state and the reference polynomial.

    After the transform the vehicle sits at the origin with zero heading, so
    the cross-track error is f(0) and the heading error is -atan(f'(0)).

    Returns:
        (state, coeffs)
    """
    vx, vy = to_vehicle_frame(ptsx, ptsy, x, y, psi)
    coeffs = polyfit(vx, vy, order)

    cte = float(polyeval(coeffs, 0.0)) - 0.0
    epsi = -math.atan(float(polyslope(coeffs, 0.0)))
    return VehicleState(0.0, 0.0, 0.0, float(v), cte, epsi), coeffs


@dataclass
class History:
    """Per-cycle series, starting with the initial state."""

    x: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)
    psi: List[float] = field(default_factory=list)
    v: List[float] = field(default_factory=list)
    cte: List[float] = field(default_factory=list)
    epsi: List[float] = field(default_factory=list)
    delta: List[float] = field(default_factory=list)
    a: List[float] = field(default_factory=list)
    cost: List[float] = field(default_factory=list)
    status: List[str] = field(default_factory=list)
    predictions: List[Tuple[np.ndarray, np.ndarray]] = field(default_factory=list)

    def add_state(self, state: VehicleState):
        self.x.append(state.x)
        self.y.append(state.y)
        self.psi.append(state.psi)
        self.v.append(state.v)
        self.cte.append(state.cte)
        self.epsi.append(state.epsi)

    def add_cycle(self, actuation: Actuation, cost: float, status: str, prediction=None):
        self.delta.append(actuation.delta)
        self.a.append(actuation.a)
        self.cost.append(cost)
        self.status.append(status)
        if prediction is not None:
            self.predictions.append(prediction)

    def __len__(self):
        return len(self.cost)

    def to_array(self) -> np.ndarray:
        """
        One row per cycle: state after the cycle, actuation applied, cost.

        Columns: x, y, psi, v, cte, epsi, delta, a, cost
        """
        n = len(self)
        return np.column_stack([
            self.x[1:n + 1], self.y[1:n + 1], self.psi[1:n + 1], self.v[1:n + 1],
            self.cte[1:n + 1], self.epsi[1:n + 1], self.delta, self.a, self.cost,
        ])

    def save_csv(self, path: str):
        np.savetxt(path, self.to_array(), delimiter=",",
                   header="x,y,psi,v,cte,epsi,delta,a,cost", comments="")


class RecedingHorizonLoop:
    """
    Repeatedly solves the MPC problem, feeding each solution's next state
    into the following cycle.

    on_failure:
        'raise' - propagate OptimizationFailed to the caller
        'hold'  - keep the previous actuation (zero on the first cycle) and
                  advance the state through the kinematic model
    """

    def __init__(self, controller: MPCController, on_failure: str = 'raise'):
        if on_failure not in FAILURE_POLICIES:
            raise InvalidInput(f"on_failure must be one of {FAILURE_POLICIES}, got '{on_failure}'")
        self.controller = controller
        self.on_failure = on_failure

    def step(self, state, coeffs, previous: Optional[Actuation] = None):
        """
        Run one cycle.

        Returns:
            (next_state, actuation, solution) where solution is None when the
            previous actuation was held
        """
        try:
            solution = self.controller.solve(state, coeffs)
        except OptimizationFailed as e:
            if self.on_failure == 'raise':
                raise
            actuation = previous if previous is not None else Actuation(0.0, 0.0)
            logger.warning(f"Holding actuation delta={actuation.delta:.4f}, a={actuation.a:.4f} "
                           f"after solver failure ({e.status})")
            next_state = VehicleState(*predict(state, actuation, coeffs, self.controller.config))
            return next_state, actuation, None

        return solution.next_state, solution.actuation, solution

    def run(self, state, coeffs, iterations: int,
            callback: Optional[Callable[[int, MPCSolution], None]] = None) -> History:
        """
        Run `iterations` cycles from `state` against a fixed reference.

        callback(i, solution) is called after every successful solve, e.g. to
        plot the predicted trajectory.
        """
        if iterations < 1:
            raise InvalidInput(f"iterations must be >= 1, got {iterations}")

        state = VehicleState(*(float(s) for s in state))
        history = History()
        history.add_state(state)
        previous = None

        for i in range(iterations):
            logger.debug(f"Iteration {i}")
            state, actuation, solution = self.step(state, coeffs, previous)

            if solution is None:
                history.add_cycle(actuation, float('nan'), 'held')
            else:
                history.add_cycle(actuation, solution.cost, solution.status,
                                  (solution.mpc_x, solution.mpc_y))
                if callback is not None:
                    callback(i, solution)

            history.add_state(state)
            previous = actuation

        return history
