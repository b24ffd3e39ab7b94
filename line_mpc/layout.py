"""
Index layout of the decision and constraint vectors.

The solver works on one flat vector holding every state and actuator value
over the horizon:

    [x_0..x_{N-1}, y_*, psi_*, v_*, cte_*, epsi_*, delta_0..delta_{N-2}, a_*]

N timesteps give N - 1 actuations. The constraint vector holds the six
initial-state entries followed by six dynamics defects per transition.
"""

from dataclasses import dataclass

STATE_NAMES = ('x', 'y', 'psi', 'v', 'cte', 'epsi')
N_STATES = len(STATE_NAMES)
N_ACTUATORS = 2


@dataclass(frozen=True)
class VariableLayout:
    N: int
    x_start: int
    y_start: int
    psi_start: int
    v_start: int
    cte_start: int
    epsi_start: int
    delta_start: int
    a_start: int
    n_vars: int
    n_constraints: int

    @classmethod
    def from_horizon(cls, N: int) -> 'VariableLayout':
        x_start = 0
        y_start = x_start + N
        psi_start = y_start + N
        v_start = psi_start + N
        cte_start = v_start + N
        epsi_start = cte_start + N
        delta_start = epsi_start + N
        a_start = delta_start + N - 1
        return cls(
            N=N,
            x_start=x_start,
            y_start=y_start,
            psi_start=psi_start,
            v_start=v_start,
            cte_start=cte_start,
            epsi_start=epsi_start,
            delta_start=delta_start,
            a_start=a_start,
            n_vars=N * N_STATES + (N - 1) * N_ACTUATORS,
            n_constraints=N * N_STATES,
        )

    @property
    def state_starts(self):
        """Block offsets in STATE_NAMES order."""
        return (self.x_start, self.y_start, self.psi_start,
                self.v_start, self.cte_start, self.epsi_start)

    def state_at(self, opt, i):
        """Six state entries of step i, in STATE_NAMES order."""
        return [opt[start + i] for start in self.state_starts]

    def defect_index(self, i: int, k: int) -> int:
        """Constraint index of the k-th state defect of transition i -> i+1."""
        return N_STATES + N_STATES * i + k
