"""
Typed failures raised by the MPC pipeline.

Everything that can be detected before the solver runs (bad input, a
degenerate fit, a bad horizon configuration) is raised early. Solver
failures carry the solver status and the best-known solution so the caller
can decide what to do next.
"""


class MPCError(Exception):
    """Base class for all line_mpc errors."""


class InvalidInput(MPCError, ValueError):
    """Malformed waypoints, state, coefficients or fit order."""


class FitFailure(MPCError):
    """The least-squares system for the polynomial fit is singular."""


class ConfigurationError(MPCError, ValueError):
    """Invalid horizon configuration (e.g. N < 2 or dt <= 0)."""


class OptimizationFailed(MPCError):
    """
    The solver did not converge or ran out of its time budget.

    Attributes:
        status: Solver return status string (e.g. 'Maximum_CpuTime_Exceeded')
        solution: Best-known (possibly infeasible) MPCSolution
    """

    def __init__(self, status, solution=None):
        self.status = status
        self.solution = solution
        super().__init__(f"MPC solver failed: {status}")
