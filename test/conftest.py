import matplotlib
matplotlib.use("Agg")

import pytest

from line_mpc.config import HorizonConfig, SolverOptions

PTSX = [-32.16173, -43.49173, -61.09, -78.29172, -93.05002, -107.7717]
PTSY = [113.361, 105.941, 92.88499, 78.73102, 65.34102, 50.57938]
POSE = (-40.62, 108.73, 3.733651)
SPEED = 10.0


@pytest.fixture
def waypoints():
    return list(PTSX), list(PTSY)


@pytest.fixture
def pose():
    return POSE


@pytest.fixture
def config():
    """Baseline horizon with a relaxed time budget for slow test machines."""
    return HorizonConfig(solver=SolverOptions(max_cpu_time=10.0))
