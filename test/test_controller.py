"""
Tests for the MPC controller solve cycle.
"""

import math

import numpy as np
import pytest

from line_mpc.config import HorizonConfig, SolverOptions
from line_mpc.controller import MPCController, MPCSolution, VehicleState
from line_mpc.errors import InvalidInput, OptimizationFailed
from line_mpc.receding_horizon import state_from_waypoints

# regression bound for the scenario below; the speed term alone contributes
# about 2.16e4 (v starts at 10 against a reference of 40, |a| <= 1)
COST_THRESHOLD = 23000.0


@pytest.fixture
def scenario(waypoints, pose):
    ptsx, ptsy = waypoints
    x, y, psi = pose
    return state_from_waypoints(ptsx, ptsy, x, y, psi, 10.0, order=3)


@pytest.fixture
def solution(config, scenario):
    state, coeffs = scenario
    return MPCController(config).solve(state, coeffs)


def test_scenario_state(scenario):
    state, coeffs = scenario
    assert isinstance(state, VehicleState)
    assert state[:4] == (0.0, 0.0, 0.0, 10.0)
    assert state.cte == pytest.approx(float(coeffs[0]))
    assert state.epsi == pytest.approx(-math.atan(float(coeffs[1])))


def test_end_to_end_solve(config, solution):
    assert isinstance(solution, MPCSolution)
    assert solution.success
    assert math.isfinite(solution.actuation.delta)
    assert math.isfinite(solution.actuation.a)
    assert len(solution.mpc_x) == config.N
    assert len(solution.mpc_y) == config.N
    assert np.all(np.isfinite(solution.mpc_x))
    assert np.all(np.isfinite(solution.mpc_y))
    assert 0.0 <= solution.cost < COST_THRESHOLD


def test_accelerates_towards_reference_speed(solution):
    # v=10 against ref_v=40: the optimum pushes the accelerator to its limit
    assert solution.actuation.a == pytest.approx(1.0, abs=1e-3)
    assert solution.next_state.v > 10.0


def test_actuation_within_bounds(config, solution):
    lay = MPCController(config).layout
    deltas = solution.opt[lay.delta_start:lay.a_start]
    accels = solution.opt[lay.a_start:]
    tol = 1e-6
    assert np.all(np.abs(deltas) <= config.steer_limit + tol)
    assert np.all(np.abs(accels) <= config.accel_limit + tol)
    assert -config.steer_limit <= solution.actuation.delta <= config.steer_limit
    assert -config.accel_limit <= solution.actuation.a <= config.accel_limit


def test_first_state_block_equals_input(config, scenario, solution):
    state, _ = scenario
    lay = MPCController(config).layout
    first = [solution.opt[start] for start in lay.state_starts]
    np.testing.assert_allclose(first, state, atol=1e-6)
    assert solution.mpc_x[0] == pytest.approx(state.x, abs=1e-6)
    assert solution.mpc_y[0] == pytest.approx(state.y, abs=1e-6)


def test_next_state_is_second_entry_of_each_block(config, solution):
    lay = MPCController(config).layout
    expected = [solution.opt[start + 1] for start in lay.state_starts]
    np.testing.assert_allclose(solution.next_state, expected)
    # moving forward along +x at roughly v * dt
    assert solution.next_state.x == pytest.approx(10.0 * config.dt, rel=1e-3)


def test_repeated_solves_are_independent(config, scenario):
    state, coeffs = scenario
    controller = MPCController(config)
    first = controller.solve(state, coeffs)
    controller.solve(VehicleState(0.0, 0.0, 0.0, 5.0, -1.0, 0.1), coeffs)
    again = controller.solve(state, coeffs)
    assert again.cost == pytest.approx(first.cost, rel=1e-6)
    np.testing.assert_allclose(again.actuation, first.actuation, atol=1e-6)


def test_short_horizon():
    cfg = HorizonConfig(N=2, solver=SolverOptions(max_cpu_time=10.0))
    sol = MPCController(cfg).solve([0.0, 0.0, 0.0, 5.0, 0.5, 0.0], [0.5, 0.0, 0.0, 0.0])
    assert len(sol.mpc_x) == 2
    assert sol.opt.shape == (6 * 2 + 2,)


def test_iteration_cap_surfaces_as_typed_failure(scenario):
    state, coeffs = scenario
    cfg = HorizonConfig(solver=SolverOptions(max_iter=1, max_cpu_time=10.0))
    with pytest.raises(OptimizationFailed) as excinfo:
        MPCController(cfg).solve(state, coeffs)

    err = excinfo.value
    assert err.status == 'Maximum_Iterations_Exceeded'
    assert isinstance(err.solution, MPCSolution)
    assert not err.solution.success
    assert len(err.solution.mpc_x) == cfg.N


@pytest.mark.parametrize("solver, status", [
    (SolverOptions(max_cpu_time=1e-6, max_wall_time=10.0), 'Maximum_CpuTime_Exceeded'),
    (SolverOptions(max_cpu_time=10.0, max_wall_time=1e-6), 'Maximum_WallTime_Exceeded'),
])
def test_time_budget_surfaces_as_typed_failure(scenario, solver, status):
    state, coeffs = scenario
    cfg = HorizonConfig(solver=solver)
    with pytest.raises(OptimizationFailed) as excinfo:
        MPCController(cfg).solve(state, coeffs)

    err = excinfo.value
    assert err.status == status
    assert isinstance(err.solution, MPCSolution)
    assert not err.solution.success


@pytest.mark.parametrize("state, coeffs", [
    ([0.0, 0.0, 0.0, 10.0, 0.5], [0.5, 0.0, 0.0, 0.0]),
    ([0.0, 0.0, 0.0, 10.0, 0.5, float('nan')], [0.5, 0.0, 0.0, 0.0]),
    ([0.0, 0.0, 0.0, 10.0, 0.5, 0.0], [0.5, 0.0, 0.0]),
    ([0.0, 0.0, 0.0, 10.0, 0.5, 0.0], [0.5, 0.0, float('inf'), 0.0]),
    (["a"] * 6, [0.5, 0.0, 0.0, 0.0]),
    ([0.0, 0.0, 0.0, 10.0, 0.5, 0.0], [0.5, "slope", 0.0, 0.0]),
    ([0.0, 0.0, 0.0, 10.0, 0.5, 0.0], None),
])
def test_invalid_inputs_rejected_before_solving(config, state, coeffs):
    with pytest.raises(InvalidInput):
        MPCController(config).solve(state, coeffs)
