"""
Tests for the cost/constraint evaluator and the kinematic model.
"""

import numpy as np
import pytest

from line_mpc.config import CostWeights, HorizonConfig
from line_mpc.errors import InvalidInput
from line_mpc.layout import VariableLayout
from line_mpc.model import predict
from line_mpc.optimizer import TrajectoryOptimizer

COEFFS = [0.7, 0.02, 0.001, -0.0001]


def reference_vars(cfg, scale=0.0):
    """Decision vector whose tracking errors and actuations shrink with scale."""
    lay = VariableLayout.from_horizon(cfg.N)
    opt = np.zeros(lay.n_vars)
    opt[lay.x_start:lay.x_start + cfg.N] = np.linspace(0.0, 5.0, cfg.N)
    opt[lay.cte_start:lay.cte_start + cfg.N] = cfg.ref_cte + 1.0 * scale
    opt[lay.epsi_start:lay.epsi_start + cfg.N] = cfg.ref_epsi + 0.5 * scale
    opt[lay.v_start:lay.v_start + cfg.N] = cfg.ref_v + 2.0 * scale
    opt[lay.delta_start:lay.a_start] = 0.1 * scale
    opt[lay.a_start:] = 0.2 * scale
    return opt


def rollout(cfg, state, actuations):
    lay = VariableLayout.from_horizon(cfg.N)
    opt = np.zeros(lay.n_vars)
    states = [np.asarray(state, dtype=float)]
    for delta, a in actuations:
        states.append(predict(states[-1], (delta, a), COEFFS, cfg))
    for i, s in enumerate(states):
        for start, value in zip(lay.state_starts, s):
            opt[start + i] = value
    opt[lay.delta_start:lay.a_start] = [d for d, _ in actuations]
    opt[lay.a_start:] = [a for _, a in actuations]
    return opt


@pytest.mark.parametrize("N", [2, 5, 25])
def test_output_sizes(N):
    cfg = HorizonConfig(N=N)
    lay = VariableLayout.from_horizon(N)
    cost, g = TrajectoryOptimizer(COEFFS, cfg).evaluate(np.zeros(lay.n_vars))
    assert isinstance(cost, float)
    assert g.shape == (6 * N,)


def test_cost_is_zero_on_reference():
    cfg = HorizonConfig(N=10)
    cost, _ = TrajectoryOptimizer(COEFFS, cfg).evaluate(reference_vars(cfg, 0.0))
    assert cost == pytest.approx(0.0, abs=1e-12)


def test_cost_non_negative_for_random_vectors():
    cfg = HorizonConfig(N=8)
    fg = TrajectoryOptimizer(COEFFS, cfg)
    rng = np.random.default_rng(0)
    for _ in range(20):
        cost, _ = fg.evaluate(rng.normal(scale=10.0, size=fg.layout.n_vars))
        assert cost >= 0.0


def test_cost_decreases_as_errors_shrink():
    cfg = HorizonConfig(N=25)
    fg = TrajectoryOptimizer(COEFFS, cfg)
    costs = [fg.evaluate(reference_vars(cfg, s))[0] for s in (2.0, 1.0, 0.5, 0.1, 0.0)]
    assert all(a > b for a, b in zip(costs, costs[1:]))
    # 25 * (1 + 0.25 + 4) + 24 * (0.01 + 0.04), smoothness terms vanish
    assert costs[1] == pytest.approx(25 * 5.25 + 24 * 0.05)


def test_smoothness_term_penalises_actuation_changes():
    cfg = HorizonConfig(N=4)
    fg = TrajectoryOptimizer(COEFFS, cfg)
    base = reference_vars(cfg, 0.0)
    lay = fg.layout

    steady = base.copy()
    steady[lay.delta_start:lay.a_start] = 0.1
    jumpy = base.copy()
    jumpy[lay.delta_start:lay.a_start] = [0.1, -0.1, 0.1]

    steady_cost, _ = fg.evaluate(steady)
    jumpy_cost, _ = fg.evaluate(jumpy)
    assert steady_cost == pytest.approx(3 * 0.01)
    assert jumpy_cost == pytest.approx(3 * 0.01 + 2 * 0.04)


def test_weights_scale_terms():
    cfg = HorizonConfig(N=5, weights=CostWeights(cte=10.0, epsi=0.0, v=0.0))
    fg = TrajectoryOptimizer(COEFFS, cfg)
    lay = fg.layout
    opt = reference_vars(HorizonConfig(N=5), 0.0)
    opt[lay.cte_start] = 1.0
    opt[lay.epsi_start] = 3.0
    opt[lay.v_start] = 0.0
    cost, _ = fg.evaluate(opt)
    assert cost == pytest.approx(10.0)


def test_initial_constraints_and_zero_defects_on_consistent_rollout():
    cfg = HorizonConfig(N=6)
    state = [0.0, 0.0, 0.0, 10.0, 0.7, -0.02]
    actuations = [(0.05, 1.0), (0.02, 0.5), (-0.1, 0.0), (0.0, -1.0), (0.3, 0.2)]
    opt = rollout(cfg, state, actuations)

    _, g = TrajectoryOptimizer(COEFFS, cfg).evaluate(opt)
    np.testing.assert_allclose(g[:6], state)
    np.testing.assert_allclose(g[6:], 0.0, atol=1e-12)


def test_defects_detect_inconsistent_step():
    cfg = HorizonConfig(N=3)
    state = [0.0, 0.0, 0.0, 10.0, 0.7, 0.0]
    opt = rollout(cfg, state, [(0.0, 0.0), (0.0, 0.0)])
    lay = VariableLayout.from_horizon(cfg.N)
    opt[lay.v_start + 1] += 0.5

    _, g = TrajectoryOptimizer(COEFFS, cfg).evaluate(opt)
    assert g[lay.defect_index(0, 3)] == pytest.approx(0.5)


def test_model_step_matches_kinematic_equations():
    cfg = HorizonConfig(dt=0.1, Lf=2.0)
    coeffs = [1.0, 0.5, 0.0, 0.0]
    x, y, psi, v, cte, epsi = 2.0, 0.5, 0.1, 8.0, 0.3, 0.05
    delta, a = 0.2, -0.5
    out = predict([x, y, psi, v, cte, epsi], (delta, a), coeffs, cfg)

    expected = [
        x + v * np.cos(psi) * 0.1,
        y + v * np.sin(psi) * 0.1,
        psi + v / 2.0 * delta * 0.1,
        v + a * 0.1,
        (1.0 + 0.5 * x - y) + v * np.sin(epsi) * 0.1,
        (psi - np.arctan(0.5)) + v * delta / 2.0 * 0.1,
    ]
    np.testing.assert_allclose(out, expected, rtol=1e-12)


def test_invalid_shapes():
    cfg = HorizonConfig(N=4)
    with pytest.raises(InvalidInput):
        TrajectoryOptimizer([1.0, 2.0], cfg)
    with pytest.raises(InvalidInput):
        TrajectoryOptimizer(COEFFS, cfg).evaluate(np.zeros(5))
