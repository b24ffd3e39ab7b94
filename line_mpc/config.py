"""
Horizon configuration for the line-tracking MPC.

All tunables live in one immutable value that is threaded through every
component, so several horizon configurations can coexist in one process.
"""

import logging
import math
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional

import yaml

from line_mpc.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _whole(value):
    """3.0 -> 3 for integer parameters read from YAML or ROS; anything else unchanged."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


@dataclass(frozen=True)
class CostWeights:
    """Weights of the cost terms. All 1.0 reproduces the unweighted baseline."""

    cte: float = 1.0
    epsi: float = 1.0
    v: float = 1.0
    delta: float = 1.0
    a: float = 1.0
    delta_rate: float = 1.0
    a_rate: float = 1.0

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if not math.isfinite(value) or value < 0.0:
                raise ConfigurationError(f"weight '{f.name}' must be finite and >= 0, got {value}")


@dataclass(frozen=True)
class SolverOptions:
    """IPOPT options passed through CasADi's nlpsol."""

    print_level: int = 0
    print_time: bool = False
    max_cpu_time: float = 0.5     # per-cycle budget (seconds)
    max_wall_time: Optional[float] = None  # defaults to max_cpu_time
    max_iter: int = 3000
    tol: float = 1e-8

    def __post_init__(self):
        if not self.max_cpu_time > 0.0:
            raise ConfigurationError(f"max_cpu_time must be > 0, got {self.max_cpu_time}")
        if self.max_wall_time is not None and not self.max_wall_time > 0.0:
            raise ConfigurationError(f"max_wall_time must be > 0, got {self.max_wall_time}")
        if not _is_int(self.max_iter) or self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be an integer >= 1, got {self.max_iter!r}")
        if not _is_int(self.print_level) or not 0 <= self.print_level <= 12:
            raise ConfigurationError(f"print_level must be an integer in [0, 12], got {self.print_level!r}")
        if not self.tol > 0.0:
            raise ConfigurationError(f"tol must be > 0, got {self.tol}")

    @property
    def wall_time_budget(self) -> float:
        return self.max_cpu_time if self.max_wall_time is None else self.max_wall_time

    def to_nlpsol(self) -> Dict[str, Any]:
        return {
            'ipopt.print_level': int(self.print_level),
            'ipopt.max_cpu_time': float(self.max_cpu_time),
            'ipopt.max_wall_time': float(self.wall_time_budget),
            'ipopt.max_iter': int(self.max_iter),
            'ipopt.tol': float(self.tol),
            'print_time': int(bool(self.print_time)),
        }


@dataclass(frozen=True)
class HorizonConfig:
    """
    Immutable MPC configuration.

    Lf is the distance from the front axle to the centre of gravity that
    reproduces the turning radius measured on the vehicle at constant
    steering angle and speed.
    """

    N: int = 25                   # number of timesteps
    dt: float = 0.05              # seconds per step
    ref_v: float = 40.0
    ref_cte: float = 0.0
    ref_epsi: float = 0.0
    steer_limit: float = 0.436332  # 25 deg in radians
    accel_limit: float = 1.0
    Lf: float = 2.67
    poly_order: int = 3
    weights: CostWeights = field(default_factory=CostWeights)
    solver: SolverOptions = field(default_factory=SolverOptions)

    def __post_init__(self):
        if not _is_int(self.N) or self.N < 2:
            raise ConfigurationError(f"N must be an integer >= 2, got {self.N!r}")
        if not (math.isfinite(self.dt) and self.dt > 0.0):
            raise ConfigurationError(f"dt must be > 0, got {self.dt}")
        if not (math.isfinite(self.Lf) and self.Lf > 0.0):
            raise ConfigurationError(f"Lf must be > 0, got {self.Lf}")
        if not (self.steer_limit > 0.0 and self.accel_limit > 0.0):
            raise ConfigurationError("actuator limits must be > 0")
        if not _is_int(self.poly_order) or self.poly_order < 1:
            raise ConfigurationError(f"poly_order must be an integer >= 1, got {self.poly_order!r}")
        for name in ('ref_v', 'ref_cte', 'ref_epsi', 'steer_limit', 'accel_limit'):
            if not math.isfinite(getattr(self, name)):
                raise ConfigurationError(f"{name} must be finite")

    def with_changes(self, **changes) -> 'HorizonConfig':
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, params: Dict[str, Any], strict: bool = True) -> 'HorizonConfig':
        """
        Build a config from a flat parameter mapping.

        Weight keys are prefixed with 'w_' (e.g. 'w_cte') and solver keys with
        'solver_' (e.g. 'solver_max_cpu_time'), matching the ROS parameter file.
        With strict=False, keys that belong to other consumers (topic names,
        file paths) are skipped instead of rejected.
        """
        top, weights, solver = {}, {}, {}
        top_names = {f.name for f in fields(cls)} - {'weights', 'solver'}
        weight_names = {f.name for f in fields(CostWeights)}
        solver_names = {f.name for f in fields(SolverOptions)}

        for key, value in params.items():
            if key in top_names:
                top[key] = value
            elif key.startswith('w_') and key[2:] in weight_names:
                weights[key[2:]] = float(value)
            elif key.startswith('solver_') and key[7:] in solver_names:
                solver[key[7:]] = _whole(value) if key[7:] in ('max_iter', 'print_level') else value
            elif not strict:
                logger.debug(f"Ignoring non-MPC parameter '{key}'")
            else:
                raise ConfigurationError(f"unknown MPC parameter '{key}'")

        for name in ('N', 'poly_order'):
            if name in top:
                top[name] = _whole(top[name])
        for name in ('dt', 'ref_v', 'ref_cte', 'ref_epsi', 'steer_limit', 'accel_limit', 'Lf'):
            if name in top:
                top[name] = float(top[name])
        return cls(weights=CostWeights(**weights), solver=SolverOptions(**solver), **top)


def load_config(yaml_path: str, node_name: Optional[str] = None, strict: bool = False) -> HorizonConfig:
    """
    Load a HorizonConfig from a YAML file.

    Accepts either a ROS2 parameter file (``<node>: ros__parameters: {...}``)
    or a flat mapping of parameters.
    """
    if not os.path.exists(yaml_path):
        raise ConfigurationError(f"config file not found: {yaml_path}")
    with open(yaml_path, 'r') as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {yaml_path} must contain a mapping")

    ros_nodes = {k: v for k, v in data.items() if isinstance(v, dict) and 'ros__parameters' in v}
    if ros_nodes:
        if node_name is None:
            if len(ros_nodes) != 1:
                raise ConfigurationError(
                    f"{yaml_path} holds parameters for {sorted(ros_nodes)}; pass node_name")
            node_name = next(iter(ros_nodes))
        if node_name not in ros_nodes:
            raise ConfigurationError(f"no parameters for node '{node_name}' in {yaml_path}")
        data = ros_nodes[node_name]['ros__parameters'] or {}

    return HorizonConfig.from_dict(data, strict=strict)
