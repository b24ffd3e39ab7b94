from line_mpc.config import CostWeights, HorizonConfig, SolverOptions, load_config
from line_mpc.controller import Actuation, MPCController, MPCSolution, VehicleState
from line_mpc.errors import (ConfigurationError, FitFailure, InvalidInput, MPCError,
                             OptimizationFailed)
from line_mpc.layout import VariableLayout
from line_mpc.optimizer import TrajectoryOptimizer
from line_mpc.polynomial import polyeval, polyfit, polyslope
from line_mpc.receding_horizon import History, RecedingHorizonLoop, state_from_waypoints
from line_mpc.transform import to_vehicle_frame, to_world_frame
