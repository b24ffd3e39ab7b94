#!/usr/bin/env python3
"""
Offline receding-horizon run against a fixed set of waypoints.

Transforms the waypoints into the vehicle frame, fits a cubic, then solves the
MPC problem repeatedly, applying the first actuation of every solve. Saves the
per-cycle history as CSV and, optionally, the plots.
"""

import argparse
import logging
import os

import matplotlib.pyplot as plt
import numpy as np

from line_mpc.config import HorizonConfig, load_config
from line_mpc.controller import MPCController
from line_mpc.errors import MPCError
from line_mpc.plotting import plot_history, plot_prediction
from line_mpc.receding_horizon import RecedingHorizonLoop, state_from_waypoints
from line_mpc.transform import to_vehicle_frame

DEFAULT_PTSX = [-32.16173, -43.49173, -61.09, -78.29172, -93.05002, -107.7717]
DEFAULT_PTSY = [113.361, 105.941, 92.88499, 78.73102, 65.34102, 50.57938]
DEFAULT_POSE = (-40.62, 108.73, 3.733651)
DEFAULT_SPEED = 10.0


def ensure_dir(p):
    os.makedirs(p, exist_ok=True); return p


def load_waypoints(csv_path):
    """x,y columns with a one-line header."""
    data = np.loadtxt(csv_path, delimiter=",", skiprows=1, ndmin=2)
    return data[:, 0], data[:, 1]


def run(ptsx, ptsy, pose, speed, config: HorizonConfig, iterations=60,
        on_failure='hold', out_dir=None, plot_every=0, show=False):
    x, y, psi = pose
    state, coeffs = state_from_waypoints(ptsx, ptsy, x, y, psi, speed, order=config.poly_order)
    print(f"initial state: {np.round(np.asarray(state), 4).tolist()}")
    print(f"coeffs: {np.round(coeffs, 6).tolist()}")

    ref_x, ref_y = to_vehicle_frame(ptsx, ptsy, x, y, psi)
    controller = MPCController(config)
    loop = RecedingHorizonLoop(controller, on_failure=on_failure)

    def on_solve(i, solution):
        print(f"Iteration {i}: delta={solution.actuation.delta:+.4f} "
              f"a={solution.actuation.a:+.4f} cost={solution.cost:.2f}")
        if plot_every and out_dir and (i == iterations - 1 or i % plot_every == 0):
            fig = plot_prediction(ref_x, ref_y, solution.mpc_x, solution.mpc_y,
                                  title=f"Iteration {i}")
            fig.savefig(os.path.join(out_dir, f"prediction_{i:03d}.png"), dpi=120)
            plt.close(fig)

    history = loop.run(state, coeffs, iterations, callback=on_solve)

    if out_dir:
        csv_path = os.path.join(out_dir, "history.csv")
        history.save_csv(csv_path)
        print(f"✓ Saved history: {csv_path}")
        if plot_every or show:
            fig = plot_history(history, out_path=os.path.join(out_dir, "history.png"), show=show)
            if not show:
                plt.close(fig)
            print(f"✓ Saved plots to {out_dir}")
    return history


def main(argv=None):
    ap = argparse.ArgumentParser(description="Run the line-tracking MPC offline on a set of waypoints.")
    ap.add_argument("--config", default=None, help="YAML parameter file (ROS2 params or flat mapping)")
    ap.add_argument("--waypoints", default=None, help="CSV with x,y columns (world frame)")
    ap.add_argument("--x", type=float, default=DEFAULT_POSE[0], help="Vehicle x (world)")
    ap.add_argument("--y", type=float, default=DEFAULT_POSE[1], help="Vehicle y (world)")
    ap.add_argument("--psi", type=float, default=DEFAULT_POSE[2], help="Vehicle heading (rad)")
    ap.add_argument("--v", type=float, default=DEFAULT_SPEED, help="Vehicle speed")
    ap.add_argument("--iterations", type=int, default=60, help="Number of MPC cycles")
    ap.add_argument("--on-failure", choices=["raise", "hold"], default="hold",
                    help="What to do when a solve fails")
    ap.add_argument("--out", default=None, help="Output directory for history CSV and plots")
    ap.add_argument("--plot-every", type=int, default=0, help="Save a prediction plot every k cycles (0 = off)")
    ap.add_argument("--show", action="store_true", help="Show matplotlib windows")
    ap.add_argument("--verbose", action="store_true", help="Debug logging")
    args = ap.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="[%(levelname)s] %(name)s: %(message)s")

    try:
        config = load_config(args.config) if args.config else HorizonConfig()
        if args.waypoints:
            ptsx, ptsy = load_waypoints(args.waypoints)
        else:
            ptsx, ptsy = DEFAULT_PTSX, DEFAULT_PTSY
        run(ptsx, ptsy, (args.x, args.y, args.psi), args.v, config,
            iterations=args.iterations, on_failure=args.on_failure,
            out_dir=ensure_dir(args.out) if args.out else None,
            plot_every=args.plot_every, show=args.show)
    except MPCError as e:
        print(f"[error] {e}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
