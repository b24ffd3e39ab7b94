"""
Matplotlib views of the MPC run: reference vs. prediction, and the
per-cycle series.
"""

import matplotlib.pyplot as plt


def plot_prediction(ref_x, ref_y, mpc_x, mpc_y, ax=None, title=None):
    """Reference waypoints (vehicle frame) and the predicted trajectory."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 6))
    else:
        fig = ax.figure
    ax.plot(ref_x, ref_y, 'k-', label='reference')
    ax.plot(mpc_x, mpc_y, 'ro', markersize=3, label='MPC prediction')
    ax.set_aspect('equal', adjustable='datalim')
    ax.legend()
    if title:
        ax.set_title(title)
    return fig


def plot_history(history, out_path=None, show=False):
    """CTE, epsi, cost, steering and velocity over the run."""
    fig, axes = plt.subplots(5, 1, figsize=(8, 12), sharex=True)
    series = [
        ('CTE', history.cte),
        ('epsi', history.epsi),
        ('cost', history.cost),
        ('Delta (Radians)', history.delta),
        ('Velocity', history.v),
    ]
    for ax, (title, values) in zip(axes, series):
        ax.plot(values)
        ax.set_title(title)
        ax.grid(True, alpha=0.3)
    axes[-1].set_xlabel('iteration')
    fig.tight_layout()

    if out_path:
        fig.savefig(out_path, dpi=150, bbox_inches='tight')
    if show:
        plt.show()
    return fig
