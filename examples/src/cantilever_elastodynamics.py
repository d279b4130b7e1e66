#!/usr/bin/env python3
"""
Example: cantilever beam under gravity and a ramped top traction.

The beam [0,1] x [0,0.2] is clamped on the left edge. Gravity acts from
t = 0; a distributed load on the top edge is switched on smoothly
between t = 0.01 and t = 0.02. The vertical displacement at the tip
(1.0, 0.1) is recorded every step and plotted against time.

Usage:
    ./examples/src/cantilever_elastodynamics.py
    ./examples/src/cantilever_elastodynamics.py --theta 1.0 --save
    ./examples/src/cantilever_elastodynamics.py --config cantilever.json --vtk results
"""

import sys
import os
import argparse
import logging
from dataclasses import replace

# Use Agg backend if --save is specified
if '--save' in sys.argv:
    import matplotlib
    matplotlib.use('Agg')

import matplotlib.pyplot as plt

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from elastIGA.logging_config import setup_logging
from elastIGA.io.config import SimulationConfig, load_config, build_solver


def plot_tip_history(history, theta, save_path=None):
    """
    Plot the tip displacement over time.

    Parameters:
        history: [(t, u_y), ...] from solver.point_history
        theta: Theta used, for the legend
        save_path: If provided, save figure to this path
    """
    t = [h[0] for h in history]
    u = [h[1] for h in history]

    fig, ax = plt.subplots(figsize=(8, 4))
    ax.plot(t, u, 'o-', label=f'theta = {theta}')
    ax.axvspan(0.01, 0.02, color='0.9', label='traction ramp')
    ax.set_xlabel('t')
    ax.set_ylabel('u_y at tip')
    ax.set_title('Cantilever tip displacement')
    ax.grid(True, alpha=0.3)
    ax.legend()
    plt.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        print(f"Saved: {save_path}")

    return fig


def main():
    parser = argparse.ArgumentParser(description="Cantilever elastodynamics example")
    parser.add_argument("--config", type=str, default=None,
                        help="JSON configuration file")
    parser.add_argument("--theta", type=float, default=None,
                        help="Override theta (0.5 trapezoidal, 1.0 backward Euler)")
    parser.add_argument("--dt", type=float, default=None,
                        help="Override the time step")
    parser.add_argument("--vtk", type=str, default=None,
                        help="Write solution-XXXX.vtk files to this directory")
    parser.add_argument("--save", action="store_true",
                        help="Save the plot instead of showing it")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Debug logging")
    args = parser.parse_args()

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    config = load_config(args.config) if args.config else SimulationConfig()
    if args.theta is not None:
        config.time_stepping = replace(config.time_stepping, theta=args.theta)
    if args.dt is not None:
        config.time_stepping = replace(config.time_stepping, time_step=args.dt)
    if args.vtk is not None:
        config.output = replace(config.output, output_directory=args.vtk,
                                output_interval=max(1, config.output.output_interval))

    solver = build_solver(config)
    state = solver.run()

    print("=" * 60)
    print("Summary")
    print("=" * 60)
    print(f"  Steps: {state.time_step_index}")
    print(f"  Final time: {state.time:.4f}")
    print(f"  Tip u_y: {solver.point_value():.6e}")
    print("=" * 60)

    save_path = "cantilever_tip_displacement.png" if args.save else None
    plot_tip_history(solver.point_history, config.time_stepping.theta, save_path=save_path)
    if not args.save:
        plt.show()


if __name__ == "__main__":
    main()
