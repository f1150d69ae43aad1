#!/usr/bin/env python
"""Simulate a vehicle with a nested engine and plot the logged fields.

Usage:
    python run_example.py [--config vehicle.yaml] [--plot]

Without --config the built-in parameters below are used. The YAML format
is described in simlog.config.
"""

import argparse
import logging

import matplotlib.pyplot as plt
import numpy as np
import pint

from simlog import SimulationConfig, SimulationEngine, loggable
from simlog.config import load_config


@loggable
def engine(dx, x, p, t, log, throttle=1.0):
    """First-order engine speed response to the throttle."""
    rpm = x[0]
    dx[0] = (throttle * p["rpm_max"] - rpm) / p["time_constant"]
    log.append("rpm", rpm)
    log.append("throttle", throttle)


@loggable
def vehicle(dx, x, p, t, log, throttle=1.0):
    """Vehicle speed driven through a fixed gear ratio with linear drag."""
    speed = x[0]
    rpm = x[1]
    dx[0] = p["vehicle"]["gain"] * rpm - p["vehicle"]["drag"] * speed
    log.append("speed", speed)
    if log.enabled:
        log.append("speed_kmh", 3.6 * speed)
    log.nested(
        "engine", engine, dx[1:], x[1:], p["engine"], t, throttle=throttle
    )


DEFAULT_CONFIG = SimulationConfig(
    t_span=(0.0, 60.0),
    x0=np.array([0.0, 800.0]),
    parameters={
        "vehicle": {"gain": 0.002, "drag": 0.05},
        "engine": {"rpm_max": 6000.0, "time_constant": 3.0},
    },
    save_times=np.linspace(0.0, 60.0, 121),
)


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--config", help="YAML simulation config")
    parser.add_argument("--plot", action="store_true", help="Show plots")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)

    if args.config:
        config, integrator = load_config(args.config, ureg=pint.UnitRegistry())
    else:
        config, integrator = DEFAULT_CONFIG, None

    result = SimulationEngine(integrator).simulate(vehicle, config)
    print(result)
    if not result.success:
        print(f"Simulation failed: {result.message}")

    df = result.to_dataframe(flatten=True)
    print(df.tail())

    if args.plot:
        fig, axes = plt.subplots(2, 1, figsize=(8, 6), sharex=True)
        axes[0].plot(df.index, df["speed_kmh"])
        axes[0].set_ylabel("Speed (km/h)")
        axes[1].plot(df.index, df["engine.rpm"])
        axes[1].set_ylabel("Engine speed (rpm)")
        axes[1].set_xlabel("Time (s)")
        for ax in axes:
            ax.grid(True, alpha=0.3)
        plt.tight_layout()
        plt.show()


if __name__ == "__main__":
    main()
