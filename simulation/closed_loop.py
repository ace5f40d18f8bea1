"""
Copyright 2025 AUMOVIO. All rights reserved.
"""

import sys
import os
basepath = os.path.dirname(os.path.dirname(__file__))
if not basepath in sys.path:
    sys.path.insert(0, basepath)

import hydra
from dataclasses import dataclass, field
from typing import List

import numpy as np
from omegaconf import DictConfig, OmegaConf

import logging
logger = logging.getLogger(__name__)

from nlc_planner.config import build_planner
from nlc_planner.data_types import Trajectory, VehicleState
from nlc_planner.planning_model.TrackingNMPC import TrackingNMPC
from simulation.scenarios import Scenario, build_scenario
from common_utils.time_tracking import timeit


@dataclass
class SimulationLog:
    states: List[VehicleState] = field(default_factory=list)
    reference_velocities: List[float] = field(default_factory=list)
    accepted: List[bool] = field(default_factory=list)
    solve_times: List[float] = field(default_factory=list)

    @property
    def acceptance_rate(self) -> float:
        return float(np.mean(self.accepted)) if self.accepted else 0.0


def step_plant(trajectory: Trajectory, state: VehicleState, dt: float) -> VehicleState:
    """
    Ideal tracking plant: the vehicle lands on the second planned state.
    Without a plan it keeps its pose and only the clock advances.
    """
    if len(trajectory) < 2:
        return VehicleState(x=state.x, y=state.y, yaw_angle=state.yaw_angle, vx=state.vx,
                            steering_angle=state.steering_angle, time=state.time + dt)
    nxt = trajectory[1]
    return VehicleState(x=nxt.x, y=nxt.y, yaw_angle=nxt.yaw_angle, vx=nxt.vx, steering_angle=nxt.steering_angle,
                        steering_rate=nxt.steering_rate, ax=nxt.ax, yaw_rate=nxt.yaw_rate, time=state.time + dt)


@timeit
def run_closed_loop(planner: TrackingNMPC, scenario: Scenario, steps: int) -> SimulationLog:
    log = SimulationLog()
    state = scenario.initial_state
    log.states.append(state)
    for i in range(steps):
        trajectory = planner.plan_trajectory(scenario.route, state, scenario.lane_map, scenario.participants)
        report = planner.last_cycle
        log.reference_velocities.append(np.nan if report.reference_velocity is None else report.reference_velocity)
        log.accepted.append(report.accepted)
        log.solve_times.append(report.solve_time)
        state = step_plant(trajectory, state, planner.dt)
        log.states.append(state)
        logger.info(f"[{scenario.name}] step {i}: x={state.x:.2f} y={state.y:.2f} v={state.vx:.2f} "
                    f"v_ref={log.reference_velocities[-1]:.2f} accepted={report.accepted}")
    return log


@hydra.main(version_base=None, config_path="../configs", config_name="simulation")
def run(cfg: DictConfig) -> None:
    logging.basicConfig(level=logging.INFO)
    OmegaConf.set_struct(cfg, False)
    planner = build_planner(cfg.planner)
    scenario = build_scenario(cfg.scenario.name,
                              participants=OmegaConf.to_container(cfg.scenario.participants, resolve=True),
                              **OmegaConf.to_container(cfg.scenario.params, resolve=True))
    log = run_closed_loop(planner, scenario, int(cfg.steps))
    logger.info(f"[{scenario.name}] finished {cfg.steps} steps, acceptance rate {log.acceptance_rate:.2f}, "
                f"mean solve time {np.mean(log.solve_times):.4f} s")


if __name__ == '__main__':
    run()
