"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
#!/usr/bin/env python
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Mapping, Optional

import numpy as np

from nlc_planner.data_types import Trajectory, TuningParameters, VehicleState
from nlc_planner.planning_utils.constraints import BoxConstraints
from nlc_planner.planning_utils.dynamic_model import DELTA, PSI, STATE_SIZE, V, X, Y, dDELTA
from nlc_planner.planning_utils.reference_route import ReferenceRouteBuilder
from nlc_planner.planning_utils.reference_velocity import ReferenceVelocityPlanner
from nlc_planner.planning_utils.warmstart import Warmstart
from nlc_planner.solver.ocp_solver import IpoptOCPSolver, OCPSolver, SolverOptions, SolverResult

logger = logging.getLogger(__name__)


@dataclass
class FailureTracker:
    """
    Consecutive bad-cycle bookkeeping.

    A bad cycle increments the counter; once it exceeds
    `max_consecutive_failures - 1` it is reset to 0 in the same pass, so the
    fifth consecutive bad cycle (with the default of 5) leaves it at 0. The
    counter only wraps around, it never escalates.
    """
    max_consecutive_failures: int = 5
    bad_counter: int = 0
    bad_condition: bool = False

    def begin_cycle(self):
        self.bad_condition = False

    def record_failure(self):
        self.bad_condition = True
        self.bad_counter += 1
        if self.bad_counter > self.max_consecutive_failures - 1:
            self.bad_counter = 0

    def accepts(self) -> bool:
        return not self.bad_condition and self.bad_counter < self.max_consecutive_failures

    def reset(self):
        self.bad_counter = 0


class BaseNMPC(ABC):
    def __init__(self, time, constraints, controller, reference, solver, verbose=False,
                 ocp_solver: Optional[OCPSolver] = None):
        self.config = {
            "time": dict(time),
            "constraints": dict(constraints),
            "controller": dict(controller),
            "reference": dict(reference),
            "solver": dict(solver),
            "verbose": verbose,
        }
        self.flattened_params = self.config["time"] | self.config["constraints"] \
            | self.config["controller"] | self.config["reference"]
        self.verbose = verbose
        if self.verbose: logger.info(f"Initialize {self.__class__.__name__}...")
        self._set_time(self.config["time"])
        self._set_constraints(self.config["constraints"])
        self._set_controller(self.config["controller"])
        self._set_reference_signal(self.config["reference"])
        self._set_optimization_solver(self.config["solver"], ocp_solver)
        if self.verbose: logger.info(f"Initialize {self.__class__.__name__} configuration...  DONE!")
        self.setup_NMPC()
        self.previous_trajectory = Trajectory.empty()
        self.failure_tracker = FailureTracker(self.max_consecutive_failures)
        if self.verbose: logger.info(f"Initialize {self.__class__.__name__}... DONE!")

    def __str__(self):
        return f"{self.__class__!s} with initialization configuration {self.config}"

    def setup_NMPC(self):
        """
        Create the per-cycle building blocks: reference route builder,
        reference velocity planner, box constraints and the warm start.

        Model, cost and solver problem depend on the reference of the current
        cycle and are rebuilt inside every `plan_trajectory` call.
        """
        self.route_builder = ReferenceRouteBuilder(
            sim_time=self.sim_time,
            max_forward_speed=self.max_forward_speed,
            min_distance_in_route=self.min_distance_in_route,
            resample_spacing=self.resample_spacing,
            position_smoothing_factor=self.position_smoothing_factor,
            heading_smoothing_factor=self.heading_smoothing_factor,
        )
        self.velocity_planner = ReferenceVelocityPlanner(
            max_forward_speed=self.max_forward_speed,
            lookahead_time=self.lookahead_time,
            safe_index=self.safe_index,
            lateral_acceleration=self.lateral_acceleration,
            minimum_velocity_in_curve=self.minimum_velocity_in_curve,
            desired_time_headway=self.desired_time_headway,
            max_acceleration=self.max_acceleration,
            max_deceleration=self.max_deceleration,
            front_vehicle_velocity=self.front_vehicle_velocity,
        )
        self.box_constraints = BoxConstraints(
            max_forward_speed=self.max_forward_speed,
            max_reverse_speed=self.max_reverse_speed,
            max_steering_angle=self.max_steering_angle,
            max_steering_velocity=self.max_steering_velocity,
            max_steering_acceleration=self.max_steering_acceleration,
        )
        self.warmstarter = Warmstart(mode=self.warmstart_mode)

    def _set_time(self, cfg):
        self.sim_time = float(cfg["sim_time"])
        self.N = int(cfg["control_points"])
        if self.sim_time <= 0:
            raise ValueError("sim_time must be positive.")
        if self.N < 2:
            raise ValueError("control_points must be at least 2.")
        self.dt = self.sim_time / self.N

    def _set_constraints(self, cfg):
        self.max_forward_speed = float(cfg["max_forward_speed"])
        self.max_reverse_speed = float(cfg["max_reverse_speed"])
        self.max_steering_angle = float(cfg["max_steering_angle"])
        self.max_steering_velocity = float(cfg["max_steering_velocity"])
        self.max_steering_acceleration = float(cfg["max_steering_acceleration"])

    def _set_controller(self, cfg):
        self.tuning = TuningParameters().updated(cfg)
        if self.tuning.wheel_base <= 0:
            raise ValueError("wheel_base must be positive.")
        self.tau_accelerate = float(cfg.get("tau_accelerate", 2.5)) # slow acceleration
        self.tau_brake = float(cfg.get("tau_brake", 1.25)) # quick braking
        self.threshold_bad_output = float(cfg.get("threshold_bad_output", 500.0))
        self.bound_tolerance = float(cfg.get("bound_tolerance", 1e-6)) # solver bound relaxation
        self.max_consecutive_failures = int(cfg.get("max_consecutive_failures", 5))
        # curvature bound
        self.lookahead_time = float(cfg.get("lookahead_time", 3.0))
        self.safe_index = int(cfg.get("safe_index", 5))
        self.lateral_acceleration = float(cfg.get("lateral_acceleration", 2.0))
        self.minimum_velocity_in_curve = float(cfg.get("minimum_velocity_in_curve", 3.0))
        # car following
        self.desired_time_headway = float(cfg.get("desired_time_headway", 1.5))
        self.max_acceleration = float(cfg.get("max_acceleration", 2.0))
        self.max_deceleration = float(cfg.get("max_deceleration", 2.5))
        self.front_vehicle_velocity = float(cfg.get("front_vehicle_velocity", 0.0))
        # initial guess
        self.warmstart_mode = str(cfg.get("warmstart_mode", "rollout"))
        if self.warmstart_mode not in Warmstart.MODES:
            raise ValueError(f"warmstart_mode must be one of {Warmstart.MODES}.")

    def _set_reference_signal(self, cfg):
        self.min_distance_in_route = float(cfg.get("min_distance_in_route", 5.0))
        self.resample_spacing = float(cfg.get("resample_spacing", 0.75))
        self.position_smoothing_factor = float(cfg.get("position_smoothing_factor", 0.9))
        self.heading_smoothing_factor = float(cfg.get("heading_smoothing_factor", 0.7))

    def _set_optimization_solver(self, cfg, ocp_solver: Optional[OCPSolver] = None):
        self.optimization_solver_opts = SolverOptions(**cfg)
        self.ocp_solver = ocp_solver if ocp_solver is not None else IpoptOCPSolver(self.optimization_solver_opts)
        if self.verbose: logger.info(f"Initialize {self.__class__.__name__} optimization solver ... DONE!")

    def set_parameters(self, params: Mapping[str, float]):
        """
        Reconfigure the live tuning values; unrecognized keys are ignored.
        A rejected update leaves the current tuning in place.
        """
        tuning = self.tuning.updated(params)
        if tuning.wheel_base <= 0:
            raise ValueError("wheel_base must be positive.")
        self.tuning = tuning
        if self.verbose: logger.info(f"{self.__class__.__name__} tuning updated to {self.tuning}")

    @property
    def bad_counter(self) -> int:
        return self.failure_tracker.bad_counter

    def initial_state_vector(self, state: VehicleState) -> np.ndarray:
        """[x, y, psi, v, delta, ddelta, cost, s] with zero steering rate, cost and progress."""
        x0 = np.zeros(STATE_SIZE)
        x0[X], x0[Y], x0[PSI], x0[V], x0[DELTA] = state.x, state.y, state.yaw_angle, state.vx, state.steering_angle
        return x0

    def validate_solution(self, result: SolverResult) -> List[str]:
        """
        Reasons for rejecting a solver result; an empty list means the cycle is good.
        """
        reasons = []
        states = np.asarray(result.states, dtype=float)
        if states.ndim != 2 or states.shape[0] < self.N or states.shape[1] != STATE_SIZE:
            reasons.append(f"solver returned states of shape {states.shape}, expected ({self.N}, {STATE_SIZE})")
            return reasons
        if not np.all(np.isfinite(states)) or not np.isfinite(result.objective):
            reasons.append("non-finite values in the solution")
            return reasons
        if result.objective > self.threshold_bad_output:
            reasons.append(f"objective {result.objective:.2f} above threshold {self.threshold_bad_output:.2f}")
        v = states[:, V]
        if np.any(v > self.max_forward_speed + self.bound_tolerance) \
                or np.any(v < self.max_reverse_speed - self.bound_tolerance):
            reasons.append(f"velocity outside [{self.max_reverse_speed}, {self.max_forward_speed}]")
        if np.any(np.abs(states[:, dDELTA]) > self.max_steering_velocity + self.bound_tolerance):
            reasons.append(f"steering rate above {self.max_steering_velocity}")
        return reasons

    def transform_state_to_trajectory(self, result: SolverResult) -> Trajectory:
        """
        Map solver states to vehicle states. Yaw rate and longitudinal
        acceleration are forward differences over the time step; the last
        state repeats the values of the one before.
        """
        states = np.asarray(result.states, dtype=float)[:self.N]
        times = np.asarray(result.times, dtype=float)[:self.N]
        yaw_rate = np.zeros(self.N)
        ax = np.zeros(self.N)
        yaw_rate[:-1] = np.diff(states[:, PSI]) / self.dt
        ax[:-1] = np.diff(states[:, V]) / self.dt
        yaw_rate[-1] = yaw_rate[-2]
        ax[-1] = ax[-2]

        trajectory = [
            VehicleState(
                x=float(states[i, X]),
                y=float(states[i, Y]),
                yaw_angle=float(states[i, PSI]),
                vx=float(states[i, V]),
                steering_angle=float(states[i, DELTA]),
                steering_rate=float(states[i, dDELTA]),
                ax=float(ax[i]),
                yaw_rate=float(yaw_rate[i]),
                time=float(times[i]),
            )
            for i in range(self.N)
        ]
        return Trajectory(trajectory)

    @abstractmethod
    def plan_trajectory(self, route, current_state, lane_map, participants) -> Trajectory:
        pass
