"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np

from nlc_planner.data_types import TrafficParticipantSet, Trajectory, VehicleState
from nlc_planner.exceptions import SolverError
from nlc_planner.planning_model.BaseNMPC import BaseNMPC
from nlc_planner.planning_utils.dynamic_model import INPUT_SIZE, CycleContext, KinematicBicycle
from nlc_planner.planning_utils.reference_route import ReferenceRoute
from nlc_planner.planning_utils.reference_velocity import VelocityBounds
from nlc_planner.planning_utils.route import LaneMap, Route
from nlc_planner.solver.ocp_solver import SolverProblem, SolverResult
from common_utils.time_tracking import Stopwatch, timeit

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """What happened in the most recent planning cycle."""
    reference_built: bool = False
    velocity_bounds: Optional[VelocityBounds] = None
    result: Optional[SolverResult] = None
    rejection_reasons: List[str] = field(default_factory=list)
    accepted: bool = False
    solve_time: float = 0.0

    @property
    def reference_velocity(self) -> Optional[float]:
        return None if self.velocity_bounds is None else self.velocity_bounds.reference


class TrackingNMPC(BaseNMPC):
    """
    Nonlinear MPC tracking a smoothed route at an adaptive reference velocity.

    One call of `plan_trajectory` is one planning cycle:
    build the reference, compute the reference velocity, build model, cost and
    constraints for this cycle, solve, validate, and return either the new
    trajectory or the last accepted one.
    """
    def __init__(self, time, constraints, controller, reference, solver, verbose=False, ocp_solver=None):
        super().__init__(time, constraints, controller, reference, solver, verbose, ocp_solver)
        self.last_cycle = CycleReport()

    def build_problem(self, context: CycleContext, state: VehicleState) -> SolverProblem:
        """Compose model, cost and constraints of the current cycle into one solver problem."""
        model = KinematicBicycle(context)
        f = model.get_f()
        x0 = self.initial_state_vector(state)
        x_guess = self.warmstarter.generate(
            x0, N=self.N, dt=self.dt, f=f,
            intermediate_integration=self.optimization_solver_opts.intermediate_integration,
        )
        return SolverProblem(
            dynamics=f,
            objective=model.get_objective(),
            state_lower_bounds=self.box_constraints.state_lower_bounds(),
            state_upper_bounds=self.box_constraints.state_upper_bounds(),
            input_lower_bounds=self.box_constraints.input_lower_bounds(),
            input_upper_bounds=self.box_constraints.input_upper_bounds(),
            path_constraints=self.box_constraints.get_path_constraints(),
            path_lower_bounds=self.box_constraints.path_lower_bounds(),
            path_upper_bounds=self.box_constraints.path_upper_bounds(),
            initial_state=x0,
            initial_input=np.zeros(INPUT_SIZE),
            initial_time=state.time,
            time_step=self.dt,
            control_points=self.N,
            initial_guess=x_guess,
            cost_rate=model.get_cost_rate(),
        )

    def build_context(self, reference: ReferenceRoute, bounds: VelocityBounds) -> CycleContext:
        return CycleContext.from_tuning(reference, bounds.reference, self.tuning,
                                        tau_accelerate=self.tau_accelerate, tau_brake=self.tau_brake)

    @timeit
    def plan_trajectory(self, route: Route, current_state: VehicleState, lane_map: LaneMap,
                        participants: TrafficParticipantSet) -> Trajectory:
        """
        Run one planning cycle.

        Parameters
        ----------
        route : Route
            Centerline the vehicle should follow.
        current_state : VehicleState
            Measured vehicle state, used as initial condition.
        lane_map : LaneMap
            Lane widths, speed limits and nearest-point lookup.
        participants : TrafficParticipantSet
            Other traffic participants, keyed by id.

        Returns
        -------
        Trajectory
            The new trajectory when the cycle is accepted, otherwise the last
            accepted one (empty if there is none yet).
        """
        self.last_cycle = report = CycleReport()

        reference = self.route_builder.build(route, current_state)
        if reference.is_empty:
            logger.warning("No reference route this cycle (end of route or invalid route), "
                           "keeping the previous trajectory")
            return self.previous_trajectory
        report.reference_built = True

        bounds = self.velocity_planner.compute(reference, route, current_state, lane_map, participants, self.tuning)
        report.velocity_bounds = bounds
        problem = self.build_problem(self.build_context(reference, bounds), current_state)

        self.failure_tracker.begin_cycle()
        try:
            with Stopwatch() as sw:
                result = self.ocp_solver.solve(problem)
        except SolverError as e:
            report.solve_time = sw.elapsed
            report.rejection_reasons = [str(e)]
            logger.warning(f"Solver failed: {e}")
            self.failure_tracker.record_failure()
            return self.previous_trajectory
        report.solve_time = sw.elapsed
        report.result = result
        if self.verbose: logger.info(f"Solver call took {sw.elapsed:.4f} s, success={result.success}")

        reasons = self.validate_solution(result)
        if reasons:
            report.rejection_reasons = reasons
            self.failure_tracker.record_failure()
            logger.warning(f"Bad solver output ({'; '.join(reasons)}), bad counter at {self.bad_counter}")

        if not self.failure_tracker.accepts():
            return self.previous_trajectory

        self.failure_tracker.reset()
        self.previous_trajectory = self.transform_state_to_trajectory(result)
        report.accepted = True
        return self.previous_trajectory
