"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
from nlc_planner.data_types import ParticipantState, Trajectory, TuningParameters, VehicleState
from nlc_planner.exceptions import DegenerateInputError, PlannerError, SolverError
from nlc_planner.planning_model.TrackingNMPC import TrackingNMPC
from nlc_planner.config import build_planner, load_planner_config

__all__ = [
    "ParticipantState",
    "Trajectory",
    "TuningParameters",
    "VehicleState",
    "DegenerateInputError",
    "PlannerError",
    "SolverError",
    "TrackingNMPC",
    "build_planner",
    "load_planner_config",
]
