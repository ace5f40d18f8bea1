"""
Copyright 2025 AUMOVIO. All rights reserved.
"""


class PlannerError(Exception):
    """Base class for all errors raised inside the trajectory planner."""


class DegenerateInputError(PlannerError):
    """Route or samples that cannot produce a usable reference (too short, too few points, zero tangent)."""


class SolverError(PlannerError):
    """The OCP backend itself failed (as opposed to returning a poor solution)."""
