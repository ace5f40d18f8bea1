"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
from nlc_planner.solver.ocp_solver import IpoptOCPSolver, OCPSolver, SolverOptions, SolverProblem, SolverResult

__all__ = ["IpoptOCPSolver", "OCPSolver", "SolverOptions", "SolverProblem", "SolverResult"]
