"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import casadi as ca
import numpy as np

from nlc_planner.exceptions import SolverError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SolverProblem:
    """
    One optimal control problem, rebuilt every planning cycle.

    dynamics:          f(x, u) -> x_dot
    objective:         J(x_N) evaluated on the terminal state
    cost_rate:         l(x), integrated by the dynamics into the objective
    path_constraints:  g(x, u), rows with bounds (-inf, inf) are inactive
    initial_guess:     optional (control_points, n_x) state guess
    """
    dynamics: ca.Function
    objective: ca.Function
    state_lower_bounds: np.ndarray
    state_upper_bounds: np.ndarray
    input_lower_bounds: np.ndarray
    input_upper_bounds: np.ndarray
    path_constraints: ca.Function
    path_lower_bounds: np.ndarray
    path_upper_bounds: np.ndarray
    initial_state: np.ndarray
    initial_input: np.ndarray
    initial_time: float
    time_step: float
    control_points: int
    initial_guess: Optional[np.ndarray] = None
    cost_rate: Optional[ca.Function] = None

    @property
    def n_states(self) -> int:
        return int(np.size(self.initial_state))

    @property
    def n_controls(self) -> int:
        return int(np.size(self.initial_input))


@dataclass(frozen=True, eq=False)
class SolverResult:
    """States (N, n_x), inputs (N-1, n_u), time stamps (N,) and the final objective."""
    states: np.ndarray
    inputs: np.ndarray
    times: np.ndarray
    objective: float
    success: bool
    iterations: int = 0
    status: str = ""


@dataclass(frozen=True)
class SolverOptions:
    intermediate_integration: int = 2
    tolerance: float = 1e-4
    max_iterations: int = 500
    verbose: bool = False
    time_limit: float = 1.0
    perturbation: float = 1e-6
    debug_print: bool = False

    def __post_init__(self):
        if self.intermediate_integration < 1:
            raise ValueError("intermediate_integration must be at least 1.")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1.")


class OCPSolver(ABC):
    """Black-box OCP backend: problem in, optimal state sequence out."""
    def __init__(self, options: Optional[SolverOptions] = None):
        self.options = options if options is not None else SolverOptions()

    @abstractmethod
    def solve(self, problem: SolverProblem) -> SolverResult:
        pass


class IpoptOCPSolver(OCPSolver):
    """
    Multiple-shooting transcription solved with CasADi nlpsol / IPOPT.

    Decision variables are the controls U (n_u, N-1) followed by the states
    X (n_x, N). Consecutive states are coupled by explicit Euler integration of
    the dynamics with `intermediate_integration` sub-steps per time step.
    """

    def ipopt_options(self) -> Dict[str, Any]:
        opts = {
            "print_time": False,
            "error_on_fail": False,
            "ipopt.print_level": 5 if self.options.verbose else 0,
            "ipopt.sb": "yes",
            "ipopt.tol": self.options.tolerance,
            "ipopt.max_iter": self.options.max_iterations,
            "ipopt.max_cpu_time": self.options.time_limit,
        }
        if self.options.debug_print:
            opts["ipopt.derivative_test"] = "first-order"
            opts["ipopt.derivative_test_perturbation"] = self.options.perturbation
        return opts

    def get_integrator(self, problem: SolverProblem) -> ca.Function:
        """Discrete transition F(x, u) of one time step."""
        x = ca.SX.sym("x", problem.n_states)
        u = ca.SX.sym("u", problem.n_controls)
        steps = self.options.intermediate_integration
        h = problem.time_step / steps
        x_next = x
        for _ in range(steps):
            x_next = x_next + h * problem.dynamics(x_next, u)
        return ca.Function("F", [x, u], [x_next], ["input_state", "control_input"], ["next_state"])

    def build_nlp(self, problem: SolverProblem) -> Dict[str, Any]:
        """
        Assemble the nonlinear program and its numeric bounds and initial guess.

        Returns
        -------
        dict
            `nlp` (f, x, g), `lbx`, `ubx`, `lbg`, `ubg`, `x0`.
        """
        N = problem.control_points
        n_x, n_u = problem.n_states, problem.n_controls
        X = ca.MX.sym("X", n_x, N)
        U = ca.MX.sym("U", n_u, N - 1)
        opt_variables = ca.vertcat(ca.reshape(U, -1, 1), ca.reshape(X, -1, 1))

        F = self.get_integrator(problem)
        x_init = ca.DM(np.asarray(problem.initial_state, dtype=float))

        # initial condition and dynamics equality
        g = [X[:, 0] - x_init]
        for k in range(N - 1):
            g.append(X[:, k + 1] - F(X[:, k], U[:, k]))
        n_eq = n_x * N
        lbg = [np.zeros(n_eq)]
        ubg = [np.zeros(n_eq)]

        # path constraints, inactive rows skipped
        path_lb = np.asarray(problem.path_lower_bounds, dtype=float).reshape(-1)
        path_ub = np.asarray(problem.path_upper_bounds, dtype=float).reshape(-1)
        active = ~(np.isneginf(path_lb) & np.isposinf(path_ub))
        if np.any(active):
            rows = np.flatnonzero(active).tolist()
            for k in range(N):
                gk = problem.path_constraints(X[:, k], U[:, min(k, N - 2)])
                g.append(gk[rows])
                lbg.append(path_lb[rows])
                ubg.append(path_ub[rows])

        # box constraints, first state pinned by the initial condition
        lbx_x = np.tile(np.asarray(problem.state_lower_bounds, dtype=float).reshape(-1, 1), (1, N))
        ubx_x = np.tile(np.asarray(problem.state_upper_bounds, dtype=float).reshape(-1, 1), (1, N))
        lbx_x[:, 0] = -np.inf
        ubx_x[:, 0] = np.inf
        lbx_u = np.tile(np.asarray(problem.input_lower_bounds, dtype=float).reshape(-1, 1), (1, N - 1))
        ubx_u = np.tile(np.asarray(problem.input_upper_bounds, dtype=float).reshape(-1, 1), (1, N - 1))

        # initial guess
        if problem.initial_guess is not None:
            x_guess = np.asarray(problem.initial_guess, dtype=float).reshape(N, n_x).T
        else:
            x_guess = np.tile(np.asarray(problem.initial_state, dtype=float).reshape(-1, 1), (1, N))
        u_guess = np.tile(np.asarray(problem.initial_input, dtype=float).reshape(-1, 1), (1, N - 1))

        return {
            "nlp": {"f": problem.objective(X[:, -1]), "x": opt_variables, "g": ca.vertcat(*g)},
            "lbx": np.concatenate([lbx_u.reshape(-1, order="F"), lbx_x.reshape(-1, order="F")]),
            "ubx": np.concatenate([ubx_u.reshape(-1, order="F"), ubx_x.reshape(-1, order="F")]),
            "lbg": np.concatenate(lbg),
            "ubg": np.concatenate(ubg),
            "x0": np.concatenate([u_guess.reshape(-1, order="F"), x_guess.reshape(-1, order="F")]),
        }

    def solve(self, problem: SolverProblem) -> SolverResult:
        N = problem.control_points
        if N < 2:
            raise ValueError("at least two control points are needed.")
        n_x, n_u = problem.n_states, problem.n_controls
        try:
            nlp = self.build_nlp(problem)
            solver = ca.nlpsol("solver", "ipopt", nlp["nlp"], self.ipopt_options())
            res = solver(x0=nlp["x0"], lbx=nlp["lbx"], ubx=nlp["ubx"], lbg=nlp["lbg"], ubg=nlp["ubg"])
            stats = solver.stats()
        except RuntimeError as e:
            raise SolverError(f"IPOPT backend failed: {e}") from e

        estimated_opt = res["x"].full().reshape(-1)
        n_u_total = n_u * (N - 1)
        u_full = estimated_opt[:n_u_total].reshape(n_u, N - 1, order="F").T
        x_full = estimated_opt[n_u_total:n_u_total + n_x * N].reshape(n_x, N, order="F").T
        times = problem.initial_time + problem.time_step * np.arange(N)

        result = SolverResult(
            states=x_full,
            inputs=u_full,
            times=times,
            objective=float(res["f"]),
            success=bool(stats.get("success", False)),
            iterations=int(stats.get("iter_count", 0)),
            status=str(stats.get("return_status", "")),
        )
        logger.debug(f"IPOPT finished with '{result.status}' after {result.iterations} iterations, "
                     f"objective {result.objective:.4f}")
        return result
