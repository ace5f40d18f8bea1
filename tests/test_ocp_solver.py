from dataclasses import replace

import casadi as ca
import numpy as np
import pytest

from nlc_planner.solver.ocp_solver import IpoptOCPSolver, SolverOptions, SolverProblem


def make_problem(path_upper_bound=np.inf, control_points=11, time_step=0.1) -> SolverProblem:
    """
    Point mass with integrated control effort: p' = u, cost' = u**2,
    terminal objective cost + 10 * (p - 1)**2.
    """
    x = ca.SX.sym("x", 2)
    u = ca.SX.sym("u", 1)
    dynamics = ca.Function("f", [x, u], [ca.vertcat(u, u ** 2)])
    objective = ca.Function("objective", [x], [x[1] + 10.0 * (x[0] - 1.0) ** 2])
    path_constraints = ca.Function("g", [x, u], [u])
    return SolverProblem(
        dynamics=dynamics,
        objective=objective,
        state_lower_bounds=np.array([-np.inf, -np.inf]),
        state_upper_bounds=np.array([np.inf, np.inf]),
        input_lower_bounds=np.array([-np.inf]),
        input_upper_bounds=np.array([np.inf]),
        path_constraints=path_constraints,
        path_lower_bounds=np.array([-np.inf]),
        path_upper_bounds=np.array([path_upper_bound]),
        initial_state=np.zeros(2),
        initial_input=np.zeros(1),
        initial_time=4.0,
        time_step=time_step,
        control_points=control_points,
    )


def test_ipopt_solves_point_mass_problem():
    result = IpoptOCPSolver(SolverOptions(tolerance=1e-8)).solve(make_problem())

    assert result.success
    assert result.states.shape == (11, 2)
    assert result.inputs.shape == (10, 1)
    assert result.times == pytest.approx(4.0 + 0.1 * np.arange(11))
    assert result.states[0] == pytest.approx([0.0, 0.0], abs=1e-8)
    # u = 10 / 11 over a unit horizon
    assert result.states[-1, 0] == pytest.approx(10.0 / 11.0, abs=1e-4)
    assert result.objective == pytest.approx(10.0 / 11.0, abs=1e-4)
    assert result.iterations > 0


def test_active_path_constraint_is_enforced():
    result = IpoptOCPSolver(SolverOptions(tolerance=1e-8)).solve(make_problem(path_upper_bound=0.5))
    assert result.states[-1, 0] == pytest.approx(0.5, abs=1e-4)
    assert np.all(result.inputs <= 0.5 + 1e-6)


def test_inactive_path_constraints_are_skipped():
    problem = make_problem()
    nlp = IpoptOCPSolver().build_nlp(problem)
    # initial condition and dynamics only
    assert nlp["nlp"]["g"].shape[0] == problem.n_states * problem.control_points
    assert nlp["lbg"].size == nlp["ubg"].size == problem.n_states * problem.control_points

    constrained = IpoptOCPSolver().build_nlp(make_problem(path_upper_bound=0.5))
    assert constrained["nlp"]["g"].shape[0] == (problem.n_states + 1) * problem.control_points


def test_intermediate_integration_substeps():
    x = ca.SX.sym("x", 1)
    u = ca.SX.sym("u", 1)
    problem = replace(make_problem(), dynamics=ca.Function("f", [x, u], [x]), initial_state=np.zeros(1))
    F = IpoptOCPSolver(SolverOptions(intermediate_integration=4)).get_integrator(problem)
    # four explicit Euler steps of x' = x
    assert float(F(1.0, 0.0)) == pytest.approx((1.0 + 0.025) ** 4)


def test_ipopt_options_mapping():
    opts = IpoptOCPSolver(SolverOptions(tolerance=1e-3, max_iterations=42, time_limit=0.5,
                                        debug_print=True, perturbation=1e-5)).ipopt_options()
    assert opts["ipopt.tol"] == 1e-3
    assert opts["ipopt.max_iter"] == 42
    assert opts["ipopt.max_cpu_time"] == 0.5
    assert opts["ipopt.print_level"] == 0
    assert opts["ipopt.derivative_test_perturbation"] == 1e-5
    assert "ipopt.derivative_test" not in IpoptOCPSolver().ipopt_options()


@pytest.mark.parametrize("kwargs", [{"intermediate_integration": 0}, {"max_iterations": 0}])
def test_invalid_solver_options(kwargs):
    with pytest.raises(ValueError):
        SolverOptions(**kwargs)
