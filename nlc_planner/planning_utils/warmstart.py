"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import casadi as ca
import numpy as np
from typing import Optional

from nlc_planner.planning_utils.dynamic_model import INPUT_SIZE, PSI, S, STATE_SIZE, V, X, Y


class Warmstart:
    """
    Initial guess generator for the multiple-shooting states.

    State (len=8): [x, y, psi, v, delta, ddelta, cost, s]

    Two different modes:
        - rollout:  integrate the model f(x, u) under zero input with explicit
                    Euler sub-steps, i.e. the exact discrete trajectory the
                    solver starts from
        - const_vx: straight line with constant velocity and heading

    Output: array shape (N, 8), row k is the guess for control point k
    """

    MODES = ("rollout", "const_vx")

    def __init__(self, mode: str = "rollout"):
        self.mode = mode

    def generate(
        self,
        x0: np.ndarray,      # shape (8,)
        N: int,
        dt: float,
        f: Optional[ca.Function] = None,  # used by rollout
        intermediate_integration: int = 1,
    ) -> np.ndarray:
        x0 = np.asarray(x0, dtype=float).reshape(-1)
        if x0.shape[0] != STATE_SIZE:
            raise ValueError(f"x0 must be length {STATE_SIZE}: [x, y, psi, v, delta, ddelta, cost, s].")

        if self.mode == "rollout":
            if f is None:
                raise ValueError("rollout requires the model function f.")
            return self._rollout(x0, N, dt, f, intermediate_integration)
        elif self.mode == "const_vx":
            return self._const_vx(x0, N, dt)
        else:
            raise ValueError(f"Unknown mode '{self.mode}'.")

    @staticmethod
    def _rollout(x0: np.ndarray, N: int, dt: float, f: ca.Function, intermediate_integration: int) -> np.ndarray:
        steps = max(int(intermediate_integration), 1)
        h = dt / steps
        u = np.zeros(INPUT_SIZE)
        traj = np.zeros((N, STATE_SIZE), dtype=float)
        traj[0] = x0
        xk = x0.copy()
        for k in range(1, N):
            for _ in range(steps):
                xk = xk + h * np.array(f(xk, u)).reshape(-1)
            traj[k] = xk
        return traj

    @staticmethod
    def _const_vx(x0: np.ndarray, N: int, dt: float) -> np.ndarray:
        # s_{k+1} = s_k + v dt
        s_incr = dt * x0[V] * np.arange(N, dtype=float)
        traj = np.tile(x0, (N, 1))
        traj[:, X] = x0[X] + np.cos(x0[PSI]) * s_incr
        traj[:, Y] = x0[Y] + np.sin(x0[PSI]) * s_incr
        traj[:, S] = x0[S] + s_incr
        return traj
