"""
Copyright 2025 AUMOVIO. All rights reserved.
"""

import casadi as ca
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from nlc_planner.data_types import TuningParameters
from nlc_planner.planning_utils.reference_route import ReferenceRoute

# state and control indices
X, Y, PSI, V, DELTA, dDELTA, L, S = range(8)
ddDELTA = 0
STATE_SIZE = 8
INPUT_SIZE = 1


@dataclass(frozen=True, eq=False)
class CycleContext:
    """
    Everything the model callables read during one planning cycle.

    Built once per cycle and never mutated, so model, cost and constraint
    objects of different planner instances share no state.
    """
    reference: ReferenceRoute
    reference_velocity: float
    wheel_base: float
    lateral_weight: float
    heading_weight: float
    tau_accelerate: float = 2.5
    tau_brake: float = 1.25

    @classmethod
    def from_tuning(cls, reference: ReferenceRoute, reference_velocity: float, tuning: TuningParameters,
                    tau_accelerate: float = 2.5, tau_brake: float = 1.25) -> "CycleContext":
        return cls(
            reference=reference,
            reference_velocity=float(reference_velocity),
            wheel_base=tuning.wheel_base,
            lateral_weight=tuning.lateral_weight,
            heading_weight=tuning.heading_weight,
            tau_accelerate=tau_accelerate,
            tau_brake=tau_brake,
        )


class KinematicBicycle:
    """
    Kinematic bicycle model with first-order velocity response, steering
    acceleration input and a tracking cost state in casadi.

    States (8):  [x, y, psi, v, delta, ddelta, cost, s]
    Controls (1):[dddelta]
    Dynamics:
        x_dot      = v * cos(psi)
        y_dot      = v * sin(psi)
        psi_dot    = v * tan(delta) / L
        v_dot      = (v_ref - v) / tau,  tau = tau_accelerate if v_ref > v else tau_brake
        delta_dot  = ddelta
        ddelta_dot = dddelta
        cost_dot   = w_lat * e_lat**2 + w_psi * e_psi**2
        s_dot      = v
    The tracking errors are taken against the reference splines at the
    progress state s.
    """
    def __init__(self, context: CycleContext):
        if context.wheel_base <= 0:
            raise ValueError("wheelbase must be positive.")
        if context.reference.is_empty:
            raise ValueError("the model needs a non-empty reference route.")
        self.context = context
        self.wheelbase = context.wheel_base
        self.states = self.init_state_symbols()
        self.controls = self.init_control_symbols()
        self.cost_rate = self.init_cost_rate()
        self.rhs = self.init_rhs()
        self._f = None
        self._l = None

    def init_state_symbols(self) -> ca.SX:
        x      = ca.SX.sym('x')
        y      = ca.SX.sym('y')
        psi    = ca.SX.sym('psi')
        v      = ca.SX.sym('v')
        delta  = ca.SX.sym('delta')
        ddelta = ca.SX.sym('ddelta')
        cost   = ca.SX.sym('cost')
        s      = ca.SX.sym('s')
        states = ca.vertcat(x, y, psi, v, delta, ddelta, cost, s)
        return states

    def init_control_symbols(self) -> ca.SX:
        dddelta = ca.SX.sym('dddelta')
        controls = ca.vertcat(dddelta)
        return controls

    def reference_at(self, s) -> Tuple:
        ref = self.context.reference
        return ref.x.to_casadi(s), ref.y.to_casadi(s), ref.heading.to_casadi(s)

    def tracking_errors(self, states) -> Tuple:
        """Lateral error to the reference point and wrapped heading error."""
        x_ref, y_ref, psi_ref = self.reference_at(states[S])
        dx = states[X] - x_ref
        dy = states[Y] - y_ref
        cos_ref = ca.cos(psi_ref)
        sin_ref = ca.sin(psi_ref)
        e_lat = -dx * sin_ref + dy * cos_ref
        e_psi = ca.atan2(-sin_ref * ca.cos(states[PSI]) + cos_ref * ca.sin(states[PSI]),
                         cos_ref * ca.cos(states[PSI]) + sin_ref * ca.sin(states[PSI]))
        return e_lat, e_psi

    def init_cost_rate(self) -> ca.SX:
        e_lat, e_psi = self.tracking_errors(self.states)
        return self.context.lateral_weight * e_lat**2 + self.context.heading_weight * e_psi**2

    def init_rhs(self) -> ca.SX:
        Xs = self.states
        U = self.controls
        ctx = self.context

        x, y, psi, v, delta, ddelta, cost, s = [Xs[i] for i in range(STATE_SIZE)]
        dddelta = U[ddDELTA]
        # slow acceleration, quick braking
        tau = ca.if_else(ctx.reference_velocity - v > 0, ctx.tau_accelerate, ctx.tau_brake)

        rhs = ca.vertcat(
            v * ca.cos(psi),                           # x_dot
            v * ca.sin(psi),                           # y_dot
            v * ca.tan(delta) / self.wheelbase,        # psi_dot
            (ctx.reference_velocity - v) / tau,        # v_dot
            ddelta,                                    # delta_dot
            dddelta,                                   # ddelta_dot
            self.cost_rate,                            # cost_dot
            v,                                         # s_dot
        )
        return rhs

    def get_f(self, fname: Optional[str]="f", sname: Optional[str]="input_state", cname: Optional[str]="control_input", rhsname: Optional[str]="rhs") -> ca.Function:
        """
        Returns CasADi function f(states, controls) -> rhs with named I/O.
        """
        if self._f is None:
            self._f = ca.Function(fname, [self.states, self.controls], [self.rhs], [sname, cname], [rhsname])
        return self._f

    def get_cost_rate(self) -> ca.Function:
        if self._l is None:
            self._l = ca.Function("cost_rate", [self.states], [self.cost_rate], ["input_state"], ["cost_rate"])
        return self._l

    def get_objective(self) -> ca.Function:
        """Terminal objective: the accumulated cost state."""
        return ca.Function("objective", [self.states], [self.states[L]], ["terminal_state"], ["objective"])

    def evaluate_derivative(self, state, control=None) -> np.ndarray:
        control = np.zeros(INPUT_SIZE) if control is None else control
        return np.array(self.get_f()(np.asarray(state, dtype=float), np.asarray(control, dtype=float))).reshape(-1)

    def evaluate_cost_rate(self, state) -> float:
        return float(self.get_cost_rate()(np.asarray(state, dtype=float)))

    def accumulated_cost(self, states, dt: float) -> float:
        """Left Riemann sum of the cost rate along a state sequence of shape (N, 8)."""
        states = np.asarray(states, dtype=float).reshape(-1, STATE_SIZE)
        return float(sum(self.evaluate_cost_rate(xk) for xk in states[:-1]) * dt)
