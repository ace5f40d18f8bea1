"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import casadi as ca
import numpy as np

from nlc_planner.planning_utils.dynamic_model import DELTA, INPUT_SIZE, STATE_SIZE, V, dDELTA, ddDELTA


class BoxConstraints:
    """
    Simple box constraints on states and inputs plus an (inactive) path constraint slot.

    Velocity is restricted to [max_reverse_speed, max_forward_speed], steering
    angle and steering rate are clipped to the actuator limits, position, heading,
    cost and progress are left unbounded. The steering acceleration input is
    bounded by +-max_steering_acceleration.
    """
    def __init__(self, max_forward_speed: float, max_reverse_speed: float, max_steering_angle: float,
                 max_steering_velocity: float, max_steering_acceleration: float):
        if max_reverse_speed > max_forward_speed:
            raise ValueError("max_reverse_speed must not exceed max_forward_speed.")
        if min(max_steering_angle, max_steering_velocity, max_steering_acceleration) <= 0:
            raise ValueError("steering limits must be positive.")
        self.max_forward_speed = max_forward_speed
        self.max_reverse_speed = max_reverse_speed
        self.max_steering_angle = max_steering_angle
        self.max_steering_velocity = max_steering_velocity
        self.max_steering_acceleration = max_steering_acceleration

    def state_lower_bounds(self) -> np.ndarray:
        lbx = np.full(STATE_SIZE, -np.inf)
        lbx[V] = self.max_reverse_speed
        lbx[DELTA] = -self.max_steering_angle
        lbx[dDELTA] = -self.max_steering_velocity
        return lbx

    def state_upper_bounds(self) -> np.ndarray:
        ubx = np.full(STATE_SIZE, np.inf)
        ubx[V] = self.max_forward_speed
        ubx[DELTA] = self.max_steering_angle
        ubx[dDELTA] = self.max_steering_velocity
        return ubx

    def input_lower_bounds(self) -> np.ndarray:
        lbu = np.full(INPUT_SIZE, -np.inf)
        lbu[ddDELTA] = -self.max_steering_acceleration
        return lbu

    def input_upper_bounds(self) -> np.ndarray:
        ubu = np.full(INPUT_SIZE, np.inf)
        ubu[ddDELTA] = self.max_steering_acceleration
        return ubu

    def get_path_constraints(self) -> ca.Function:
        """g(states, controls) -> 0, a single placeholder row."""
        states = ca.SX.sym("input_state", STATE_SIZE)
        controls = ca.SX.sym("control_input", INPUT_SIZE)
        return ca.Function("path_constraints", [states, controls], [ca.SX.zeros(1)],
                           ["input_state", "control_input"], ["g"])

    def path_lower_bounds(self) -> np.ndarray:
        return np.full(1, -np.inf)

    def path_upper_bounds(self) -> np.ndarray:
        return np.full(1, np.inf)
