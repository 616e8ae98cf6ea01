from .pid import PI, PIParams, make_motor_pi_params
from .transforms import clarke_transform, rotation, park_transform, odd_sine_series
from .motor import (
    MotorParams,
    MotorState,
    step_plant,
    generate_cogging_torque_map,
    sine_bemf_coeffs,
    trapezoid_bemf_coeffs,
)
from .board import SwitchState, GateState, PwmState, BoardState, resolve_pole_voltages
from .foc import FocState, foc_update
from .commutation import CommutationMode
from .sim import SimParams, SimState, new_sim_state, step, run, snapshot

__all__ = [
    "PI",
    "PIParams",
    "make_motor_pi_params",
    "clarke_transform",
    "rotation",
    "park_transform",
    "odd_sine_series",
    "MotorParams",
    "MotorState",
    "step_plant",
    "generate_cogging_torque_map",
    "sine_bemf_coeffs",
    "trapezoid_bemf_coeffs",
    "SwitchState",
    "GateState",
    "PwmState",
    "BoardState",
    "resolve_pole_voltages",
    "FocState",
    "foc_update",
    "CommutationMode",
    "SimParams",
    "SimState",
    "new_sim_state",
    "step",
    "run",
    "snapshot",
]
