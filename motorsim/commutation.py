from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict

from .board import SwitchState, pwm_carrier, pwm_commands
from .foc import foc_update
from .six_step import six_step_commands

if TYPE_CHECKING:
    from .sim import SimState


class CommutationMode(Enum):
    MANUAL = "manual"
    SIX_STEP = "six-step"
    FOC = "foc"


def commutate_manual(state: "SimState", dt: float) -> None:
    state.board.gate.commanded = list(state.manual_commands)


def commutate_six_step(state: "SimState", dt: float) -> None:
    state.board.gate.commanded = six_step_commands(
        state.motor.kinematic.electrical_angle, state.six_step_phase_advance
    )


def commutate_foc(state: "SimState", dt: float) -> None:
    """Recompute duties on period boundaries, otherwise just run the carrier."""
    foc = state.foc
    if foc.elapsed >= foc.period:
        foc_update(foc, state.motor, state.board, state.foc_desired_torque)
        if foc.elapsed < 2.0 * foc.period:
            foc.elapsed -= foc.period
        else:
            # first update, or the period was shortened between ticks
            foc.elapsed = 0.0

    pwm = state.board.pwm
    pwm.level = pwm_carrier(foc.elapsed / foc.period)
    state.board.gate.commanded = pwm_commands(pwm)
    foc.elapsed += dt


HANDLERS: Dict[CommutationMode, Callable[["SimState", float], None]] = {
    CommutationMode.MANUAL: commutate_manual,
    CommutationMode.SIX_STEP: commutate_six_step,
    CommutationMode.FOC: commutate_foc,
}


def enter_mode(state: "SimState", mode: CommutationMode) -> None:
    """Mode-entry hook: FOC starts from clean regulators and updates at once."""
    if mode == CommutationMode.FOC:
        state.foc.reset()


def commutate(state: "SimState", dt: float) -> None:
    mode = CommutationMode(state.commutation_mode)
    if mode != state.active_mode:
        enter_mode(state, mode)
        state.active_mode = mode
    HANDLERS[mode](state, dt)


def is_valid_manual_command(command) -> bool:
    return SwitchState(command) in (SwitchState.LOW, SwitchState.HIGH)
