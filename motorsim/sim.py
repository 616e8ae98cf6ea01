"""
Simulation step orchestration.

One tick: commutation → dead-time → pole voltages → plant → time. The host
calls ``run`` once per frame; it executes ``step_multiplier`` ticks back to
back unless paused, and observers only look at the state between ticks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .board import BoardState, SwitchState, apply_dead_time, power_draw, resolve_pole_voltages
from .commutation import CommutationMode, commutate, is_valid_manual_command
from .foc import FocState, rotor_frame
from .motor import MotorParams, MotorState, init_motor_state, phase_voltages, step_plant
from .pid import PI, make_motor_pi_params
from .svpwm import svpwm_sector
from .transforms import clarke_transform

DEFAULT_CURRENT_BANDWIDTH = 2000.0  # rad/s
# plant ticks per PWM period; the carrier is sampled once per tick
MIN_PWM_TICKS_PER_PERIOD = 20


@dataclass
class SimParams:
    dt: float = 1.0e-6  # s, plant integration step

    def validate(self) -> None:
        if not self.dt > 0.0:
            raise ValueError(f"dt must be positive, got {self.dt}")


@dataclass
class SimState:
    board: BoardState = field(default_factory=BoardState)
    motor: MotorState = field(default_factory=init_motor_state)
    foc: FocState = field(default_factory=FocState)
    commutation_mode: CommutationMode = CommutationMode.MANUAL
    manual_commands: List[SwitchState] = field(default_factory=lambda: [SwitchState.LOW] * 3)
    six_step_phase_advance: float = 0.0  # electrical rad
    load_torque: float = 0.0             # N·m
    foc_desired_torque: float = 0.0      # N·m
    time: float = 0.0
    paused: bool = False
    step_multiplier: int = 1
    active_mode: Optional[CommutationMode] = None

    def __post_init__(self):
        self.commutation_mode = CommutationMode(self.commutation_mode)
        self.manual_commands = [SwitchState(c) for c in self.manual_commands]

    def validate(self, params: Optional[SimParams] = None) -> None:
        self.motor.params.validate()
        if len(self.manual_commands) != 3 or not all(is_valid_manual_command(c) for c in self.manual_commands):
            raise ValueError(f"manual commands must be three of HIGH/LOW, got {self.manual_commands}")
        if not self.foc.period > 0.0:
            raise ValueError(f"FOC period must be positive, got {self.foc.period}")
        if self.step_multiplier < 1:
            raise ValueError(f"step_multiplier must be at least 1, got {self.step_multiplier}")
        if self.board.gate.dead_time < 0.0:
            raise ValueError(f"dead_time must not be negative, got {self.board.gate.dead_time}")
        if params is not None:
            params.validate()
            ticks = self.foc.period / params.dt
            if ticks < MIN_PWM_TICKS_PER_PERIOD * (1.0 - 1e-9):
                raise ValueError(
                    f"FOC period {self.foc.period} spans only {ticks:.1f} plant steps of {params.dt}; "
                    f"need at least {MIN_PWM_TICKS_PER_PERIOD} to resolve the PWM carrier"
                )


def new_sim_state(
    params: Optional[MotorParams] = None,
    current_bandwidth: float = DEFAULT_CURRENT_BANDWIDTH,
    **fields: Any,
) -> SimState:
    """Default simulation with current loops tuned for the motor."""
    motor = init_motor_state(params)
    p = motor.params
    foc = FocState(
        iq_controller=PI(make_motor_pi_params(current_bandwidth, p.phase_resistance, p.phase_inductance)),
        id_controller=PI(make_motor_pi_params(current_bandwidth, p.phase_resistance, p.phase_inductance)),
    )
    return SimState(motor=motor, foc=foc, **fields)


def step(params: SimParams, state: SimState) -> SimState:
    """Advance the whole system by one plant step."""
    board = state.board
    motor = state.motor

    commutate(state, params.dt)
    apply_dead_time(board.gate, params.dt)
    poles = resolve_pole_voltages(board.bus_voltage, motor.electrical.phase_currents, board.gate, motor.electrical.bEmfs)
    step_plant(motor.params, poles, state.load_torque, params.dt, motor)

    state.time += params.dt
    return state


def run(params: SimParams, state: SimState) -> int:
    if state.paused:
        return 0
    for _ in range(state.step_multiplier):
        step(params, state)
    return state.step_multiplier


def snapshot(state: SimState) -> Dict[str, Any]:
    """Flat copy of the observable state, safe to keep after further ticks."""
    board = state.board
    motor = state.motor
    elec = motor.electrical
    kin = motor.kinematic
    foc = state.foc

    poles = resolve_pole_voltages(board.bus_voltage, elec.phase_currents, board.gate, elec.bEmfs)
    v_phase = phase_voltages(poles, elec.bEmfs)
    frame, _ = rotor_frame(motor.params, kin.electrical_angle, foc.non_sinusoidal_drive_mode)
    i_qd = frame * clarke_transform(elec.phase_currents)
    v_ab = foc.voltage_qd * frame.conjugate()

    snap: Dict[str, Any] = {
        "t": state.time,
        "mode": state.commutation_mode.value,
        "rotor_angle": kin.rotor_angle,
        "electrical_angle": kin.electrical_angle,
        "omega": kin.rotor_angular_vel,
        "accel": kin.rotor_angular_accel,
        "torque": kin.torque,
        "load_torque": state.load_torque,
        "i_q": i_qd.real,
        "i_d": i_qd.imag,
        "iq_err": foc.iq_controller.err,
        "iq_integral": foc.iq_controller.integral,
        "id_err": foc.id_controller.err,
        "id_integral": foc.id_controller.integral,
        "v_q": foc.voltage_qd.real,
        "v_d": foc.voltage_qd.imag,
        "sector": svpwm_sector(v_ab) if v_ab else 0,
        "pwm_level": board.pwm.level,
        "power": power_draw(board, elec.phase_currents),
    }
    for n, ph in enumerate("abc"):
        snap[f"i_{ph}"] = float(elec.phase_currents[n])
        snap[f"e_{ph}"] = float(elec.bEmfs[n])
        snap[f"e_norm_{ph}"] = float(elec.normed_bEmfs[n])
        snap[f"v_pole_{ph}"] = float(poles[n])
        snap[f"v_{ph}"] = float(v_phase[n])
        snap[f"gate_{ph}"] = int(board.gate.actual[n])
        snap[f"duty_{ph}"] = float(board.pwm.duties[n])
    return snap
