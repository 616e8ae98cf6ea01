"""
Field-oriented current control.

Rotor frame vectors are complex numbers with real = q (back-EMF axis) and
imag = d. Measured currents are rotated into that frame, regulated by two PI
loops, optionally feed-forward compensated, rotated back and turned into
PWM duties.

In the rotor frame the coil equation reads
  v_qd = R i_qd + L di_qd/dt + j ω_e L i_qd + e_qd
so decoupling adds j ω_e L i_qd + e_qd to the PI output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple
import math

from .board import BoardState
from .motor import MotorParams, MotorState, cogging_torque, normed_back_emfs
from .pid import PI
from .svpwm import svpwm_duty, voltage_limit
from .transforms import clarke_transform, park_transform, q_axis_electrical_angle

# |clarke(N)| below this (relative to the fundamental) has no usable direction
_MIN_SHAPE_RATIO = 1e-6


@dataclass
class FocState:
    period: float = 5.0e-5  # s, control update interval
    iq_controller: PI = field(default_factory=PI)
    id_controller: PI = field(default_factory=PI)
    voltage_qd: complex = 0j
    current_qd: complex = 0j
    non_sinusoidal_drive_mode: bool = False
    use_cogging_compensation: bool = False
    use_qd_decoupling: bool = False
    anti_windup: bool = True
    elapsed: float = math.inf  # time since last update; inf forces an update

    def reset(self) -> None:
        self.iq_controller.reset()
        self.id_controller.reset()
        self.voltage_qd = 0j
        self.current_qd = 0j
        self.elapsed = math.inf


def rotor_frame(params: MotorParams, electrical_angle: float, non_sinusoidal: bool = False) -> Tuple[complex, float]:
    """Return (rotation into the qd frame, torque per unit i_q).

    For a zero-sum current vector I and shape vector N, torque is
    1.5·Re(I·conj(N)), so aligning q with N gives torque = 1.5·|N|·i_q.
    Non-sinusoidal mode follows the actual shape vector, which injects the
    harmonics needed for smooth torque from a non-sinusoidal back-EMF.
    """
    base = params.normed_bEmf_coeffs[0]
    if non_sinusoidal:
        shape = clarke_transform(normed_back_emfs(params, electrical_angle))
        mag = abs(shape)
        if mag > _MIN_SHAPE_RATIO * base:
            return shape.conjugate() / mag, 1.5 * mag
    return park_transform(q_axis_electrical_angle(electrical_angle)), 1.5 * base


def measure_current_qd(motor: MotorState, non_sinusoidal: bool = False) -> complex:
    frame, _ = rotor_frame(motor.params, motor.kinematic.electrical_angle, non_sinusoidal)
    return frame * clarke_transform(motor.electrical.phase_currents)


def foc_decouple(v_qd: complex, i_qd: complex, bemf_qd: complex, omega_e: float, inductance: float) -> complex:
    """Add the rotational cross-coupling and back-EMF feed-forward."""
    return v_qd + 1j * omega_e * inductance * i_qd + bemf_qd


def foc_update(foc: FocState, motor: MotorState, board: BoardState, desired_torque: float) -> None:
    """Run one control period: updates ``foc`` and ``board.pwm.duties``."""
    params = motor.params
    kin = motor.kinematic
    vlim = board.bus_voltage / math.sqrt(3.0)

    frame, torque_per_iq = rotor_frame(params, kin.electrical_angle, foc.non_sinusoidal_drive_mode)
    i_qd = frame * clarke_transform(motor.electrical.phase_currents)
    foc.current_qd = i_qd

    torque_ref = desired_torque
    if foc.use_cogging_compensation:
        torque_ref -= cogging_torque(params, kin.rotor_angle)
    iq_ref = torque_ref / torque_per_iq
    id_ref = 0.0

    iq_integral = foc.iq_controller.integral
    id_integral = foc.id_controller.integral
    vq = foc.iq_controller.update(iq_ref, i_qd.real, foc.period, foc.anti_windup, vlim)
    vd = foc.id_controller.update(id_ref, i_qd.imag, foc.period, foc.anti_windup, vlim)
    v_qd = complex(vq, vd)

    if foc.use_qd_decoupling:
        omega_e = params.num_pole_pairs * kin.rotor_angular_vel
        bemfs = normed_back_emfs(params, kin.electrical_angle) * kin.rotor_angular_vel
        bemf_qd = frame * clarke_transform(bemfs)
        v_qd = foc_decouple(v_qd, i_qd, bemf_qd, omega_e, params.phase_inductance)

    limited = voltage_limit(v_qd, board.bus_voltage)
    if foc.anti_windup and limited != v_qd:
        # vector limit is saturation too: hold integrals pushing further out
        if foc.iq_controller.err * v_qd.real > 0.0:
            foc.iq_controller.integral = iq_integral
        if foc.id_controller.err * v_qd.imag > 0.0:
            foc.id_controller.integral = id_integral
    v_qd = limited
    foc.voltage_qd = v_qd

    v_ab = v_qd * frame.conjugate()
    board.pwm.duties = list(svpwm_duty(v_ab, board.bus_voltage))
