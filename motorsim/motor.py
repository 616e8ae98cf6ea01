"""
Three-phase brushless motor plant.

Electrical (per coil, star winding without neutral connection):
  v_n = mean(v_pole - e)
  di/dt = (v_pole - v_n - e - R i) / L

Back-EMF (shape N is fixed by the odd-harmonic coefficients):
  e = N(θe) · ω_m

Mechanical:
  T = i · N(θe) + T_cog(θm)
  dω/dt = (T - T_load) / J

Integrated with forward Euler at a fixed step, in the order
voltage → current → torque → kinematics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
import math
import warnings

import numpy as np

from .transforms import TWO_PI, odd_sine_series, wrap_angle

NUM_BEMF_HARMONICS = 5
COGGING_MAP_SIZE = 2048

# 3rd..9th harmonics relative to the fundamental
TRAPEZOID_HARMONICS = (0.278, 0.119, 0.053, 0.029)


def sine_bemf_coeffs(scale: float = 0.04) -> np.ndarray:
    coeffs = np.zeros(NUM_BEMF_HARMONICS)
    coeffs[0] = scale
    return coeffs


def trapezoid_bemf_coeffs(scale: float = 0.04) -> np.ndarray:
    return scale * np.array((1.0,) + TRAPEZOID_HARMONICS)


@dataclass
class MotorParams:
    num_pole_pairs: int = 4
    rotor_inertia: float = 2.0e-4       # kg·m^2
    phase_resistance: float = 0.5       # Ohm
    phase_inductance: float = 1.0e-3    # H
    # V·s/rad; equals N·m/A per unit of normalized shape
    normed_bEmf_coeffs: np.ndarray = field(default_factory=sine_bemf_coeffs)
    cogging_torque_map: np.ndarray = field(default_factory=lambda: np.zeros(COGGING_MAP_SIZE))

    def validate(self) -> None:
        if int(self.num_pole_pairs) != self.num_pole_pairs or self.num_pole_pairs < 1:
            raise ValueError(f"num_pole_pairs must be a positive integer, got {self.num_pole_pairs}")
        for name in ("rotor_inertia", "phase_resistance", "phase_inductance"):
            value = getattr(self, name)
            if not value > 0.0:
                raise ValueError(f"{name} must be positive, got {value}")
        coeffs = np.asarray(self.normed_bEmf_coeffs, dtype=float)
        if coeffs.shape != (NUM_BEMF_HARMONICS,):
            raise ValueError(f"normed_bEmf_coeffs must have {NUM_BEMF_HARMONICS} entries")
        if not coeffs[0] > 0.0:
            raise ValueError("normed_bEmf_coeffs[0] sets the base amplitude and must be positive")
        if len(self.cogging_torque_map) == 0:
            raise ValueError("cogging_torque_map must not be empty")


@dataclass
class MotorElectricalState:
    phase_currents: np.ndarray = field(default_factory=lambda: np.zeros(3))
    bEmfs: np.ndarray = field(default_factory=lambda: np.zeros(3))
    normed_bEmfs: np.ndarray = field(default_factory=lambda: np.zeros(3))


@dataclass
class MotorKinematicState:
    rotor_angle: float = 0.0            # mechanical [rad]
    rotor_angular_vel: float = 0.0      # rad/s
    rotor_angular_accel: float = 0.0    # rad/s^2
    torque: float = 0.0                 # N·m
    electrical_angle: float = 0.0       # rad


@dataclass
class MotorState:
    params: MotorParams = field(default_factory=MotorParams)
    electrical: MotorElectricalState = field(default_factory=MotorElectricalState)
    kinematic: MotorKinematicState = field(default_factory=MotorKinematicState)


def normed_back_emf(coeffs: np.ndarray, electrical_angle: float) -> float:
    return float(odd_sine_series(len(coeffs), electrical_angle) @ coeffs)


def normed_back_emfs(params: MotorParams, electrical_angle: float) -> np.ndarray:
    """Per-phase back-EMF shape at a/b/c (b lags a by 120°)."""
    coeffs = np.asarray(params.normed_bEmf_coeffs, dtype=float)
    return np.array(
        [
            normed_back_emf(coeffs, electrical_angle),
            normed_back_emf(coeffs, electrical_angle - TWO_PI / 3.0),
            normed_back_emf(coeffs, electrical_angle + TWO_PI / 3.0),
        ]
    )


def refresh_back_emfs(params: MotorParams, state: MotorState) -> None:
    kin = state.kinematic
    state.electrical.normed_bEmfs = normed_back_emfs(params, kin.electrical_angle)
    state.electrical.bEmfs = state.electrical.normed_bEmfs * kin.rotor_angular_vel


def init_motor_state(params: Optional[MotorParams] = None) -> MotorState:
    state = MotorState(params=params if params is not None else MotorParams())
    refresh_back_emfs(state.params, state)
    return state


def cogging_torque(params: MotorParams, rotor_angle: float) -> float:
    table = params.cogging_torque_map
    n = len(table)
    idx = int(rotor_angle / TWO_PI * n) % n
    return float(table[idx])


def neutral_voltage(pole_voltages: np.ndarray, bEmfs: np.ndarray) -> float:
    # Currents of a star winding sum to zero, so the neutral floats to the mean.
    return float(np.mean(pole_voltages - bEmfs))


def phase_voltages(pole_voltages: np.ndarray, bEmfs: np.ndarray) -> np.ndarray:
    return pole_voltages - neutral_voltage(pole_voltages, bEmfs)


def step_plant(
    params: MotorParams,
    applied_pole_voltages: np.ndarray,
    load_torque: float,
    dt: float,
    state: MotorState,
) -> MotorState:
    """Advance the motor by one Euler step of ``dt`` (state is updated in place)."""
    elec = state.electrical
    kin = state.kinematic

    normed = normed_back_emfs(params, kin.electrical_angle)
    bEmfs = normed * kin.rotor_angular_vel

    v_phase = phase_voltages(np.asarray(applied_pole_voltages, dtype=float), bEmfs)
    di_dt = (v_phase - bEmfs - elec.phase_currents * params.phase_resistance) / params.phase_inductance
    elec.phase_currents = elec.phase_currents + di_dt * dt

    kin.torque = float(elec.phase_currents @ normed) + cogging_torque(params, kin.rotor_angle)

    kin.rotor_angular_accel = (kin.torque - load_torque) / params.rotor_inertia
    kin.rotor_angular_vel += kin.rotor_angular_accel * dt
    kin.rotor_angle = wrap_angle(kin.rotor_angle + kin.rotor_angular_vel * dt)
    kin.electrical_angle = wrap_angle(kin.rotor_angle * params.num_pole_pairs)

    refresh_back_emfs(params, state)
    return state


def cogging_energy(cogging_torque_map: np.ndarray) -> float:
    """Net work done by the cogging torque over one mechanical revolution [J]."""
    return float(np.sum(cogging_torque_map)) * TWO_PI / len(cogging_torque_map)


def check_cogging_energy(cogging_torque_map: np.ndarray, tol: float = 1e-8) -> bool:
    energy = cogging_energy(cogging_torque_map)
    if abs(energy) > tol:
        warnings.warn(
            f"Energy conservation violated by cogging map: {energy:.3e} J per revolution",
            RuntimeWarning,
        )
        return False
    return True


def generate_cogging_torque_map(
    num_pole_pairs: int,
    size: int = COGGING_MAP_SIZE,
    scale: float = 0.01,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Random cogging map built from a handful of plausible spatial harmonics.

    Every component is a whole number of cycles per revolution, so the samples
    sum to zero and the map does no net work. The result is rescaled so its
    peak magnitude equals ``scale`` [N·m].
    """
    if rng is None:
        rng = np.random.default_rng()
    p = num_pole_pairs
    frequencies = np.array([1, p, 2 * p + 1, 3 * p + 2, 7 * p + 3, 10 * p + 4])
    freq_scales = np.array([0.5, 1.5, 1.0, 1.5, 0.5, 0.25])

    cos_coeffs = rng.normal(0.0, 1.0, size=len(frequencies)) * freq_scales
    sin_coeffs = rng.normal(0.0, 1.0, size=len(frequencies)) * freq_scales

    progress = np.arange(size) / size
    phases = TWO_PI * np.outer(progress, frequencies)
    torque_map = np.cos(phases) @ cos_coeffs + np.sin(phases) @ sin_coeffs

    # rescale
    torque_map *= scale / np.max(np.abs(torque_map))

    check_cogging_energy(torque_map)
    return torque_map
