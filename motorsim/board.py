"""
Half-bridge power stage: PWM carrier, dead-time insertion and pole voltages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
from enum import IntEnum
from typing import List, Optional

import numpy as np


class SwitchState(IntEnum):
    LOW = 0
    HIGH = 1
    OFF = 2


def _switch_states(values) -> List[SwitchState]:
    states = [SwitchState(v) for v in values]
    if len(states) != 3:
        raise ValueError(f"expected 3 switch states, got {len(states)}")
    return states


@dataclass
class GateState:
    commanded: List[SwitchState] = field(default_factory=lambda: [SwitchState.OFF] * 3)
    actual: List[SwitchState] = field(default_factory=lambda: [SwitchState.OFF] * 3)
    diode_active_voltage: float = 0.7   # V
    diode_active_current: float = 0.05  # A, below this a floating coil is not conducting
    dead_time: float = 0.0              # s
    off_time: List[float] = field(default_factory=lambda: [0.0] * 3)

    def __post_init__(self):
        self.commanded = _switch_states(self.commanded)
        self.actual = _switch_states(self.actual)
        self.off_time = [float(t) for t in self.off_time]


@dataclass
class PwmState:
    duties: List[float] = field(default_factory=lambda: [0.5] * 3)
    resolution: float = 0.0  # 0 means unquantized, else 2^-bits
    level: float = 0.0


def resolution_from_bits(bits: int) -> float:
    if bits <= 0:
        return 0.0
    return 2.0 ** -bits


@dataclass
class BoardState:
    bus_voltage: float = 24.0
    gate: GateState = field(default_factory=GateState)
    pwm: PwmState = field(default_factory=PwmState)


def quantize_duty(duty: float, resolution: float) -> float:
    duty = max(0.0, min(1.0, duty))
    if resolution > 0.0:
        # ties round up
        duty = math.floor(duty / resolution + 0.5) * resolution
    return duty


def pwm_carrier(phase: float) -> float:
    """Center-aligned (triangle) carrier: 0 at the period edges, 1 at mid-period."""
    phase = phase % 1.0
    return 1.0 - abs(2.0 * phase - 1.0)


def pwm_commands(pwm: PwmState) -> List[SwitchState]:
    commands = []
    for duty in pwm.duties:
        d = quantize_duty(duty, pwm.resolution)
        if d >= 1.0 or pwm.level < d:
            commands.append(SwitchState.HIGH)
        else:
            commands.append(SwitchState.LOW)
    return commands


def apply_dead_time(gate: GateState, dt: float) -> None:
    """Move ``gate.actual`` toward ``gate.commanded`` for one tick of ``dt``.

    A HIGH<->LOW change always passes through OFF, and an OFF phase only
    asserts a switch after it has been off for at least ``gate.dead_time``.
    """
    for n in range(3):
        cmd = gate.commanded[n]
        if gate.actual[n] != SwitchState.OFF and cmd != gate.actual[n]:
            gate.actual[n] = SwitchState.OFF
            gate.off_time[n] = 0.0

        if gate.actual[n] == SwitchState.OFF:
            if cmd != SwitchState.OFF and gate.off_time[n] >= gate.dead_time:
                gate.actual[n] = cmd
            else:
                gate.off_time[n] += dt


def resolve_pole_voltages(
    bus_voltage: float,
    phase_currents: np.ndarray,
    gate: GateState,
    bemfs: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Pole voltages produced by the actual switch states.

    An OFF phase carrying more than ``gate.diode_active_current`` is clamped
    by its freewheeling diode: positive current (into the coil) is fed from
    the low-side diode, negative current returns through the high-side diode.
    A floating phase below that threshold conducts nothing, so its pole
    follows the neutral point set by the asserted phases plus its own
    back-EMF.
    """
    if bemfs is None:
        bemfs = np.zeros(3)
    poles = np.zeros(3)
    floating = []
    for n in range(3):
        state = gate.actual[n]
        if state == SwitchState.HIGH:
            poles[n] = bus_voltage
        elif state == SwitchState.LOW:
            poles[n] = 0.0
        elif state == SwitchState.OFF:
            i = phase_currents[n]
            if abs(i) > gate.diode_active_current:
                if i > 0:
                    poles[n] = -gate.diode_active_voltage
                else:
                    # high-side diode lifts the pole above the bus, unlike a plain -Vd drop
                    poles[n] = bus_voltage + gate.diode_active_voltage
            else:
                floating.append(n)
        else:
            raise AssertionError(f"Unhandled switch state {state!r}")

    if floating:
        asserted = [n for n in range(3) if n not in floating]
        v_neutral = 0.0
        if asserted:
            v_neutral = float(np.mean(poles[asserted] - bemfs[asserted]))
        for n in floating:
            poles[n] = v_neutral + bemfs[n]
    return poles


def power_draw(board: BoardState, phase_currents: np.ndarray) -> float:
    """Power drawn from the bus through the high-side switches [W]."""
    power = 0.0
    for n in range(3):
        if board.gate.actual[n] == SwitchState.HIGH:
            power += board.bus_voltage * phase_currents[n]
    return power
