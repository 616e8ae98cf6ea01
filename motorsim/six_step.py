"""Six-step (trapezoidal / block) commutation.

Each 60° electrical sector drives the phase with the highest back-EMF HIGH,
the lowest LOW, and leaves the third floating. Sector 0 starts where phase a
overtakes phase c as the highest back-EMF (θe = 30°).
"""

from __future__ import annotations

import math
from typing import List

from .board import SwitchState
from .transforms import wrap_angle

H, L, Z = SwitchState.HIGH, SwitchState.LOW, SwitchState.OFF

# Commutation per sector (A,B,C)
SIX_STEP_PATTERN = (
    (H, L, Z),  # 0: A+,B-,Cz
    (H, Z, L),  # 1: A+,C-,Bz
    (Z, H, L),  # 2: B+,C-,Az
    (L, H, Z),  # 3: A-,B+,Cz
    (L, Z, H),  # 4: A-,C+,Bz
    (Z, L, H),  # 5: B-,C+,Az
)


def six_step_sector(electrical_angle: float, phase_advance: float = 0.0) -> int:
    th = wrap_angle(electrical_angle + phase_advance - math.pi / 6.0)
    return min(int(th // (math.pi / 3.0)), 5)


def six_step_commands(electrical_angle: float, phase_advance: float = 0.0) -> List[SwitchState]:
    return list(SIX_STEP_PATTERN[six_step_sector(electrical_angle, phase_advance)])
