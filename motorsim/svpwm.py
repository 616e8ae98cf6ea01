from __future__ import annotations

import math
from typing import Tuple

from .transforms import TWO_PI, inverse_clarke_transform


def voltage_limit(v: complex, vbus: float) -> complex:
    """Limit a voltage vector magnitude to Vbus/sqrt(3), the linear SVPWM range."""
    vlim = vbus / math.sqrt(3.0)
    mag = abs(v)
    if mag > vlim and mag > 1e-12:
        v *= vlim / mag
    return v


def svpwm_sector(v: complex) -> int:
    """Space-vector sector (1..6) of a stationary-frame vector, 60° per sector."""
    ang = math.atan2(v.imag, v.real)
    if ang < 0:
        ang += TWO_PI
    sector = int(ang // (math.pi / 3.0)) + 1
    if sector > 6:
        sector = 6
    return sector


def svpwm_duty(v: complex, vbus: float) -> Tuple[float, float, float]:
    """Compute duty cycles (0..1) that realize αβ voltage ``v`` on the phases.

    Min-max common-mode injection centers the three references in the bus,
    which gives the same switching averages as two-active-vector SVPWM. With
    duty d a pole averages d·Vbus; the common mode cancels at the neutral.
    """
    vbus = max(vbus, 1e-9)
    v_a, v_b, v_c = inverse_clarke_transform(v)

    v_min = min(v_a, v_b, v_c)
    v_max = max(v_a, v_b, v_c)
    v_cm = -0.5 * (v_max + v_min)
    d_a = max(0.0, min(1.0, 0.5 + (v_a + v_cm) / vbus))
    d_b = max(0.0, min(1.0, 0.5 + (v_b + v_cm) / vbus))
    d_c = max(0.0, min(1.0, 0.5 + (v_c + v_cm) / vbus))
    return d_a, d_b, d_c
