from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class PIParams:
    p_gain: float = 0.0
    i_gain: float = 0.0


@dataclass
class PI:
    params: PIParams = field(default_factory=PIParams)
    err: float = 0.0
    integral: float = 0.0

    def reset(self) -> None:
        self.err = 0.0
        self.integral = 0.0

    def update(
        self,
        setpoint: float,
        measurement: float,
        dt: float,
        anti_windup: bool = False,
        output_limit: Optional[float] = None,
    ) -> float:
        """Advance the regulator by ``dt`` and return the control output.

        With ``anti_windup`` and an ``output_limit`` the integral is held
        (clamp-and-hold) while the output is saturated and the error would
        push it further into saturation.
        """
        error = setpoint - measurement
        self.err = error

        prev_integral = self.integral
        self.integral += error * dt
        u = self.params.p_gain * error + self.params.i_gain * self.integral

        if output_limit is None:
            return u

        saturated = abs(u) > output_limit
        if anti_windup and saturated and error * u > 0.0:
            self.integral = prev_integral
            u = self.params.p_gain * error + self.params.i_gain * self.integral

        # Clamp output
        if u > output_limit:
            return output_limit
        if u < -output_limit:
            return -output_limit
        return u


def make_motor_pi_params(bandwidth: float, resistance: float, inductance: float) -> PIParams:
    """Current-loop gains that cancel the RL pole.

    Closed loop becomes a first-order lag with the requested bandwidth [rad/s].
    """
    return PIParams(p_gain=bandwidth * inductance, i_gain=bandwidth * resistance)
