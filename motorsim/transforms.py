from __future__ import annotations

import cmath
import math

import numpy as np

TWO_PI = 2.0 * math.pi

# Amplitude-invariant: a balanced set of amplitude A maps to |v| = A.
CLARKE_2X3 = np.array(
    [
        [2.0 / 3.0, -1.0 / 3.0, -1.0 / 3.0],
        [0.0, 1.0 / math.sqrt(3.0), -1.0 / math.sqrt(3.0)],
    ]
)


def clarke_transform(abc) -> complex:
    """Project a/b/c quantities onto the stationary frame (real = α, imag = β)."""
    alpha, beta = CLARKE_2X3 @ np.asarray(abc, dtype=float)
    return complex(alpha, beta)


def inverse_clarke_transform(v: complex) -> np.ndarray:
    """Map an αβ vector back to zero-sequence-free a/b/c quantities."""
    sqrt3_2 = math.sqrt(3.0) / 2.0
    return np.array(
        [
            v.real,
            -0.5 * v.real + sqrt3_2 * v.imag,
            -0.5 * v.real - sqrt3_2 * v.imag,
        ]
    )


def rotation(angle: float) -> complex:
    return cmath.rect(1.0, angle)


def park_transform(angle: float) -> complex:
    """Rotation taking stationary-frame vectors into a frame at ``angle``."""
    return rotation(-angle)


def q_axis_electrical_angle(electrical_angle: float) -> float:
    """Stationary-frame angle of the back-EMF (q) axis.

    Phase shapes are sin(θ), sin(θ - 2π/3), sin(θ + 2π/3), whose space vector
    is sin(θ) - i·cos(θ), i.e. it lags the electrical angle by 90°.
    """
    return electrical_angle - 0.5 * math.pi


def odd_sine_series(num_terms: int, angle: float) -> np.ndarray:
    """sin(θ), sin(3θ), sin(5θ), ... for ``num_terms`` terms."""
    return np.sin(np.arange(1, 2 * num_terms, 2) * angle)


def wrap_angle(angle: float) -> float:
    wrapped = math.fmod(angle, TWO_PI)
    if wrapped < 0.0:
        wrapped += TWO_PI
    # fmod of a tiny negative value can round back up to exactly 2π
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped
