"""
Unit tests for field-oriented control: frame alignment, decoupling,
cogging compensation and duty synthesis.
"""

import math

import numpy as np
import pytest

from motorsim.board import BoardState
from motorsim.foc import FocState, foc_decouple, foc_update, measure_current_qd, rotor_frame
from motorsim.motor import (
    COGGING_MAP_SIZE,
    MotorParams,
    init_motor_state,
    normed_back_emfs,
    trapezoid_bemf_coeffs,
)
from motorsim.pid import PI, make_motor_pi_params
from motorsim.svpwm import svpwm_duty, svpwm_sector, voltage_limit
from motorsim.transforms import TWO_PI, clarke_transform, inverse_clarke_transform


@pytest.fixture
def motor():
    state = init_motor_state(MotorParams())
    state.kinematic.electrical_angle = 0.9
    return state


@pytest.fixture
def foc():
    return FocState(
        iq_controller=PI(make_motor_pi_params(2000.0, 0.5, 1e-3)),
        id_controller=PI(make_motor_pi_params(2000.0, 0.5, 1e-3)),
    )


class TestRotorFrame:

    def test_current_along_back_emf_is_pure_q(self, motor):
        shape = normed_back_emfs(motor.params, motor.kinematic.electrical_angle)
        motor.electrical.phase_currents = 2.0 * shape / motor.params.normed_bEmf_coeffs[0]

        i_qd = measure_current_qd(motor)
        assert i_qd == pytest.approx(2.0 + 0j, abs=1e-12)

    def test_torque_constant(self, motor):
        """Torque from i_q matches 1.5·|N|·i_q computed in the phase domain."""
        frame, torque_per_iq = rotor_frame(motor.params, 0.9)
        currents = inverse_clarke_transform(1.5 * frame.conjugate())
        torque = currents @ normed_back_emfs(motor.params, 0.9)
        assert torque == pytest.approx(1.5 * torque_per_iq)

    def test_non_sinusoidal_matches_sine_frame_for_sine_motor(self, motor):
        sine = rotor_frame(motor.params, 0.9, non_sinusoidal=False)
        shaped = rotor_frame(motor.params, 0.9, non_sinusoidal=True)
        assert shaped[0] == pytest.approx(sine[0])
        assert shaped[1] == pytest.approx(sine[1])

    def test_non_sinusoidal_smooths_torque(self):
        """Shaping the current after a trapezoidal back-EMF gives constant torque."""
        params = MotorParams(normed_bEmf_coeffs=trapezoid_bemf_coeffs(0.04))
        torques = {False: [], True: []}
        for theta in np.linspace(0.0, TWO_PI, 90, endpoint=False):
            shape = normed_back_emfs(params, theta)
            for mode in torques:
                frame, torque_per_iq = rotor_frame(params, theta, non_sinusoidal=mode)
                currents = inverse_clarke_transform(1.0 / torque_per_iq * frame.conjugate())
                torques[mode].append(currents @ shape)

        assert np.ptp(torques[True]) < 1e-9
        assert np.ptp(torques[False]) > 1e-3
        np.testing.assert_allclose(torques[True], 1.0)


class TestDecoupling:

    def test_cross_terms(self):
        v = foc_decouple(1.0 + 0.5j, 2.0 + 1.0j, 0.3 + 0j, omega_e=100.0, inductance=1e-3)
        # q gains -ω L i_d + e_q, d gains +ω L i_q
        assert v.real == pytest.approx(1.0 - 100.0 * 1e-3 * 1.0 + 0.3)
        assert v.imag == pytest.approx(0.5 + 100.0 * 1e-3 * 2.0)

    def test_feed_forward_cancels_back_emf(self, motor, foc):
        """At target current the command reduces to the feed-forward terms."""
        motor.kinematic.rotor_angular_vel = 100.0
        board = BoardState(bus_voltage=48.0)
        foc.use_qd_decoupling = True
        torque = 0.03
        iq_target = torque / (1.5 * motor.params.normed_bEmf_coeffs[0])
        shape = normed_back_emfs(motor.params, motor.kinematic.electrical_angle)
        motor.electrical.phase_currents = iq_target * shape / motor.params.normed_bEmf_coeffs[0]

        foc_update(foc, motor, board, torque)

        emf_q = motor.params.normed_bEmf_coeffs[0] * 100.0
        omega_e = motor.params.num_pole_pairs * 100.0
        assert foc.voltage_qd.real == pytest.approx(emf_q, abs=1e-9)
        assert foc.voltage_qd.imag == pytest.approx(omega_e * 1e-3 * iq_target, abs=1e-9)


class TestFocUpdate:

    def test_positive_torque_commands_positive_q_voltage(self, motor, foc):
        board = BoardState()
        foc_update(foc, motor, board, 0.05)

        assert foc.voltage_qd.real > 0.0
        assert foc.voltage_qd.imag == pytest.approx(0.0)
        assert all(0.0 <= d <= 1.0 for d in board.pwm.duties)
        assert foc.iq_controller.err == pytest.approx(0.05 / (1.5 * 0.04))

    def test_voltage_limited_to_linear_range(self, motor, foc):
        board = BoardState(bus_voltage=12.0)
        foc.iq_controller.params.p_gain = 1e6
        foc_update(foc, motor, board, 1.0)
        assert abs(foc.voltage_qd) == pytest.approx(12.0 / math.sqrt(3.0))

    @pytest.mark.parametrize("anti_windup", [True, False])
    def test_vector_limit_after_feed_forward_holds_integral(self, motor, foc, anti_windup):
        """Back-EMF feed-forward alone exceeds the bus, so the PI output never reaches the coil."""
        motor.kinematic.rotor_angular_vel = 400.0
        board = BoardState(bus_voltage=24.0)
        foc.use_qd_decoupling = True
        foc.anti_windup = anti_windup

        for _ in range(10):
            foc_update(foc, motor, board, 0.05)

        assert abs(foc.voltage_qd) == pytest.approx(24.0 / math.sqrt(3.0))
        err = foc.iq_controller.err
        assert err > 0.0
        if anti_windup:
            assert foc.iq_controller.integral == 0.0
        else:
            assert foc.iq_controller.integral == pytest.approx(10 * err * foc.period)

    def test_duties_realize_requested_vector(self, motor, foc):
        board = BoardState(bus_voltage=24.0)
        foc_update(foc, motor, board, 0.05)

        frame, _ = rotor_frame(motor.params, motor.kinematic.electrical_angle)
        poles = np.array(board.pwm.duties) * board.bus_voltage
        v_ab = clarke_transform(poles)
        assert v_ab == pytest.approx(foc.voltage_qd * frame.conjugate())

    def test_cogging_compensation_cancels_cogging(self, motor, foc):
        motor.params.cogging_torque_map = np.full(COGGING_MAP_SIZE, 0.02)
        board = BoardState()
        foc.use_cogging_compensation = True

        foc_update(foc, motor, board, 0.02)
        assert foc.iq_controller.err == pytest.approx(0.0)
        assert foc.voltage_qd == pytest.approx(0j)

        foc.reset()
        foc.use_cogging_compensation = False
        foc_update(foc, motor, board, 0.02)
        assert foc.voltage_qd.real > 0.0

    def test_reset_forces_update(self, foc):
        foc.voltage_qd = 1 + 1j
        foc.iq_controller.integral = 3.0
        foc.elapsed = 0.0
        foc.reset()
        assert foc.voltage_qd == 0j
        assert foc.iq_controller.integral == 0.0
        assert math.isinf(foc.elapsed)


class TestSvpwm:

    def test_zero_vector_is_half_duty(self):
        assert svpwm_duty(0j, 24.0) == pytest.approx((0.5, 0.5, 0.5))

    def test_full_linear_range_fits(self):
        vlim = 24.0 / math.sqrt(3.0)
        for theta in np.linspace(0.0, TWO_PI, 37):
            duties = svpwm_duty(vlim * complex(math.cos(theta), math.sin(theta)), 24.0)
            assert min(duties) >= -1e-12 and max(duties) <= 1.0 + 1e-12

    def test_voltage_limit(self):
        assert voltage_limit(100.0 + 0j, 24.0) == pytest.approx(24.0 / math.sqrt(3.0))
        assert voltage_limit(1.0 + 1.0j, 24.0) == 1.0 + 1.0j

    def test_sector(self):
        assert svpwm_sector(1.0 + 0.1j) == 1
        assert svpwm_sector(-1.0 + 0.1j) == 3
        assert svpwm_sector(1.0 - 0.1j) == 6
