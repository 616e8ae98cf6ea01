"""
Tests for the headless runner.
"""

import csv

import pytest

import motor_sim
from motorsim import SwitchState


class TestSimulate:

    def test_log_length_and_time(self):
        cfg = motor_sim.SimConfig(duration=0.002, sample_every=100)
        log = motor_sim.simulate(cfg)

        assert len(log) == 21
        assert log[-1]["t"] == pytest.approx(0.002)
        assert log[-1]["omega"] > 0.0

    def test_load_step_applied(self):
        cfg = motor_sim.SimConfig(duration=0.002, t_load_step=0.001, t_load=0.02, sample_every=100)
        log = motor_sim.simulate(cfg)

        assert log[5]["load_torque"] == 0.0
        assert log[-1]["load_torque"] == 0.02

    def test_invalid_config_raises(self):
        with pytest.raises(ValueError):
            motor_sim.simulate(motor_sim.SimConfig(duration=0.001, dt=0.0))

    def test_random_cogging_map(self):
        cfg = motor_sim.SimConfig(duration=0.0002, cogging_seed=3, cogging_scale=0.005)
        _, state = motor_sim.build(cfg)
        assert abs(state.motor.params.cogging_torque_map).max() == pytest.approx(0.005)


def test_parse_manual():
    assert motor_sim.parse_manual("hlh") == [SwitchState.HIGH, SwitchState.LOW, SwitchState.HIGH]
    with pytest.raises(ValueError):
        motor_sim.parse_manual("HZL")


def test_write_csv(tmp_path):
    log = motor_sim.simulate(motor_sim.SimConfig(duration=0.0005, mode="six-step", sample_every=50))
    path = tmp_path / "out.csv"
    motor_sim.write_csv(str(path), log)

    with open(path, newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == len(log)
    assert rows[0].keys() == log[0].keys()
    assert rows[-1]["mode"] == "six-step"


def test_main_prints_summary(tmp_path, capsys):
    path = tmp_path / "run.csv"
    motor_sim.main(["--mode", "foc", "--duration", "0.0005", "--decoupling", "--csv", str(path)])

    out = capsys.readouterr().out
    assert "Final: mode=foc" in out
    assert "Saved CSV" in out
    assert path.exists()


def test_main_reports_bad_manual_gates():
    with pytest.raises(SystemExit):
        motor_sim.main(["--mode", "manual", "--manual", "HX", "--duration", "0.0001"])


def test_main_rejects_plant_step_as_long_as_foc_period():
    with pytest.raises(SystemExit):
        motor_sim.main(["--mode", "foc", "--dt", "5e-5", "--duration", "0.001"])
