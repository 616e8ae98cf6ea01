"""
Headless three-phase brushless motor simulation.

Plant (phase domain, star winding):
  di/dt = (v_pole - v_n - e - R i) / L,   v_n = mean(v_pole - e)
  e = N(θe) ω_m,   T = i·N(θe) + T_cog(θm),   dω_m/dt = (T - T_load) / J

Commutation:
- manual:   fixed HIGH/LOW gate per phase
- six-step: two phases driven, one floating per 60° sector
- foc:      Clarke/Park → q/d PI → (decoupling) → SVPWM duties

Usage:
  python motor_sim.py --mode foc --torque 0.05 --duration 0.05
  python motor_sim.py --mode six-step --duration 0.2 --csv six_step.csv
  python motor_sim.py --mode foc --trapezoid --non-sinusoidal --decoupling
"""

from __future__ import annotations

from dataclasses import dataclass
import argparse
import csv
from typing import List, Optional

import numpy as np

from motorsim import (
    CommutationMode,
    MotorParams,
    SimParams,
    SwitchState,
    generate_cogging_torque_map,
    new_sim_state,
    run,
    snapshot,
    trapezoid_bemf_coeffs,
)
from motorsim.board import resolution_from_bits


@dataclass
class SimConfig:
    duration: float = 0.05          # s
    dt: float = 1.0e-6              # s
    mode: str = "foc"
    torque_ref: float = 0.05        # N·m (foc)
    t_load_step: float = 0.02       # s (when load torque is applied)
    t_load: float = 0.0             # N·m (load torque after step)
    bus_voltage: float = 24.0       # V
    dead_time: float = 0.0          # s
    pwm_bits: int = 0               # 0 = unquantized
    foc_period: float = 5.0e-5      # s
    bandwidth: float = 2000.0       # rad/s, current loop
    phase_advance: float = 0.0      # electrical rad (six-step)
    manual: str = "HLL"             # gate per phase (manual)
    decoupling: bool = False
    cogging_compensation: bool = False
    non_sinusoidal: bool = False
    anti_windup: bool = True
    trapezoid: bool = False
    cogging_seed: Optional[int] = None
    cogging_scale: float = 0.01     # N·m
    sample_every: int = 100         # ticks between logged rows
    csv_path: Optional[str] = None


def parse_manual(gates: str) -> List[SwitchState]:
    if len(gates) != 3 or any(c not in "HL" for c in gates.upper()):
        raise ValueError(f"manual gates must be three of H/L, got {gates!r}")
    return [SwitchState.HIGH if c == "H" else SwitchState.LOW for c in gates.upper()]


def build(cfg: SimConfig):
    params = MotorParams()
    if cfg.trapezoid:
        params.normed_bEmf_coeffs = trapezoid_bemf_coeffs(params.normed_bEmf_coeffs[0])
    if cfg.cogging_seed is not None:
        params.cogging_torque_map = generate_cogging_torque_map(
            params.num_pole_pairs,
            scale=cfg.cogging_scale,
            rng=np.random.default_rng(cfg.cogging_seed),
        )

    state = new_sim_state(
        params,
        current_bandwidth=cfg.bandwidth,
        commutation_mode=CommutationMode(cfg.mode),
        manual_commands=parse_manual(cfg.manual),
        six_step_phase_advance=cfg.phase_advance,
        foc_desired_torque=cfg.torque_ref,
        step_multiplier=max(1, cfg.sample_every),
    )
    state.board.bus_voltage = cfg.bus_voltage
    state.board.gate.dead_time = cfg.dead_time
    state.board.pwm.resolution = resolution_from_bits(cfg.pwm_bits)
    state.foc.period = cfg.foc_period
    state.foc.use_qd_decoupling = cfg.decoupling
    state.foc.use_cogging_compensation = cfg.cogging_compensation
    state.foc.non_sinusoidal_drive_mode = cfg.non_sinusoidal
    state.foc.anti_windup = cfg.anti_windup

    sim_params = SimParams(dt=cfg.dt)
    sim_params.validate()
    state.validate(sim_params)
    return sim_params, state


def simulate(cfg: SimConfig):
    sim_params, state = build(cfg)
    n_frames = int(round(cfg.duration / (cfg.dt * state.step_multiplier)))

    log = [snapshot(state)]
    for _ in range(n_frames):
        # Load torque profile
        state.load_torque = cfg.t_load if state.time >= cfg.t_load_step else 0.0
        run(sim_params, state)
        log.append(snapshot(state))
    return log


def write_csv(path: str, log) -> None:
    with open(path, "w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=list(log[0].keys()))
        w.writeheader()
        w.writerows(log)


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Three-phase brushless motor commutation simulation")
    p.add_argument("--mode", choices=[m.value for m in CommutationMode], default="foc", help="Commutation mode")
    p.add_argument("--torque", type=float, default=0.05, help="Desired torque in N·m (foc mode)")
    p.add_argument("--duration", type=float, default=0.05, help="Simulation time [s]")
    p.add_argument("--dt", type=float, default=1.0e-6, help="Plant time step [s]")
    p.add_argument("--t_load_step", type=float, default=0.02, help="Load step time [s]")
    p.add_argument("--t_load", type=float, default=0.0, help="Load torque after step [N·m]")
    p.add_argument("--bus", type=float, default=24.0, help="Bus voltage [V]")
    p.add_argument("--dead_time", type=float, default=0.0, help="Gate dead time [s]")
    p.add_argument("--pwm_bits", type=int, default=0, help="PWM timer resolution in bits (0 = infinite)")
    p.add_argument("--foc_period", type=float, default=5.0e-5, help="FOC update period [s]")
    p.add_argument("--bandwidth", type=float, default=2000.0, help="Current loop bandwidth [rad/s]")
    p.add_argument("--phase_advance", type=float, default=0.0, help="Six-step phase advance [electrical rad]")
    p.add_argument("--manual", type=str, default="HLL", help="Manual gate states, e.g. HLL")
    p.add_argument("--decoupling", action="store_true", help="Enable qd decoupling feed-forward")
    p.add_argument("--cogging_compensation", action="store_true", help="Enable cogging torque compensation")
    p.add_argument("--non_sinusoidal", action="store_true", help="Drive currents shaped like the back-EMF")
    p.add_argument("--no_anti_windup", action="store_true", help="Disable PI anti-windup")
    p.add_argument("--trapezoid", action="store_true", help="Use a trapezoidal back-EMF shape")
    p.add_argument("--cogging_seed", type=int, default=None, help="Generate a random cogging map with this seed")
    p.add_argument("--cogging_scale", type=float, default=0.01, help="Peak cogging torque [N·m]")
    p.add_argument("--sample_every", type=int, default=100, help="Plant steps between logged rows")
    p.add_argument("--csv", type=str, default=None, help="Optional CSV output path")
    return p.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    cfg = SimConfig(
        duration=args.duration,
        dt=args.dt,
        mode=args.mode,
        torque_ref=args.torque,
        t_load_step=args.t_load_step,
        t_load=args.t_load,
        bus_voltage=args.bus,
        dead_time=args.dead_time,
        pwm_bits=args.pwm_bits,
        foc_period=args.foc_period,
        bandwidth=args.bandwidth,
        phase_advance=args.phase_advance,
        manual=args.manual,
        decoupling=args.decoupling,
        cogging_compensation=args.cogging_compensation,
        non_sinusoidal=args.non_sinusoidal,
        anti_windup=not args.no_anti_windup,
        trapezoid=args.trapezoid,
        cogging_seed=args.cogging_seed,
        cogging_scale=args.cogging_scale,
        sample_every=args.sample_every,
        csv_path=args.csv,
    )

    try:
        log = simulate(cfg)
    except ValueError as e:
        raise SystemExit(f"error: {e}")

    # Summary
    last = log[-1]
    mode_desc = f"mode={cfg.mode}" if cfg.mode != "foc" else f"mode=foc, target={cfg.torque_ref:.3f} N·m"
    print(
        f"Final: {mode_desc}; t={last['t']:.4f} s, omega={last['omega']:.2f} rad/s, "
        f"iq={last['i_q']:.3f} A, id={last['i_d']:.3f} A, torque={last['torque']:.4f} N·m, power={last['power']:.2f} W"
    )

    if cfg.csv_path:
        write_csv(cfg.csv_path, log)
        print(f"Saved CSV: {cfg.csv_path}")


if __name__ == "__main__":
    main()
