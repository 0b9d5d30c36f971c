# uavplace/pipeline.py
from __future__ import annotations

import os
from typing import Any

import numpy as np

from config import ScenarioConfig
from uavplace.devicegen import generate_candidate_positions, generate_devices
from uavplace.helper import print_summary, summarize
from uavplace.io import (
    export_results,
    read_candidate_positions,
    read_devices,
    write_candidate_positions,
    write_devices,
)
from uavplace.models import CandidatePosition, Device, GatewayProfile
from uavplace.plot import plot_convergence, plot_deployment
from uavplace.problem import Problem
from uavplace.profiling import Profiler
from uavplace.solvers.annealing import SimulatedAnnealingSolver
from uavplace.solvers.base import Solver
from uavplace.solvers.genetic import GeneticSolver
from uavplace.solvers.grasp import GraspSolver
from uavplace.solvers.tabu import TabuSearchSolver


def load_scenario(cfg: ScenarioConfig) -> tuple[list[Device], list[CandidatePosition]]:
    """Read devices and candidate positions from cfg.data, or generate them when no data_dir is set."""
    if cfg.data.data_dir is None:
        return generate_devices(cfg), generate_candidate_positions(cfg)

    device_path, slice_path, sites_path = _data_paths(cfg, cfg.data.data_dir)
    return read_devices(device_path, slice_path), read_candidate_positions(sites_path)


def _data_paths(cfg: ScenarioConfig, data_dir: str) -> tuple[str, str, str]:
    data = cfg.data
    names = {"seed": cfg.run.seed, "n_devices": cfg.run.n_devices, "n_sites": cfg.run.n_sites}
    return (
        os.path.join(data_dir, data.device_file.format(**names)),
        os.path.join(data_dir, data.slice_file.format(**names)),
        os.path.join(data_dir, data.sites_file.format(**names)),
    )


def save_scenario(
    cfg: ScenarioConfig, devices: list[Device], sites: list[CandidatePosition], out_dir: str
) -> dict[str, str]:
    """Write a scenario under the cfg.data file names so it can be replayed with data_dir=out_dir."""
    os.makedirs(out_dir, exist_ok=True)
    device_path, slice_path, sites_path = _data_paths(cfg, out_dir)
    write_devices(devices, device_path, slice_path)
    write_candidate_positions(sites, sites_path)
    return {"devices": device_path, "slices": slice_path, "sites": sites_path}


def build_problem(cfg: ScenarioConfig, devices: list[Device], sites: list[CandidatePosition]) -> Problem:
    gateway = GatewayProfile.uniform(
        (d.slice_id for d in devices), cfg.gateway.bandwidth_hz, cfg.gateway.max_datarate_bps
    )
    return Problem(
        devices,
        sites,
        gateway,
        alpha=cfg.cost.alpha,
        beta=cfg.cost.beta,
        change_site_prob=cfg.cost.change_site_prob,
        new_site_prob=cfg.cost.new_site_prob,
        phy=cfg.phy,
        qos=cfg.qos,
    )


def make_solver(cfg: ScenarioConfig, problem: Problem, rng: np.random.Generator) -> Solver:
    algo = cfg.run.algorithm
    common = {"rng": rng, "time_limit_s": cfg.run.time_limit_s, "verbose": bool(cfg.run.verbose)}
    if algo == "tabu":
        return TabuSearchSolver(problem, cfg.tabu, **common)
    if algo == "annealing":
        return SimulatedAnnealingSolver(problem, cfg.annealing, **common)
    if algo == "genetic":
        return GeneticSolver(problem, cfg.genetic, **common)
    if algo == "grasp":
        return GraspSolver(problem, cfg.grasp, **common)
    raise ValueError(f"Unknown algorithm {algo!r}; expected tabu, annealing, genetic or grasp.")


def run_scenario(cfg: ScenarioConfig) -> dict[str, Any]:
    """
    Run one placement scenario end to end: inputs, feasibility tables, solver, summaries,
    optional exports (cfg.run.output_dir, which also receives a generated scenario) and plots
    (cfg.run.enable_plots).
    """
    prof = Profiler()
    verbose = bool(getattr(cfg.run, "verbose", True))

    with prof.timed("load"):
        devices, sites = load_scenario(cfg)
    if verbose:
        source = cfg.data.data_dir or "synthetic scenario"
        print(f"Loaded {len(devices)} devices and {len(sites)} candidate positions from {source}.")

    scenario_paths: dict[str, str] = {}
    if cfg.run.output_dir and cfg.data.data_dir is None:
        with prof.timed("save_scenario"):
            scenario_paths = save_scenario(cfg, devices, sites, cfg.run.output_dir)

    with prof.timed("problem"):
        problem = build_problem(cfg, devices, sites)
    if verbose:
        n_sites_per_dev = np.array([len(s) for s in problem.feasible_sites], dtype=float)
        print(
            f"Feasibility: {len(problem.feasible_configs)} (device, site) pairs, "
            f"sites per device mean={n_sites_per_dev.mean():.2f}, min={int(n_sites_per_dev.min())}, "
            f"slices={problem.slice_ids}"
        )

    rng = np.random.default_rng(cfg.run.seed)
    solver = make_solver(cfg, problem, rng)
    with prof.timed("solve"):
        best = solver.solve()
    prof.merge(solver.prof)

    initial_summary = summarize(solver.initial)
    best_summary = summarize(best)
    if verbose:
        print_summary("Initial solution", initial_summary)
        print_summary(f"Best solution ({cfg.run.algorithm})", best_summary)

    paths: dict[str, str] = {}
    if cfg.run.output_dir:
        with prof.timed("export"):
            paths = export_results(
                best,
                solver.get_log(),
                cfg.run.output_dir,
                cfg.run.prefix,
                cfg.run.seed,
                problem.n_sites,
                problem.n_devices,
            )
        if verbose:
            print("\nExported: " + ", ".join(paths.values()))

    if cfg.run.enable_plots:
        plot_deployment(best, title=f"{cfg.run.algorithm}: {len(best.deployed)} sites, cost={best.cost:.1f}")
        plot_convergence(solver.get_log(), title=f"{cfg.run.algorithm} convergence")

    return {
        "seed": cfg.run.seed,
        "algorithm": cfg.run.algorithm,
        "n_devices": problem.n_devices,
        "n_sites": problem.n_sites,
        "time_limit_s": cfg.run.time_limit_s,
        "best_time_s": solver.best_time_s,
        "profile": prof.as_record(),
        "initial": initial_summary,
        "best": best_summary,
        "solution": best,
        "log": solver.get_log(),
        "paths": paths,
        "scenario_paths": scenario_paths,
    }
