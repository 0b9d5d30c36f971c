# main.py
from __future__ import annotations

import argparse
from dataclasses import replace

from config import ScenarioConfig
from uavplace.helper import flatten_run_record, print_config, write_csv
from uavplace.pipeline import run_scenario


ALGORITHM_PREFIX = {"tabu": "TS", "annealing": "SA", "genetic": "GA", "grasp": "GRASP"}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="UAV gateway placement and LoRa configuration metaheuristics")
    parser.add_argument("--algorithm", choices=sorted(ALGORITHM_PREFIX), default="tabu")
    parser.add_argument("--seed", type=int, default=1)
    parser.add_argument("--devices", type=int, default=100, help="number of end devices")
    parser.add_argument("--sites", type=int, default=64, help="number of candidate positions")
    parser.add_argument("--data-dir", default=None, help="directory with device, slice and placement files")
    parser.add_argument("--output-dir", default=None, help="write placement, configuration and log files here")
    parser.add_argument("--time-limit", type=float, default=60.0, help="solver time budget in seconds")
    parser.add_argument("--quiet", action="store_true")
    parser.add_argument("--no-plots", action="store_true")
    parser.add_argument("--csv", default=None, help="write the flattened run record to this CSV file")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> ScenarioConfig:
    cfg = ScenarioConfig()
    run = replace(
        cfg.run,
        n_devices=args.devices,
        n_sites=args.sites,
        seed=args.seed,
        algorithm=args.algorithm,
        time_limit_s=args.time_limit,
        enable_plots=not args.no_plots,
        verbose=not args.quiet,
        output_dir=args.output_dir,
        prefix=ALGORITHM_PREFIX[args.algorithm],
    )
    data = replace(cfg.data, data_dir=args.data_dir)
    return replace(cfg, run=run, data=data)


def main(argv=None):
    args = parse_args(argv)
    cfg = build_config(args)

    if cfg.run.verbose:
        print_config(cfg)

    rec = run_scenario(cfg)

    if args.csv:
        write_csv(args.csv, [flatten_run_record(rec)])
        if cfg.run.verbose:
            print(f"\nRun record written to {args.csv}")


if __name__ == "__main__":
    main()
