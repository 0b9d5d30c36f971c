# uavplace/solvers/base.py
from __future__ import annotations

import time
from typing import Optional

import numpy as np

from uavplace.problem import Problem
from uavplace.profiling import Profiler
from uavplace.solution import Solution


class Solver:
    """
    Shared state of the metaheuristics: current/best solutions, a seeded generator,
    the wall-clock budget and a CSV-style progress log.

    Subclasses set LOG_HEADER and implement solve().
    """

    LOG_HEADER = ""

    def __init__(
        self,
        problem: Problem,
        rng: Optional[np.random.Generator] = None,
        time_limit_s: Optional[float] = 60.0,
        verbose: bool = False,
    ):
        self.problem = problem
        self.rng = rng if rng is not None else np.random.default_rng()
        self.time_limit_s = time_limit_s
        self.verbose = verbose
        self.prof = Profiler()

        self.initial: Optional[Solution] = None
        self.current: Optional[Solution] = None
        self.best: Optional[Solution] = None
        self.best_time_s = 0.0

        self._log: list[str] = [self.LOG_HEADER] if self.LOG_HEADER else []
        self._t0 = time.perf_counter()

    # -----------------------------
    # Clock
    # -----------------------------
    def _start_clock(self) -> None:
        self._t0 = time.perf_counter()

    def elapsed_s(self) -> float:
        return time.perf_counter() - self._t0

    def out_of_time(self) -> bool:
        return self.time_limit_s is not None and self.elapsed_s() >= self.time_limit_s

    # -----------------------------
    # Best tracking
    # -----------------------------
    def _offer(self, candidate: Solution, allow_equal: bool = False) -> bool:
        """Make `candidate` the best solution if it improves on it."""
        if self.best is None or candidate.cost < self.best.cost or (allow_equal and candidate.cost <= self.best.cost):
            self.best = candidate
            self.best_time_s = self.elapsed_s()
            return True
        return False

    # -----------------------------
    # Log
    # -----------------------------
    def _record(self, *fields) -> None:
        line = ",".join(_fmt_field(f) for f in fields)
        self._log.append(line)
        if self.verbose:
            print(line)

    def get_log(self) -> str:
        return "\n".join(self._log) + "\n"

    @property
    def log_lines(self) -> list[str]:
        return list(self._log)

    def solve(self) -> Solution:
        raise NotImplementedError


def _fmt_field(v) -> str:
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, float):
        return f"{v:.6g}"
    return str(v)
