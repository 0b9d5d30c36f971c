# uavplace/solvers/annealing.py
from __future__ import annotations

from typing import Optional

import numpy as np

from config import AnnealingConfig
from uavplace.problem import Problem
from uavplace.solution import Solution
from uavplace.solvers.base import Solver


class SimulatedAnnealingSolver(Solver):
    """
    Simulated annealing over random walks of a few single moves.

    Temperature follows T <- T * cooling_rate after every `iterations_per_temperature`
    iterations. Improving (or equal) neighbours are always accepted, worse ones with
    probability exp(-(next - curr) / T).
    """

    LOG_HEADER = "it,temp,prob,currCost,nextCost,bestCost,timestamp"

    def __init__(
        self,
        problem: Problem,
        cfg: AnnealingConfig = AnnealingConfig(),
        rng: Optional[np.random.Generator] = None,
        initial: Optional[Solution] = None,
        time_limit_s: Optional[float] = 60.0,
        verbose: bool = False,
    ):
        super().__init__(problem, rng=rng, time_limit_s=time_limit_s, verbose=verbose)
        self.cfg = cfg
        self.initial = initial
        self.temperature = float(cfg.initial_temperature)
        self.iteration = 0
        self.n_accepted_worse = 0

    def solve(self) -> Solution:
        if self.cfg.cooling_rate <= 0.0 or self.cfg.cooling_rate >= 1.0:
            raise ValueError(f"cooling_rate must be in (0, 1), got {self.cfg.cooling_rate}.")

        self._start_clock()
        if self.initial is None:
            self.initial = self.problem.initial_solution(self.rng)
        self.current = self.initial
        self.best = self.current
        self.temperature = float(self.cfg.initial_temperature)

        while self.iteration < self.cfg.max_iterations and not self.out_of_time():
            self._iterate_over_temperature()
            self.temperature *= self.cfg.cooling_rate

        if self.verbose:
            print(
                f"\nSimulated annealing: best={self.best.cost:.1f} after {self.iteration} iterations "
                f"(T={self.temperature:.4g}, {self.elapsed_s():.2f} s)"
            )
        return self.best

    def _iterate_over_temperature(self) -> None:
        for _ in range(self.cfg.iterations_per_temperature):
            if self.iteration >= self.cfg.max_iterations:
                return

            with self.prof.timed("neighbours"):
                nxt = self.current.neighbour_chain(self.rng, self.cfg.min_distance, self.cfg.max_distance)
            self.prof.inc("neighbours")

            curr_cost = self.current.cost
            next_cost = nxt.cost
            best_cost = self.best.cost

            if next_cost <= curr_cost:
                prob = -1.0
                self.current = nxt
            else:
                prob = float(np.exp(-(next_cost - curr_cost) / self.temperature))
                if self.rng.random() < prob:
                    self.current = nxt
                    self.n_accepted_worse += 1

            self._offer(nxt, allow_equal=True)
            self._record(
                self.iteration, self.temperature, prob, curr_cost, next_cost, best_cost, round(self.elapsed_s(), 4)
            )
            self.iteration += 1
