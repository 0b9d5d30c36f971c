# uavplace/solvers/tabu.py
from __future__ import annotations

from collections import deque
from typing import Optional

import numpy as np

from config import TabuConfig
from uavplace.problem import Problem
from uavplace.solution import Solution, random_solution_tabu
from uavplace.solvers.base import Solver


class TabuSearchSolver(Solver):
    """
    Tabu search alternating intensification and diversification.

    Intensification moves to the best neighbour of each batch unless it is tabu
    (short-term memory of (device, axis) moves). A tabu neighbour is taken only when
    it is no worse than the best solution found so far. The phase ends after
    `max_iterations_without_improvement` iterations that do not improve on the
    phase's elite solution.

    Diversification marks the elite's deployed sites as tabu (long-term memory) and
    restarts from a random solution that avoids them, or from a long random walk
    away from the best solution.
    """

    LOG_HEADER = "it,phase,currCost,nextCost,tabu,bestCost,timestamp"

    def __init__(
        self,
        problem: Problem,
        cfg: TabuConfig = TabuConfig(),
        rng: Optional[np.random.Generator] = None,
        initial: Optional[Solution] = None,
        time_limit_s: Optional[float] = 60.0,
        verbose: bool = False,
    ):
        super().__init__(problem, rng=rng, time_limit_s=time_limit_s, verbose=verbose)
        self.cfg = cfg
        self.initial = initial

        self.tabu_list: deque[tuple[int, int]] = deque(maxlen=max(int(cfg.tabu_list_size), 1))
        self.tabu_sites: set[int] = set()
        self.elite: Optional[Solution] = None

        self.iteration = 0
        self.phase = 0

    def solve(self) -> Solution:
        self._start_clock()
        if self.initial is None:
            self.initial = self.problem.initial_solution(self.rng)
        self.current = self.initial
        self.best = self.current
        self.best_time_s = 0.0

        while self.iteration < self.cfg.max_iterations and not self.out_of_time():
            self._intensify()
            if self.iteration < self.cfg.max_iterations - 1 and not self.out_of_time():
                self._diversify()

        if self.verbose:
            print(
                f"\nTabu search: best={self.best.cost:.1f} after {self.iteration} iterations, "
                f"{self.phase} phases, {len(self.tabu_sites)} tabu sites ({self.elapsed_s():.2f} s)"
            )
        return self.best

    # -----------------------------
    # Phases
    # -----------------------------
    def _intensify(self) -> None:
        self.phase += 1
        self.elite = self.current
        stale = 0

        while self.iteration < self.cfg.max_iterations:
            stale += 1

            with self.prof.timed("neighbours"):
                candidates = self.current.neighbour_list(
                    self.cfg.batch_size, self.rng, self.tabu_sites, self.cfg.tabu_site_ratio
                )
            self.prof.inc("neighbours", len(candidates))

            nxt, accepted, is_tabu = self._evaluate_candidates(candidates)
            curr_cost = self.current.cost

            if accepted:
                if not is_tabu:
                    self.add_tabu_move(nxt.move.tabu_key)
                self.current = nxt
                self._offer(nxt)
                if nxt.cost < self.elite.cost:
                    self.elite = nxt
                    stale = 0

            next_cost = nxt.cost if nxt is not None else -1.0
            self._record(
                self.iteration, self.phase, curr_cost, next_cost, is_tabu, self.best.cost, round(self.elapsed_s(), 4)
            )
            self.iteration += 1

            if stale > self.cfg.max_iterations_without_improvement or self.out_of_time():
                break

    def _diversify(self) -> None:
        self.prof.inc("diversifications")
        if self.cfg.diversification == "random_walk":
            self.current = self.best.neighbour_chain(
                self.rng, self.cfg.random_walk_min_distance, self.cfg.random_walk_max_distance, smart=False
            )
            return
        if self.cfg.diversification != "long_term":
            raise ValueError(f"Unknown tabu diversification {self.cfg.diversification!r}.")

        self.tabu_sites |= self.elite.deployed
        self.current = random_solution_tabu(self.problem, self.rng, self.tabu_sites, self.cfg.tabu_site_ratio)

    # -----------------------------
    # Candidate choice
    # -----------------------------
    def _evaluate_candidates(self, candidates: list[Solution]) -> tuple[Optional[Solution], bool, bool]:
        """
        Pick among the lowest-cost candidates, preferring non-tabu moves.

        Returns (chosen, accepted, is_tabu); chosen is None when only tabu candidates
        exist and none satisfies the aspiration criterion.
        """
        if not candidates:
            return None, False, False

        best_batch = min(c.cost for c in candidates)
        level = [c for c in candidates if c.cost == best_batch]
        free = [c for c in level if not self.is_tabu(c)]

        if free:
            chosen = free[int(self.rng.integers(len(free)))]
            is_tabu = False
        else:
            chosen = level[int(self.rng.integers(len(level)))]
            is_tabu = True
            # aspiration
            if chosen.cost > self.best.cost:
                return None, False, True

        return chosen, chosen.cost <= self.current.cost, is_tabu

    def is_tabu(self, candidate: Solution) -> bool:
        return candidate.move is not None and candidate.move.tabu_key in self.tabu_list

    def add_tabu_move(self, key: tuple[int, int]) -> None:
        self.tabu_list.append(key)
