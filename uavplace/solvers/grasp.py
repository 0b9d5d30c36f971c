# uavplace/solvers/grasp.py
from __future__ import annotations

from typing import Optional

import numpy as np

from config import GraspConfig, TabuConfig
from uavplace.errors import ConstructionError, PlacementError
from uavplace.problem import Problem
from uavplace.solution import Solution, solution_from_coverage
from uavplace.solvers.base import Solver
from uavplace.solvers.tabu import TabuSearchSolver


class GraspSolver(Solver):
    """
    Greedy randomized construction followed by a tabu-search local search.

    Construction repeatedly opens a site drawn from the restricted candidate list
    (sites whose remaining coverage exceeds alpha * best coverage) and attaches the
    uncovered devices it can serve, hardest-to-cover first, up to capacity_alpha of
    each slice capacity at the default spreading factor.
    """

    LOG_HEADER = TabuSearchSolver.LOG_HEADER

    def __init__(
        self,
        problem: Problem,
        cfg: GraspConfig = GraspConfig(),
        rng: Optional[np.random.Generator] = None,
        time_limit_s: Optional[float] = 60.0,
        verbose: bool = False,
    ):
        super().__init__(problem, rng=rng, time_limit_s=time_limit_s, verbose=verbose)
        self.cfg = cfg
        self.constructed: Optional[Solution] = None

        # sum of the coverage sizes of the sites able to serve each device
        self.priority = np.zeros(problem.n_devices, dtype=int)
        for devices in problem.coverage:
            self.priority[list(devices)] += len(devices)

    def solve(self) -> Solution:
        self._start_clock()
        with self.prof.timed("construct"):
            self.constructed = self._construct_with_retries()
        self.initial = self.constructed
        if self.verbose:
            print(f"GRASP construction: cost={self.constructed.cost:.1f}, deployed={len(self.constructed.deployed)}")

        remaining = None if self.time_limit_s is None else max(self.time_limit_s - self.elapsed_s(), 0.0)
        ts_cfg = TabuConfig(
            max_iterations=self.cfg.local_search_iterations,
            max_iterations_without_improvement=self.cfg.local_search_iterations,
            batch_size=self.cfg.local_search_batch_size,
            tabu_list_size=self.cfg.local_search_tabu_list_size,
        )
        ts = TabuSearchSolver(
            self.problem, ts_cfg, rng=self.rng, initial=self.constructed, time_limit_s=remaining, verbose=self.verbose
        )
        self.best = ts.solve()
        self.current = ts.current
        self.best_time_s = ts.best_time_s
        self._log = ts.log_lines
        self.prof.merge(ts.prof)
        return self.best

    def _construct_with_retries(self) -> Solution:
        last_exc: Optional[PlacementError] = None
        for attempt in range(1, max(int(self.cfg.max_construction_attempts), 1) + 1):
            try:
                return self.construct()
            except PlacementError as exc:
                last_exc = exc
                self.prof.inc("failed_constructions")
                if self.verbose:
                    print(f"GRASP construction attempt {attempt} failed: {exc}")
        raise last_exc

    # -----------------------------
    # Construction
    # -----------------------------
    def construct(self) -> Solution:
        problem = self.problem
        coverage = {s: set(problem.coverage[s]) for s in range(problem.n_sites)}
        uncovered = set(range(problem.n_devices))
        sites_left = list(range(problem.n_sites))
        chosen: dict[int, list[int]] = {}

        while uncovered:
            candidates = self.restricted_candidates(sites_left, coverage)
            if not candidates:
                raise ConstructionError(
                    f"{len(uncovered)} device(s) cannot be covered by the remaining candidate positions."
                )
            site = candidates[int(self.rng.integers(len(candidates)))]

            covered = self._cover(site, coverage[site], uncovered)
            chosen[site] = covered
            sites_left.remove(site)

            uncovered.difference_update(covered)
            for s in sites_left:
                coverage[s].difference_update(covered)

        return solution_from_coverage(problem, chosen, self.cfg.default_sf, self.rng)

    def restricted_candidates(self, sites: list[int], coverage: dict[int, set[int]]) -> list[int]:
        ordered = sorted(sites, key=lambda s: (-len(coverage[s]), s))
        if not ordered or not coverage[ordered[0]]:
            return []
        threshold = len(coverage[ordered[0]]) * self.cfg.alpha
        return [s for s in ordered if coverage[s] and len(coverage[s]) >= threshold]

    def _cover(self, site: int, reachable: set[int], uncovered: set[int]) -> list[int]:
        problem = self.problem
        used = np.zeros(problem.n_slices, dtype=float)
        covered: list[int] = []
        for d in sorted(reachable & uncovered, key=lambda d: (self.priority[d], d)):
            sl = problem.device_slice[d]
            dr = problem.sf_datarate(d, self.cfg.default_sf)
            if used[sl] + dr > problem.max_datarate[sl] * self.cfg.capacity_alpha:
                continue
            used[sl] += dr
            covered.append(d)
        return covered
