# uavplace/solvers/genetic.py
from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import numpy as np

from config import GeneticConfig, TabuConfig
from uavplace.errors import PlacementError
from uavplace.problem import Problem
from uavplace.solution import Solution, crossover_genes, random_solution, solution_from_deployed_sites
from uavplace.solvers.base import Solver
from uavplace.solvers.population import Population
from uavplace.solvers.tabu import TabuSearchSolver


class GeneticSolver(Solver):
    """
    Genetic algorithm over deployed-site genes.

    Each generation the population is rebuilt by `n_workers` threads: parents are drawn
    by roulette selection, their genes crossed and mutated, and children reconstructed
    greedily. A child that cannot be reconstructed or violates capacity is replaced by
    a copy of its parent. The best `n_elites_refined` children are then improved with a
    short tabu search before joining the next generation.
    """

    LOG_HEADER = "gen,bestCost,avgCost,infeasible,population,timestamp"

    def __init__(
        self,
        problem: Problem,
        cfg: GeneticConfig = GeneticConfig(),
        rng: Optional[np.random.Generator] = None,
        time_limit_s: Optional[float] = 60.0,
        verbose: bool = False,
    ):
        super().__init__(problem, rng=rng, time_limit_s=time_limit_s, verbose=verbose)
        self.cfg = cfg
        self.population: Optional[Population] = None
        self.generation = 0
        self.infeasible = 0
        self._lock = threading.Lock()

    def solve(self) -> Solution:
        if self.cfg.population_size < 2:
            raise ValueError(f"population_size must be >= 2, got {self.cfg.population_size}.")

        self._start_clock()
        with self.prof.timed("init_population"):
            self.population = Population(random_solution(self.problem, self.rng) for _ in range(self.cfg.population_size))
        self.initial = self.population.best()
        self._offer(self.initial)
        self._record(0, self.population.min_cost, self.population.avg_cost, 0, self.population.size, 0.0)

        for gen in range(1, self.cfg.max_generations + 1):
            self.generation = gen
            with self.prof.timed("reproduce"):
                self.population = self._reproduce(self.population)

            self._record(
                gen,
                self.population.min_cost,
                self.population.avg_cost,
                self.infeasible,
                self.population.size,
                round(self.elapsed_s(), 4),
            )
            self._offer(self.population.best())
            if self.out_of_time():
                break

        self.current = self.best
        if self.verbose:
            print(f"\nGenetic algorithm: best={self.best.cost:.1f} after {self.generation} generations ({self.elapsed_s():.2f} s)")
        return self.best

    # -----------------------------
    # Reproduction
    # -----------------------------
    def _reproduce(self, old: Population) -> Population:
        new = Population()
        self.infeasible = 0

        n_workers = max(int(self.cfg.n_workers), 1)
        target = self.cfg.population_size
        shares = [target // n_workers] * n_workers
        shares[-1] += target % n_workers
        worker_rngs = self.rng.spawn(n_workers)

        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            futures = [
                pool.submit(self._reproduce_share, old, new, n, r)
                for n, r in zip(shares, worker_rngs)
                if n > 0
            ]
            for f in futures:
                f.result()

        with self.prof.timed("refine"):
            for elite in new.remove_best(self.cfg.n_elites_refined):
                new.add(self._refine(elite))
        new.update_metrics()
        return new

    def _reproduce_share(self, old: Population, new: Population, n_children: int, rng: np.random.Generator) -> None:
        made = 0
        while made < n_children:
            p1 = old.select(rng)
            p2 = old.select(rng)
            g1, g2 = crossover_genes(
                p1.deployed_gene(), p2.deployed_gene(), self.cfg.crossover_rate, self.cfg.mutation_rate, rng
            )
            children = [self._child(g1, p1, rng), self._child(g2, p2, rng)][: n_children - made]
            with self._lock:
                for child, ok in children:
                    new.add(child)
                    if not ok:
                        self.infeasible += 1
                        self.prof.inc("infeasible_children")
                self.prof.inc("children", len(children))
            made += len(children)

    def _child(self, gene: np.ndarray, parent: Solution, rng: np.random.Generator) -> tuple[Solution, bool]:
        try:
            child = solution_from_deployed_sites(self.problem, np.flatnonzero(gene), rng, self.cfg.default_sf)
        except PlacementError:
            return parent.copy(), False
        if not child.is_feasible():
            return parent.copy(), False
        return child, True

    def _refine(self, individual: Solution) -> Solution:
        cfg = TabuConfig(
            max_iterations=self.cfg.local_search_iterations,
            max_iterations_without_improvement=self.cfg.local_search_iterations,
            batch_size=self.cfg.local_search_batch_size,
            tabu_list_size=self.cfg.local_search_tabu_list_size,
        )
        ts = TabuSearchSolver(
            self.problem,
            cfg,
            rng=self.rng.spawn(1)[0],
            initial=individual,
            time_limit_s=self.cfg.local_search_time_s,
        )
        refined = ts.solve()
        self.prof.merge(ts.prof)
        return refined
