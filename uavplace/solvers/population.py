# uavplace/solvers/population.py
from __future__ import annotations

from typing import Iterable

import numpy as np

from uavplace.solution import Solution


class Population:
    """GA population with running cost/fitness statistics (fitness = inverse cost)."""

    def __init__(self, individuals: Iterable[Solution] = ()):
        self.individuals: list[Solution] = []
        self.sum_fitness = 0.0
        self.max_fitness = 0.0
        self.sum_cost = 0.0
        self.min_cost = float("inf")
        for ind in individuals:
            self.add(ind)

    @property
    def size(self) -> int:
        return len(self.individuals)

    @property
    def avg_cost(self) -> float:
        return self.sum_cost / self.size if self.individuals else 0.0

    def add(self, individual: Solution) -> None:
        cost = individual.cost
        fitness = individual.inverse_cost
        self.individuals.append(individual)
        self.sum_fitness += fitness
        self.sum_cost += cost
        self.max_fitness = max(self.max_fitness, fitness)
        self.min_cost = min(self.min_cost, cost)

    def update_metrics(self) -> None:
        fitness = np.array([ind.inverse_cost for ind in self.individuals], dtype=float)
        costs = np.array([ind.cost for ind in self.individuals], dtype=float)
        self.sum_fitness = float(fitness.sum())
        self.max_fitness = float(fitness.max()) if fitness.size else 0.0
        self.sum_cost = float(costs.sum())
        self.min_cost = float(costs.min()) if costs.size else float("inf")

    def select(self, rng: np.random.Generator) -> Solution:
        """Roulette-wheel selection proportional to fitness."""
        if not self.individuals:
            raise ValueError("Cannot select from an empty population.")
        fitness = np.array([ind.inverse_cost for ind in self.individuals], dtype=float)
        total = float(fitness.sum())
        if total <= 0.0:
            return self.individuals[int(rng.integers(self.size))]
        r = rng.random() * total
        idx = int(np.searchsorted(np.cumsum(fitness), r, side="left"))
        return self.individuals[min(idx, self.size - 1)]

    def sort(self) -> None:
        self.individuals.sort(key=lambda ind: ind.cost)

    def best(self) -> Solution:
        return min(self.individuals, key=lambda ind: ind.cost)

    def remove_best(self, k: int) -> list[Solution]:
        self.sort()
        k = min(k, self.size)
        best, self.individuals = self.individuals[:k], self.individuals[k:]
        self.update_metrics()
        return best
