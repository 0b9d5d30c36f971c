# uavplace/solution.py
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Collection, Iterable, Mapping, Optional, Sequence

import numpy as np

from uavplace.errors import CapacityRepairError, InfeasibilityError, NoMoveError
from uavplace.neighbours import next_config, previous_config, site_ring, step_site
from uavplace.radio import CONFIG_SF, CONFIG_TP, MAX_SF, MIN_SF

if TYPE_CHECKING:
    from uavplace.problem import Problem


MAX_NEIGHBOUR_TRIES = 50
TABU_DEVICE_BIAS = 0.75
LOAD_EPS = 1e-9


class Axis(IntEnum):
    SITE = 1
    CONFIG = 2


@dataclass(frozen=True)
class Move:
    """Single-device change that produced a neighbour."""
    device: int
    axis: Axis
    prev_site: int
    prev_config: int
    new_site: int
    new_config: int

    @property
    def tabu_key(self) -> tuple[int, int]:
        return (self.device, int(self.axis))


class Solution:
    """
    Assignment of every device to one (site, configuration) pair, plus the aggregates
    derived from it:

      load[site, slice] -> summed device datarate (bps)
      devices_at[site]  -> devices attached to site
      deployed          -> sites with at least one device

    All changes go through update_association(), which keeps the aggregates in sync
    and drops the cached cost.
    """

    def __init__(self, problem: "Problem"):
        self.problem = problem
        n = problem.n_devices
        self.site = np.full(n, -1, dtype=int)
        self.config = np.full(n, -1, dtype=int)
        self.load = np.zeros((problem.n_sites, problem.n_slices), dtype=float)
        self.devices_at: dict[int, set[int]] = {}
        self.deployed: set[int] = set()
        self.move: Optional[Move] = None
        self._cost: Optional[float] = None

    def copy(self) -> "Solution":
        other = Solution.__new__(Solution)
        other.problem = self.problem
        other.site = self.site.copy()
        other.config = self.config.copy()
        other.load = self.load.copy()
        other.devices_at = {s: set(devs) for s, devs in self.devices_at.items()}
        other.deployed = set(self.deployed)
        other.move = self.move
        other._cost = self._cost
        return other

    # -----------------------------
    # Assignment
    # -----------------------------
    def assignment(self, device: int) -> tuple[int, int]:
        return int(self.site[device]), int(self.config[device])

    @property
    def is_complete(self) -> bool:
        return bool(np.all(self.site >= 0))

    def update_association(self, device: int, site: int, config: int) -> None:
        problem = self.problem
        if not problem.is_feasible_pair(device, site, config):
            raise ValueError(f"Config {config} at site {site} is not feasible for device {device}.")

        sl = problem.device_slice[device]
        old_site = int(self.site[device])
        if old_site >= 0:
            self.load[old_site, sl] -= problem.datarate[sl, self.config[device]]
            members = self.devices_at[old_site]
            members.discard(device)
            if not members:
                del self.devices_at[old_site]
                self.deployed.discard(old_site)
                self.load[old_site, :] = 0.0

        self.load[site, sl] += problem.datarate[sl, config]
        self.devices_at.setdefault(site, set()).add(device)
        self.deployed.add(site)

        self.site[device] = site
        self.config[device] = config
        self._cost = None

    def devices_on(self, site: int, slice_idx: int) -> list[int]:
        ds = self.problem.device_slice
        return sorted(d for d in self.devices_at.get(site, ()) if ds[d] == slice_idx)

    # -----------------------------
    # Cost
    # -----------------------------
    def sf_counts(self) -> np.ndarray:
        """Devices per spreading factor, index 0 -> SF7."""
        assigned = self.config[self.config >= 0]
        return np.bincount(CONFIG_SF[assigned] - MIN_SF, minlength=MAX_SF - MIN_SF + 1)

    @property
    def cost(self) -> float:
        if self._cost is None:
            p = self.problem
            self._cost = p.alpha * len(self.deployed) + p.beta * float(self.sf_counts().max())
        return self._cost

    @property
    def inverse_cost(self) -> float:
        return self.problem.max_cost - self.cost

    # -----------------------------
    # Capacity
    # -----------------------------
    def overloaded(self) -> list[tuple[int, int]]:
        over = np.argwhere(self.load > self.problem.max_datarate[None, :] + LOAD_EPS)
        return [(int(s), int(k)) for s, k in over]

    def is_feasible(self) -> bool:
        if not self.is_complete:
            return False
        p = self.problem
        if not bool(np.all(p.feasible_mask[np.arange(p.n_devices), self.site, self.config])):
            return False
        return not self.overloaded()

    def fix_capacity(self, rng: np.random.Generator) -> None:
        """Relieve every overloaded (site, slice); raises CapacityRepairError when stuck."""
        for site, sl in self.overloaded():
            if not self._unload(site, sl, rng):
                raise CapacityRepairError(
                    site, self.problem.slice_ids[sl], self.load[site, sl], self.problem.max_datarate[sl]
                )

    def _unload(self, site: int, sl: int, rng: np.random.Generator) -> bool:
        problem = self.problem
        max_dr = problem.max_datarate[sl]
        pool = self.devices_on(site, sl)

        while self.load[site, sl] > max_dr + LOAD_EPS:
            if not pool:
                return False
            device = pool.pop(int(rng.integers(len(pool))))
            config = int(self.config[device])
            ring = problem.feasible_sites[device]

            cur = site
            for _ in range(len(ring) - 1):
                cur, new_config = step_site(problem, device, cur, config, ring, forward=True)
                if self.load[cur, sl] + problem.datarate[sl, new_config] <= max_dr + LOAD_EPS:
                    self.update_association(device, cur, new_config)
                    break
        return True

    # -----------------------------
    # Neighbourhood
    # -----------------------------
    def tabu_ratio(self, tabu_sites: Collection[int]) -> float:
        """Share of deployed sites that are tabu."""
        if not self.deployed:
            return 0.0
        return sum(1 for s in self.deployed if s in tabu_sites) / len(self.deployed)

    def neighbour(
        self,
        rng: np.random.Generator,
        tabu_sites: Collection[int] = (),
        tabu_ratio: float = 1.0,
        smart: bool = True,
    ) -> "Solution":
        """
        Copy of this solution with one device moved along the site or the configuration axis.

        smart=True walks deployed sites (or, with problem.new_site_prob, undeployed ones);
        smart=False walks every feasible site. Capacity is repaired afterwards; a candidate
        whose repair fails counts as a failed attempt.
        """
        problem = self.problem

        tabu_devices: list[int] = []
        if tabu_sites and self.tabu_ratio(tabu_sites) > tabu_ratio:
            tabu_devices = sorted(d for s in self.deployed if s in tabu_sites for d in self.devices_at[s])

        for _ in range(MAX_NEIGHBOUR_TRIES):
            if tabu_devices and rng.random() < TABU_DEVICE_BIAS:
                device = tabu_devices[int(rng.integers(len(tabu_devices)))]
            else:
                device = int(rng.integers(problem.n_devices))
            site, config = self.assignment(device)

            if rng.random() < problem.change_site_prob:
                axis = Axis.SITE
                if not smart:
                    mode = "plain"
                elif rng.random() < problem.new_site_prob:
                    mode = "new"
                else:
                    mode = "deployed"
                ring = site_ring(problem, self, device, site, mode, tabu_sites, tabu_ratio)
                new_site, new_config = step_site(problem, device, site, config, ring, forward=rng.random() < 0.5)
                if new_site == site:
                    continue
            else:
                axis = Axis.CONFIG
                new_site = site
                if rng.random() < 0.5:
                    new_config = next_config(problem, device, site, config)
                else:
                    new_config = previous_config(problem, device, site, config)
                if new_config == config:
                    continue

            nb = self.copy()
            nb.update_association(device, new_site, new_config)
            try:
                nb.fix_capacity(rng)
            except CapacityRepairError:
                # unrepairable candidate: discard and draw another move
                continue
            nb.move = Move(device, axis, site, config, new_site, new_config)
            return nb

        raise NoMoveError(f"No valid move found after {MAX_NEIGHBOUR_TRIES} attempts.")

    def neighbour_list(
        self,
        size: int,
        rng: np.random.Generator,
        tabu_sites: Collection[int] = (),
        tabu_ratio: float = 1.0,
    ) -> list["Solution"]:
        return [self.neighbour(rng, tabu_sites, tabu_ratio) for _ in range(size)]

    def neighbour_chain(
        self,
        rng: np.random.Generator,
        min_distance: int,
        max_distance: int,
        smart: bool = True,
    ) -> "Solution":
        """Random walk of min_distance..max_distance single moves (both inclusive)."""
        distance = int(rng.integers(min_distance, max_distance + 1))
        nb = self
        for _ in range(distance):
            nb = nb.neighbour(rng, smart=smart)
        return nb if nb is not self else self.copy()

    # -----------------------------
    # Genes
    # -----------------------------
    def deployed_gene(self) -> np.ndarray:
        gene = np.zeros(self.problem.n_sites, dtype=bool)
        gene[list(self.deployed)] = True
        return gene

    # -----------------------------
    # Reports
    # -----------------------------
    def deployed_sites_report(self) -> str:
        lines = ["id,x,y,z"]
        for s in sorted(self.deployed):
            pos = self.problem.sites[s].position
            lines.append(f"{s},{pos.x:f},{pos.y:f},{pos.z:f}")
        return "\n".join(lines) + "\n"

    def configurations_report(self) -> str:
        lines = ["device,sf,tp"]
        for d in range(self.problem.n_devices):
            c = self.config[d]
            lines.append(f"{d},{CONFIG_SF[c]},{CONFIG_TP[c]}")
        return "\n".join(lines) + "\n"

    def __repr__(self) -> str:
        return f"Solution(cost={self.cost:.1f}, deployed={len(self.deployed)}, devices={self.problem.n_devices})"


# -----------------------------
# Constructions
# -----------------------------
def random_solution(problem: "Problem", rng: np.random.Generator) -> Solution:
    sol = Solution(problem)
    for d in range(problem.n_devices):
        sol.update_association(d, *problem.random_site_config(d, rng))
    sol.fix_capacity(rng)
    return sol


def random_solution_tabu(
    problem: "Problem",
    rng: np.random.Generator,
    tabu_sites: Collection[int],
    tabu_ratio: float,
) -> Solution:
    """Random solution that opens at most `tabu_ratio` of the tabu sites."""
    tabu = set(tabu_sites)
    used: set[int] = set()
    sol = Solution(problem)
    for d in range(problem.n_devices):
        site, config = problem.random_site_config_tabu(d, rng, tabu, used, tabu_ratio)
        used.add(site)
        sol.update_association(d, site, config)
    sol.fix_capacity(rng)
    return sol


def solution_from_coverage(
    problem: "Problem",
    site_devices: Mapping[int, Sequence[int]],
    default_sf: int,
    rng: np.random.Generator,
) -> Solution:
    """Attach the listed devices to each site, preferring `default_sf` configurations."""
    sol = Solution(problem)
    for site, devices in site_devices.items():
        for d in devices:
            sol.update_association(d, site, problem.config_for_site(d, site, default_sf, rng))

    missing = np.flatnonzero(sol.site < 0)
    if missing.size:
        raise InfeasibilityError(int(missing[0]), f"Device {int(missing[0])} is not covered by any selected site.")

    sol.fix_capacity(rng)
    return sol


def solution_from_deployed_sites(
    problem: "Problem",
    sites: Iterable[int],
    rng: np.random.Generator,
    default_sf: int = 10,
) -> Solution:
    """
    Greedy reconstruction from a deployed-site set.

    Devices are placed in ascending order of how many given sites can serve them with
    `default_sf`. Each goes to the least populated of those sites that still has room for
    it; when none has room a new site is opened (highest coverage first).
    """
    sites = sorted(set(int(s) for s in sites))
    order = sorted(
        range(problem.n_devices),
        key=lambda d: (len(problem.sites_with_sf(d, sites, default_sf)), d),
    )

    sol = Solution(problem)
    open_sites = list(sites)
    for d in order:
        sl = problem.device_slice[d]
        dr = problem.sf_datarate(d, default_sf)
        max_dr = problem.max_datarate[sl]

        selected = -1
        for s in problem.sites_with_sf(d, open_sites, default_sf):
            if sol.load[s, sl] + dr > max_dr + LOAD_EPS:
                continue
            if selected < 0 or len(sol.devices_at.get(s, ())) < len(sol.devices_at.get(selected, ())):
                selected = s

        if selected < 0:
            selected = problem.opening_site_for(d, open_sites)
            open_sites.append(selected)

        sol.update_association(d, selected, problem.config_for_site(d, selected, default_sf, rng))

    sol.fix_capacity(rng)
    return sol


# -----------------------------
# Crossover
# -----------------------------
def crossover_genes(
    gene1: np.ndarray,
    gene2: np.ndarray,
    crossover_rate: float,
    mutation_rate: float,
    rng: np.random.Generator,
) -> tuple[np.ndarray, np.ndarray]:
    """Single-pivot crossover of two deployed-site genes followed by per-bit flip mutation."""
    n = gene1.shape[0]
    pivot = int(rng.integers(max(n - 1, 1)))
    if rng.random() > crossover_rate:
        pivot = n

    child1 = gene1.copy()
    child2 = gene2.copy()
    child1[pivot:] = gene2[pivot:]
    child2[pivot:] = gene1[pivot:]

    child1 ^= rng.random(n) < mutation_rate
    child2 ^= rng.random(n) < mutation_rate
    return child1, child2
