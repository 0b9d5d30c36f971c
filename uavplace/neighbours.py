# uavplace/neighbours.py
"""
Neighbour operators for a single device.

Configurations and candidate sites are both walked as rings: stepping past the
last element wraps to the first. Every operator returns a (site, config) pair
that is feasible for the device.
"""
from __future__ import annotations

from bisect import bisect_left
from typing import TYPE_CHECKING, Collection, Sequence

if TYPE_CHECKING:
    from uavplace.problem import Problem
    from uavplace.solution import Solution


SITE_RING_MODES = ("plain", "deployed", "new")


def next_config(problem: "Problem", device: int, site: int, config: int) -> int:
    """Successor of `config` in the sorted feasible list of (device, site)."""
    configs = problem.feasible_configs[(device, site)]
    i = bisect_left(configs, config)
    if i < len(configs) and configs[i] == config:
        i += 1
    # not present: i already points at the first greater id
    return configs[i % len(configs)]


def previous_config(problem: "Problem", device: int, site: int, config: int) -> int:
    configs = problem.feasible_configs[(device, site)]
    i = bisect_left(configs, config)
    return configs[(i - 1) % len(configs)]


def adjust_config(problem: "Problem", device: int, site: int, config: int) -> int:
    """Keep `config` at `site` when feasible, otherwise move to its ring successor."""
    configs = problem.feasible_configs[(device, site)]
    i = bisect_left(configs, config)
    if i < len(configs) and configs[i] == config:
        return config
    return next_config(problem, device, site, config)


def step_site(
    problem: "Problem",
    device: int,
    site: int,
    config: int,
    ring: Sequence[int],
    forward: bool = True,
) -> tuple[int, int]:
    """Move to the neighbouring site of `site` in `ring`, carrying the configuration along."""
    try:
        i = ring.index(site)
    except ValueError:
        raise ValueError(f"Site {site} is not part of the site ring of device {device}.") from None

    j = (i + 1) % len(ring) if forward else (i - 1) % len(ring)
    new_site = ring[j]
    return new_site, adjust_config(problem, device, new_site, config)


def site_ring(
    problem: "Problem",
    solution: "Solution",
    device: int,
    site: int,
    mode: str = "plain",
    tabu_sites: Collection[int] = (),
    tabu_ratio: float = 1.0,
) -> list[int]:
    """
    Ordered ring of candidate sites for `device`, always containing its current `site`.

    mode:
      - "plain":    every feasible site
      - "deployed": feasible sites already deployed in `solution`
      - "new":      feasible sites not yet deployed (plus the current one)

    With `tabu_sites`, tabu sites are dropped from the ring unless that leaves only the
    current site. Once the solution's deployed tabu ratio exceeds `tabu_ratio` they are
    kept, but placed after the non-tabu sites.
    """
    feasible = problem.feasible_sites[device]
    if mode == "deployed":
        ring = [s for s in feasible if s in solution.deployed or s == site]
    elif mode == "new":
        ring = [s for s in feasible if s not in solution.deployed or s == site]
    elif mode == "plain":
        ring = list(feasible)
    else:
        raise ValueError(f"Unknown site ring mode {mode!r}; expected one of {SITE_RING_MODES}.")

    if not tabu_sites:
        return ring

    free = [s for s in ring if s not in tabu_sites or s == site]
    if len(free) <= 1:
        return ring
    if solution.tabu_ratio(tabu_sites) > tabu_ratio:
        return free + [s for s in ring if s in tabu_sites and s != site]
    return free
