# uavplace/problem.py
from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from config import PhyConfig, QoSConfig
from uavplace.errors import InfeasibilityError
from uavplace.geometry import pairwise_distances_m, positions_to_array
from uavplace.models import CandidatePosition, Device, GatewayProfile
from uavplace.radio import CONFIG_SF, CONFIG_TP, NUM_CONFIGS, link_reachable, qos_feasible


class Problem:
    """
    Immutable problem instance: devices, candidate sites, gateway radio profile and
    the feasibility tables derived from them.

    Feasibility is computed once at construction (devices x sites x configs):

      feasible_configs[(d, s)] -> configuration ids sorted ascending
      feasible_sites[d]        -> site ids sorted ascending
      coverage[s]              -> device ids sorted ascending

    Raises InfeasibilityError if any device has no feasible site.
    """

    def __init__(
        self,
        devices: Sequence[Device],
        sites: Sequence[CandidatePosition],
        gateway: GatewayProfile,
        alpha: float = 100.0,
        beta: float = 1.0,
        change_site_prob: float = 0.75,
        new_site_prob: float = 0.05,
        phy: PhyConfig = PhyConfig(),
        qos: QoSConfig = QoSConfig(),
    ):
        self.devices = tuple(devices)
        self.sites = tuple(sites)
        self.gateway = gateway

        self.alpha = float(alpha)
        self.beta = float(beta)
        self.change_site_prob = float(change_site_prob)
        self.new_site_prob = float(new_site_prob)
        self.phy = phy
        self.qos = qos

        self._check_ids()

        # dense slice indices (0..n_slices-1) in ascending slice-id order
        self.slice_ids: list[int] = gateway.slices
        self.slice_index = {sid: k for k, sid in enumerate(self.slice_ids)}
        missing = sorted({d.slice_id for d in self.devices} - set(self.slice_index))
        if missing:
            raise ValueError(f"Gateway profile has no parameters for slice(s) {missing}.")

        self.device_slice = np.array([self.slice_index[d.slice_id] for d in self.devices], dtype=int)
        self.max_datarate = np.array([gateway.max_datarate_bps[s] for s in self.slice_ids], dtype=float)

        # (n_slices, NUM_CONFIGS): load a configuration adds to its site on a slice
        self.datarate = np.array(
            [[gateway.datarate_bps(int(CONFIG_SF[c]), s) for c in range(NUM_CONFIGS)] for s in self.slice_ids],
            dtype=float,
        ).reshape(len(self.slice_ids), NUM_CONFIGS)

        self._build_feasibility()

        # sites ordered by coverage size (desc), ties by id
        self.sites_by_coverage: tuple[int, ...] = tuple(
            sorted(range(self.n_sites), key=lambda s: (-len(self.coverage[s]), s))
        )

    # -----------------------------
    # Construction helpers
    # -----------------------------
    def _check_ids(self) -> None:
        for k, d in enumerate(self.devices):
            if d.id != k:
                raise ValueError(f"Device ids must be dense and ordered: position {k} holds id {d.id}.")
        for k, s in enumerate(self.sites):
            if s.id != k:
                raise ValueError(f"Candidate position ids must be dense and ordered: position {k} holds id {s.id}.")
        if not self.sites:
            raise ValueError("Problem needs at least one candidate position.")

    def _build_feasibility(self) -> None:
        dev_xyz = positions_to_array(d.position for d in self.devices)
        site_xyz = positions_to_array(s.position for s in self.sites)
        dist = pairwise_distances_m(dev_xyz, site_xyz)  # (N,S)

        reach = link_reachable(dist[:, :, None], CONFIG_TP[None, None, :], CONFIG_SF[None, None, :], self.phy)

        bw = np.array([self.gateway.bandwidth_hz[d.slice_id] for d in self.devices], dtype=float)
        qos_ok = qos_feasible(CONFIG_SF[None, :], bw[:, None], self.qos)  # (N,C)

        mask = reach & qos_ok[:, None, :]
        self.feasible_mask = mask

        self.feasible_configs: dict[tuple[int, int], tuple[int, ...]] = {}
        pairs = np.argwhere(mask.any(axis=2))
        for d, s in pairs:
            self.feasible_configs[(int(d), int(s))] = tuple(int(c) for c in np.flatnonzero(mask[d, s]))

        site_mask = mask.any(axis=2)
        self.feasible_sites: tuple[tuple[int, ...], ...] = tuple(
            tuple(int(s) for s in np.flatnonzero(site_mask[d])) for d in range(self.n_devices)
        )
        self.coverage: tuple[tuple[int, ...], ...] = tuple(
            tuple(int(d) for d in np.flatnonzero(site_mask[:, s])) for s in range(self.n_sites)
        )

        for d in range(self.n_devices):
            if not self.feasible_sites[d]:
                raise InfeasibilityError(d)

    # -----------------------------
    # Accessors
    # -----------------------------
    @property
    def n_devices(self) -> int:
        return len(self.devices)

    @property
    def n_sites(self) -> int:
        return len(self.sites)

    @property
    def n_slices(self) -> int:
        return len(self.slice_ids)

    @property
    def max_cost(self) -> float:
        return self.n_devices * (self.alpha + self.beta)

    def device_datarate(self, device: int, config: int) -> float:
        return float(self.datarate[self.device_slice[device], config])

    def sf_datarate(self, device: int, sf: int) -> float:
        return float(self.gateway.datarate_bps(sf, self.slice_ids[self.device_slice[device]]))

    def is_feasible_pair(self, device: int, site: int, config: int) -> bool:
        return bool(self.feasible_mask[device, site, config])

    def configs_with_sf(self, device: int, site: int, sf: int) -> list[int]:
        return [c for c in self.feasible_configs.get((device, site), ()) if CONFIG_SF[c] == sf]

    def sites_with_sf(self, device: int, sites: Iterable[int], sf: int) -> list[int]:
        """Sites among `sites` that can serve `device` with spreading factor `sf`."""
        col = CONFIG_SF == sf
        return [s for s in sites if bool(self.feasible_mask[device, s, col].any())]

    # -----------------------------
    # Randomised choices
    # -----------------------------
    def random_config(self, device: int, site: int, rng: np.random.Generator) -> int:
        configs = self.feasible_configs[(device, site)]
        return configs[int(rng.integers(len(configs)))]

    def random_site_config(self, device: int, rng: np.random.Generator) -> tuple[int, int]:
        sites = self.feasible_sites[device]
        site = sites[int(rng.integers(len(sites)))]
        return site, self.random_config(device, site, rng)

    def random_site_config_tabu(
        self,
        device: int,
        rng: np.random.Generator,
        tabu_sites: set[int],
        used_sites: set[int],
        tabu_ratio: float,
    ) -> tuple[int, int]:
        """
        Random (site, config) that stops opening tabu sites once `tabu_ratio` of them are in use.

        Below the ratio any feasible site may be drawn; above it only non-tabu sites and
        tabu sites already in `used_sites` are eligible.
        """
        sites = self.feasible_sites[device]
        if tabu_sites:
            used_tabu = len(used_sites & tabu_sites) / len(tabu_sites)
            if used_tabu >= tabu_ratio:
                allowed = [s for s in sites if s not in tabu_sites or s in used_sites]
                if allowed:
                    sites = allowed
        site = sites[int(rng.integers(len(sites)))]
        return site, self.random_config(device, site, rng)

    def config_for_site(self, device: int, site: int, sf: int, rng: np.random.Generator) -> int:
        """Config with spreading factor `sf` at `site` if one exists, else a random feasible one."""
        configs = self.configs_with_sf(device, site, sf)
        if configs:
            return configs[int(rng.integers(len(configs)))]
        return self.random_config(device, site, rng)

    def opening_site_for(self, device: int, deployed: Iterable[int]) -> int:
        """Highest-coverage site not yet in `deployed` that can serve `device`."""
        deployed = set(deployed)
        for s in self.sites_by_coverage:
            if s in deployed:
                continue
            if (device, s) in self.feasible_configs:
                return s
        raise InfeasibilityError(
            device, f"No undeployed candidate position left that can serve device {device}."
        )

    def initial_solution(self, rng: np.random.Generator):
        from uavplace.solution import random_solution

        return random_solution(self, rng)
