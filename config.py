# config.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Literal, Optional


# -----------------------------
# Radio model
# -----------------------------
@dataclass(frozen=True)
class PhyConfig:
    reference_prx_db: float = 10.0
    reference_distance_m: float = 1.0
    attenuation_exponent: float = 3.76
    # SF7..SF12
    sensitivity_dbm: Tuple[float, ...] = (-130.0, -132.5, -135.0, -137.5, -140.0, -142.5)


@dataclass(frozen=True)
class QoSConfig:
    coding_rate: float = 4.0 / 5.0
    packet_size_bits: float = 400.0
    max_datarate_bps: float = 6835.94
    min_datarate_bps: float = 183.11
    qos_bound: float = 0.9

    @property
    def max_delay_s(self) -> float:
        return self.packet_size_bits / self.min_datarate_bps


@dataclass(frozen=True)
class GatewayConfig:
    # applied to every slice found in the device list
    bandwidth_hz: float = 125_000.0
    max_datarate_bps: float = 15197.75390625


# -----------------------------
# Objective and neighbourhood
# -----------------------------
@dataclass(frozen=True)
class CostConfig:
    alpha: float = 100.0
    beta: float = 1.0
    change_site_prob: float = 0.75
    new_site_prob: float = 0.05


# -----------------------------
# Solvers
# -----------------------------
@dataclass(frozen=True)
class TabuConfig:
    max_iterations: int = 100_000
    max_iterations_without_improvement: int = 1000
    batch_size: int = 20
    tabu_list_size: int = 40
    tabu_site_ratio: float = 0.25

    # "long_term": restart away from tabu sites; "random_walk": wander off the best solution
    diversification: Literal["long_term", "random_walk"] = "long_term"
    random_walk_min_distance: int = 50
    random_walk_max_distance: int = 250


@dataclass(frozen=True)
class AnnealingConfig:
    initial_temperature: float = 250.0
    cooling_rate: float = 0.99985
    iterations_per_temperature: int = 20
    max_iterations: int = 1_000_000
    min_distance: int = 1
    max_distance: int = 5


@dataclass(frozen=True)
class GeneticConfig:
    population_size: int = 100
    max_generations: int = 100
    crossover_rate: float = 0.9
    mutation_rate: float = 0.01
    n_workers: int = 8
    n_elites_refined: int = 5
    default_sf: int = 10

    # elite refinement (tabu local search)
    local_search_iterations: int = 2000
    local_search_tabu_list_size: int = 25
    local_search_batch_size: int = 20
    local_search_time_s: float = 5.0


@dataclass(frozen=True)
class GraspConfig:
    alpha: float = 0.8
    capacity_alpha: float = 0.9
    default_sf: int = 10
    max_construction_attempts: int = 10

    # local search (tabu)
    local_search_iterations: int = 50_000
    local_search_tabu_list_size: int = 25
    local_search_batch_size: int = 20


# -----------------------------
# Scenario inputs
# -----------------------------
@dataclass(frozen=True)
class DataConfig:
    # None -> synthetic scenario (see ScenarioGenConfig)
    data_dir: Optional[str] = None
    device_file: str = "endDevices_LNM_Placement_{seed}s+{n_devices}d.dat"
    slice_file: str = "skl_{seed}s_{n_sites}x1Gv_{n_devices}D.dat"
    sites_file: str = "equidistantPlacement_{n_sites}.dat"


@dataclass(frozen=True)
class ScenarioGenConfig:
    area_side_m: float = 10_000.0
    site_altitude_m: float = 30.0
    hotspots_enabled: bool = True
    n_hotspots: int = 4
    hotspot_sigma_m_min: float = 300.0
    hotspot_sigma_m_max: float = 1_200.0
    noise_frac: float = 0.2
    slice_probs: Tuple[float, ...] = (0.5, 0.3, 0.2)


@dataclass(frozen=True)
class RunConfig:
    n_devices: int = 100
    n_sites: int = 64
    seed: int = 1
    algorithm: Literal["tabu", "annealing", "genetic", "grasp"] = "tabu"
    time_limit_s: float = 60.0
    enable_plots: bool = True
    verbose: bool = True
    output_dir: Optional[str] = None
    prefix: str = "TS"


# -----------------------------
# Top-level scenario config
# -----------------------------
@dataclass(frozen=True)
class ScenarioConfig:
    run: RunConfig = RunConfig()
    data: DataConfig = DataConfig()
    scenario: ScenarioGenConfig = ScenarioGenConfig()

    phy: PhyConfig = PhyConfig()
    qos: QoSConfig = QoSConfig()
    gateway: GatewayConfig = GatewayConfig()
    cost: CostConfig = CostConfig()

    tabu: TabuConfig = TabuConfig()
    annealing: AnnealingConfig = AnnealingConfig()
    genetic: GeneticConfig = GeneticConfig()
    grasp: GraspConfig = GraspConfig()
