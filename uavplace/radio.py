# uavplace/radio.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from config import PhyConfig, QoSConfig

MIN_SF = 7
MAX_SF = 12
MIN_TP = 2
MAX_TP = 14
TP_STEP = 2


@dataclass(frozen=True)
class Configuration:
    id: int
    sf: int
    tp: int


def config_id(sf: int, tp: int) -> int:
    # id = (sf - 7) * 7 + (tp/2 - 1)
    return (sf - MIN_SF) * 7 + (tp // TP_STEP - 1)


def build_catalogue() -> tuple[Configuration, ...]:
    """All (SF, TP) combinations, ordered by id."""
    configs = [
        Configuration(id=config_id(sf, tp), sf=sf, tp=tp)
        for sf in range(MIN_SF, MAX_SF + 1)
        for tp in range(MIN_TP, MAX_TP + 1, TP_STEP)
    ]
    return tuple(sorted(configs, key=lambda c: c.id))


CATALOGUE = build_catalogue()
NUM_CONFIGS = len(CATALOGUE)

# vectorised lookups, indexed by config id
CONFIG_SF = np.array([c.sf for c in CATALOGUE], dtype=int)
CONFIG_TP = np.array([c.tp for c in CATALOGUE], dtype=int)


def lora_datarate_bps(sf, bandwidth_hz: float, coding_rate: float = 1.0):
    """Raw LoRa bit rate: cr * sf * bw / 2^sf."""
    sf = np.asarray(sf, dtype=float)
    return coding_rate * sf * bandwidth_hz / np.power(2.0, sf)


def pathloss_db(distance_m: np.ndarray, phy: PhyConfig) -> np.ndarray:
    # PL(dB) = 10 n log10(d/d0), 0 inside the reference distance
    d = np.asarray(distance_m, dtype=float)
    d0 = float(phy.reference_distance_m)
    ratio = np.maximum(d / d0, 1.0)
    return np.where(d <= d0, 0.0, 10.0 * phy.attenuation_exponent * np.log10(ratio))


def sensitivity_dbm(sf, phy: PhyConfig) -> np.ndarray:
    table = np.asarray(phy.sensitivity_dbm, dtype=float)
    if table.shape[0] != MAX_SF - MIN_SF + 1:
        raise ValueError(f"phy.sensitivity_dbm must hold {MAX_SF - MIN_SF + 1} values (SF{MIN_SF}..SF{MAX_SF}).")
    return table[np.asarray(sf, dtype=int) - MIN_SF]


def link_reachable(distance_m: np.ndarray, tp, sf, phy: PhyConfig) -> np.ndarray:
    """tp - Prx_ref - PL(d) >= sensitivity(sf), broadcast over inputs."""
    rx_dbm = np.asarray(tp, dtype=float) - phy.reference_prx_db - pathloss_db(distance_m, phy)
    return rx_dbm >= sensitivity_dbm(sf, phy)


def qos_score(sf, bandwidth_hz: float, qos: QoSConfig) -> np.ndarray:
    """
    Combined datarate/delay score of a configuration.

    score = dr / dr_max + (1 - delay / delay_max), with dr including the coding rate
    and delay = packet_size / dr.
    """
    dr = lora_datarate_bps(sf, bandwidth_hz, qos.coding_rate)
    delay = qos.packet_size_bits / dr
    return dr / qos.max_datarate_bps + (1.0 - delay / qos.max_delay_s)


def qos_feasible(sf, bandwidth_hz: float, qos: QoSConfig) -> np.ndarray:
    return qos_score(sf, bandwidth_hz, qos) > qos.qos_bound
