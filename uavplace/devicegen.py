# uavplace/devicegen.py
from __future__ import annotations

import numpy as np

from config import ScenarioConfig
from uavplace.geometry import Position, equidistant_grid_xyz
from uavplace.models import CandidatePosition, Device


def _clip01(x: float) -> float:
    return float(min(max(x, 0.0), 1.0))


def _sample_uniform_xy(rng: np.random.Generator, side_m: float, n: int) -> np.ndarray:
    return rng.uniform(0.0, side_m, size=(n, 2))


def _sample_hotspot_xy(rng: np.random.Generator, cfg: ScenarioConfig, n: int) -> np.ndarray:
    """Gaussian hotspots inside the square area; points falling outside are redrawn."""
    g = cfg.scenario
    side = float(g.area_side_m)
    n_hotspots = max(int(g.n_hotspots), 1)

    centers = _sample_uniform_xy(rng, side, n_hotspots)
    smin, smax = sorted((float(g.hotspot_sigma_m_min), float(g.hotspot_sigma_m_max)))
    sigmas = rng.uniform(smin, smax, size=n_hotspots)
    weights = rng.dirichlet(np.ones(n_hotspots, dtype=float))
    hotspot_ids = rng.choice(np.arange(n_hotspots), size=n, p=weights)

    xy = np.zeros((n, 2), dtype=float)
    filled = 0
    max_tries = 60

    for _ in range(max_tries):
        if filled >= n:
            break
        hids = hotspot_ids[filled:]
        prop = centers[hids] + rng.standard_normal((hids.size, 2)) * sigmas[hids][:, None]
        ok = np.all((prop >= 0.0) & (prop <= side), axis=1)
        take = prop[ok]
        xy[filled:filled + take.shape[0]] = take
        filled += take.shape[0]

    # Fallback: fill remaining uniformly
    if filled < n:
        xy[filled:] = _sample_uniform_xy(rng, side, n - filled)
    return xy


def generate_devices(cfg: ScenarioConfig) -> list[Device]:
    """
    Generates cfg.run.n_devices ground devices (z = 0) in a square of side
    cfg.scenario.area_side_m:
      - hotspots disabled -> uniform
      - else -> gaussian hotspots + uniform noise

    Slice ids 0..k-1 are drawn with cfg.scenario.slice_probs.
    """
    rng = np.random.default_rng(cfg.run.seed)
    n = int(cfg.run.n_devices)
    g = cfg.scenario

    if not g.hotspots_enabled:
        xy = _sample_uniform_xy(rng, g.area_side_m, n)
    else:
        n_noise = int(round(n * _clip01(g.noise_frac)))
        xy = np.vstack([
            _sample_hotspot_xy(rng, cfg, n - n_noise),
            _sample_uniform_xy(rng, g.area_side_m, n_noise),
        ])
        xy = xy[rng.permutation(n)]

    probs = np.asarray(g.slice_probs, dtype=float)
    if probs.size == 0 or np.any(probs < 0):
        raise ValueError("scenario.slice_probs must be a non-empty tuple of non-negative weights.")
    probs = probs / (probs.sum() + 1e-12)
    slices = rng.choice(np.arange(probs.size), size=n, p=probs)

    return [
        Device(id=i, position=Position(float(xy[i, 0]), float(xy[i, 1]), 0.0), slice_id=int(slices[i]))
        for i in range(n)
    ]


def generate_candidate_positions(cfg: ScenarioConfig) -> list[CandidatePosition]:
    xyz = equidistant_grid_xyz(int(cfg.run.n_sites), float(cfg.scenario.area_side_m), float(cfg.scenario.site_altitude_m))
    return [CandidatePosition(id=i, position=Position(*(float(v) for v in p))) for i, p in enumerate(xyz)]
