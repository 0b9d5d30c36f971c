from dataclasses import replace

import numpy as np

from config import ScenarioConfig
from uavplace.devicegen import generate_candidate_positions, generate_devices
from uavplace.geometry import equidistant_grid_xyz, pairwise_distances_m


def _cfg(**scenario):
    cfg = ScenarioConfig()
    return replace(
        cfg,
        run=replace(cfg.run, n_devices=200, n_sites=10, seed=5),
        scenario=replace(cfg.scenario, **scenario),
    )


def test_generated_devices_lie_in_the_area():
    cfg = _cfg(area_side_m=4000.0)
    devices = generate_devices(cfg)
    assert [d.id for d in devices] == list(range(200))
    xy = np.array([[d.position.x, d.position.y] for d in devices])
    assert np.all((xy >= 0.0) & (xy <= 4000.0))
    assert all(d.position.z == 0.0 for d in devices)
    assert {d.slice_id for d in devices} <= {0, 1, 2}


def test_generation_is_reproducible():
    cfg = _cfg()
    assert generate_devices(cfg) == generate_devices(cfg)
    other = replace(cfg, run=replace(cfg.run, seed=6))
    assert generate_devices(cfg) != generate_devices(other)


def test_uniform_devices_and_single_slice():
    devices = generate_devices(_cfg(hotspots_enabled=False, slice_probs=(1.0,)))
    assert len(devices) == 200
    assert {d.slice_id for d in devices} == {0}


def test_candidate_positions_grid():
    cfg = _cfg(area_side_m=3000.0, site_altitude_m=45.0)
    sites = generate_candidate_positions(cfg)
    assert [s.id for s in sites] == list(range(10))
    assert all(s.position.z == 45.0 for s in sites)
    # 4x4 grid of 750 m cells, filled row by row
    assert (sites[0].position.x, sites[0].position.y) == (375.0, 375.0)
    assert (sites[4].position.x, sites[4].position.y) == (375.0, 1125.0)


def test_equidistant_grid_and_distances():
    xyz = equidistant_grid_xyz(4, 1000.0, 10.0)
    np.testing.assert_allclose(xyz[:, :2], [[250, 250], [750, 250], [250, 750], [750, 750]])
    dist = pairwise_distances_m(xyz[:1], xyz)
    np.testing.assert_allclose(dist[0], [0.0, 500.0, 500.0, np.hypot(500.0, 500.0)])
    assert equidistant_grid_xyz(0, 1000.0, 10.0).shape == (0, 3)
