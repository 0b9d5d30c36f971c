import os

os.environ.setdefault("MPLBACKEND", "Agg")

import numpy as np
import pytest

from uavplace.geometry import Position
from uavplace.models import CandidatePosition, Device, GatewayProfile
from uavplace.problem import Problem

DEFAULT_MAX_DATARATE = 15197.75390625


def build_problem(device_xy, site_xyz, slices=None, bandwidth_hz=125_000.0, max_datarate_bps=DEFAULT_MAX_DATARATE, **kwargs):
    """Problem with ground devices at `device_xy` and candidate positions at `site_xyz`."""
    if slices is None:
        slices = [0] * len(device_xy)
    devices = [
        Device(id=i, position=Position(float(x), float(y), 0.0), slice_id=int(slices[i]))
        for i, (x, y) in enumerate(device_xy)
    ]
    sites = [CandidatePosition(id=j, position=Position(*(float(v) for v in p))) for j, p in enumerate(site_xyz)]
    gateway = GatewayProfile.uniform(slices, bandwidth_hz, max_datarate_bps)
    return Problem(devices, sites, gateway, **kwargs)


def assert_aggregates(sol):
    """load / devices_at / deployed must match a from-scratch recomputation."""
    p = sol.problem
    load = np.zeros_like(sol.load)
    members = {}
    for d in range(p.n_devices):
        s = int(sol.site[d])
        load[s, p.device_slice[d]] += p.device_datarate(d, int(sol.config[d]))
        members.setdefault(s, set()).add(d)
    np.testing.assert_allclose(sol.load, load, atol=1e-6)
    assert sol.devices_at == members
    assert sol.deployed == set(members)


@pytest.fixture
def make_problem():
    return build_problem


@pytest.fixture
def rng():
    return np.random.default_rng(7)


@pytest.fixture
def cluster_problem():
    # 12 devices inside a 3x3 grid of candidate positions, three slices
    xy = np.random.default_rng(3).uniform(500.0, 1500.0, size=(12, 2))
    sites = [(x, y, 30.0) for y in (0.0, 1000.0, 2000.0) for x in (0.0, 1000.0, 2000.0)]
    slices = [i % 3 for i in range(12)]
    return build_problem(xy, sites, slices)


@pytest.fixture
def check_aggregates():
    return assert_aggregates
