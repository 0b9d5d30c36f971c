import pytest

from uavplace.neighbours import adjust_config, next_config, previous_config, site_ring, step_site
from uavplace.radio import config_id
from uavplace.solution import Solution

NEAR = (0.0, 0.0, 30.0)
LAST = config_id(10, 14)


def test_config_ring_wraps(make_problem):
    p = make_problem([(0.0, 0.0)], [NEAR])
    assert next_config(p, 0, 0, 0) == 1
    assert next_config(p, 0, 0, LAST) == 0
    assert previous_config(p, 0, 0, 0) == LAST
    assert previous_config(p, 0, 0, 5) == 4


def test_config_ring_from_missing_config(make_problem):
    # at ~2 km the lowest SF7 powers are infeasible: feasible ids start at SF7/6 dBm
    p = make_problem([(2000.0, 0.0)], [NEAR])
    first = config_id(7, 6)
    assert next_config(p, 0, 0, 0) == first
    assert previous_config(p, 0, 0, 0) == LAST
    assert adjust_config(p, 0, 0, 1) == first
    assert adjust_config(p, 0, 0, first + 1) == first + 1


def test_step_site_walks_the_ring(make_problem):
    sites = [NEAR, (50.0, 0.0, 30.0), (100.0, 0.0, 30.0)]
    p = make_problem([(0.0, 0.0)], sites)
    ring = [0, 1, 2]
    assert step_site(p, 0, 2, 3, ring, forward=True) == (0, 3)
    assert step_site(p, 0, 0, 3, ring, forward=False) == (2, 3)
    assert step_site(p, 0, 1, 3, ring, forward=False) == (0, 3)
    with pytest.raises(ValueError):
        step_site(p, 0, 1, 3, [0, 2])


def test_step_site_adjusts_configuration(make_problem):
    # the far site cannot serve SF7 at 2 dBm
    p = make_problem([(0.0, 0.0)], [NEAR, (2000.0, 0.0, 30.0)])
    assert step_site(p, 0, 0, 0, [0, 1]) == (1, config_id(7, 6))


def _two_deployed(make_problem):
    sites = [NEAR, (50.0, 0.0, 30.0), (100.0, 0.0, 30.0), (150.0, 0.0, 30.0)]
    p = make_problem([(0.0, 0.0), (10.0, 0.0)], sites)
    sol = Solution(p)
    sol.update_association(0, 0, 0)
    sol.update_association(1, 2, 0)
    return p, sol


def test_site_ring_modes(make_problem):
    p, sol = _two_deployed(make_problem)
    assert site_ring(p, sol, 0, 0, "plain") == [0, 1, 2, 3]
    assert site_ring(p, sol, 0, 0, "deployed") == [0, 2]
    assert site_ring(p, sol, 0, 0, "new") == [0, 1, 3]
    with pytest.raises(ValueError):
        site_ring(p, sol, 0, 0, "bogus")


def test_site_ring_skips_tabu_sites(make_problem):
    p, sol = _two_deployed(make_problem)
    assert site_ring(p, sol, 0, 0, "plain", tabu_sites={1, 2}, tabu_ratio=1.0) == [0, 3]
    # the current site stays even when tabu
    assert site_ring(p, sol, 0, 2, "plain", tabu_sites={2}, tabu_ratio=1.0) == [0, 1, 2, 3]
    # only the current site would remain: keep the full ring
    assert site_ring(p, sol, 0, 0, "deployed", tabu_sites={2}, tabu_ratio=1.0) == [0, 2]


def test_site_ring_appends_tabu_sites_above_ratio(make_problem):
    p, sol = _two_deployed(make_problem)
    # half of the deployed sites are tabu
    assert site_ring(p, sol, 0, 0, "plain", tabu_sites={1, 2}, tabu_ratio=0.25) == [0, 3, 1, 2]
