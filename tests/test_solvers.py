import numpy as np
import pytest

from config import AnnealingConfig, GeneticConfig, GraspConfig, TabuConfig
from uavplace.errors import ConstructionError
from uavplace.plot import parse_log
from uavplace.solution import Axis, Move, Solution, random_solution
from uavplace.solvers.annealing import SimulatedAnnealingSolver
from uavplace.solvers.genetic import GeneticSolver
from uavplace.solvers.grasp import GraspSolver
from uavplace.solvers.population import Population
from uavplace.solvers.tabu import TabuSearchSolver


def _best_is_monotone(log_text):
    best = parse_log(log_text)["bestCost"]
    return bool(np.all(np.diff(best) <= 1e-9))


# -----------------------------
# Tabu search
# -----------------------------
def test_tabu_list_evicts_oldest(cluster_problem, rng):
    ts = TabuSearchSolver(cluster_problem, TabuConfig(tabu_list_size=2), rng=rng)
    ts.add_tabu_move((0, 1))
    ts.add_tabu_move((1, 1))
    ts.add_tabu_move((2, 2))
    assert list(ts.tabu_list) == [(1, 1), (2, 2)]

    sol = random_solution(cluster_problem, rng)
    sol.move = Move(0, Axis.SITE, 0, 0, 1, 0)
    assert not ts.is_tabu(sol)
    sol.move = Move(2, Axis.CONFIG, 0, 0, 0, 1)
    assert ts.is_tabu(sol)


def test_tabu_search_improves_or_keeps_initial(cluster_problem, rng):
    cfg = TabuConfig(max_iterations=60, max_iterations_without_improvement=15, batch_size=5)
    ts = TabuSearchSolver(cluster_problem, cfg, rng=rng, time_limit_s=10.0)
    best = ts.solve()

    assert best.cost <= ts.initial.cost
    assert best.is_feasible()
    assert ts.iteration == 60
    assert ts.log_lines[0] == TabuSearchSolver.LOG_HEADER
    assert len(ts.log_lines) == ts.iteration + 1
    assert _best_is_monotone(ts.get_log())
    assert ts.prof.c["neighbours"] == 60 * 5


def test_tabu_current_cost_never_rises_within_a_phase(cluster_problem, rng):
    cfg = TabuConfig(max_iterations=80, max_iterations_without_improvement=4, batch_size=4)
    ts = TabuSearchSolver(cluster_problem, cfg, rng=rng, time_limit_s=10.0)
    ts.solve()
    assert ts.phase > 1

    cols = parse_log(ts.get_log())
    same_phase = cols["phase"][1:] == cols["phase"][:-1]
    rises = np.diff(cols["currCost"]) > 1e-9
    assert not np.any(rises & same_phase)


def test_tabu_search_random_walk_diversification(cluster_problem, rng):
    cfg = TabuConfig(
        max_iterations=40,
        max_iterations_without_improvement=3,
        batch_size=4,
        diversification="random_walk",
        random_walk_min_distance=2,
        random_walk_max_distance=4,
    )
    ts = TabuSearchSolver(cluster_problem, cfg, rng=rng, time_limit_s=10.0)
    best = ts.solve()
    assert ts.phase > 1
    assert ts.tabu_sites == set()
    assert best.is_feasible()


def test_tabu_search_long_term_memory_collects_sites(cluster_problem, rng):
    cfg = TabuConfig(max_iterations=40, max_iterations_without_improvement=3, batch_size=4)
    ts = TabuSearchSolver(cluster_problem, cfg, rng=rng, time_limit_s=10.0)
    ts.solve()
    assert ts.phase > 1
    assert ts.tabu_sites
    assert 1 <= ts.prof.c["diversifications"] <= ts.phase - 1


def test_tabu_search_unknown_diversification(cluster_problem, rng):
    cfg = TabuConfig(max_iterations=50, max_iterations_without_improvement=2, batch_size=3, diversification="bogus")
    with pytest.raises(ValueError):
        TabuSearchSolver(cluster_problem, cfg, rng=rng).solve()


def test_tabu_search_starts_from_given_solution(cluster_problem, rng):
    start = random_solution(cluster_problem, rng)
    cfg = TabuConfig(max_iterations=5, batch_size=3)
    ts = TabuSearchSolver(cluster_problem, cfg, rng=rng, initial=start)
    assert ts.solve().cost <= start.cost
    assert ts.initial is start


# -----------------------------
# Simulated annealing
# -----------------------------
def test_annealing_smoke(cluster_problem, rng):
    cfg = AnnealingConfig(max_iterations=100, iterations_per_temperature=10, max_distance=3)
    sa = SimulatedAnnealingSolver(cluster_problem, cfg, rng=rng, time_limit_s=10.0)
    best = sa.solve()

    assert sa.iteration == 100
    assert best.cost <= sa.initial.cost
    assert best.is_feasible()
    assert len(sa.log_lines) == 101
    assert _best_is_monotone(sa.get_log())
    assert sa.temperature == pytest.approx(cfg.initial_temperature * cfg.cooling_rate ** 10)


def test_annealing_rejects_bad_cooling_rate(cluster_problem, rng):
    with pytest.raises(ValueError):
        SimulatedAnnealingSolver(cluster_problem, AnnealingConfig(cooling_rate=1.0), rng=rng).solve()


# -----------------------------
# Genetic algorithm
# -----------------------------
class _Individual:
    def __init__(self, cost, inverse_cost):
        self.cost = cost
        self.inverse_cost = inverse_cost


def test_population_statistics_and_removal():
    pop = Population([_Individual(5.0, 1.0), _Individual(2.0, 4.0), _Individual(3.0, 3.0)])
    assert pop.size == 3
    assert pop.min_cost == 2.0
    assert pop.max_fitness == 4.0
    assert pop.avg_cost == pytest.approx(10.0 / 3)
    assert pop.best().cost == 2.0

    removed = pop.remove_best(2)
    assert [ind.cost for ind in removed] == [2.0, 3.0]
    assert pop.size == 1
    assert pop.min_cost == 5.0
    assert pop.sum_fitness == 1.0


def test_population_roulette_follows_fitness(rng):
    pop = Population([_Individual(10.0, 0.0), _Individual(10.0, 0.0), _Individual(1.0, 5.0)])
    picks = {id(pop.select(rng)) for _ in range(50)}
    assert picks == {id(pop.individuals[2])}

    with pytest.raises(ValueError):
        Population().select(rng)


def test_genetic_smoke(cluster_problem, rng):
    cfg = GeneticConfig(
        population_size=6,
        max_generations=2,
        n_workers=2,
        n_elites_refined=1,
        local_search_iterations=10,
        local_search_batch_size=3,
        local_search_time_s=2.0,
    )
    ga = GeneticSolver(cluster_problem, cfg, rng=rng, time_limit_s=30.0)
    best = ga.solve()

    assert ga.generation == 2
    assert ga.population.size == 6
    assert best.is_feasible()
    assert best.cost <= ga.initial.cost
    assert len(ga.log_lines) == 4
    assert ga.prof.c["children"] == 12


def test_genetic_needs_two_individuals(cluster_problem, rng):
    with pytest.raises(ValueError):
        GeneticSolver(cluster_problem, GeneticConfig(population_size=1), rng=rng).solve()


def test_genetic_child_from_gene(cluster_problem, rng):
    ga = GeneticSolver(cluster_problem, GeneticConfig(), rng=rng)
    parent = random_solution(cluster_problem, rng)
    gene = np.zeros(cluster_problem.n_sites, dtype=bool)
    gene[4] = True

    child, ok = ga._child(gene, parent, rng)
    assert ok
    assert child is not parent
    assert child.is_feasible()
    assert 4 in child.deployed


def test_genetic_child_falls_back_to_parent_copy(make_problem, rng):
    sf10 = 10 * 125_000.0 / 2**10
    # one site with room for a single SF10 device
    p = make_problem([(0.0, 0.0), (10.0, 0.0)], [(0.0, 0.0, 30.0)], max_datarate_bps=1.5 * sf10)
    ga = GeneticSolver(p, GeneticConfig(default_sf=10), rng=rng)
    parent = Solution(p)
    parent.update_association(0, 0, p.config_for_site(0, 0, 10, rng))

    child, ok = ga._child(np.ones(p.n_sites, dtype=bool), parent, rng)
    assert not ok
    assert child is not parent
    np.testing.assert_array_equal(child.site, parent.site)
    np.testing.assert_array_equal(child.config, parent.config)


def test_genetic_reproduce_share_fills_requested_children(cluster_problem, rng):
    ga = GeneticSolver(cluster_problem, GeneticConfig(), rng=rng)
    old = Population(random_solution(cluster_problem, rng) for _ in range(4))
    new = Population()
    ga._reproduce_share(old, new, 3, rng)
    assert new.size == 3
    assert ga.prof.c["children"] == 3
    assert ga.prof.c.get("infeasible_children", 0) == ga.infeasible


# -----------------------------
# GRASP
# -----------------------------
def test_grasp_construction_covers_every_device(cluster_problem, rng):
    grasp = GraspSolver(cluster_problem, GraspConfig(), rng=rng)
    sol = grasp.construct()
    assert sol.is_complete
    assert sol.is_feasible()


def test_grasp_restricted_candidates(cluster_problem, rng):
    grasp = GraspSolver(cluster_problem, GraspConfig(alpha=0.8), rng=rng)
    coverage = {0: {1, 2, 3}, 1: {1, 2}, 2: set()}
    assert grasp.restricted_candidates([0, 1, 2], coverage) == [0]
    grasp.cfg = GraspConfig(alpha=0.5)
    assert grasp.restricted_candidates([0, 1, 2], coverage) == [0, 1]
    assert grasp.restricted_candidates([2], coverage) == []


def test_grasp_restricted_candidates_pure_greedy(cluster_problem, rng):
    grasp = GraspSolver(cluster_problem, GraspConfig(alpha=1.0), rng=rng)
    assert grasp.restricted_candidates([0, 1], {0: {1, 2, 3}, 1: {1, 2}}) == [0]
    # ties at the top are all kept
    assert grasp.restricted_candidates([0, 1, 2], {0: {1, 2}, 1: {3, 4}, 2: {5}}) == [0, 1]

    sol = grasp.construct()
    assert sol.is_complete
    assert sol.is_feasible()


def test_grasp_restricted_candidates_keeps_exact_threshold(cluster_problem, rng):
    grasp = GraspSolver(cluster_problem, GraspConfig(alpha=0.5), rng=rng)
    coverage = {0: {1, 2, 3, 4}, 1: {1, 2}, 2: {5}}
    assert grasp.restricted_candidates([0, 1, 2], coverage) == [0, 1]


def test_grasp_smoke(cluster_problem, rng):
    cfg = GraspConfig(local_search_iterations=20, local_search_batch_size=3)
    grasp = GraspSolver(cluster_problem, cfg, rng=rng, time_limit_s=10.0)
    best = grasp.solve()
    assert best.cost <= grasp.constructed.cost
    assert best.is_feasible()
    assert grasp.log_lines[0] == TabuSearchSolver.LOG_HEADER
    assert len(grasp.log_lines) == 21


def test_grasp_gives_up_after_failed_constructions(cluster_problem, rng):
    cfg = GraspConfig(capacity_alpha=0.0, max_construction_attempts=2)
    grasp = GraspSolver(cluster_problem, cfg, rng=rng)
    with pytest.raises(ConstructionError):
        grasp.solve()
    assert grasp.prof.c["failed_constructions"] == 2
