import random

from coach.engine.finesse import FinesseCalculator
from coach.engine.pieces import ROTATIONS
from coach.policy.cache import PolicyCaches
from coach.policy.executor import cluster_placements, collect_candidates, dominates, pareto_filter
from coach.policy.features import extract_features
from coach.policy.templates.registry import default_registry
from coach.policy.types import Placement, ScoredPlacement

from conftest import state_from


def _random_candidates(seed, n=60):
    rng = random.Random(seed)
    out = []
    for _ in range(n):
        p = Placement(rng.randint(-1, 8), rng.choice(ROTATIONS), rng.random() < 0.3)
        out.append(ScoredPlacement(p, round(rng.uniform(-1, 2), 1), float(rng.randint(1, 6))))
    return out


def test_pareto_front_is_non_dominated_and_complete():
    for seed in range(5):
        cands = _random_candidates(seed)
        front = pareto_filter(cands)
        assert front
        for a in front:
            assert not any(dominates(b, a) for b in front)
        for c in cands:
            if c not in front:
                assert any(dominates(b, c) for b in front)


def test_pareto_is_idempotent_and_order_independent():
    cands = _random_candidates(11)
    front = pareto_filter(cands)
    assert pareto_filter(front) == front
    shuffled = list(cands)
    random.Random(3).shuffle(shuffled)
    assert set(pareto_filter(shuffled)) == set(front)


def test_clusters_split_on_column_gaps():
    cands = [ScoredPlacement(Placement(x, "spawn"), u, 2.0) for x, u in [(0, 0.1), (1, 0.9), (2, 0.3), (5, 0.2)]]
    groups = cluster_placements(cands)
    assert [g.xs for g in groups] == [(0, 1, 2), (5,)]
    assert groups[0].primary == Placement(1, "spawn")
    assert groups[0].alts == (Placement(0, "spawn"), Placement(2, "spawn"))


def test_cluster_primary_ties_break_on_cost():
    cands = [ScoredPlacement(Placement(3, "left"), 1.0, 4.0), ScoredPlacement(Placement(4, "left"), 1.0, 2.0)]
    (g,) = cluster_placements(cands)
    assert g.primary == Placement(4, "left")


def test_cluster_invariants_on_real_candidates():
    s = state_from(["T", "I", "O", "S"], rows=["XX....XXXX"])
    t = default_registry().get("TKI/base")
    cands, chosen = collect_candidates(t, s, extract_features(s.board), PolicyCaches(), FinesseCalculator())
    assert chosen is not None and chosen in {c.placement for c in cands}
    by_p = {c.placement: c for c in cands}
    for g in cluster_placements(pareto_filter(cands)):
        assert len(g.xs) == len(g.alts) + 1
        assert list(g.xs) == sorted(g.xs)
        assert all(b - a == 1 for a, b in zip(g.xs, g.xs[1:]))
        prim = by_p[g.primary]
        for alt in g.alts:
            other = by_p[alt]
            assert prim.utility > other.utility or (prim.utility == other.utility and prim.cost <= other.cost)
