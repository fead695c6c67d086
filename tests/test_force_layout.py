"""Tests for the force-directed layout simulation."""

import math

import numpy as np
import pytest

from force_layout import INITIAL_RADIUS, ForceConfig, ForceSimulation
from reply_graph import GraphEdge, build_reply_graph


def _distance(sim, a, b):
    ax, ay = sim.position(a)
    bx, by = sim.position(b)
    return math.hypot(ax - bx, ay - by)


@pytest.fixture()
def pair_graph(make_message):
    return build_reply_graph([make_message(1), make_message(2, reply_to=1)], False)


@pytest.fixture()
def star_graph(make_message):
    messages = [make_message(1)] + [make_message(i, reply_to=1) for i in range(2, 12)]
    return build_reply_graph(messages, False)


def test_initial_positions_follow_phyllotaxis(pair_graph):
    sim = ForceSimulation(pair_graph.nodes, pair_graph.edges)
    first = pair_graph.nodes[0].id
    x, y = sim.position(first)
    assert x == pytest.approx(INITIAL_RADIUS * math.sqrt(0.5))
    assert y == pytest.approx(0.0)
    assert sim.alpha == 1.0
    assert sim.is_running


def test_settles_after_alpha_cools(pair_graph):
    sim = ForceSimulation(pair_graph.nodes, pair_graph.edges)
    ticks = sim.run_until_settled()

    # 0.98 ** n < 0.001 first holds at n = 342
    assert 340 <= ticks <= 345
    assert not sim.is_running
    assert sim.alpha < sim.config.alpha_min
    assert sim.step() is False


def test_step_reports_running_until_settled(pair_graph):
    sim = ForceSimulation(pair_graph.nodes, pair_graph.edges)
    assert sim.step() is True
    assert sim.tick_count == 1


def test_linked_nodes_settle_near_link_distance(pair_graph):
    sim = ForceSimulation(pair_graph.nodes, pair_graph.edges)
    sim.run_until_settled()
    assert 45 < _distance(sim, 1, 2) < 90


def test_unlinked_nodes_repel(make_message):
    graph = build_reply_graph(
        [make_message(1), make_message(2, reply_to=1), make_message(3), make_message(4, reply_to=3)],
        False,
    )
    # drop the springs so only repulsion and centering act
    sim = ForceSimulation(graph.nodes, [])
    before = _distance(sim, 1, 3)
    sim.run_until_settled()
    assert _distance(sim, 1, 3) > before
    assert _distance(sim, 1, 3) > 40


def test_collision_keeps_nodes_apart(star_graph):
    sim = ForceSimulation(star_graph.nodes, star_graph.edges)
    sim.run_until_settled()
    ids = sim.node_ids
    closest = min(_distance(sim, a, b) for i, a in enumerate(ids) for b in ids[i + 1:])
    assert closest > 10


def test_layout_is_centred(star_graph):
    sim = ForceSimulation(star_graph.nodes, star_graph.edges)
    sim.run_until_settled()
    xs = [p[0] for p in sim.positions().values()]
    ys = [p[1] for p in sim.positions().values()]
    assert abs(np.mean(xs)) < 1.0
    assert abs(np.mean(ys)) < 1.0


def test_same_seed_gives_same_layout(star_graph):
    a = ForceSimulation(star_graph.nodes, star_graph.edges, seed=7)
    b = ForceSimulation(star_graph.nodes, star_graph.edges, seed=7)
    a.run_until_settled()
    b.run_until_settled()
    for node_id in a.node_ids:
        assert a.position(node_id) == pytest.approx(b.position(node_id))


def test_positions_are_finite(star_graph):
    sim = ForceSimulation(star_graph.nodes, star_graph.edges)
    sim.run_until_settled()
    for x, y in sim.positions().values():
        assert math.isfinite(x) and math.isfinite(y)


def test_pinned_node_does_not_move(star_graph):
    sim = ForceSimulation(star_graph.nodes, star_graph.edges)
    sim.pin(1, 100.0, -50.0)
    sim.tick(20)

    assert sim.position(1) == (100.0, -50.0)
    state = sim.node_state(1)
    assert state.vx == 0.0 and state.vy == 0.0
    assert state.fx == 100.0 and state.fy == -50.0
    assert state.pinned
    assert sim.is_pinned(1)


def test_release_unpins(star_graph):
    sim = ForceSimulation(star_graph.nodes, star_graph.edges)
    sim.pin(1, 100.0, -50.0)
    sim.tick()
    sim.release(1)

    state = sim.node_state(1)
    assert state.fx is None and state.fy is None
    assert not sim.is_pinned(1)
    sim.tick(5)
    assert sim.position(1) != (100.0, -50.0)


def test_alpha_target_reheats_settled_simulation(pair_graph):
    sim = ForceSimulation(pair_graph.nodes, pair_graph.edges)
    sim.run_until_settled()
    cooled = sim.alpha

    sim.set_alpha_target(0.3).restart()
    for _ in range(10):
        assert sim.step() is True
    assert sim.alpha > cooled


def test_stop_halts_stepping(pair_graph):
    sim = ForceSimulation(pair_graph.nodes, pair_graph.edges)
    sim.stop()
    assert sim.step() is False
    assert sim.tick_count == 0


def test_self_reply_edge_is_harmless(make_message):
    graph = build_reply_graph([make_message(7, reply_to=7)], False)
    sim = ForceSimulation(graph.nodes, graph.edges)
    sim.run_until_settled()
    x, y = sim.position(7)
    assert math.isfinite(x) and math.isfinite(y)


def test_unknown_edge_endpoints_are_ignored(pair_graph):
    edges = pair_graph.edges + [GraphEdge(source=1, target=12345)]
    sim = ForceSimulation(pair_graph.nodes, edges)
    sim.tick(3)
    assert set(sim.positions()) == {1, 2}


def test_empty_simulation():
    sim = ForceSimulation([], [])
    assert not sim.is_running
    assert sim.run_until_settled() == 0
    sim.tick()
    assert sim.positions() == {}
    assert len(sim) == 0


def test_graph_nodes_are_never_written(star_graph):
    before = [(n.id, n.radius, n.chain_id) for n in star_graph.nodes]
    sim = ForceSimulation(star_graph.nodes, star_graph.edges)
    sim.run_until_settled()
    assert [(n.id, n.radius, n.chain_id) for n in star_graph.nodes] == before
    assert not hasattr(star_graph.nodes[0], "x")


def test_custom_link_distance_spreads_layout(pair_graph):
    short = ForceSimulation(pair_graph.nodes, pair_graph.edges, config=ForceConfig(link_distance=30))
    long = ForceSimulation(pair_graph.nodes, pair_graph.edges, config=ForceConfig(link_distance=150))
    short.run_until_settled()
    long.run_until_settled()
    assert _distance(long, 1, 2) > _distance(short, 1, 2)
