"""Tests for chain metrics and the NetworkX view."""

from datetime import datetime

import pandas as pd
import pytest

from chain_analysis import (
    CHAIN_COLORS,
    get_chain_color,
    get_chain_members,
    get_chain_summary,
    get_chain_table,
    get_most_replied,
    get_node_metrics,
    to_networkx,
)
from reply_graph import build_reply_graph


@pytest.fixture()
def graph(mixed_messages):
    return build_reply_graph(mixed_messages, False)


def test_chain_color_cycles():
    assert get_chain_color(1) == CHAIN_COLORS[0]
    assert get_chain_color(len(CHAIN_COLORS) + 1) == CHAIN_COLORS[0]
    assert get_chain_color(2) != get_chain_color(1)


def test_to_networkx(graph):
    G = to_networkx(graph)
    assert G.number_of_nodes() == 6
    assert G.number_of_edges() == 4
    assert G.has_edge(1, 2)
    assert not G.has_edge(2, 1)
    assert G.nodes[1]["reaction_count"] == 16
    assert G.nodes[11]["chain_id"] == G.nodes[10]["chain_id"]


def test_chain_summary(graph):
    summary = get_chain_summary(graph)
    assert summary == {
        "chains": 2,
        "longest": 4,
        "max_depth": 2,
        "avg_size": 3.0,
        "self_replies": 4,
        "cross_channel": 1,
    }


def test_chain_summary_empty():
    summary = get_chain_summary(build_reply_graph([], False))
    assert summary["chains"] == 0
    assert summary["longest"] == 0
    assert summary["avg_size"] == 0.0


def test_chain_members_are_chronological(graph):
    chain = graph.chains[0]
    assert [n.id for n in get_chain_members(chain)] == [1, 2, 3, 4]


def test_chain_table(graph):
    table = get_chain_table(graph)
    assert list(table["messages"]) == [4, 2]
    first = table.iloc[0]
    assert first["depth"] == 2
    assert first["reactions"] == 16
    assert first["root_id"] == 1
    assert first["root_text"] == "root post"
    assert first["first_message"] == datetime(2024, 3, 1, 9, 0)
    assert first["last_message"] == datetime(2024, 3, 1, 9, 20)
    assert first["color"] == get_chain_color(first["chain_id"])


def test_chain_table_ignores_phantom_dates(mixed_messages):
    graph = build_reply_graph(mixed_messages, True)
    table = get_chain_table(graph)
    row = table[table["root_id"] == 999].iloc[0]
    assert row["first_message"] == datetime(2024, 4, 3, 8, 0)
    assert row["root_text"] == "[External message]"


def test_chain_table_empty():
    table = get_chain_table(build_reply_graph([], False))
    assert table.empty
    assert "chain_id" in table.columns


def test_node_metrics(graph):
    metrics = get_node_metrics(graph).set_index("message_id")
    assert metrics.loc[1, "replies"] == 2
    assert metrics.loc[2, "replies"] == 1
    assert metrics.loc[3, "replies"] == 0
    assert metrics.loc[3, "in_reply_to"] == 1
    assert metrics.loc[1, "depth"] == 0
    assert metrics.loc[3, "depth"] == 2
    assert metrics.loc[11, "depth"] == 1
    assert not metrics["external"].any()


def test_node_metrics_sorted_by_replies(graph):
    metrics = get_node_metrics(graph)
    assert metrics.iloc[0]["message_id"] == 1
    assert list(metrics["replies"]) == sorted(metrics["replies"], reverse=True)


def test_node_metrics_empty():
    assert get_node_metrics(build_reply_graph([], False)).empty


def test_most_replied(graph):
    top = get_most_replied(graph, n=1)
    assert len(top) == 1
    assert top.iloc[0]["message_id"] == 1
    assert isinstance(get_most_replied(build_reply_graph([], False)), pd.DataFrame)
