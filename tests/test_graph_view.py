"""Tests for node details and the Plotly figure."""

import pytest

from canvas_controller import CanvasController, ViewTransform
from force_layout import ForceSimulation
from graph_view import (
    NO_CROSS_CHANNEL_MESSAGE,
    NO_RELATIONSHIPS_MESSAGE,
    apply_chart_selection,
    empty_state_message,
    get_node_details,
    plot_reply_graph,
    selected_node_ids,
)
from reply_graph import build_reply_graph


@pytest.fixture()
def graph(mixed_messages):
    return build_reply_graph(mixed_messages, True)


def test_empty_state_wording():
    assert empty_state_message(False) == NO_CROSS_CHANNEL_MESSAGE
    assert empty_state_message(True) == NO_RELATIONSHIPS_MESSAGE


def test_node_details_for_message(graph):
    details = get_node_details(graph.get_node(1), graph)
    assert details["Content"] == "root post"
    assert details["Date"] == "Mar 01, 2024"
    assert details["Time"] == "09:00:00"
    assert details["Reactions"] == "16"
    assert details["Has Media"] == "No"
    assert details["Chain"] == "#1 (4 msgs)"
    assert details["Chain Depth"] == "2 levels"
    assert "Type" not in details


def test_node_details_for_media(graph):
    assert get_node_details(graph.get_node(4), graph)["Has Media"] == "Yes"


def test_node_details_for_phantom(graph):
    details = get_node_details(graph.get_node(999), graph)
    assert details["Content"] == "[External message]"
    assert details["Type"] == "External"
    assert "Date" not in details
    assert "Time" not in details


def test_empty_graph_figure():
    empty = build_reply_graph([], False)
    fig = plot_reply_graph(empty, {})
    assert fig.layout.annotations[0].text == NO_CROSS_CHANNEL_MESSAGE

    fig = plot_reply_graph(empty, {}, include_cross_channel=True)
    assert fig.layout.annotations[0].text == NO_RELATIONSHIPS_MESSAGE


def test_figure_has_edge_and_node_traces(graph):
    sim = ForceSimulation(graph.nodes, graph.edges)
    sim.tick(5)
    fig = plot_reply_graph(graph, sim.positions())

    assert len(fig.data) == len(graph.edges) + 1
    node_trace = fig.data[-1]
    assert list(node_trace.customdata) == [n.id for n in graph.nodes]
    assert list(node_trace.marker.size) == [n.radius * 2 for n in graph.nodes]
    assert fig.layout.yaxis.autorange == "reversed"


def test_figure_follows_controller_view(graph):
    sim = ForceSimulation(graph.nodes, graph.edges)
    controller = CanvasController(graph, sim, 800, 600)
    controller.transform = ViewTransform(x=0.0, y=0.0, k=2.0)
    fig = plot_reply_graph(graph, sim.positions(), controller=controller)

    assert tuple(fig.layout.xaxis.range) == pytest.approx((-200.0, 200.0))
    assert tuple(fig.layout.yaxis.range) == pytest.approx((150.0, -150.0))


def test_chain_filter_dims_other_nodes(graph):
    sim = ForceSimulation(graph.nodes, graph.edges)
    controller = CanvasController(graph, sim, 800, 600)
    controller.select_chain(graph.get_node(1).chain_id)
    fig = plot_reply_graph(graph, sim.positions(), controller=controller)

    opacity = dict(zip(fig.data[-1].customdata, fig.data[-1].marker.opacity))
    assert opacity[1] == 0.85
    assert opacity[10] == 0.1


def test_figure_plot_area_matches_controller_canvas(graph):
    sim = ForceSimulation(graph.nodes, graph.edges)
    controller = CanvasController(graph, sim, 800, 600)
    layout = plot_reply_graph(graph, sim.positions(), controller=controller).layout

    assert layout.width - layout.margin.l - layout.margin.r == 800
    assert layout.height - layout.margin.t - layout.margin.b == 600


# ---------------------------------------------------------------------------
# Chart selection
# ---------------------------------------------------------------------------


@pytest.fixture()
def controller(graph):
    return CanvasController(graph, ForceSimulation(graph.nodes, graph.edges), 800, 600)


def test_selected_node_ids_skips_edge_points():
    points = [
        {"curve_number": 0, "point_index": 1},
        {"curve_number": 9, "point_index": 0, "customdata": 11},
        {"curve_number": 9, "point_index": 2, "customdata": [4]},
    ]
    assert selected_node_ids(points) == [11, 4]


def test_chart_click_selects_node(graph, controller):
    node = apply_chart_selection(controller, [{"customdata": 3}])
    assert node is graph.get_node(3)
    assert controller.selected is node


def test_chart_selection_ignores_unknown_ids(graph, controller):
    node = apply_chart_selection(controller, [{"customdata": 4242}, {"customdata": 10}])
    assert node is graph.get_node(10)


def test_empty_chart_selection_clears(graph, controller):
    controller.select_node(graph.get_node(1))
    controller.select_chain(graph.get_node(1).chain_id)

    assert apply_chart_selection(controller, []) is None
    assert controller.selected is None
    assert controller.selected_chain is None
