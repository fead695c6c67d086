"""Plotly rendering of the laid-out reply graph."""

from __future__ import annotations

import logging
from typing import Optional

import plotly.graph_objects as go

from canvas_controller import CanvasController
from chain_analysis import PHANTOM_COLOR, get_chain_color
from reply_graph import GraphNode, ReplyGraphData
from utils import EPOCH, to_int

logger = logging.getLogger(__name__)

NO_CROSS_CHANNEL_MESSAGE = "No self-replies found. Try enabling cross-channel replies."
NO_RELATIONSHIPS_MESSAGE = "No reply relationships found"


def empty_state_message(include_cross_channel: bool) -> str:
    return NO_RELATIONSHIPS_MESSAGE if include_cross_channel else NO_CROSS_CHANNEL_MESSAGE


# ---------------------------------------------------------------------------
# Node details
# ---------------------------------------------------------------------------


def get_node_details(node: GraphNode, graph: ReplyGraphData) -> dict:
    """
    Fields shown in the selected-node panel.

    Date and time are omitted for phantom nodes, which carry the epoch.

    Returns:
        Dict of label → display value, in display order.
    """
    chain = graph.get_chain(node.chain_id)
    details: dict[str, str] = {
        "Content": node.text or ("[Media content]" if node.has_media else "[Empty message]"),
    }
    if node.date > EPOCH:
        details["Date"] = node.date.strftime("%b %d, %Y")
        details["Time"] = node.date.strftime("%H:%M:%S")
    details["Reactions"] = f"{node.reaction_count:,}"
    details["Has Media"] = "Yes" if node.has_media else "No"
    details["Chain"] = f"#{node.chain_id} ({chain.size if chain else 0} msgs)"
    details["Chain Depth"] = f"{chain.depth if chain else 0} levels"
    if node.is_forwarded_reply:
        details["Type"] = "External"
    if node.message.from_:
        details["From"] = node.message.from_
    return details


def _hover_text(node: GraphNode) -> str:
    lines = [f"<b>#{node.id}</b>{'  (external)' if node.is_forwarded_reply else ''}"]
    if node.text:
        lines.append(node.text[:80])
    if node.date > EPOCH:
        lines.append(node.date.strftime("%b %d, %Y %H:%M"))
    if node.reaction_count > 0:
        lines.append(f"{node.reaction_count:,} reactions")
    return "<br>".join(lines)


# ---------------------------------------------------------------------------
# Figure
# ---------------------------------------------------------------------------


def _empty_figure(message: str) -> go.Figure:
    fig = go.Figure()
    fig.add_annotation(
        text=message,
        xref="paper",
        yref="paper",
        x=0.5,
        y=0.5,
        showarrow=False,
        font=dict(size=14),
    )
    fig.update_layout(
        xaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
        yaxis=dict(showgrid=False, zeroline=False, showticklabels=False),
    )
    return fig


def plot_reply_graph(
    graph: ReplyGraphData,
    positions: dict[int, tuple[float, float]],
    controller: Optional[CanvasController] = None,
    include_cross_channel: bool = False,
    height: int = 640,
) -> go.Figure:
    """
    Render the reply graph as an interactive Plotly figure.

    Node size follows the node radius, colour follows the chain, phantom
    nodes are grey.  When a controller is given its chain filter, hover and
    selection dim unrelated nodes and edges, and its view transform sets
    the visible world window.

    Args:
        graph: Output of `build_reply_graph`.
        positions: Node id → world (x, y), e.g. `ForceSimulation.positions()`.
        controller: Optional interaction state.
        include_cross_channel: Chooses the empty-state wording.
        height: Figure height in pixels; a controller overrides it with its
            canvas size.

    Returns:
        Plotly Figure object.
    """
    if graph.is_empty:
        return _empty_figure(empty_state_message(include_cross_channel))

    # --- Edge traces (one per edge for per-chain colour and alpha) ---
    edge_traces: list[go.Scatter] = []
    for edge in graph.edges:
        if edge.source not in positions or edge.target not in positions:
            continue
        source, target = graph.resolve_edge(edge)
        x0, y0 = positions[edge.source]
        x1, y1 = positions[edge.target]
        highlighted = controller.is_edge_highlighted(edge) if controller else True
        alpha = controller.edge_alpha(edge) if controller else 0.25

        edge_traces.append(
            go.Scatter(
                x=[x0, x1, None],
                y=[y0, y1, None],
                mode="lines",
                line=dict(width=2 if highlighted else 1, color=get_chain_color(source.chain_id)),
                opacity=alpha,
                hoverinfo="skip",
                showlegend=False,
            )
        )

    # --- Node trace ---
    node_x: list[float] = []
    node_y: list[float] = []
    node_sizes: list[float] = []
    node_colors: list[str] = []
    node_opacity: list[float] = []
    node_line_width: list[float] = []
    node_hover: list[str] = []
    node_labels: list[str] = []
    node_ids: list[int] = []

    hovered = controller.hovered if controller else None
    selected = controller.selected if controller else None

    for node in graph.nodes:
        if node.id not in positions:
            continue
        x, y = positions[node.id]
        dimmed = controller.is_node_dimmed(node) if controller else False
        emphasised = node is hovered or node is selected

        node_x.append(x)
        node_y.append(y)
        node_ids.append(node.id)
        node_sizes.append(node.radius * 2)
        node_colors.append(PHANTOM_COLOR if node.is_forwarded_reply else get_chain_color(node.chain_id))
        node_opacity.append(0.1 if dimmed else 0.85)
        node_line_width.append(2 if emphasised else 1)
        node_hover.append(_hover_text(node))
        node_labels.append(str(node.id) if node.radius > 10 and not dimmed else "")

    node_trace = go.Scatter(
        x=node_x,
        y=node_y,
        mode="markers+text",
        hoverinfo="text",
        hovertext=node_hover,
        text=node_labels,
        customdata=node_ids,
        textposition="middle center",
        textfont=dict(size=9, color="rgba(255,255,255,0.9)"),
        marker=dict(
            size=node_sizes,
            sizemode="diameter",
            color=node_colors,
            opacity=node_opacity,
            line=dict(width=node_line_width, color="rgba(255,255,255,0.3)"),
        ),
        showlegend=False,
    )

    xaxis = dict(showgrid=False, zeroline=False, showticklabels=False)
    # world y grows downward, as on a canvas
    yaxis = dict(
        showgrid=False, zeroline=False, showticklabels=False,
        autorange="reversed", scaleanchor="x",
    )
    margin = dict(b=20, l=5, r=5, t=50)
    width = None
    if controller is not None:
        # plot area equals the controller canvas
        width = int(controller.width) + margin["l"] + margin["r"]
        height = int(controller.height) + margin["t"] + margin["b"]
        left_x, top_y = controller.screen_to_world(controller.left, controller.top)
        right_x, bottom_y = controller.screen_to_world(
            controller.left + controller.width, controller.top + controller.height
        )
        xaxis["range"] = [left_x, right_x]
        yaxis["range"] = [bottom_y, top_y]
        yaxis["autorange"] = False
        yaxis.pop("scaleanchor")

    fig = go.Figure(
        data=edge_traces + [node_trace],
        layout=go.Layout(
            title=dict(
                text=(
                    f"Reply Graph: {len(graph.nodes)} nodes · {len(graph.edges)} edges · "
                    f"{len(graph.chains)} chains"
                ),
                font=dict(size=16),
            ),
            showlegend=False,
            hovermode="closest",
            dragmode="pan",
            margin=margin,
            xaxis=xaxis,
            yaxis=yaxis,
            width=width,
            height=height,
            paper_bgcolor="rgba(0,0,0,0)",
            plot_bgcolor="rgba(0,0,0,0)",
        ),
    )

    return fig


# ---------------------------------------------------------------------------
# Chart selection
# ---------------------------------------------------------------------------


def selected_node_ids(points: list[dict]) -> list[int]:
    """
    Node ids of the points picked on the node trace.

    Edge traces carry no ``customdata``, so their points are skipped.
    """
    ids: list[int] = []
    for point in points:
        value = point.get("customdata")
        if isinstance(value, (list, tuple)):
            value = value[0] if value else None
        node_id = to_int(value)
        if node_id is not None:
            ids.append(node_id)
    return ids


def apply_chart_selection(controller: CanvasController, points: list[dict]) -> Optional[GraphNode]:
    """
    Route a chart selection to the controller.

    The first picked node that is in the controller's graph becomes the
    selection.  An empty selection clears it, as a click on empty space does.

    Returns:
        The selected node, or None when the selection was cleared.
    """
    for node_id in selected_node_ids(points):
        node = controller.graph.get_node(node_id)
        if node is not None:
            controller.select_node(node)
            return node
    controller.clear_selection()
    return None
