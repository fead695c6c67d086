"""Reply chain metrics using NetworkX and pandas."""

from __future__ import annotations

import logging
from typing import Optional

import networkx as nx
import pandas as pd

from reply_graph import GraphNode, ReplyChain, ReplyGraphData
from utils import truncate_text

logger = logging.getLogger(__name__)

CHAIN_COLORS = [
    "#4dd0e1",  # teal
    "#f06292",  # pink
    "#ffb74d",  # orange
    "#81c784",  # green
    "#ba68c8",  # purple
    "#4fc3f7",  # light blue
    "#fff176",  # yellow
    "#e57373",  # red
    "#a1887f",  # brown
    "#90a4ae",  # blue-grey
]

PHANTOM_COLOR = "rgba(120,120,120,0.5)"


def get_chain_color(chain_id: int) -> str:
    """Palette colour for a 1-based chain id."""
    return CHAIN_COLORS[(chain_id - 1) % len(CHAIN_COLORS)]


# ---------------------------------------------------------------------------
# NetworkX view
# ---------------------------------------------------------------------------


def to_networkx(graph: ReplyGraphData) -> nx.DiGraph:
    """
    Convert the reply graph into a NetworkX DiGraph.

    Edges point from the replied-to message to the reply, as in the
    source graph.

    Args:
        graph: Output of `build_reply_graph`.

    Returns:
        DiGraph with node attributes 'chain_id', 'reaction_count',
        'is_forwarded_reply', 'radius' and 'text'.
    """
    G: nx.DiGraph = nx.DiGraph()
    for node in graph.nodes:
        G.add_node(
            node.id,
            chain_id=node.chain_id,
            reaction_count=node.reaction_count,
            is_forwarded_reply=node.is_forwarded_reply,
            radius=node.radius,
            text=node.text,
        )
    G.add_edges_from((e.source, e.target) for e in graph.edges)
    return G


# ---------------------------------------------------------------------------
# Chain list
# ---------------------------------------------------------------------------


def get_chain_summary(graph: ReplyGraphData) -> dict:
    """
    Headline numbers for the chain list panel.

    Returns:
        Dict with 'chains', 'longest', 'max_depth', 'avg_size',
        'self_replies' and 'cross_channel'.
    """
    chains = graph.chains
    return {
        "chains": len(chains),
        "longest": chains[0].size if chains else 0,
        "max_depth": max((c.depth for c in chains), default=0),
        "avg_size": round(len(graph.nodes) / len(chains), 1) if chains else 0.0,
        "self_replies": graph.self_reply_count,
        "cross_channel": graph.cross_channel_reply_count,
    }


def get_chain_members(chain: ReplyChain) -> list[GraphNode]:
    """Chain members in chronological order (phantoms first, at the epoch)."""
    return sorted(chain.nodes, key=lambda n: n.date)


def get_chain_table(graph: ReplyGraphData, preview_len: int = 80) -> pd.DataFrame:
    """
    One row per chain, in the graph's chain order (largest first).

    Args:
        graph: Output of `build_reply_graph`.
        preview_len: Max characters of root text shown.

    Returns:
        DataFrame with columns chain_id, messages, depth, reactions,
        root_id, root_text, first_message, last_message, color.
    """
    columns = [
        "chain_id", "messages", "depth", "reactions", "root_id",
        "root_text", "first_message", "last_message", "color",
    ]
    rows: list[dict] = []
    for chain in graph.chains:
        root = chain.root_node
        dated = [n.date for n in chain.nodes if not n.is_forwarded_reply]
        rows.append(
            {
                "chain_id": chain.id,
                "messages": chain.size,
                "depth": chain.depth,
                "reactions": chain.total_reactions,
                "root_id": chain.root_id,
                "root_text": truncate_text(root.text, preview_len) if root else "",
                "first_message": min(dated) if dated else None,
                "last_message": max(dated) if dated else None,
                "color": get_chain_color(chain.id),
            }
        )
    return pd.DataFrame(rows, columns=columns)


# ---------------------------------------------------------------------------
# Node metrics
# ---------------------------------------------------------------------------


def get_node_metrics(
    graph: ReplyGraphData,
    G: Optional[nx.DiGraph] = None,
) -> pd.DataFrame:
    """
    Per-node reply metrics.

    'replies' is the number of direct replies a message received,
    'depth' the hop distance from its chain root (None when unreachable
    from the root, which only happens in cyclic export data).

    Args:
        graph: Output of `build_reply_graph`.
        G: Optional pre-built DiGraph from `to_networkx`.

    Returns:
        DataFrame sorted by replies desc, then reactions desc.
    """
    if graph.is_empty:
        return pd.DataFrame()

    G = G if G is not None else to_networkx(graph)

    depth_from_root: dict[int, int] = {}
    for chain in graph.chains:
        depth_from_root.update(nx.single_source_shortest_path_length(G, chain.root_id))

    rows: list[dict] = []
    for node in graph.nodes:
        rows.append(
            {
                "message_id": node.id,
                "chain_id": node.chain_id,
                "replies": G.out_degree(node.id),
                "in_reply_to": G.in_degree(node.id),
                "depth": depth_from_root.get(node.id),
                "reactions": node.reaction_count,
                "external": node.is_forwarded_reply,
                "text": truncate_text(node.text, 60),
            }
        )

    return (
        pd.DataFrame(rows)
        .sort_values(["replies", "reactions"], ascending=[False, False])
        .reset_index(drop=True)
    )


def get_most_replied(graph: ReplyGraphData, n: int = 10) -> pd.DataFrame:
    """Top *n* messages by number of direct replies."""
    metrics = get_node_metrics(graph)
    if metrics.empty:
        return metrics
    return metrics.head(n).reset_index(drop=True)
