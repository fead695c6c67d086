"""Reply graph reconstruction for Telegram exports.

Messages that reply to one another form a directed graph whose edges point
from the replied-to message (``source``) to the reply (``target``).  The
graph is partitioned into *reply chains*: connected components of its
undirected version.  Each chain gets a root (a member nothing inside the
chain replies *from*) and a depth (longest root-to-leaf reply distance).

Only messages that take part in at least one reply relationship become
nodes.  A reply whose target is missing from the export is *cross-channel*;
when requested, its target is materialised as a phantom node.

Nodes and edges are plain id-keyed records.  Layout state (positions,
velocities, pins) is owned by :mod:`force_layout` and never stored here.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional

from telegram_types import TelegramMessage, get_message_text, make_phantom_message
from utils import EPOCH, parse_date_or_epoch, reaction_radius

logger = logging.getLogger(__name__)

MAX_NODE_TEXT_LENGTH = 120
MIN_RADIUS = 6.0
MAX_RADIUS = 20.0
EXTERNAL_NODE_TEXT = "[External message]"


# ---------------------------------------------------------------------------
# Graph records
# ---------------------------------------------------------------------------


@dataclass
class GraphNode:
    id: int
    message: TelegramMessage
    text: str
    date: datetime
    reaction_count: int
    has_media: bool
    is_forwarded_reply: bool
    radius: float
    chain_id: int = 0


@dataclass(frozen=True)
class GraphEdge:
    source: int
    target: int


@dataclass
class ReplyChain:
    id: int
    nodes: list[GraphNode]
    edges: list[GraphEdge]
    root_id: int
    depth: int

    @property
    def size(self) -> int:
        return len(self.nodes)

    @property
    def total_reactions(self) -> int:
        return sum(n.reaction_count for n in self.nodes)

    @property
    def root_node(self) -> Optional[GraphNode]:
        return next((n for n in self.nodes if n.id == self.root_id), None)


@dataclass
class ReplyGraphData:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)
    chains: list[ReplyChain] = field(default_factory=list)
    self_reply_count: int = 0
    cross_channel_reply_count: int = 0

    def __post_init__(self) -> None:
        self._node_map = {n.id: n for n in self.nodes}
        self._chain_map = {c.id: c for c in self.chains}

    @property
    def is_empty(self) -> bool:
        return not self.nodes

    def get_node(self, node_id: int) -> Optional[GraphNode]:
        return self._node_map.get(node_id)

    def get_chain(self, chain_id: int) -> Optional[ReplyChain]:
        return self._chain_map.get(chain_id)

    def resolve_edge(self, edge: GraphEdge) -> tuple[GraphNode, GraphNode]:
        """Return the (source, target) nodes of *edge*."""
        return self._node_map[edge.source], self._node_map[edge.target]


# ---------------------------------------------------------------------------
# Message index
# ---------------------------------------------------------------------------


def build_index(messages: Iterable[TelegramMessage]) -> dict[int, TelegramMessage]:
    """
    Map message id → message.

    Duplicate ids overwrite earlier entries (last write wins).
    """
    return {m.id: m for m in messages}


# ---------------------------------------------------------------------------
# Node construction
# ---------------------------------------------------------------------------


def _make_node(node_id: int, index: dict[int, TelegramMessage]) -> GraphNode:
    message = index.get(node_id)
    if message is None:
        return GraphNode(
            id=node_id,
            message=make_phantom_message(node_id),
            text=EXTERNAL_NODE_TEXT,
            date=EPOCH,
            reaction_count=0,
            has_media=False,
            is_forwarded_reply=True,
            radius=MIN_RADIUS,
        )

    reaction_count = message.reaction_count
    return GraphNode(
        id=node_id,
        message=message,
        text=get_message_text(message)[:MAX_NODE_TEXT_LENGTH],
        date=parse_date_or_epoch(message.date),
        reaction_count=reaction_count,
        has_media=message.has_media,
        is_forwarded_reply=False,
        radius=reaction_radius(reaction_count, MIN_RADIUS, MAX_RADIUS),
    )


# ---------------------------------------------------------------------------
# Chain discovery
# ---------------------------------------------------------------------------


def _discover_components(
    node_ids: list[int],
    adjacency: dict[int, list[int]],
) -> list[list[int]]:
    """BFS over the undirected graph; members are listed in visit order."""
    visited: set[int] = set()
    components: list[list[int]] = []

    for start in node_ids:
        if start in visited:
            continue
        visited.add(start)
        queue = deque([start])
        members: list[int] = []
        while queue:
            current = queue.popleft()
            members.append(current)
            for neighbour in adjacency[current]:
                if neighbour not in visited:
                    visited.add(neighbour)
                    queue.append(neighbour)
        components.append(members)

    return components


def _root_and_depth(members: list[int], chain_edges: list[GraphEdge]) -> tuple[int, int]:
    """
    Pick the chain root and measure the longest reply distance from it.

    The root is the first member without an incoming edge.  A chain where
    every member has one (a self-reply or a corrupted cycle) falls back to
    the first discovered member.
    """
    has_incoming = {e.target for e in chain_edges}
    root_id = next((m for m in members if m not in has_incoming), members[0])

    children: dict[int, list[int]] = {}
    for edge in chain_edges:
        children.setdefault(edge.source, []).append(edge.target)

    max_depth = 0
    seen = {root_id}
    queue = deque([(root_id, 0)])
    while queue:
        current, depth = queue.popleft()
        max_depth = max(max_depth, depth)
        for child in children.get(current, []):
            if child not in seen:
                seen.add(child)
                queue.append((child, depth + 1))

    return root_id, max_depth


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def build_reply_graph(
    messages: list[TelegramMessage],
    include_cross_channel: bool = False,
) -> ReplyGraphData:
    """
    Build the reply graph and its chain partition.

    Args:
        messages: Export messages.  Not modified.
        include_cross_channel: Materialise reply targets missing from the
            export as phantom nodes.  Cross-channel replies are counted
            either way.

    Returns:
        ReplyGraphData whose chains are sorted largest first.
    """
    index = build_index(messages)

    self_reply_count = 0
    cross_channel_reply_count = 0
    # dict keys keep registration order
    registered: dict[int, None] = {}
    edges: list[GraphEdge] = []

    for message in messages:
        if message.type != "message" or message.reply_to_message_id is None:
            continue
        target_id = message.reply_to_message_id

        if target_id in index:
            self_reply_count += 1
        else:
            cross_channel_reply_count += 1
            if not include_cross_channel:
                continue

        registered[message.id] = None
        registered[target_id] = None
        edges.append(GraphEdge(source=target_id, target=message.id))

    node_ids = list(registered)
    nodes = [_make_node(node_id, index) for node_id in node_ids]
    node_map = {n.id: n for n in nodes}

    adjacency: dict[int, list[int]] = {node_id: [] for node_id in node_ids}
    for edge in edges:
        adjacency[edge.source].append(edge.target)
        adjacency[edge.target].append(edge.source)

    components = _discover_components(node_ids, adjacency)

    for chain_id, members in enumerate(components, start=1):
        for member in members:
            node_map[member].chain_id = chain_id

    # Both endpoints of an edge share a component, so the source decides.
    edges_by_chain: dict[int, list[GraphEdge]] = {}
    for edge in edges:
        edges_by_chain.setdefault(node_map[edge.source].chain_id, []).append(edge)

    chains: list[ReplyChain] = []
    for chain_id, members in enumerate(components, start=1):
        chain_edges = edges_by_chain.get(chain_id, [])
        root_id, depth = _root_and_depth(members, chain_edges)
        chains.append(
            ReplyChain(
                id=chain_id,
                nodes=[node_map[m] for m in members],
                edges=chain_edges,
                root_id=root_id,
                depth=depth,
            )
        )

    chains.sort(key=lambda c: len(c.nodes), reverse=True)

    logger.info(
        f"Reply graph built: {len(nodes)} nodes, {len(edges)} edges, "
        f"{len(chains)} chains ({self_reply_count} self, "
        f"{cross_channel_reply_count} cross-channel)"
    )
    return ReplyGraphData(
        nodes=nodes,
        edges=edges,
        chains=chains,
        self_reply_count=self_reply_count,
        cross_channel_reply_count=cross_channel_reply_count,
    )
