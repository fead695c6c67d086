"""Pointer interaction over the reply-graph canvas.

The controller owns the view transform (pan offset and zoom scale) and the
session's hover / selection / chain-filter state.  Screen coordinates are
relative to the page; the canvas occupies ``(left, top, width, height)`` and
world ``(0, 0)`` sits at its centre before any pan is applied.

While a node is dragged the controller is its only writer: the node is
pinned in the :class:`~force_layout.ForceSimulation`, which then treats it as
a fixed point.  Releasing the mouse removes the pin and physics resumes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from force_layout import ForceSimulation
from reply_graph import GraphEdge, GraphNode, ReplyGraphData
from telegram_types import TelegramMessage
from utils import clamp

logger = logging.getLogger(__name__)

HIT_TOLERANCE = 4.0
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0
ZOOM_IN_FACTOR = 1.08
ZOOM_OUT_FACTOR = 0.92
DRAG_ALPHA_TARGET = 0.3


@dataclass
class ViewTransform:
    x: float = 0.0
    y: float = 0.0
    k: float = 1.0


@dataclass
class InteractionCallbacks:
    """Optional hooks fired by :class:`CanvasController`."""

    on_hover: Optional[Callable[[Optional[GraphNode]], None]] = None
    on_select: Optional[Callable[[Optional[GraphNode]], None]] = None
    on_drag_start: Optional[Callable[[GraphNode], None]] = None
    on_drag_move: Optional[Callable[[GraphNode, float, float], None]] = None
    on_drag_end: Optional[Callable[[GraphNode], None]] = None
    on_pan: Optional[Callable[[ViewTransform], None]] = None
    on_zoom: Optional[Callable[[ViewTransform], None]] = None
    on_reset: Optional[Callable[[ViewTransform], None]] = None
    on_chain_select: Optional[Callable[[Optional[int]], None]] = None
    on_view_post: Optional[Callable[[TelegramMessage], None]] = None
    on_close: Optional[Callable[[], None]] = None


@dataclass
class _Gesture:
    node: Optional[GraphNode] = None
    panning: bool = False
    moved: bool = False
    last_x: float = 0.0
    last_y: float = 0.0


class CanvasController:
    def __init__(
        self,
        graph: ReplyGraphData,
        simulation: ForceSimulation,
        width: float,
        height: float,
        left: float = 0.0,
        top: float = 0.0,
        callbacks: Optional[InteractionCallbacks] = None,
    ) -> None:
        self.graph = graph
        self.simulation = simulation
        self.width = width
        self.height = height
        self.left = left
        self.top = top
        self.callbacks = callbacks or InteractionCallbacks()

        self.transform = ViewTransform()
        self.hovered: Optional[GraphNode] = None
        self.selected: Optional[GraphNode] = None
        self.selected_chain: Optional[int] = None
        self.cursor = "grab"
        self._gesture = _Gesture()
        self._suppress_click = False

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def set_graph(self, graph: ReplyGraphData, simulation: ForceSimulation) -> None:
        """Swap in a rebuilt graph; all interaction state is dropped."""
        if self._gesture.node is not None and self.simulation.has_node(self._gesture.node.id):
            self.simulation.release(self._gesture.node.id)
        self.graph = graph
        self.simulation = simulation
        self.hovered = None
        self.selected = None
        self.selected_chain = None
        self.cursor = "grab"
        self._gesture = _Gesture()
        self._suppress_click = False

    def resize(self, width: float, height: float, left: float = 0.0, top: float = 0.0) -> None:
        self.width = width
        self.height = height
        self.left = left
        self.top = top

    @property
    def dragging(self) -> Optional[GraphNode]:
        return self._gesture.node

    @property
    def panning(self) -> bool:
        return self._gesture.panning

    # ------------------------------------------------------------------
    # Coordinates
    # ------------------------------------------------------------------

    def screen_to_world(self, sx: float, sy: float) -> tuple[float, float]:
        t = self.transform
        cx = self.width / 2
        cy = self.height / 2
        return (
            (sx - self.left - cx - t.x) / t.k,
            (sy - self.top - cy - t.y) / t.k,
        )

    def world_to_screen(self, wx: float, wy: float) -> tuple[float, float]:
        t = self.transform
        return (
            wx * t.k + t.x + self.width / 2 + self.left,
            wy * t.k + t.y + self.height / 2 + self.top,
        )

    def find_node(self, wx: float, wy: float) -> Optional[GraphNode]:
        """
        Hit-test a world point against node circles.

        Nodes are scanned in reverse draw order so the visually topmost
        node wins when circles overlap.
        """
        for node in reversed(self.graph.nodes):
            if not self.simulation.has_node(node.id):
                continue
            x, y = self.simulation.position(node.id)
            dx = wx - x
            dy = wy - y
            reach = node.radius + HIT_TOLERANCE
            if dx * dx + dy * dy < reach * reach:
                return node
        return None

    def node_at(self, sx: float, sy: float) -> Optional[GraphNode]:
        return self.find_node(*self.screen_to_world(sx, sy))

    # ------------------------------------------------------------------
    # Mouse
    # ------------------------------------------------------------------

    def mouse_down(self, sx: float, sy: float) -> None:
        node = self.node_at(sx, sy)
        self._gesture = _Gesture(last_x=sx, last_y=sy)
        self._suppress_click = False
        if node is not None:
            self._gesture.node = node
            x, y = self.simulation.position(node.id)
            self.simulation.pin(node.id, x, y)
            self.simulation.set_alpha_target(DRAG_ALPHA_TARGET).restart()
            self._fire(self.callbacks.on_drag_start, node)
        else:
            self._gesture.panning = True

    def mouse_move(self, sx: float, sy: float) -> None:
        gesture = self._gesture
        if gesture.node is not None:
            wx, wy = self.screen_to_world(sx, sy)
            self.simulation.pin(gesture.node.id, wx, wy)
            gesture.moved = gesture.moved or (sx, sy) != (gesture.last_x, gesture.last_y)
            self._fire(self.callbacks.on_drag_move, gesture.node, wx, wy)
        elif gesture.panning:
            dx = sx - gesture.last_x
            dy = sy - gesture.last_y
            self.transform.x += dx
            self.transform.y += dy
            gesture.last_x = sx
            gesture.last_y = sy
            if dx or dy:
                gesture.moved = True
                self._fire(self.callbacks.on_pan, self.transform)
        else:
            node = self.node_at(sx, sy)
            self.cursor = "pointer" if node is not None else "grab"
            if node is not self.hovered:
                self.hovered = node
                self._fire(self.callbacks.on_hover, node)

    def mouse_up(self) -> None:
        gesture = self._gesture
        if gesture.node is not None:
            self.simulation.release(gesture.node.id)
            self.simulation.set_alpha_target(0.0)
            self._fire(self.callbacks.on_drag_end, gesture.node)
        self._suppress_click = gesture.moved
        self._gesture = _Gesture()

    mouse_leave = mouse_up

    def click(self, sx: float, sy: float) -> None:
        """Select the node under the cursor, or clear selection on empty space."""
        if self._suppress_click:
            self._suppress_click = False
            return
        node = self.node_at(sx, sy)
        if node is not None:
            self.select_node(node)
        else:
            self.clear_selection()

    def wheel(self, sx: float, sy: float, delta_y: float) -> None:
        """Zoom about the cursor; the world point under it stays put."""
        t = self.transform
        factor = ZOOM_OUT_FACTOR if delta_y > 0 else ZOOM_IN_FACTOR
        new_k = clamp(t.k * factor, MIN_ZOOM, MAX_ZOOM)

        mx = sx - self.left - self.width / 2
        my = sy - self.top - self.height / 2
        t.x = mx - (mx - t.x) * (new_k / t.k)
        t.y = my - (my - t.y) * (new_k / t.k)
        t.k = new_k
        self._fire(self.callbacks.on_zoom, t)

    def reset_view(self) -> None:
        self.transform = ViewTransform()
        self._fire(self.callbacks.on_reset, self.transform)

    def key_escape(self) -> None:
        if self.selected is not None:
            self.selected = None
            self._fire(self.callbacks.on_select, None)
        else:
            self._fire(self.callbacks.on_close)

    # ------------------------------------------------------------------
    # Side panel actions
    # ------------------------------------------------------------------

    def select_chain(self, chain_id: Optional[int]) -> None:
        """Toggle the chain filter; selecting the active chain clears it."""
        if chain_id is not None and self.graph.get_chain(chain_id) is None:
            logger.debug("Ignoring unknown chain id %s", chain_id)
            return
        self.selected_chain = None if chain_id == self.selected_chain else chain_id
        self._fire(self.callbacks.on_chain_select, self.selected_chain)

    def select_node(self, node: Optional[GraphNode]) -> None:
        self.selected = node
        self._fire(self.callbacks.on_select, node)

    def clear_selection(self) -> None:
        """Drop the selected node and the chain filter, as a click on empty space does."""
        self.selected = None
        if self.selected_chain is not None:
            self.selected_chain = None
            self._fire(self.callbacks.on_chain_select, None)
        self._fire(self.callbacks.on_select, None)

    def view_full_post(self, node: GraphNode) -> bool:
        """Hand *node*'s message to the host; phantom nodes have no post."""
        if node.is_forwarded_reply:
            return False
        self._fire(self.callbacks.on_view_post, node.message)
        return True

    # ------------------------------------------------------------------
    # Highlighting
    # ------------------------------------------------------------------

    def is_node_dimmed(self, node: GraphNode) -> bool:
        if self.selected_chain is not None:
            return node.chain_id != self.selected_chain
        if self.hovered is not None:
            return node.chain_id != self.hovered.chain_id
        return False

    def is_edge_highlighted(self, edge: GraphEdge) -> bool:
        source = self.graph.get_node(edge.source)
        if self.selected_chain is not None:
            return source is not None and source.chain_id == self.selected_chain
        if self.hovered is not None:
            return self.hovered.id in (edge.source, edge.target)
        return True

    def edge_alpha(self, edge: GraphEdge) -> float:
        highlighted = self.is_edge_highlighted(edge)
        if self.selected_chain is not None:
            return 0.7 if highlighted else 0.04
        if self.hovered is not None:
            return 0.7 if highlighted else 0.08
        return 0.25

    # ------------------------------------------------------------------

    @staticmethod
    def _fire(callback: Optional[Callable], *args) -> None:
        if callback is not None:
            callback(*args)
