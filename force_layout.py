"""Force-directed layout for the reply graph.

A small velocity-Verlet style simulation modelled on the d3-force stepper:

* a spring along every reply edge,
* an inverse-square repulsion between node pairs within ``charge_distance_max``,
* a centering pass that shifts the centroid toward the origin,
* collision avoidance sized to each node's radius plus a margin,
* a weak pull of every node toward ``x = 0`` and ``y = 0``.

Each :meth:`ForceSimulation.tick` cools ``alpha`` toward ``alpha_target`` and
scales every force by it, so the layout settles once alpha falls below
``alpha_min``.

Simulation state (positions, velocities, pins) lives in numpy arrays owned by
the simulation and keyed by node id.  Graph nodes are read for their id and
radius only; they are never written.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from reply_graph import GraphEdge, GraphNode

logger = logging.getLogger(__name__)

INITIAL_RADIUS = 10.0
INITIAL_ANGLE = math.pi * (3 - math.sqrt(5))

# Rows per block in the pairwise forces; bounds memory at BLOCK_SIZE * n floats.
BLOCK_SIZE = 256


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass
class ForceConfig:
    # Springs along edges
    link_distance: float = 60.0
    link_strength: float = 0.8

    # Pairwise repulsion
    charge_strength: float = -120.0
    charge_distance_min: float = 1.0
    charge_distance_max: float = 400.0

    # Centering
    center_x: float = 0.0
    center_y: float = 0.0
    center_strength: float = 0.05

    # Collision: node radius + padding
    collision_padding: float = 4.0
    collision_strength: float = 1.0

    # forceX / forceY toward the centre
    position_strength: float = 0.02

    # Cooling
    alpha: float = 1.0
    alpha_min: float = 0.001
    alpha_decay: float = 0.02
    velocity_decay: float = 0.4


@dataclass(frozen=True)
class NodeState:
    """Snapshot of one node's simulation state."""

    x: float
    y: float
    vx: float
    vy: float
    fx: Optional[float] = None
    fy: Optional[float] = None

    @property
    def pinned(self) -> bool:
        return self.fx is not None or self.fy is not None


# ---------------------------------------------------------------------------
# Simulation
# ---------------------------------------------------------------------------


class ForceSimulation:
    """
    Physics stepper over reply-graph nodes and edges.

    Args:
        nodes: Graph nodes; draw order is preserved in :attr:`node_ids`.
        edges: Reply edges.  Edges touching unknown ids and self-replies
            exert no spring force.
        config: Force parameters.
        seed: Seed for the jiggle that separates coincident points.
    """

    def __init__(
        self,
        nodes: list[GraphNode],
        edges: list[GraphEdge],
        config: Optional[ForceConfig] = None,
        seed: int = 42,
    ) -> None:
        self.config = config or ForceConfig()
        self._rng = np.random.default_rng(seed)

        self.node_ids: list[int] = [n.id for n in nodes]
        self._index = {node_id: i for i, node_id in enumerate(self.node_ids)}
        n = len(nodes)

        self._collide_radius = np.array(
            [node.radius + self.config.collision_padding for node in nodes], dtype=float
        )

        # Phyllotaxis spiral so the initial layout is deterministic and spread
        i = np.arange(n, dtype=float)
        radius = INITIAL_RADIUS * np.sqrt(0.5 + i)
        angle = i * INITIAL_ANGLE
        self._x = radius * np.cos(angle)
        self._y = radius * np.sin(angle)
        self._vx = np.zeros(n)
        self._vy = np.zeros(n)
        self._fx = np.full(n, np.nan)
        self._fy = np.full(n, np.nan)

        sources: list[int] = []
        targets: list[int] = []
        for edge in edges:
            s = self._index.get(edge.source)
            t = self._index.get(edge.target)
            if s is None or t is None or s == t:
                continue
            sources.append(s)
            targets.append(t)
        self._link_source = np.array(sources, dtype=int)
        self._link_target = np.array(targets, dtype=int)

        degree = np.bincount(
            np.concatenate([self._link_source, self._link_target]), minlength=n
        ).astype(float)
        if len(sources):
            s_deg = degree[self._link_source]
            self._link_bias = s_deg / (s_deg + degree[self._link_target])
        else:
            self._link_bias = np.zeros(0)

        self.alpha = self.config.alpha
        self.alpha_target = 0.0
        self._running = n > 0
        self.tick_count = 0

        logger.debug("Simulation created: %d nodes, %d springs", n, len(sources))

    def __len__(self) -> int:
        return len(self.node_ids)

    # ------------------------------------------------------------------
    # Stepper control
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    def restart(self) -> "ForceSimulation":
        self._running = len(self) > 0
        return self

    def stop(self) -> "ForceSimulation":
        self._running = False
        return self

    def set_alpha(self, value: float) -> "ForceSimulation":
        self.alpha = float(value)
        return self

    def set_alpha_target(self, value: float) -> "ForceSimulation":
        self.alpha_target = float(value)
        return self

    def step(self) -> bool:
        """
        Advance one animation frame.

        Returns:
            True while the simulation keeps running; False once alpha has
            cooled below ``alpha_min`` (the stepper stops itself).
        """
        if not self._running:
            return False
        self.tick()
        if self.alpha < self.config.alpha_min:
            self._running = False
            logger.debug("Simulation settled after %d ticks", self.tick_count)
        return self._running

    def run_until_settled(self, max_ticks: int = 1000) -> int:
        """
        Step until the simulation stops or *max_ticks* is reached.

        Returns:
            Number of ticks performed.
        """
        ticks = 0
        while ticks < max_ticks and self._running:
            self.step()
            ticks += 1
        return ticks

    def tick(self, iterations: int = 1) -> "ForceSimulation":
        """Apply forces and integrate *iterations* times, regardless of running state."""
        cfg = self.config
        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * cfg.alpha_decay
            if len(self):
                self._apply_link()
                self._apply_charge()
                self._apply_center()
                self._apply_collision()
                self._apply_position()
                self._integrate()
            self.tick_count += 1
        return self

    # ------------------------------------------------------------------
    # Forces
    # ------------------------------------------------------------------

    def _jiggle(self, size: int) -> np.ndarray:
        return (self._rng.random(size) - 0.5) * 1e-6

    def _apply_link(self) -> None:
        if not len(self._link_source):
            return
        cfg = self.config
        s, t = self._link_source, self._link_target

        dx = self._x[t] + self._vx[t] - self._x[s] - self._vx[s]
        dy = self._y[t] + self._vy[t] - self._y[s] - self._vy[s]
        for d in (dx, dy):
            zero = d == 0
            if zero.any():
                d[zero] = self._jiggle(int(zero.sum()))

        length = np.hypot(dx, dy)
        scale = (length - cfg.link_distance) / length * self.alpha * cfg.link_strength
        dx *= scale
        dy *= scale

        bias = self._link_bias
        np.subtract.at(self._vx, t, dx * bias)
        np.subtract.at(self._vy, t, dy * bias)
        np.add.at(self._vx, s, dx * (1 - bias))
        np.add.at(self._vy, s, dy * (1 - bias))

    def _apply_charge(self) -> None:
        cfg = self.config
        n = len(self)
        if n < 2:
            return
        dmin2 = cfg.charge_distance_min ** 2
        dmax2 = cfg.charge_distance_max ** 2
        x, y = self._x, self._y
        dvx = np.zeros(n)
        dvy = np.zeros(n)

        for start in range(0, n, BLOCK_SIZE):
            rows = np.arange(start, min(start + BLOCK_SIZE, n))
            dx = x[None, :] - x[rows, None]
            dy = y[None, :] - y[rows, None]
            not_self = np.ones_like(dx, dtype=bool)
            not_self[np.arange(len(rows)), rows] = False

            coincident = (dx == 0) & (dy == 0) & not_self
            if coincident.any():
                k = int(coincident.sum())
                dx[coincident] = self._jiggle(k)
                dy[coincident] = self._jiggle(k)

            l2 = dx * dx + dy * dy
            active = not_self & (l2 < dmax2)
            l2 = np.where(l2 < dmin2, np.sqrt(dmin2 * l2), l2)
            weight = np.zeros_like(l2)
            np.divide(cfg.charge_strength * self.alpha, l2, out=weight, where=active)

            dvx[rows] = (dx * weight).sum(axis=1)
            dvy[rows] = (dy * weight).sum(axis=1)

        self._vx += dvx
        self._vy += dvy

    def _apply_center(self) -> None:
        cfg = self.config
        shift_x = (self._x.mean() - cfg.center_x) * cfg.center_strength
        shift_y = (self._y.mean() - cfg.center_y) * cfg.center_strength
        self._x -= shift_x
        self._y -= shift_y

    def _apply_collision(self) -> None:
        cfg = self.config
        n = len(self)
        if n < 2:
            return
        r = self._collide_radius
        r2 = r * r
        px = self._x + self._vx
        py = self._y + self._vy
        cols = np.arange(n)
        dvx = np.zeros(n)
        dvy = np.zeros(n)

        for start in range(0, n, BLOCK_SIZE):
            rows = np.arange(start, min(start + BLOCK_SIZE, n))
            dx = px[rows, None] - px[None, :]
            dy = py[rows, None] - py[None, :]
            reach = r[rows, None] + r[None, :]
            upper = cols[None, :] > rows[:, None]

            coincident = (dx == 0) & (dy == 0) & upper
            if coincident.any():
                k = int(coincident.sum())
                dx[coincident] = self._jiggle(k)
                dy[coincident] = self._jiggle(k)

            l2 = dx * dx + dy * dy
            overlap = upper & (l2 < reach * reach)
            if not overlap.any():
                continue

            length = np.sqrt(l2)
            scale = np.zeros_like(l2)
            np.divide(
                (reach - length) * cfg.collision_strength, length, out=scale, where=overlap
            )
            mx = dx * scale
            my = dy * scale
            share = r2[None, :] / (r2[rows, None] + r2[None, :])

            dvx[rows] += (mx * share).sum(axis=1)
            dvy[rows] += (my * share).sum(axis=1)
            dvx -= (mx * (1 - share)).sum(axis=0)
            dvy -= (my * (1 - share)).sum(axis=0)

        self._vx += dvx
        self._vy += dvy

    def _apply_position(self) -> None:
        cfg = self.config
        k = cfg.position_strength * self.alpha
        self._vx += (cfg.center_x - self._x) * k
        self._vy += (cfg.center_y - self._y) * k

    def _integrate(self) -> None:
        keep = 1 - self.config.velocity_decay
        for pos, vel, fixed in ((self._x, self._vx, self._fx), (self._y, self._vy, self._fy)):
            pinned = ~np.isnan(fixed)
            free = ~pinned
            vel[free] *= keep
            pos[free] += vel[free]
            pos[pinned] = fixed[pinned]
            vel[pinned] = 0.0

    # ------------------------------------------------------------------
    # Node state access
    # ------------------------------------------------------------------

    def has_node(self, node_id: int) -> bool:
        return node_id in self._index

    def position(self, node_id: int) -> tuple[float, float]:
        i = self._index[node_id]
        return float(self._x[i]), float(self._y[i])

    def positions(self) -> dict[int, tuple[float, float]]:
        return {
            node_id: (float(self._x[i]), float(self._y[i]))
            for node_id, i in self._index.items()
        }

    def node_state(self, node_id: int) -> NodeState:
        i = self._index[node_id]
        fx, fy = self._fx[i], self._fy[i]
        return NodeState(
            x=float(self._x[i]),
            y=float(self._y[i]),
            vx=float(self._vx[i]),
            vy=float(self._vy[i]),
            fx=None if np.isnan(fx) else float(fx),
            fy=None if np.isnan(fy) else float(fy),
        )

    def pin(self, node_id: int, x: float, y: float) -> None:
        """Fix *node_id* at ``(x, y)``; forces no longer move it."""
        i = self._index[node_id]
        self._fx[i] = x
        self._fy[i] = y

    def release(self, node_id: int) -> None:
        i = self._index[node_id]
        self._fx[i] = np.nan
        self._fy[i] = np.nan

    def is_pinned(self, node_id: int) -> bool:
        i = self._index[node_id]
        return not (np.isnan(self._fx[i]) and np.isnan(self._fy[i]))
