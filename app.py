"""
Telegram Reply Graph Explorer — Main Streamlit Application.

Run with:
    streamlit run app.py
"""

from __future__ import annotations

import json
import logging
import os
import sys
from typing import Optional

import streamlit as st

# Ensure project root is on the path when run from any working directory
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from canvas_controller import CanvasController, InteractionCallbacks
from chain_analysis import (
    get_chain_color,
    get_chain_members,
    get_chain_summary,
    get_chain_table,
    get_most_replied,
)
from channel_stats import compute_stats, group_by_month
from data_loader import load_telegram_export, parse_export
from force_layout import ForceConfig, ForceSimulation
from graph_view import (
    apply_chart_selection,
    empty_state_message,
    get_node_details,
    plot_reply_graph,
    selected_node_ids,
)
from reply_graph import ReplyGraphData, build_reply_graph
from telegram_types import TelegramExport, TelegramMessage, get_message_text
from utils import format_number, parse_date

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

CANVAS_WIDTH = 1000
CANVAS_HEIGHT = 640

# ---------------------------------------------------------------------------
# Page configuration
# ---------------------------------------------------------------------------

st.set_page_config(
    page_title="Telegram Reply Graph",
    page_icon="🕸",
    layout="wide",
    initial_sidebar_state="expanded",
)

st.markdown(
    """
<style>
    .metric-block {
        background: #1e1e2e;
        border: 1px solid #2a2a4a;
        border-radius: 12px;
        padding: 1.1rem 1rem;
        text-align: center;
    }
    .metric-block .val {
        font-size: 1.9rem;
        font-weight: 700;
        color: #4dd0e1;
    }
    .metric-block .lbl {
        font-size: .78rem;
        color: #94a3b8;
        margin-top: .3rem;
        text-transform: uppercase;
        letter-spacing: .05em;
    }
    .chain-dot {
        display: inline-block;
        width: 10px;
        height: 10px;
        border-radius: 50%;
        margin-right: 6px;
    }
</style>
""",
    unsafe_allow_html=True,
)


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


@st.cache_data(show_spinner=False, max_entries=3)
def _load_data(export_path: str) -> TelegramExport:
    """Cached data loader — invalidates when path changes."""
    return load_telegram_export(export_path)


@st.cache_data(show_spinner=False, max_entries=4)
def _build_graph(
    export_key: str, include_cross_channel: bool, _messages: list[TelegramMessage]
) -> ReplyGraphData:
    """Cached graph build — keyed by export and the cross-channel toggle."""
    return build_reply_graph(_messages, include_cross_channel)


def _metric(col, label: str, value: str) -> None:
    with col:
        st.markdown(
            f'<div class="metric-block"><div class="val">{value}</div>'
            f'<div class="lbl">{label}</div></div>',
            unsafe_allow_html=True,
        )


# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------


def build_sidebar() -> dict:
    """Render the sidebar and return a configuration dict."""
    sb = st.sidebar

    sb.title("🕸 Reply Graph")
    sb.caption("🔒 All processing happens locally — your data never leaves this machine.")
    sb.markdown("---")

    sb.subheader("Data Source")
    export_path = sb.text_input(
        "Export path",
        placeholder="e.g. C:/Users/you/Downloads/ChatExport/result.json",
        help="result.json from Telegram Desktop's 'Export chat history', or its folder.",
    )
    load_btn = sb.button("⬆ Load Data", type="primary", use_container_width=True)
    uploaded = sb.file_uploader("…or upload result.json", type=["json"])
    sb.markdown("---")

    sb.subheader("Graph")
    include_cross_channel = sb.checkbox(
        "Cross-channel replies",
        value=False,
        help="Show replies to messages missing from this export as grey external nodes.",
    )
    seed = int(sb.number_input("Layout seed", 0, 10_000, 42))
    link_distance = sb.slider("Link distance", 20, 200, 60)

    return {
        "export_path": export_path,
        "load_btn": load_btn,
        "uploaded": uploaded,
        "include_cross_channel": include_cross_channel,
        "seed": seed,
        "link_distance": link_distance,
    }


# ---------------------------------------------------------------------------
# Graph session state
# ---------------------------------------------------------------------------


def _on_view_post(message: TelegramMessage) -> None:
    st.session_state["post"] = message


def _get_controller(
    graph: ReplyGraphData,
    layout_key: tuple,
    config: ForceConfig,
    seed: int,
) -> CanvasController:
    """Build (or reuse) the settled simulation and its controller."""
    controller: Optional[CanvasController] = st.session_state.get("controller")
    if controller is not None and st.session_state.get("layout_key") == layout_key:
        return controller

    simulation = ForceSimulation(graph.nodes, graph.edges, config=config, seed=seed)
    simulation.run_until_settled()

    if controller is None:
        controller = CanvasController(
            graph,
            simulation,
            width=CANVAS_WIDTH,
            height=CANVAS_HEIGHT,
            callbacks=InteractionCallbacks(on_view_post=_on_view_post),
        )
    else:
        controller.set_graph(graph, simulation)

    st.session_state["controller"] = controller
    st.session_state["layout_key"] = layout_key
    st.session_state.pop("post", None)
    return controller


def sync_chart_selection(controller: CanvasController) -> None:
    """Apply a node picked on the chart since the last run."""
    chart_state = st.session_state.get("reply_graph") or {}
    points = list((chart_state.get("selection") or {}).get("points", []))
    picked = tuple(selected_node_ids(points))
    if picked == st.session_state.get("chart_selection", ()):
        return
    st.session_state["chart_selection"] = picked
    apply_chart_selection(controller, points)


# ---------------------------------------------------------------------------
# Panels
# ---------------------------------------------------------------------------


def show_header(export: TelegramExport, graph: ReplyGraphData) -> None:
    stats = compute_stats(export)
    summary = get_chain_summary(graph)

    st.header(stats["name"])
    st.caption(
        f"{stats['type']} · {stats['date_range_start'][:10]} → {stats['date_range_end'][:10]} · "
        f"{len(group_by_month(export.messages))} months"
    )

    c1, c2, c3, c4, c5, c6 = st.columns(6)
    _metric(c1, "Messages", format_number(stats["total_messages"]))
    _metric(c2, "Replies", format_number(stats["replied_messages"]))
    _metric(c3, "Chains", format_number(summary["chains"]))
    _metric(c4, "Longest", f"{summary['longest']:,}")
    _metric(c5, "Max Depth", f"{summary['max_depth']:,}")
    _metric(c6, "Avg Size", f"{summary['avg_size']}")

    st.caption(
        f"{summary['self_replies']:,} self-replies · "
        f"{summary['cross_channel']:,} cross-channel"
    )


def show_view_controls(controller: CanvasController) -> None:
    z1, z2, z3, _ = st.columns([1, 1, 1, 5])
    cx = controller.left + controller.width / 2
    cy = controller.top + controller.height / 2
    if z1.button("➕ Zoom in"):
        controller.wheel(cx, cy, -1)
    if z2.button("➖ Zoom out"):
        controller.wheel(cx, cy, 1)
    if z3.button("⤢ Reset"):
        controller.reset_view()


def show_chain_list(graph: ReplyGraphData, controller: CanvasController) -> None:
    st.subheader("Reply Chains")

    table = get_chain_table(graph)
    options: list[Optional[int]] = [None] + table["chain_id"].tolist()
    current = controller.selected_chain
    choice = st.selectbox(
        "Highlight chain",
        options,
        index=options.index(current) if current in options else 0,
        format_func=lambda cid: "All chains" if cid is None else (
            f"#{cid} · {graph.get_chain(cid).size} messages · depth {graph.get_chain(cid).depth}"
        ),
    )
    if choice != controller.selected_chain:
        # select_chain toggles, so re-selecting the active chain clears it
        controller.select_chain(choice if choice is not None else controller.selected_chain)

    st.dataframe(
        table.drop(columns=["color"]),
        use_container_width=True,
        hide_index=True,
        height=260,
    )

    if controller.selected_chain is not None:
        chain = graph.get_chain(controller.selected_chain)
        color = get_chain_color(chain.id)
        st.markdown(
            f'<span class="chain-dot" style="background:{color}"></span>'
            f"**Chain #{chain.id}** — root #{chain.root_id}",
            unsafe_allow_html=True,
        )
        members = get_chain_members(chain)
        picked = st.selectbox(
            "Member",
            [n.id for n in members],
            format_func=lambda nid: f"#{nid} · {graph.get_node(nid).text[:40] or '[media]'}",
        )
        if st.button("Show in graph"):
            controller.select_node(graph.get_node(picked))


def show_selected_node(graph: ReplyGraphData, controller: CanvasController) -> None:
    node = controller.selected
    if node is None:
        return

    st.subheader(f"Message #{node.id}")
    details = get_node_details(node, graph)
    st.markdown(details.pop("Content"))
    cols = st.columns(2)
    for i, (label, value) in enumerate(details.items()):
        cols[i % 2].metric(label, value)

    if not node.is_forwarded_reply and st.button("View Full Post", type="primary"):
        controller.view_full_post(node)

    if st.button("Clear selection"):
        controller.key_escape()


def show_post(message: TelegramMessage) -> None:
    with st.expander(f"Post #{message.id}", expanded=True):
        date = parse_date(message.date)
        st.caption(
            f"{message.from_ or 'Unknown'} · "
            f"{date.strftime('%Y-%m-%d %H:%M') if date else message.date}"
        )
        st.write(get_message_text(message) or "_[no text]_")
        if message.reactions:
            st.caption("  ".join(f"{r.emoji} {r.count}" for r in message.reactions))
        if message.has_media:
            st.caption(f"📎 {message.media_type or message.photo or message.file}")


# ---------------------------------------------------------------------------
# Welcome / landing page
# ---------------------------------------------------------------------------


def show_welcome() -> None:
    st.title("🕸 Telegram Reply Graph Explorer")
    st.markdown(
        """
Explore how the messages of a **Telegram** chat reply to one another — **100% locally**.

---

### Quick Start

1. In **Telegram Desktop**, open the chat → **⋮ → Export chat history**
2. Select **JSON** format and wait for the export to finish
3. Enter the path to `result.json` in the sidebar (or upload it)

---

### What you get

| Panel | Description |
|-------|-------------|
| **Reply Graph** | Force-directed layout of reply relationships, coloured by chain |
| **Reply Chains** | Connected conversations sorted by size, with root and depth |
| **Message Detail** | Reactions, media, chain membership, full post |

---
"""
    )
    st.info("Enter your export path in the sidebar to begin.")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    config = build_sidebar()

    # ── Load data ────────────────────────────────────────────────────────────
    if config["load_btn"]:
        path = config["export_path"].strip().strip('"').strip("'")
        if not path:
            st.sidebar.error("Please enter an export path.")
        else:
            with st.spinner("Loading Telegram export…"):
                try:
                    st.session_state["export"] = _load_data(path)
                    st.session_state["export_key"] = path
                    st.rerun()
                except FileNotFoundError as exc:
                    st.sidebar.error(str(exc))
                except ValueError as exc:
                    st.sidebar.error(str(exc))
            return

    uploaded = config["uploaded"]
    if uploaded is not None:
        upload_key = f"upload:{uploaded.name}:{uploaded.size}"
        if st.session_state.get("export_key") != upload_key:
            try:
                st.session_state["export"] = parse_export(json.load(uploaded))
                st.session_state["export_key"] = upload_key
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                st.sidebar.error(f"Could not parse {uploaded.name}: {exc}")
            except ValueError as exc:
                st.sidebar.error(str(exc))

    export: Optional[TelegramExport] = st.session_state.get("export")
    if export is None:
        show_welcome()
        return

    export_key: str = st.session_state["export_key"]
    include_cross_channel = config["include_cross_channel"]

    with st.spinner("Building reply graph…"):
        graph = _build_graph(export_key, include_cross_channel, export.messages)

    show_header(export, graph)
    st.markdown("---")

    if graph.is_empty:
        st.info(empty_state_message(include_cross_channel))
        return

    force_config = ForceConfig(link_distance=float(config["link_distance"]))
    layout_key = (export_key, include_cross_channel, config["seed"], config["link_distance"])
    with st.spinner("Laying out graph…"):
        controller = _get_controller(graph, layout_key, force_config, config["seed"])
    # cache_data hands out copies; keep node identity with the controller's graph
    graph = controller.graph
    sync_chart_selection(controller)

    col_graph, col_panel = st.columns([3, 1])

    with col_panel:
        show_chain_list(graph, controller)
        st.markdown("---")
        show_selected_node(graph, controller)

    with col_graph:
        show_view_controls(controller)
        fig = plot_reply_graph(
            graph,
            controller.simulation.positions(),
            controller=controller,
            include_cross_channel=include_cross_channel,
            height=CANVAS_HEIGHT,
        )
        st.plotly_chart(
            fig,
            use_container_width=False,
            key="reply_graph",
            on_select="rerun",
            selection_mode="points",
        )

        post: Optional[TelegramMessage] = st.session_state.get("post")
        if post is not None:
            show_post(post)

        with st.expander("Most replied-to messages", expanded=False):
            st.dataframe(get_most_replied(graph, n=15), use_container_width=True, hide_index=True)


if __name__ == "__main__":
    main()
