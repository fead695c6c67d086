"""Channel-level statistics for a loaded Telegram export."""

from __future__ import annotations

from collections import Counter
from typing import Optional

import pandas as pd

from data_loader import messages_to_dataframe
from telegram_types import TelegramExport, TelegramMessage
from utils import parse_date


def compute_stats(export: TelegramExport, top_n_reactions: int = 6) -> dict:
    """
    Summary statistics for one exported chat.

    Service messages count only toward 'total_service_messages' and the
    date range.

    Args:
        export: Parsed export.
        top_n_reactions: Number of reaction emoji to report.

    Returns:
        Dict with keys: name, type, total_messages, total_service_messages,
        date_range_start, date_range_end, top_reactions (list of
        {'emoji', 'count'}), total_reactions, messages_with_links,
        messages_with_media, forwarded_messages, replied_messages.
    """
    df = messages_to_dataframe(export.messages)
    regular = df[df["type"] == "message"]

    reaction_totals: Counter = Counter()
    for message in export.messages:
        if message.type != "message":
            continue
        for reaction in message.reactions:
            reaction_totals[reaction.emoji] += reaction.count

    dates = sorted(m.date for m in export.messages if m.date)
    has_link = regular["text"].str.contains("http://", regex=False) | regular[
        "text"
    ].str.contains("https://", regex=False)

    return {
        "name": export.name,
        "type": export.type,
        "total_messages": int(len(regular)),
        "total_service_messages": int((df["type"] == "service").sum()),
        "date_range_start": dates[0] if dates else "",
        "date_range_end": dates[-1] if dates else "",
        "top_reactions": [
            {"emoji": emoji, "count": count}
            for emoji, count in reaction_totals.most_common(top_n_reactions)
        ],
        "total_reactions": int(sum(reaction_totals.values())),
        "messages_with_links": int(has_link.sum()),
        "messages_with_media": int(regular["has_media"].sum()),
        "forwarded_messages": int(regular["forwarded"].sum()),
        "replied_messages": int(regular["reply_to"].notna().sum()),
    }


def _month_key(message: TelegramMessage) -> Optional[str]:
    parsed = parse_date(message.date)
    if parsed is None:
        return None
    return f"{parsed.year}-{parsed.month:02d}"


def group_by_month(messages: list[TelegramMessage]) -> list[dict]:
    """
    Bucket messages by calendar month, oldest month first.

    Messages with unparseable dates are left out.

    Returns:
        List of dicts with 'key' ('YYYY-MM'), 'label' ('Month YYYY') and
        'messages' (in input order).
    """
    groups: dict[str, list[TelegramMessage]] = {}
    for message in messages:
        key = _month_key(message)
        if key is None:
            continue
        groups.setdefault(key, []).append(message)

    result: list[dict] = []
    for key in sorted(groups):
        label = pd.Timestamp(f"{key}-01").strftime("%B %Y")
        result.append({"key": key, "label": label, "messages": groups[key]})
    return result
