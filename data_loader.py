"""Data loader for Telegram exported JSON data.

Reads the single-chat export produced by Telegram Desktop
(*Export chat history* → JSON).  The file is a ``result.json`` holding the
chat ``name``, ``type``, ``id`` and a flat ``messages`` list.

The loader is the only place where export data is validated; everything
downstream works on the typed records from :mod:`telegram_types` and never
raises on missing optional fields.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

import pandas as pd

from telegram_types import (
    PlainText,
    Reaction,
    RichText,
    TelegramExport,
    TelegramMessage,
    TextSpan,
    get_message_text,
)
from utils import clean_username, parse_date, to_int

logger = logging.getLogger(__name__)

MEDIA_FIELDS = ("photo", "file", "media_type", "mime_type")


# ---------------------------------------------------------------------------
# Low-level JSON loading
# ---------------------------------------------------------------------------


def _read_json(path: str) -> dict | list:
    """Read and return parsed JSON from *path*."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except UnicodeDecodeError:
        logger.warning("UTF-8 decode failed for %s; retrying as latin-1", path)
        with open(path, "r", encoding="latin-1") as fh:
            return json.load(fh)


def _resolve_export_file(export_path: str) -> str:
    """Return the JSON file for *export_path* (a file or an export directory)."""
    if os.path.isdir(export_path):
        candidate = os.path.join(export_path, "result.json")
        if not os.path.isfile(candidate):
            raise FileNotFoundError(
                f"No result.json found in: {export_path}\n"
                "Make sure you exported the chat history in JSON format (not HTML)."
            )
        return candidate
    if not os.path.isfile(export_path):
        raise FileNotFoundError(
            f"Export not found: {export_path}\n"
            "Please enter the path to result.json or to its export folder."
        )
    return export_path


# ---------------------------------------------------------------------------
# Field parsing
# ---------------------------------------------------------------------------


def parse_message_text(text_field) -> PlainText | RichText:
    """
    Convert the raw ``text`` field into a :data:`MessageText` variant.

    Telegram exports text as either a plain string or a list of mixed
    strings and dicts (for styled text, mentions, links, etc.).

    Args:
        text_field: Raw text field from Telegram JSON.

    Returns:
        PlainText for strings, RichText for span lists, empty PlainText otherwise.
    """
    if isinstance(text_field, str):
        return PlainText(text_field)
    if isinstance(text_field, list):
        parts: list[str | TextSpan] = []
        for item in text_field:
            if isinstance(item, str):
                parts.append(item)
            elif isinstance(item, dict):
                parts.append(
                    TextSpan(
                        type=str(item.get("type", "plain")),
                        text=str(item.get("text", "")),
                        href=item.get("href"),
                    )
                )
        return RichText(tuple(parts))
    return PlainText("")


def _parse_reactions(raw_reactions) -> tuple[Reaction, ...]:
    if not isinstance(raw_reactions, list):
        return ()
    reactions: list[Reaction] = []
    for raw in raw_reactions:
        if not isinstance(raw, dict):
            continue
        count = to_int(raw.get("count"))
        if count is None:
            continue
        reactions.append(
            Reaction(
                emoji=str(raw.get("emoji") or raw.get("document_id") or ""),
                count=count,
                type=str(raw.get("type", "emoji")),
            )
        )
    return tuple(reactions)


def _optional_str(value) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def parse_message(raw: dict) -> Optional[TelegramMessage]:
    """
    Convert a single raw message dict into a :class:`TelegramMessage`.

    Returns None for entries without an integer ``id``.  A non-integer
    ``reply_to_message_id`` is treated as absent.
    """
    if not isinstance(raw, dict):
        return None

    message_id = to_int(raw.get("id"))
    if message_id is None:
        logger.debug("Skipping record without an integer id: %r", raw.get("id"))
        return None

    sender = raw.get("from") or raw.get("actor")

    return TelegramMessage(
        id=message_id,
        type=str(raw.get("type") or "message"),
        date=str(raw.get("date") or ""),
        date_unixtime=str(raw.get("date_unixtime") or ""),
        text=parse_message_text(raw.get("text", "")),
        from_=clean_username(sender) if sender else None,
        from_id=_optional_str(raw.get("from_id") or raw.get("actor_id")),
        reply_to_message_id=to_int(raw.get("reply_to_message_id")),
        forwarded_from=_optional_str(raw.get("forwarded_from")),
        edited=_optional_str(raw.get("edited")),
        reactions=_parse_reactions(raw.get("reactions")),
        **{name: _optional_str(raw.get(name)) for name in MEDIA_FIELDS},
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_export(data: dict) -> TelegramExport:
    """
    Build a :class:`TelegramExport` from decoded export JSON.

    Args:
        data: Parsed ``result.json`` content.

    Returns:
        The export with every parseable message, in file order.

    Raises:
        ValueError: If *data* is not a single-chat export.
    """
    if not isinstance(data, dict) or not isinstance(data.get("messages"), list):
        raise ValueError(
            "Not a single-chat Telegram export: expected a JSON object with a "
            "'messages' list. Export one chat via 'Export chat history'."
        )

    messages: list[TelegramMessage] = []
    skipped = 0
    for raw in data["messages"]:
        message = parse_message(raw)
        if message is None:
            skipped += 1
            continue
        messages.append(message)

    if skipped:
        logger.warning("Skipped %d malformed message records.", skipped)

    export = TelegramExport(
        name=str(data.get("name") or f"Chat {data.get('id', '?')}"),
        type=str(data.get("type", "unknown")),
        id=to_int(data.get("id")),
        messages=messages,
    )
    logger.info("Parsed %d messages from '%s'.", len(messages), export.name)
    return export


def load_telegram_export(export_path: str) -> TelegramExport:
    """
    Load a Telegram single-chat export from *export_path*.

    Args:
        export_path: Path to ``result.json`` or to the export directory.

    Returns:
        The parsed export.

    Raises:
        FileNotFoundError: If the path does not exist or holds no result.json.
        ValueError: If the file is not valid JSON or not a chat export.
    """
    # Strip accidental surrounding quotes (common copy-paste artifact)
    export_path = export_path.strip().strip('"').strip("'")

    json_path = _resolve_export_file(export_path)
    try:
        data = _read_json(json_path)
    except json.JSONDecodeError as exc:
        logger.warning("JSON decode error in %s: %s", json_path, exc)
        raise ValueError(f"Could not parse {json_path}: {exc}") from exc

    return parse_export(data)


def messages_to_dataframe(messages: list[TelegramMessage]) -> pd.DataFrame:
    """
    Flatten messages into a DataFrame, one row per message.

    Args:
        messages: Parsed messages.

    Returns:
        DataFrame with columns id, type, date, sender, text, reply_to,
        reaction_count, has_media, forwarded. ``date`` is NaT when unparseable.
    """
    columns = [
        "id", "type", "date", "sender", "text", "reply_to",
        "reaction_count", "has_media", "forwarded",
    ]
    rows = [
        {
            "id": m.id,
            "type": m.type,
            "date": parse_date(m.date),
            "sender": m.from_ or "",
            "text": get_message_text(m),
            "reply_to": m.reply_to_message_id,
            "reaction_count": m.reaction_count,
            "has_media": m.has_media,
            "forwarded": bool(m.forwarded_from),
        }
        for m in messages
    ]
    df = pd.DataFrame(rows, columns=columns)
    df["date"] = pd.to_datetime(df["date"])
    df["reply_to"] = df["reply_to"].astype("Int64")
    return df
