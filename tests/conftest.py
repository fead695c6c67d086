"""Shared test fixtures for reply graph tests."""

import json

import pytest

from telegram_types import PlainText, Reaction, TelegramMessage


def _make_message(
    message_id,
    reply_to=None,
    text="",
    reactions=(),
    date="2024-03-01T10:00:00",
    **kwargs,
):
    return TelegramMessage(
        id=message_id,
        date=date,
        text=PlainText(text),
        reply_to_message_id=reply_to,
        reactions=tuple(Reaction(emoji=e, count=c) for e, c in reactions),
        **kwargs,
    )


@pytest.fixture()
def make_message():
    """Factory: make_message(id, reply_to=None, text='', reactions=((emoji, n),), ...)."""
    return _make_message


@pytest.fixture()
def mixed_messages():
    """
    A small channel with two chains, a dangling reply and noise.

    Chain A: 1 ← 2 ← 3, 1 ← 4   (root 1, depth 2)
    Chain B: 10 ← 11            (root 10, depth 1)
    20 replies to missing 999; 30 is never replied to; 40 is a service
    message carrying a reply id.
    """
    return [
        _make_message(1, text="root post", reactions=(("👍", 9), ("🔥", 7)), date="2024-03-01T09:00:00"),
        _make_message(2, reply_to=1, text="first reply", date="2024-03-01T09:05:00"),
        _make_message(3, reply_to=2, text="reply to reply", date="2024-03-01T09:10:00"),
        _make_message(4, reply_to=1, text="second reply", photo="photos/p.jpg", date="2024-03-01T09:20:00"),
        _make_message(10, text="another topic", date="2024-04-02T12:00:00"),
        _make_message(11, reply_to=10, text="answer", date="2024-04-02T12:30:00"),
        _make_message(20, reply_to=999, text="reply to elsewhere", date="2024-04-03T08:00:00"),
        _make_message(30, text="standalone", date="2024-04-04T08:00:00"),
        _make_message(40, reply_to=1, type="service", date="2024-04-05T08:00:00"),
    ]


@pytest.fixture()
def export_dict():
    """Raw single-chat export as Telegram Desktop writes it."""
    return {
        "name": "Test Channel",
        "type": "public_channel",
        "id": 123456,
        "messages": [
            {
                "id": 1,
                "type": "message",
                "date": "2024-01-15T10:00:00",
                "date_unixtime": "1705312800",
                "from": "Alice",
                "from_id": "channel123456",
                "text": "Hello https://example.com",
                "text_entities": [],
                "reactions": [
                    {"type": "emoji", "count": 5, "emoji": "👍"},
                    {"type": "emoji", "count": 2, "emoji": "❤"},
                ],
            },
            {
                "id": 2,
                "type": "message",
                "date": "2024-01-15T11:00:00",
                "date_unixtime": "1705316400",
                "from": "Bob",
                "reply_to_message_id": 1,
                "text": ["Look at ", {"type": "bold", "text": "this"}, "!"],
                "text_entities": [],
                "photo": "photos/photo_1.jpg",
            },
            {
                "id": 3,
                "type": "service",
                "date": "2024-02-01T09:00:00",
                "date_unixtime": "1706778000",
                "actor": "Alice",
                "action": "pin_message",
                "text": "",
                "text_entities": [],
            },
            {
                "id": 4,
                "type": "message",
                "date": "2024-02-03T09:00:00",
                "date_unixtime": "1706950800",
                "from": "Carol",
                "reply_to_message_id": 77,
                "forwarded_from": "Other Channel",
                "text": "cross-channel reply",
                "text_entities": [],
            },
            {"type": "message", "date": "2024-02-04T09:00:00", "text": "no id"},
        ],
    }


@pytest.fixture()
def export_file(tmp_path, export_dict):
    """export_dict written to <tmp>/ChatExport/result.json."""
    export_dir = tmp_path / "ChatExport"
    export_dir.mkdir()
    path = export_dir / "result.json"
    path.write_text(json.dumps(export_dict, ensure_ascii=False), encoding="utf-8")
    return path
