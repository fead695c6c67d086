"""Tests for shared helpers and message records."""

from datetime import datetime

import pytest

from telegram_types import PHANTOM_TEXT, PlainText, RichText, TextSpan, make_phantom_message
from utils import EPOCH, clamp, parse_date, parse_date_or_epoch, reaction_radius, to_int, truncate_text


@pytest.mark.parametrize(
    "value, expected",
    [
        (5, 5), (5.0, 5), ("12", 12), (" 7 ", 7), ("-3", -3), (True, None), (2.5, None),
        ("x", None), (None, None), ("--5", None), ("²", None), ("1_000", None), ("", None),
    ],
)
def test_to_int(value, expected):
    assert to_int(value) == expected


def test_parse_date_formats():
    assert parse_date("2024-03-01T10:00:00") == datetime(2024, 3, 1, 10)
    assert parse_date("2024-03-01") == datetime(2024, 3, 1)
    assert parse_date("yesterday") is None
    assert parse_date("") is None
    assert parse_date_or_epoch("") == EPOCH


def test_reaction_radius_bounds():
    assert reaction_radius(0) == 6.0
    assert reaction_radius(16) == 12.0
    assert reaction_radius(10**6) == 20.0
    assert reaction_radius(-5) == 6.0


def test_clamp_and_truncate():
    assert clamp(7, 0, 5) == 5
    assert clamp(-1, 0, 5) == 0
    assert truncate_text("abcdef", 3) == "abc..."
    assert truncate_text("abc", 3) == "abc"


def test_message_text_variants_flatten():
    rich = RichText(("Read ", TextSpan(type="link", text="this", href="https://x"), "."))
    assert rich.flatten() == "Read this."
    assert PlainText("plain").flatten() == "plain"


def test_phantom_message():
    phantom = make_phantom_message(42)
    assert phantom.id == 42
    assert phantom.type == "message"
    assert phantom.text.flatten() == PHANTOM_TEXT
    assert parse_date_or_epoch(phantom.date) == EPOCH
    assert phantom.reaction_count == 0
