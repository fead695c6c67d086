"""Typed records for Telegram Desktop single-chat exports.

Telegram exports a message's ``text`` either as a plain string or as a list
mixing bare strings and styled spans (links, mentions, bold text, ...).
Both shapes are modelled here as a small tagged union so that callers never
need to type-check the raw field:

* :class:`PlainText` – the whole message as one string.
* :class:`RichText`  – an ordered sequence of strings and :class:`TextSpan`.

:func:`get_message_text` flattens either variant to display text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union


# ---------------------------------------------------------------------------
# Message text
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TextSpan:
    type: str
    text: str
    href: Optional[str] = None


@dataclass(frozen=True)
class PlainText:
    value: str = ""

    def flatten(self) -> str:
        return self.value


@dataclass(frozen=True)
class RichText:
    parts: tuple[Union[str, TextSpan], ...] = ()

    def flatten(self) -> str:
        return "".join(p if isinstance(p, str) else p.text for p in self.parts)


MessageText = Union[PlainText, RichText]


# ---------------------------------------------------------------------------
# Message
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Reaction:
    emoji: str
    count: int
    type: str = "emoji"


@dataclass(frozen=True)
class TelegramMessage:
    id: int
    type: str = "message"
    date: str = ""
    date_unixtime: str = ""
    text: MessageText = field(default_factory=PlainText)
    from_: Optional[str] = None
    from_id: Optional[str] = None
    reply_to_message_id: Optional[int] = None
    forwarded_from: Optional[str] = None
    edited: Optional[str] = None
    reactions: tuple[Reaction, ...] = ()
    photo: Optional[str] = None
    file: Optional[str] = None
    media_type: Optional[str] = None
    mime_type: Optional[str] = None

    @property
    def has_media(self) -> bool:
        return bool(self.photo or self.file or self.media_type)

    @property
    def reaction_count(self) -> int:
        return sum(r.count for r in self.reactions)


@dataclass
class TelegramExport:
    """One exported conversation (channel, group or DM)."""

    name: str
    type: str
    id: Optional[int]
    messages: list[TelegramMessage] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

PHANTOM_DATE = "1970-01-01T00:00:00"
PHANTOM_TEXT = "[External / missing message]"


def get_message_text(message: TelegramMessage) -> str:
    """Return the flat display text of *message*."""
    return message.text.flatten()


def make_phantom_message(message_id: int) -> TelegramMessage:
    """
    Synthesize a placeholder for a reply target missing from the export.

    Args:
        message_id: Identifier referenced by ``reply_to_message_id``.

    Returns:
        A ``message``-type record dated at the Unix epoch.
    """
    return TelegramMessage(
        id=message_id,
        type="message",
        date=PHANTOM_DATE,
        date_unixtime="0",
        text=PlainText(PHANTOM_TEXT),
    )
