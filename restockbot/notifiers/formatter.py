"""Telegram MarkdownV2 notification formatter.

Telegram MarkdownV2 requires a backslash before each of these characters in
ordinary text::

    _ * [ ] ( ) ~ ` > # + - = | { } . !

Inside the ``(url)`` part of a ``[text](url)`` link only ``)`` and ``\\``
need escaping.

Reference: https://core.telegram.org/bots/api#markdownv2-style
"""

from __future__ import annotations

import re

__all__ = [
    "escape_mdv2",
    "escape_url",
    "format_notification",
]

_MDV2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")
_URL_SPECIAL = re.compile(r"([)\\])")


def escape_mdv2(text: str) -> str:
    """Escape *text* for the body of a MarkdownV2 message.

    Examples:
        >>> escape_mdv2("Added to cart!")
        'Added to cart\\\\!'
    """
    return _MDV2_SPECIAL.sub(r"\\\1", text)


def escape_url(url: str) -> str:
    """Escape *url* for the ``(url)`` part of a MarkdownV2 link."""
    return _URL_SPECIAL.sub(r"\\\1", url)


def format_notification(title: str, message: str, url: str | None = None) -> str:
    """Build a MarkdownV2 message: bold title, body line, optional page link.

    Args:
        title: Short headline, e.g. ``"Added to Cart!"``.
        message: One-sentence body.
        url: Product or checkout page to link to.

    Returns:
        Ready-to-send MarkdownV2 text.
    """
    lines = [f"*{escape_mdv2(title)}*", escape_mdv2(message)]
    if url:
        lines.append(f"[Open page]({escape_url(url)})")
    return "\n".join(lines)
