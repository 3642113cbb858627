"""Plain-text rendering of a conversation timeline."""

import re
from typing import List, Optional, Tuple

from storefront_assistant.client.models import Message, ProductStub
from storefront_assistant.utils.config import settings
from storefront_assistant.utils.helpers import format_price

LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")

THINKING_INDICATOR = "… gondolkodom"


def product_path(slug: str) -> str:
    return f"{settings.product_path_prefix.rstrip('/')}/{slug}"


def split_links(content: str) -> List[Tuple[str, Optional[str]]]:
    """Split markdown links out of ``content``.

    Returns ``(text, href)`` segments in order; plain text has ``href=None``.
    """
    parts: List[Tuple[str, Optional[str]]] = []
    last_index = 0
    for match in LINK_PATTERN.finditer(content):
        if match.start() > last_index:
            parts.append((content[last_index:match.start()], None))
        parts.append((match.group(1), match.group(2)))
        last_index = match.end()
    if last_index < len(content):
        parts.append((content[last_index:], None))
    return parts


def render_content(content: str) -> str:
    """Render links as ``label <href>`` for a terminal."""
    return "".join(
        f"{text} <{href}>" if href is not None else text
        for text, href in split_links(content)
    )


def render_product_card(product: ProductStub) -> str:
    return f"  ▸ {product.name} | {format_price(product.price)} | {product_path(product.slug)}"


def render_message(message: Message) -> str:
    speaker = "Te" if message.role == "user" else "AI"
    lines = [f"{speaker}: {render_content(message.content)}"]
    for product in message.products or []:
        lines.append(render_product_card(product))
    for index, suggestion in enumerate(message.suggestions or [], start=1):
        lines.append(f"  [{index}] {suggestion}")
    return "\n".join(lines)


class TextRenderer:
    """Session listener that keeps a plain-text transcript of the widget."""

    def __init__(self):
        self.frames: List[str] = []
        self.scroll_count = 0
        self.focus_count = 0

    def __call__(self, event: str, session) -> None:
        if event == "render":
            self.frames.append(self.render(session))
        elif event == "scroll":
            self.scroll_count += 1
        elif event == "focus":
            self.focus_count += 1

    @staticmethod
    def render(session) -> str:
        blocks = [render_message(message) for message in session.messages]
        if session.pending == "ask":
            blocks.append(f"AI: {THINKING_INDICATOR}")
        if session.error:
            blocks.append(f"! {session.error}")
        return "\n".join(blocks)

    @property
    def last_frame(self) -> str:
        return self.frames[-1] if self.frames else ""
