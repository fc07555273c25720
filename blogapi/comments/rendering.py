"""Comment content rendering.

The service stores both the raw content and its rendered HTML. Markdown
conversion itself belongs to the rendering service; here content is only
made safe to embed:

- Plain text: every HTML character is escaped
- Markdown: escaped, then basic formatting tags are re-enabled and the
  result is wrapped in a ``markdown`` container for the client renderer
"""

import html
from abc import ABC, abstractmethod


# Allowed HTML tags (basic formatting only)
ALLOWED_TAGS = ("b", "i", "em", "strong", "code", "pre")


def sanitize_content(content: str) -> str:
    """Sanitize comment content to prevent XSS.

    - Escapes HTML entities
    - Allows only safe formatting tags, without attributes
    """
    escaped = html.escape(content)

    for tag in ALLOWED_TAGS:
        escaped = escaped.replace(f"&lt;{tag}&gt;", f"<{tag}>")
        escaped = escaped.replace(f"&lt;/{tag}&gt;", f"</{tag}>")

    return escaped


class ContentRenderer(ABC):
    """Turns raw comment content into the HTML stored with the comment."""

    @abstractmethod
    def render(self, content: str, markdown_enabled: bool) -> str:
        """Return the HTML for ``content``."""


class HtmlContentRenderer(ContentRenderer):
    def render(self, content: str, markdown_enabled: bool) -> str:
        if not markdown_enabled:
            return html.escape(content)
        return f'<div class="markdown">{sanitize_content(content)}</div>'
