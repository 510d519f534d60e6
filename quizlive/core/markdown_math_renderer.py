"""Markdown + LaTeX rendering helpers for question payloads.

The renderer converts question markup into HTML fragments and leaves ``$...$``
and ``$$...$$`` spans untouched so the browser can typeset them with MathJax.
Raw HTML in the source is escaped.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt

MATHJAX_SCRIPT_URL = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string into a block-level HTML fragment."""
        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_inline(self, markdown_text: str) -> str:
        """Render a short string (an answer option) without wrapping paragraphs."""
        return self._markdown.renderInline((markdown_text or "").strip())


# Shared by the API worker threads.
renderer = MarkdownMathRenderer()
