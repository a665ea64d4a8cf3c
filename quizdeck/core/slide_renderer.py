"""Markdown + LaTeX rendering of slides for the host preview and student pages.

Slides are turned into markdown first and rendered with markdown-it; MathJax
typesets the math when the page is displayed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import html

from markdown_it import MarkdownIt

from quizdeck.constants.about import APP_NAME
from quizdeck.core.models import (
    ChoiceSlide,
    ExampleSlide,
    ExternalActivitySlide,
    InfoSlide,
    OpenSlide,
    Slide,
)

_MATHJAX_SCRIPT = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"


def slide_to_markdown(slide: Slide) -> str:
    if isinstance(slide, InfoSlide):
        heading = f"## {slide.title}\n\n" if slide.title else ""
        return heading + slide.content
    if isinstance(slide, ChoiceSlide):
        lines = [slide.prompt, ""]
        lines.extend(f"- **{option.label or option.id.upper()}**: {option.content}" for option in slide.options)
        return "\n".join(lines)
    if isinstance(slide, ExampleSlide):
        steps = "\n".join(f"{number}. {step}" for number, step in enumerate(slide.steps, start=1))
        return f"{slide.prompt}\n\n{steps}" if steps else slide.prompt
    if isinstance(slide, (OpenSlide, ExternalActivitySlide)):
        return slide.prompt
    return ""


@dataclass(slots=True)
class SlideRenderer:
    """Converts slides (or raw markdown) into HTML fragments or full documents."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        sanitized = markdown_text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._markdown.render(sanitized)

    def render_slide(self, slide: Slide, title: str = APP_NAME) -> str:
        return self.wrap_with_mathjax(self.render_fragment(slide_to_markdown(slide)), title=title)

    def wrap_with_mathjax(self, body_html: str, title: str = APP_NAME) -> str:
        """Wrap a fragment inside a minimal HTML document that loads MathJax."""
        return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{html.escape(title)}</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      body {{ font-family: 'Segoe UI', system-ui, sans-serif; margin: 0; padding: 1rem; background: transparent; color: #f5f7ff; }}
      .slide-html {{ font-size: 1.1rem; line-height: 1.5; }}
    </style>
    <script>
      window.MathJax = {{ tex: {{ inlineMath: [['$','$']], displayMath: [['$$','$$']] }}, svg: {{ fontCache: 'global' }} }};
    </script>
    <script defer src="{_MATHJAX_SCRIPT}"></script>
  </head>
  <body>
    <div class="slide-html">{body_html}</div>
  </body>
</html>"""


renderer = SlideRenderer()
