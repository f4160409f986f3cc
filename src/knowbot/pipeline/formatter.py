import html
import re
from collections.abc import Sequence

from knowbot.knowledge.types import SourceCitation

_TAG = re.compile(r"<[^>]+>")
_BULLETS = ("- ", "• ")
_READ_MORE_MARKER = '<div class="read-more"'


def _render_block(block: str) -> str:
    """Render one blank-line delimited block as paragraphs and bullet lists."""
    parts: list[str] = []
    paragraph: list[str] = []
    items: list[str] = []

    def flush_paragraph() -> None:
        if paragraph:
            parts.append(f"<p>{'<br>'.join(paragraph)}</p>")
            paragraph.clear()

    def flush_items() -> None:
        if items:
            parts.append("<ul>" + "".join(f"<li>{item}</li>" for item in items) + "</ul>")
            items.clear()

    for line in block.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith(_BULLETS):
            flush_paragraph()
            items.append(html.escape(stripped[2:].strip(), quote=False))
        else:
            flush_items()
            paragraph.append(html.escape(stripped, quote=False))

    flush_paragraph()
    flush_items()
    return "".join(parts)


def ensure_html(text: str) -> str:
    """Pass text containing markup through untouched, otherwise convert it to HTML."""
    if _TAG.search(text):
        return text
    blocks = re.split(r"\n\s*\n", text.strip())
    return "".join(_render_block(block) for block in blocks if block.strip())


def render_read_more(citations: Sequence[SourceCitation]) -> str:
    if not citations:
        return ""

    links = "".join(
        f"""
      <li style="margin-bottom: 8px;">
        <a href="{html.escape(citation.url)}" target="_blank" rel="noopener noreferrer" style="color: #2563eb; text-decoration: none; display: inline-flex; align-items: center; gap: 6px;">
          <span style="font-size: 14px;">🔗</span>
          <span style="font-size: 14px;">{html.escape(citation.title)}</span>
          <span style="font-size: 12px; color: #9ca3af;">↗</span>
        </a>
      </li>"""
        for citation in citations
    )
    return f"""
<div  style="margin-top: 20px; padding-top: 15px; border-top: 2px solid #e5e7eb;">
  <p style="font-weight: 600; color: #374151; margin-bottom: 10px;">📚 Read More:</p>
  <ul style="list-style: none; padding: 0; margin: 0;">{links}
  </ul>
</div>"""


def format_response(text: str, citations: Sequence[SourceCitation] = ()) -> str:
    """HTML answer followed by the Read More block, appended at most once."""
    answer = ensure_html(text)
    if _READ_MORE_MARKER in answer:
        return answer
    return answer + render_read_more(citations)
