"""
Best-effort, line-oriented conversion between Markdown and Confluence HTML.

Only headings, emphasis, bullet lists and paragraphs are mapped. Everything
else is passed through (Markdown to HTML) or stripped (HTML to Markdown).
"""

import re

from content_pipeline.models import TargetFormat

_MD_HEADING = re.compile(r"^(#{1,6})\s+(.+)$")
_MD_LIST_ITEM = re.compile(r"^[-*+]\s+(.+)$")
_MD_BOLD = re.compile(r"\*\*([^*\n]+)\*\*")
_MD_ITALIC = re.compile(r"(?<!\*)\*([^*\n]+)\*(?!\*)")
_HTML_BLOCK_LINE = re.compile(
    r"^</?(?:h[1-6]|ul|ol|li|p|table|thead|tbody|tr|td|th|div|pre|blockquote)\b",
    re.IGNORECASE,
)

_HTML_HEADINGS = [
    (level, re.compile(rf"<h{level}\b[^>]*>(.*?)</h{level}>", re.IGNORECASE | re.DOTALL))
    for level in range(1, 7)
]
_HTML_STRONG = re.compile(r"<(strong|b)\b[^>]*>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_HTML_EM = re.compile(r"<(em|i)\b[^>]*>(.*?)</\1>", re.IGNORECASE | re.DOTALL)
_HTML_LIST_ITEM = re.compile(r"<li\b[^>]*>(.*?)</li>", re.IGNORECASE | re.DOTALL)
_HTML_LIST = re.compile(r"</?[uo]l\b[^>]*>", re.IGNORECASE)
_HTML_PARAGRAPH = re.compile(r"<p\b[^>]*>(.*?)</p>", re.IGNORECASE | re.DOTALL)
_HTML_BREAK = re.compile(r"<br\s*/?>", re.IGNORECASE)
_ANY_TAG = re.compile(r"<[^>]+>")
_EXCESS_NEWLINES = re.compile(r"\n\s*\n\s*\n")
# Entities and tags already present are kept as they are.
_BARE_AMPERSAND = re.compile(r"&(?!#\d+;|#x[0-9a-fA-F]+;|[a-zA-Z][a-zA-Z0-9]*;)")
_BARE_LESS_THAN = re.compile(r"<(?!/?[a-zA-Z][^<>]*>)")


def _escape_text(text: str) -> str:
    """Escapes bare ``&`` and ``<`` so the output stays well-formed XHTML."""
    text = _BARE_AMPERSAND.sub("&amp;", text)
    return _BARE_LESS_THAN.sub("&lt;", text)


def _inline_to_html(text: str) -> str:
    text = _escape_text(text)
    text = _MD_BOLD.sub(r"<strong>\1</strong>", text)
    return _MD_ITALIC.sub(r"<em>\1</em>", text)


def markdown_to_html(markdown: str) -> str:
    """Converts Markdown headings, emphasis, bullet lists and paragraphs to HTML."""
    lines = []
    in_list = False
    for line in markdown.split("\n"):
        stripped = line.strip()

        item = _MD_LIST_ITEM.match(stripped)
        if item:
            if not in_list:
                lines.append("<ul>")
                in_list = True
            lines.append(f"<li>{_inline_to_html(item.group(1))}</li>")
            continue
        if in_list:
            lines.append("</ul>")
            in_list = False

        heading = _MD_HEADING.match(stripped)
        if heading:
            level = len(heading.group(1))
            lines.append(f"<h{level}>{_inline_to_html(heading.group(2))}</h{level}>")
        elif not stripped:
            lines.append("")
        elif _HTML_BLOCK_LINE.match(stripped):
            lines.append(line)
        else:
            lines.append(f"<p>{_inline_to_html(stripped)}</p>")

    if in_list:
        lines.append("</ul>")
    return "\n".join(lines).strip()


def html_to_markdown(html: str) -> str:
    """Converts HTML headings, emphasis, list items and paragraphs to Markdown and drops other tags."""
    markdown = html
    for level, pattern in _HTML_HEADINGS:
        markdown = pattern.sub(
            lambda match, level=level: f"\n{'#' * level} {match.group(1).strip()}\n",
            markdown,
        )
    markdown = _HTML_STRONG.sub(lambda match: f"**{match.group(2)}**", markdown)
    markdown = _HTML_EM.sub(lambda match: f"*{match.group(2)}*", markdown)
    markdown = _HTML_LIST_ITEM.sub(lambda match: f"\n- {match.group(1).strip()}", markdown)
    markdown = _HTML_LIST.sub("\n", markdown)
    markdown = _HTML_PARAGRAPH.sub(lambda match: f"\n{match.group(1).strip()}\n", markdown)
    markdown = _HTML_BREAK.sub("\n", markdown)
    markdown = _ANY_TAG.sub("", markdown)
    markdown = "\n".join(line.rstrip() for line in markdown.split("\n"))
    markdown = _EXCESS_NEWLINES.sub("\n\n", markdown)
    return markdown.strip()


def convert(content: str, source: TargetFormat, target: TargetFormat) -> str:
    """Converts ``content`` from ``source`` format to ``target`` format."""
    if source is target:
        return content
    if target is TargetFormat.CONFLUENCE:
        return markdown_to_html(content)
    return html_to_markdown(content)
