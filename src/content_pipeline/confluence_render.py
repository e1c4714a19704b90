"""
Rewrites Confluence storage format macros into plain styled HTML for display.

Used only when showing a document in a viewer. The stored and published form
keeps the original macros.
"""

import html
import logging
import re
from typing import Callable, List, Optional

from content_pipeline.config import Settings
from content_pipeline.diagram import render_diagram_html

logger = logging.getLogger(__name__)

# Upper bound on rewrite rounds for nested macros.
MAX_MACRO_ROUNDS = 8

_RICH_TEXT_BODY = re.compile(
    r"<ac:rich-text-body[^>]*>(.*)</ac:rich-text-body>", re.IGNORECASE | re.DOTALL
)
_PLAIN_TEXT_BODY = re.compile(
    r"<ac:plain-text-body[^>]*>(.*?)</ac:plain-text-body>", re.IGNORECASE | re.DOTALL
)
_CDATA = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_BODY_WRAPPERS = re.compile(
    r"</?ac:(?:rich|plain)-text-body[^>]*>", re.IGNORECASE
)


KNOWN_MACROS = ("info", "note", "warning", "code", "panel", "plantuml")

_KNOWN_MACRO_OPEN = (
    r'<ac:structured-macro\s[^>]*?ac:name="(?:' + "|".join(KNOWN_MACROS) + r')"'
)
# A macro with no macro inside it, self-closing or not.
_LEAF_MACRO = (
    r"<ac:structured-macro\b[^>]*?(?:/>|(?<!/)>"
    r"(?:(?!<ac:structured-macro[\s>/]).)*?</ac:structured-macro>)"
)
_NESTED_LEAF_MACRO = re.compile(_LEAF_MACRO, re.IGNORECASE | re.DOTALL)


def _macro_pattern(name: str) -> "re.Pattern[str]":
    # The body may hold unknown leaf macros but no known macro, so known
    # inner macros are rewritten first.
    return re.compile(
        r'<ac:structured-macro\s[^>]*?ac:name="'
        + re.escape(name)
        + r'"[^>]*(?<!/)>((?:(?!'
        + _KNOWN_MACRO_OPEN
        + r")"
        + _LEAF_MACRO
        + r"|(?!<ac:structured-macro[\s>/]).)*?)</ac:structured-macro>",
        re.IGNORECASE | re.DOTALL,
    )


_INFO = _macro_pattern("info")
_NOTE = _macro_pattern("note")
_WARNING = _macro_pattern("warning")
_CODE = _macro_pattern("code")
_PANEL = _macro_pattern("panel")
_PLANTUML = _macro_pattern("plantuml")


def extract_parameter(content: str, name: str) -> Optional[str]:
    """Returns the trimmed value of the ``ac:parameter`` called ``name``, if any."""
    pattern = re.compile(
        r'<ac:parameter\s[^>]*?ac:name="'
        + re.escape(name)
        + r'"[^>]*>(.*?)</ac:parameter>',
        re.IGNORECASE | re.DOTALL,
    )
    # Parameters of nested macros belong to them, not to this macro.
    match = pattern.search(_NESTED_LEAF_MACRO.sub("", content))
    return match.group(1).strip() if match else None


def extract_rich_text_body(content: str) -> str:
    """Returns the inner markup of ``ac:rich-text-body`` unchanged, apart from trimming."""
    match = _RICH_TEXT_BODY.search(content)
    return match.group(1).strip() if match else ""


def extract_plain_text_body(content: str) -> str:
    """Returns the text of ``ac:plain-text-body``, unwrapping a CDATA section if present."""
    match = _PLAIN_TEXT_BODY.search(content)
    if match is None:
        return ""
    body = match.group(1)
    cdata = _CDATA.search(body)
    if cdata is not None:
        return cdata.group(1).strip()
    return body.strip()


def _info_box(
    content: str, default_title: str, icon: str, border: str, background: str, color: str
) -> str:
    title = extract_parameter(content, "title") or default_title
    body = extract_rich_text_body(content)
    return f"""
<div style="border-left: 4px solid {border}; background: {background}; padding: 12px; margin: 8px 0; border-radius: 4px;">
  <div style="font-weight: bold; color: {color}; margin-bottom: 8px;">
    <span style="margin-right: 8px;">{icon}</span>{title}
  </div>
  <div>{body}</div>
</div>"""


def transform_info_macros(storage_html: str) -> str:
    return _INFO.sub(
        lambda match: _info_box(
            match.group(1), "Information", "ℹ️", "#36B37E", "#E3FCEF", "#00875A"
        ),
        storage_html,
    )


def transform_note_macros(storage_html: str) -> str:
    return _NOTE.sub(
        lambda match: _info_box(
            match.group(1), "Note", "📝", "#2684FF", "#DEEBFF", "#0052CC"
        ),
        storage_html,
    )


def transform_warning_macros(storage_html: str) -> str:
    return _WARNING.sub(
        lambda match: _info_box(
            match.group(1), "Attention", "⚠️", "#FF5630", "#FFEBE6", "#DE350B"
        ),
        storage_html,
    )


def _code_block(content: str) -> str:
    language = extract_parameter(content, "language") or ""
    code = html.escape(extract_plain_text_body(content), quote=False)
    label = ""
    radius = "4px"
    if language:
        label = f'<div style="background: #F4F5F7; padding: 4px 8px; font-size: 12px; color: #6B778C; border-radius: 4px 4px 0 0;">Code ({language})</div>'
        radius = "0 0 4px 4px"
    return f"""
<div style="margin: 8px 0;">
  {label}
  <pre style="background: #F4F5F7; padding: 12px; margin: 0; border-radius: {radius}; overflow-x: auto; font-family: 'Courier New', monospace; font-size: 13px; line-height: 1.4;"><code>{code}</code></pre>
</div>"""


def transform_code_macros(storage_html: str) -> str:
    return _CODE.sub(lambda match: _code_block(match.group(1)), storage_html)


def _panel(content: str) -> str:
    title = extract_parameter(content, "title") or ""
    body = extract_rich_text_body(content)
    heading = ""
    if title:
        heading = f'<div style="font-weight: bold; color: #172B4D; margin-bottom: 8px;">{title}</div>'
    return f"""
<div style="border: 1px solid #DFE1E6; background: #F4F5F7; padding: 12px; margin: 8px 0; border-radius: 4px;">
  {heading}
  <div>{body}</div>
</div>"""


def transform_panel_macros(storage_html: str) -> str:
    return _PANEL.sub(lambda match: _panel(match.group(1)), storage_html)


def transform_diagram_macros(storage_html: str, settings: Optional[Settings] = None) -> str:
    """Rewrites legacy ``plantuml`` macros into server-rendered diagram images."""
    settings = settings or Settings()
    return _PLANTUML.sub(
        lambda match: render_diagram_html(
            extract_plain_text_body(match.group(1)), settings.diagram_server_url
        ),
        storage_html,
    )


def cleanup_confluence_tags(storage_html: str) -> str:
    """Removes leftover body wrapper tags and keeps what they contain."""
    return _BODY_WRAPPERS.sub("", storage_html)


def transform_for_render(storage_html: str, settings: Optional[Settings] = None) -> str:
    """
    Converts Confluence storage format to plain HTML for visual display.

    Macros that are not recognised pass through untouched. Never raises on
    malformed input.
    """
    if not storage_html:
        return storage_html
    settings = settings or Settings()

    passes: List[Callable[[str], str]] = [
        transform_info_macros,
        transform_note_macros,
        transform_warning_macros,
        transform_code_macros,
        transform_panel_macros,
        lambda text: transform_diagram_macros(text, settings),
    ]

    transformed = storage_html
    for round_number in range(MAX_MACRO_ROUNDS):
        before = transformed
        for rewrite in passes:
            transformed = rewrite(transformed)
        if transformed == before:
            break
        logger.debug(f"Macro rewrite round {round_number + 1} changed the document.")

    return cleanup_confluence_tags(transformed)
