import logging
import re
from typing import List, Optional

from content_pipeline.config import Settings
from content_pipeline.exceptions import ContentProcessingError
from content_pipeline.markdown_extractor import has_markdown_structure
from content_pipeline.preview import safe_preview

logger = logging.getLogger(__name__)

VOID_ELEMENTS = frozenset({"br", "hr", "img", "input", "meta", "link"})

_TAG = re.compile(r"<(/?)([a-zA-Z][\w:-]*)[^<>]*?(/?)>")
# A tag that runs into another opening bracket before it is closed, e.g. "<p<b>".
_MALFORMED_TAG = re.compile(r"</?[a-zA-Z][\w:-]*(?:\s[^<>]*)?<")
# A closing bracket with nothing to close: right after a tag, e.g. "<p>>", or
# doubled at the end of an element, e.g. "text>></p>".
_STRAY_CLOSE = re.compile(r"</?[a-zA-Z][\w:-]*(?:\s[^<>]*)?>>|[^\s<>]>>(?=\s*</[a-zA-Z])")
_CDATA = re.compile(r"<!\[CDATA\[.*?\]\]>", re.DOTALL)
_ANY_H1 = re.compile(r"<h1\b[^>]*>.*?</h1>", re.IGNORECASE | re.DOTALL)
_TRAILING_AFTER_BODY = re.compile(r"</body>\s*</html>.*$", re.IGNORECASE | re.DOTALL)
_EXCESS_NEWLINES = re.compile(r"\n\s*\n\s*\n")
_DOUBLE_ENTITIES = {
    "&amp;amp;": "&amp;",
    "&lt;lt;": "&lt;",
    "&gt;gt;": "&gt;",
    "&amp;lt;": "&lt;",
    "&amp;gt;": "&gt;",
    "&amp;quot;": "&quot;",
}


def _title_heading_pattern(settings: Settings) -> "re.Pattern[str]":
    # Tempered so a match can never run across a closing </h1>.
    return re.compile(
        r"<h1\b[^>]*>(?:(?!</h1>).)*?(?:"
        + settings.title_pattern
        + r")(?:(?!</h1>).)*?</h1>",
        re.IGNORECASE | re.DOTALL,
    )


def contains_title(content: str, settings: Settings) -> bool:
    return re.search(settings.title_pattern, content, re.IGNORECASE) is not None


def find_title_heading(text: str, settings: Settings) -> Optional["re.Match[str]"]:
    """Finds the first <h1> whose text contains the expected document title."""
    return _title_heading_pattern(settings).search(text)


def find_malformed_tag(text: str) -> Optional[str]:
    """Returns the first cross-nested fragment, e.g. ``<p<`` or ``<p>>``, or None."""
    text = _CDATA.sub("", text)
    for pattern in (_MALFORMED_TAG, _STRAY_CLOSE):
        match = pattern.search(text)
        if match is not None:
            return match.group(0)
    return None


def _unclosed_tags(html: str) -> List[str]:
    stack: List[str] = []
    for match in _TAG.finditer(_CDATA.sub("", html)):
        closing, name, self_closing = match.groups()
        name = name.lower()
        if self_closing or name in VOID_ELEMENTS:
            continue
        if not closing:
            stack.append(name)
            continue
        if stack and stack[-1] == name:
            stack.pop()
        elif name in stack:
            # Mismatched closer: drop the nearest matching opener only.
            del stack[len(stack) - 1 - stack[::-1].index(name)]
        # Closers without any opener are LLM noise and ignored.
    return stack


def count_unclosed_tags(html: str) -> int:
    return len(_unclosed_tags(html))


def check_tag_balance(html: str, settings: Optional[Settings] = None) -> None:
    """
    Raises if more tags are left open than the tolerance allows.

    Mismatched and orphan closing tags are tolerated silently.
    """
    settings = settings or Settings()
    unclosed = _unclosed_tags(html)
    if len(unclosed) > settings.max_unclosed_tags:
        raise ContentProcessingError.html_invalid(
            "HTML content has too many unclosed tags",
            recovery_action="Regenerate the document or switch to the Markdown format",
            technical_details=f"Unclosed tags ({len(unclosed)}): {', '.join(unclosed)}",
        )


def fix_double_entities(html: str) -> str:
    for broken, fixed in _DOUBLE_ENTITIES.items():
        html = html.replace(broken, fixed)
    return html


def clean_html(html: str) -> str:
    """Strips prose before the first tag, collapses blank lines and fixes doubled entities."""
    first_tag = html.find("<")
    if first_tag > 0:
        html = html[first_tag:]
    html = _EXCESS_NEWLINES.sub("\n\n", html)
    html = fix_double_entities(html)
    return html.strip()


def _strip_after_body(html: str) -> str:
    return _TRAILING_AFTER_BODY.sub("</body></html>", html)


def _validate_markup(text: str) -> None:
    if not text or text.isspace():
        raise ContentProcessingError.html_invalid(
            "The AI returned an empty response",
            recovery_action="Regenerate the document with more detailed requirements",
            technical_details="Raw AI response is empty",
        )
    if "<" not in text or ">" not in text:
        raise ContentProcessingError.html_invalid(
            "The AI response contains no HTML markup",
            recovery_action="Regenerate the document or switch to the Markdown format",
            technical_details="No angle brackets found in response",
        )
    malformed = find_malformed_tag(text)
    if malformed:
        raise ContentProcessingError.html_invalid(
            "The AI response contains malformed HTML tags",
            recovery_action="Regenerate the document",
            technical_details=f"Cross-nested tag fragment: {safe_preview(malformed)}",
        )


def extract_html(raw_response: str, settings: Optional[Settings] = None) -> str:
    """
    Extracts a Confluence storage document from an AI response.

    The document starts at the <h1> carrying the document title, or at the
    first <h1> if no heading carries it, and ends at ``</body></html>`` if
    present.

    Raises:
        ContentProcessingError: ``HTML_INVALID`` for missing or broken markup,
            ``FORMAT_MISMATCH`` when the response is Markdown instead of HTML.
    """
    settings = settings or Settings()
    _validate_markup(raw_response)
    text = raw_response.strip()

    match = find_title_heading(text, settings)
    if match is not None:
        logger.debug("Found title heading, extracting from it.")
        html = _strip_after_body(text[match.start() :])
    else:
        any_h1 = _ANY_H1.search(text)
        if any_h1 is not None:
            logger.debug("No title heading found, extracting from the first <h1>.")
            html = _strip_after_body(text[any_h1.start() :])
            if not contains_title(html, settings):
                html = f"<h1>{settings.document_title}</h1>\n\n{html}"
        elif has_markdown_structure(text):
            raise ContentProcessingError.format_mismatch(
                "The AI returned Markdown instead of HTML",
                expected_format="HTML",
                actual_format="Markdown",
                recovery_action="Switch the output format to Markdown or regenerate the document",
                technical_details="No <h1> found and Markdown structure detected",
            )
        else:
            logger.debug("No <h1> found, wrapping response in a document skeleton.")
            html = f"<h1>{settings.document_title}</h1>\n<p>{text}</p>"

    check_tag_balance(html, settings)
    return clean_html(html)
