import logging
import re
from typing import Optional

from content_pipeline.config import Settings
from content_pipeline.exceptions import ContentProcessingError
from content_pipeline.markers import END_MARKER, START_MARKER, validate_escape_markers
from content_pipeline.preview import safe_preview

logger = logging.getLogger(__name__)

ALLOWED_HTML_TAGS = ("code", "pre", "em", "strong", "a", "img", "br", "hr")

_DISALLOWED_TAG = re.compile(
    r"</?(?!(?:" + "|".join(ALLOWED_HTML_TAGS) + r")\b)[a-zA-Z][^>]*>",
    re.IGNORECASE,
)

_ENTITIES = {
    "&lt;": "<",
    "&gt;": ">",
    "&amp;": "&",
    "&quot;": '"',
    "&#39;": "'",
    "&nbsp;": " ",
}
_ENTITY_PATTERN = re.compile("|".join(re.escape(entity) for entity in _ENTITIES))

_LENIENT_MARKERS = re.compile(
    re.escape(START_MARKER) + r"(.*?)" + re.escape(END_MARKER), re.DOTALL
)

# Line-level Markdown signals: headings, list items, code fences, blockquotes.
_SIGNAL_LINE = re.compile(r"^\s*(?:#{1,6}\s|[-*+]\s|\d+\.\s|```|>)")
_BOLD = re.compile(r"\*\*[^*\n]+\*\*|__[^_\n]+__")
_ITALIC = re.compile(r"(?<![*\w])\*[^*\s][^*\n]*\*(?!\*)")


def is_markdown_signal_line(line: str) -> bool:
    """True if the line looks like Markdown structure rather than prose."""
    return bool(_SIGNAL_LINE.match(line) or _BOLD.search(line) or _ITALIC.search(line))


def has_markdown_structure(content: str) -> bool:
    """True if any line of ``content`` carries a Markdown signal."""
    return any(is_markdown_signal_line(line) for line in content.split("\n"))


def remove_disallowed_html_tags(content: str) -> str:
    """Removes every HTML tag except the ones commonly allowed inside Markdown."""
    return _DISALLOWED_TAG.sub("", content)


def decode_html_entities(content: str) -> str:
    """Decodes the six common HTML entities in a single pass."""
    return _ENTITY_PATTERN.sub(lambda match: _ENTITIES[match.group(0)], content)


def clean_markdown(content: str) -> str:
    """
    Strips HTML remnants from Markdown content.

    Raises:
        ContentProcessingError: If nothing but markup was left to keep.
    """
    cleaned = remove_disallowed_html_tags(content)
    cleaned = decode_html_entities(cleaned)
    # decoded entities can spell out new tags
    cleaned = remove_disallowed_html_tags(cleaned).strip()

    if not cleaned:
        raise ContentProcessingError.markdown_invalid(
            "Markdown content is empty after removing HTML markup",
            recovery_action="Regenerate the document or switch to the Confluence format",
            technical_details=f"Content before cleaning: {safe_preview(content)}",
        )

    if not has_markdown_structure(cleaned):
        # Plain prose is still acceptable Markdown.
        logger.debug("No Markdown structure found, accepting content as plain text.")

    return cleaned


def _trim_one_newline(content: str) -> str:
    if content.startswith("\r\n"):
        content = content[2:]
    elif content.startswith("\n"):
        content = content[1:]
    if content.endswith("\r\n"):
        content = content[:-2]
    elif content.endswith("\n"):
        content = content[:-1]
    return content


def _retry_with_lenient_pattern(
    text: str, first_error: ContentProcessingError
) -> str:
    match = _LENIENT_MARKERS.search(text)
    content = match.group(1).strip() if match else ""
    if content:
        try:
            return clean_markdown(content)
        except ContentProcessingError as second_error:
            raise ContentProcessingError.markdown_invalid(
                "Content was found but failed validation",
                recovery_action="Regenerate the document or edit the content manually",
                technical_details=(
                    f"Strict extraction: {first_error.technical_details}; "
                    f"lenient extraction: {second_error.technical_details}"
                ),
            ) from second_error

    raise ContentProcessingError.markdown_invalid(
        "Content was found but failed validation",
        recovery_action="Regenerate the document or edit the content manually",
        technical_details=(
            f"Strict extraction: {first_error.technical_details}; "
            "lenient extraction: no content between markers"
        ),
    ) from first_error


def extract_markdown(raw_response: str, settings: Optional[Settings] = None) -> str:
    """
    Extracts Markdown content from an AI response between the escape markers.

    Args:
        raw_response: The unmodified LLM output.
        settings: Unused, accepted so every extractor has the same signature.

    Returns:
        The cleaned Markdown content, never empty.

    Raises:
        ContentProcessingError: ``ESCAPE_MARKER_INVALID`` if the marker
            envelope is malformed, ``MARKDOWN_INVALID`` if the content is empty
            or cannot be cleaned.
    """
    if not raw_response or raw_response.isspace():
        raise ContentProcessingError.markdown_invalid(
            "The AI returned an empty response",
            recovery_action="Regenerate the document with more detailed requirements",
            technical_details="Raw AI response is empty",
        )

    text = raw_response.strip()
    validate_escape_markers(text)

    start = text.index(START_MARKER) + len(START_MARKER)
    end = text.index(END_MARKER)
    content = _trim_one_newline(text[start:end])

    if not content.strip():
        raise ContentProcessingError.markdown_invalid(
            f"Content between {START_MARKER} and {END_MARKER} is empty",
            recovery_action="Regenerate the document or clarify the requirements",
            technical_details="Content between escape markers is empty",
        )

    try:
        return clean_markdown(content)
    except ContentProcessingError as e:
        logger.info("Strict Markdown cleaning failed, retrying with lenient markers.")
        return _retry_with_lenient_pattern(text, e)
