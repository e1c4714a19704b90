import html
import logging
import re
from typing import Callable, List, Optional, Tuple, Union

from content_pipeline.config import Settings
from content_pipeline.exceptions import ContentProcessingError
from content_pipeline.format_converter import convert
from content_pipeline.html_extractor import (
    contains_title,
    extract_html,
    fix_double_entities,
)
from content_pipeline.markdown_extractor import (
    clean_markdown,
    extract_markdown,
    is_markdown_signal_line,
)
from content_pipeline.models import ExtractionResult, TargetFormat
from content_pipeline.preview import safe_preview

logger = logging.getLogger(__name__)

PROCESSOR_NAME = "FallbackOrchestrator"

Strategy = Callable[[str, TargetFormat, Settings], Optional[str]]

PRIMARY_EXTRACTORS = {
    TargetFormat.MARKDOWN: extract_markdown,
    TargetFormat.CONFLUENCE: extract_html,
}

LENIENT_MARKER_PATTERNS = [
    re.compile(r"@@@\s*START\s*@@@(.*?)@@@\s*END\s*@@@", re.IGNORECASE | re.DOTALL),
    re.compile(r"@@START@@(.*?)@@END@@", re.IGNORECASE | re.DOTALL),
    re.compile(r"START@@@(.*?)@@@END", re.IGNORECASE | re.DOTALL),
    re.compile(r"<start>(.*?)</start>", re.IGNORECASE | re.DOTALL),
]

PREAMBLE_PATTERNS = [
    re.compile(r"^(?:Конечно|Хорошо|Sure|Certainly|Of course)\b[,!.]?\s*", re.IGNORECASE),
    # a whole introduction line ending with a colon
    re.compile(
        r"^(?:Вот|Here|Я\s+создам|I\s+will\s+create|I'll\s+create)\b[^\n]*:[ \t]*(?:\n|$)",
        re.IGNORECASE,
    ),
    re.compile(r"^(?:Вот|Here|Я\s+создам)\s+", re.IGNORECASE),
]

# (keywords, Markdown heading text); first match wins
SECTION_HEADINGS = [
    (("user story", "пользовательская история"), "User Story"),
    (("acceptance criteria", "критерии приемки", "критерии приёмки"), "Критерии приемки"),
    (("problem statement", "проблематика", "problem"), "Проблематика"),
]

_ANY_TAG = re.compile(r"</?[a-zA-Z][^>]*>")
_ANY_H1 = re.compile(r"<h1\b[^>]*>.*?</h1>", re.IGNORECASE | re.DOTALL)
_EXCESS_NEWLINES = re.compile(r"\n\s*\n\s*\n")
_HEADING_PUNCTUATION = " \t:.-–—"


def validate_extracted_content(content: Optional[str], target_format: TargetFormat) -> str:
    """
    Cleans content produced by a fallback strategy for ``target_format``.

    Raises:
        ContentProcessingError: If the content is empty or lacks markup for
            the Confluence format.
    """
    if not content or content.isspace():
        raise ContentProcessingError.extraction(
            "Extracted content is empty",
            PROCESSOR_NAME,
            recovery_action="Regenerate the document with more detailed requirements",
            technical_details="Extracted content is empty",
        )

    if target_format is TargetFormat.MARKDOWN:
        return clean_markdown(content)

    if not _ANY_TAG.search(content):
        raise ContentProcessingError.format_mismatch(
            "Content contains no HTML markup",
            expected_format="HTML",
            actual_format="Plain text",
            recovery_action="Switch to the Markdown format or regenerate the document",
            technical_details="No HTML tags found in content",
        )
    cleaned = fix_double_entities(content)
    cleaned = _EXCESS_NEWLINES.sub("\n\n", cleaned)
    return cleaned.strip()


def cross_format_extraction(
    raw_response: str, target_format: TargetFormat, settings: Settings
) -> Optional[str]:
    """Extracts with the other format's extractor and converts the result."""
    source_format = target_format.other
    try:
        extracted = PRIMARY_EXTRACTORS[source_format](raw_response, settings)
    except ContentProcessingError as e:
        logger.debug(f"Cross-format extraction as {source_format.value} failed: {e.message}")
        return None
    converted = convert(extracted, source_format, target_format)
    return validate_extracted_content(converted, target_format)


def lenient_marker_extraction(
    raw_response: str, target_format: TargetFormat, settings: Settings
) -> Optional[str]:
    """Looks for misspelled escape markers. Markdown only."""
    if target_format is not TargetFormat.MARKDOWN:
        return None

    for pattern in LENIENT_MARKER_PATTERNS:
        match = pattern.search(raw_response)
        if match is None:
            continue
        content = match.group(1).strip()
        if content:
            logger.debug(f"Lenient marker pattern matched: {pattern.pattern}")
            return validate_extracted_content(content, target_format)
    return None


def _extract_markdown_by_pattern(raw_response: str, settings: Settings) -> Optional[str]:
    collected: List[str] = []
    title_line: Optional[str] = None
    found_content = False

    for line in raw_response.split("\n"):
        stripped = line.strip()
        if found_content:
            collected.append(line)
        elif is_markdown_signal_line(line):
            found_content = True
            collected.append(line)
        elif title_line is None and stripped and contains_title(stripped, settings):
            title_line = stripped

    if not collected:
        return None

    content = "\n".join(collected).strip()
    if title_line is not None and not contains_title(content, settings):
        heading = title_line if title_line.startswith("#") else f"# {title_line}"
        content = f"{heading}\n\n{content}"
    return validate_extracted_content(content, TargetFormat.MARKDOWN)


def _extract_html_by_pattern(raw_response: str) -> Optional[str]:
    if not _ANY_TAG.search(raw_response):
        return None

    match = _ANY_H1.search(raw_response)
    if match is not None:
        return validate_extracted_content(
            raw_response[match.start() :].strip(), TargetFormat.CONFLUENCE
        )

    first_tag = raw_response.find("<")
    content = raw_response[first_tag:].strip()
    if "</" in content:
        return validate_extracted_content(content, TargetFormat.CONFLUENCE)
    return None


def pattern_based_extraction(
    raw_response: str, target_format: TargetFormat, settings: Settings
) -> Optional[str]:
    """Collects content by recognising format-specific structure."""
    if target_format is TargetFormat.MARKDOWN:
        return _extract_markdown_by_pattern(raw_response, settings)
    return _extract_html_by_pattern(raw_response)


def strip_ai_preamble(content: str) -> str:
    """Removes conversational openers such as "Sure!" or "Here is the document:"."""
    cleaned = content
    for pattern in PREAMBLE_PATTERNS:
        cleaned = pattern.sub("", cleaned, count=1)
    return cleaned.strip()


def _section_heading(line: str) -> Tuple[Optional[str], str]:
    """Returns the section heading ``line`` announces, and any text after the keyword."""
    lowered = line.lower()
    for keywords, heading in SECTION_HEADINGS:
        for keyword in keywords:
            position = lowered.find(keyword)
            if position < 0:
                continue
            rest = (line[:position] + line[position + len(keyword) :]).strip(
                _HEADING_PUNCTUATION
            )
            return heading, rest
    return None, ""


def format_plain_text_as_markdown(content: str, settings: Optional[Settings] = None) -> str:
    settings = settings or Settings()
    lines: List[str] = []
    if not contains_title(content, settings):
        lines.extend([f"# {settings.document_title}", ""])

    for line in content.split("\n"):
        stripped = line.strip()
        if not stripped:
            lines.append("")
            continue
        heading, rest = _section_heading(stripped)
        if heading is None:
            lines.append(line)
            continue
        lines.extend([f"## {heading}", ""])
        if rest:
            lines.append(line)

    return "\n".join(lines).strip()


def format_plain_text_as_html(content: str, settings: Optional[Settings] = None) -> str:
    settings = settings or Settings()
    lines: List[str] = []
    if "<h1" not in content.lower() and not contains_title(content, settings):
        lines.extend([f"<h1>{settings.document_title}</h1>", ""])

    in_paragraph = False
    for line in content.split("\n"):
        stripped = line.strip()
        heading, rest = _section_heading(stripped) if stripped else (None, "")

        if not stripped or heading is not None:
            if in_paragraph:
                lines.append("</p>")
                in_paragraph = False
            if heading is None:
                lines.append("")
                continue
            lines.append(f"<h2>{html.escape(heading, quote=False)}</h2>")
            if not rest:
                continue

        if not in_paragraph:
            lines.append("<p>")
            in_paragraph = True
        lines.append(html.escape(stripped, quote=False))

    if in_paragraph:
        lines.append("</p>")
    return "\n".join(lines).strip()


def plain_text_extraction(
    raw_response: str, target_format: TargetFormat, settings: Settings
) -> Optional[str]:
    """Last resort: treats the response as prose and builds a minimal document."""
    text = raw_response.strip()
    if len(text) < settings.min_plain_text_length:
        return None

    content = strip_ai_preamble(text)
    if not content:
        return None

    if target_format is TargetFormat.MARKDOWN:
        formatted = format_plain_text_as_markdown(content, settings)
    else:
        formatted = format_plain_text_as_html(content, settings)
    return validate_extracted_content(formatted, target_format)


FALLBACK_STRATEGIES: List[Tuple[str, Strategy]] = [
    ("cross_format", cross_format_extraction),
    ("lenient_markers", lenient_marker_extraction),
    ("pattern", pattern_based_extraction),
    ("plain_text", plain_text_extraction),
]


def _aggregated_failure(
    raw_response: str,
    target_format: TargetFormat,
    primary_error: ContentProcessingError,
    attempts: List[Tuple[str, str]],
) -> ContentProcessingError:
    details = ["All content extraction methods failed:"]
    details.append(
        f"1. Primary extractor ({target_format.value}): {primary_error.message}"
    )
    for number, (name, outcome) in enumerate(attempts, start=2):
        details.append(f"{number}. {name}: {outcome}")
    if primary_error.technical_details:
        details.append(f"Primary error details: {primary_error.technical_details}")
    details.append(f"Response length: {len(raw_response)} characters")

    return ContentProcessingError.extraction(
        f"Content could not be extracted: {primary_error.message}",
        PROCESSOR_NAME,
        recovery_action=(
            "Regenerate the document with more detailed requirements, "
            "switch the output format or try a different AI model"
        ),
        technical_details="\n".join(details),
    )


def _run_primary(
    raw_response: str, target_format: TargetFormat, settings: Settings
) -> Union[str, ContentProcessingError]:
    extractor = PRIMARY_EXTRACTORS[target_format]
    try:
        content = extractor(raw_response, settings)
    except ContentProcessingError as e:
        return e
    except Exception as e:
        logger.error(f"Unexpected error in {target_format.value} extractor: {e}", exc_info=True)
        return ContentProcessingError.extraction(
            f"Unexpected error in the {target_format.display_name} extractor",
            PROCESSOR_NAME,
            recovery_action="Regenerate the document or choose another format",
            technical_details=f"Primary extractor unexpected error: {type(e).__name__}: {e}",
        )
    if not content or content.isspace():
        return ContentProcessingError.extraction(
            "Extracted content is empty",
            PROCESSOR_NAME,
            recovery_action="Regenerate the document with more detailed requirements",
            technical_details="Primary extractor returned empty content",
        )
    return content


def process(
    raw_response: str,
    target_format: Union[TargetFormat, str],
    settings: Optional[Settings] = None,
) -> ExtractionResult:
    """
    Extracts a document in ``target_format`` from a raw LLM response.

    Runs the primary extractor for the format and, if it fails, every
    fallback strategy in order until one produces content.

    Args:
        raw_response: The unmodified LLM output.
        target_format: The format the document must conform to.
        settings: Pipeline settings, defaults to ``Settings()``.

    Returns:
        The extracted content with the strategy that produced it.

    Raises:
        ContentProcessingError: An ``EXTRACTION`` error listing every
            attempted strategy if nothing could be extracted.
    """
    settings = settings or Settings()
    target_format = TargetFormat(target_format)

    if len(raw_response) > settings.max_response_chars:
        raise ContentProcessingError.extraction(
            "The AI response is too large to process",
            PROCESSOR_NAME,
            recovery_action="Regenerate the document with a smaller scope",
            technical_details=(
                f"Response length {len(raw_response)} exceeds "
                f"{settings.max_response_chars} characters"
            ),
        )

    logger.info(f"Extracting {target_format.display_name} content.")
    logger.debug(f"Raw response: {safe_preview(raw_response)}")

    primary = _run_primary(raw_response, target_format, settings)
    if isinstance(primary, str):
        logger.info("Primary extractor succeeded.")
        return ExtractionResult(content=primary, format=target_format, strategy="primary")

    primary_error = primary
    logger.warning(
        f"Primary extractor failed ({primary_error.kind.value}): {primary_error.message}. "
        "Trying fallback strategies."
    )

    attempts: List[Tuple[str, str]] = []
    for name, strategy in FALLBACK_STRATEGIES:
        try:
            content = strategy(raw_response, target_format, settings)
        except ContentProcessingError as e:
            logger.debug(f"Fallback strategy '{name}' failed: {e.message}")
            attempts.append((name, e.message))
            continue
        except Exception as e:
            logger.error(f"Fallback strategy '{name}' raised unexpectedly: {e}", exc_info=True)
            attempts.append((name, f"unexpected error: {type(e).__name__}: {e}"))
            continue

        if content and not content.isspace():
            logger.warning(f"Content recovered with fallback strategy '{name}'.")
            return ExtractionResult(content=content, format=target_format, strategy=name)
        attempts.append((name, "no content"))

    error = _aggregated_failure(raw_response, target_format, primary_error, attempts)
    logger.error(error.format_for_logging(context="process"))
    raise error from primary_error
