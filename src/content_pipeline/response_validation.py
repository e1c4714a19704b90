import logging
import re
from typing import Union

from content_pipeline.exceptions import ContentProcessingError
from content_pipeline.markers import END_MARKER, START_MARKER
from content_pipeline.models import TargetFormat

logger = logging.getLogger(__name__)

MIN_RESPONSE_LENGTH = 50

REFUSAL_PATTERNS = [
    "I cannot",
    "I'm unable to",
    "I can't",
    "Sorry, I cannot",
    "I'm not able to",
    "Я не могу",
    "Извините, я не могу",
    "К сожалению, я не могу",
]

INCOMPLETE_ENDINGS = [
    "...",
    "[продолжение следует]",
    "[to be continued]",
    "и так далее",
    "etc.",
]


def _validate_markdown_response(response: str) -> None:
    has_start = START_MARKER in response
    has_end = END_MARKER in response

    if not has_start:
        raise ContentProcessingError.escape_marker_invalid(
            f"The AI response does not contain the {START_MARKER} marker",
            has_start=False,
            has_end=has_end,
            has_content=True,
            recovery_action="Regenerate the document. The AI is not following the formatting instructions",
            technical_details=f"Missing {START_MARKER} marker in Markdown response",
        )
    if not has_end:
        raise ContentProcessingError.escape_marker_invalid(
            f"The AI response does not contain the {END_MARKER} marker",
            has_start=True,
            has_end=False,
            has_content=True,
            recovery_action="Regenerate the document. The response may have been truncated",
            technical_details=f"Missing {END_MARKER} marker in Markdown response",
        )

    start = response.index(START_MARKER)
    end = response.index(END_MARKER)
    if start >= end:
        raise ContentProcessingError.escape_marker_invalid(
            f"Markers {START_MARKER} and {END_MARKER} are in the wrong order",
            has_start=True,
            has_end=True,
            has_content=False,
            recovery_action="Regenerate the document. The AI broke the marker order",
            technical_details="Start marker appears after end marker",
        )
    if not response[start + len(START_MARKER) : end].strip():
        raise ContentProcessingError.escape_marker_invalid(
            f"Content between {START_MARKER} and {END_MARKER} is empty",
            has_start=True,
            has_end=True,
            has_content=False,
            recovery_action="Regenerate the document with more detailed requirements",
            technical_details="Empty content between escape markers",
        )


def _validate_html_response(response: str) -> None:
    if "<" not in response or ">" not in response:
        raise ContentProcessingError.format_mismatch(
            "The AI returned a response without HTML markup for the Confluence format",
            expected_format="HTML",
            actual_format="Plain text",
            recovery_action="Regenerate the document or switch to the Markdown format",
            technical_details="No HTML tags found in HTML response",
        )
    if "<h1" not in response.lower():
        raise ContentProcessingError.html_invalid(
            "The AI did not include an H1 heading in the HTML response",
            recovery_action="Regenerate the document. The AI must start with an H1 heading",
            technical_details="No H1 tag found in HTML response",
        )


def _validate_common_errors(response: str) -> None:
    lowered = response.lower()
    for pattern in REFUSAL_PATTERNS:
        if pattern.lower() in lowered:
            raise ContentProcessingError.response_invalid(
                "The AI refused to complete the request",
                recovery_action="Rephrase the requirements or use a different AI model",
                technical_details=f"AI refusal pattern detected: {pattern}",
            )

    last_line = re.split(r"[\r\n]+", response.strip())[-1].strip().lower()
    for ending in INCOMPLETE_ENDINGS:
        if last_line.endswith(ending.lower()):
            raise ContentProcessingError.response_invalid(
                "The AI returned an incomplete response",
                recovery_action="Regenerate the document or increase the token limit in the model settings",
                technical_details=f"Incomplete response pattern detected at end: {ending}",
            )


def validate_llm_response(response: str, target_format: Union[TargetFormat, str]) -> None:
    """
    Checks a raw LLM response for problems worth reporting before extraction.

    This is stricter than extraction itself and never called by it: a
    response that fails here may still be recovered by the fallback chain.

    Raises:
        ContentProcessingError: Describing the first problem found.
    """
    target_format = TargetFormat(target_format)

    if not response:
        raise ContentProcessingError.response_invalid(
            "The AI returned an empty response",
            recovery_action="Regenerate the document with more detailed requirements",
            technical_details="Empty response from LLM",
        )
    if len(response) < MIN_RESPONSE_LENGTH:
        raise ContentProcessingError.response_invalid(
            f"The AI returned a response that is too short ({len(response)} characters)",
            recovery_action="Regenerate the document with more detailed requirements or check the model settings",
            technical_details=f"Response too short: {len(response)} characters",
        )

    if target_format is TargetFormat.MARKDOWN:
        _validate_markdown_response(response)
    else:
        _validate_html_response(response)

    _validate_common_errors(response)
    logger.debug(f"Response passed {target_format.value} validation.")
