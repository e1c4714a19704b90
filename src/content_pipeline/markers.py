import logging
from typing import Optional

from content_pipeline.exceptions import ContentProcessingError

logger = logging.getLogger(__name__)

START_MARKER = "@@@START@@@"
END_MARKER = "@@@END@@@"


def check_escape_markers(text: str) -> Optional[ContentProcessingError]:
    """
    Checks that the text holds exactly one START marker followed by exactly
    one END marker.

    Args:
        text: The raw LLM response.

    Returns:
        None if the envelope is well formed, otherwise the error describing
        the first rule that was violated.
    """
    has_start = START_MARKER in text
    has_end = END_MARKER in text

    if not has_start and not has_end:
        return ContentProcessingError.escape_marker_invalid(
            f"Markers {START_MARKER} and {END_MARKER} were not found in the AI response",
            has_start=False,
            has_end=False,
            has_content=False,
            recovery_action="Regenerate the document. If the problem persists, check the AI model settings",
            technical_details="Both escape markers are missing from AI response",
        )

    if not has_start:
        return ContentProcessingError.escape_marker_invalid(
            f"Marker {START_MARKER} was not found in the AI response",
            has_start=False,
            has_end=True,
            has_content=False,
            recovery_action="Regenerate the document. The AI may not be following the formatting instructions",
            technical_details=f"Start marker {START_MARKER} is missing",
        )

    if not has_end:
        return ContentProcessingError.escape_marker_invalid(
            f"Marker {END_MARKER} was not found in the AI response",
            has_start=True,
            has_end=False,
            has_content=False,
            recovery_action="Regenerate the document. The response may have been truncated",
            technical_details=f"End marker {END_MARKER} is missing",
        )

    if text.index(START_MARKER) >= text.index(END_MARKER):
        return ContentProcessingError.escape_marker_invalid(
            f"Markers {START_MARKER} and {END_MARKER} are in the wrong order",
            has_start=True,
            has_end=True,
            has_content=False,
            recovery_action="Regenerate the document. The AI broke the marker order",
            technical_details="Start marker appears after end marker",
        )

    start_count = text.count(START_MARKER)
    end_count = text.count(END_MARKER)
    if start_count > 1 or end_count > 1:
        return ContentProcessingError.escape_marker_invalid(
            f"Too many {START_MARKER} or {END_MARKER} markers were found",
            has_start=True,
            has_end=True,
            has_content=False,
            recovery_action="Regenerate the document. The AI added extra markers",
            technical_details=f"Too many escape markers found: START={start_count}, END={end_count}",
        )

    return None


def validate_escape_markers(text: str) -> None:
    """Raises the escape-marker error for ``text``, if there is one."""
    error = check_escape_markers(text)
    if error is not None:
        logger.debug(f"Escape marker validation failed: {error.technical_details}")
        raise error
