from content_pipeline.exceptions import ContentProcessingError, ErrorKind


def test_error_carries_message_recovery_and_details() -> None:
    error = ContentProcessingError.markdown_invalid(
        "Broken markdown",
        recovery_action="Regenerate",
        technical_details="stack trace here",
    )
    assert error.kind is ErrorKind.MARKDOWN_INVALID
    assert str(error) == "Broken markdown"
    assert error.recovery_action == "Regenerate"
    assert error.technical_details == "stack trace here"


def test_user_friendly_message_hides_technical_details() -> None:
    error = ContentProcessingError.html_invalid(
        "Broken HTML", recovery_action="Switch format", technical_details="secret"
    )
    message = error.user_friendly_message()
    assert message == "Broken HTML\n\nRecommended action: Switch format"
    assert "secret" not in message


def test_user_friendly_message_without_recovery() -> None:
    error = ContentProcessingError.html_invalid("Broken HTML")
    assert error.user_friendly_message() == "Broken HTML"


def test_escape_marker_variant_fields() -> None:
    error = ContentProcessingError.escape_marker_invalid(
        "missing", has_start=False, has_end=True, has_content=False
    )
    assert error.kind is ErrorKind.ESCAPE_MARKER_INVALID
    assert (error.has_start, error.has_end, error.has_content) == (False, True, False)


def test_is_critical() -> None:
    """Tests which errors should block the caller."""
    both_missing = ContentProcessingError.escape_marker_invalid(
        "x", has_start=False, has_end=False, has_content=False
    )
    end_missing = ContentProcessingError.escape_marker_invalid(
        "x", has_start=True, has_end=False, has_content=False
    )
    mismatch = ContentProcessingError.format_mismatch("x", "HTML", "Markdown")
    assert both_missing.is_critical
    assert not end_missing.is_critical
    assert not mismatch.is_critical
    assert ContentProcessingError.extraction("x", "FallbackOrchestrator").is_critical


def test_recovery_suggestions_for_format_mismatch() -> None:
    error = ContentProcessingError.format_mismatch("x", "HTML", "Markdown")
    suggestions = error.recovery_suggestions()
    assert suggestions[0] == "Switch the output format to Markdown"


def test_recovery_suggestions_suggest_other_model_when_markers_missing() -> None:
    error = ContentProcessingError.escape_marker_invalid(
        "x", has_start=False, has_end=False, has_content=False
    )
    assert "Consider using a different AI model" in error.recovery_suggestions()


def test_format_for_logging_includes_variant_fields() -> None:
    error = ContentProcessingError.format_mismatch(
        "Wrong format",
        "HTML",
        "Markdown",
        recovery_action="Switch",
        technical_details="details",
    )
    text = error.format_for_logging(context="unit test")
    assert "Context: unit test" in text
    assert "Error Kind: format_mismatch" in text
    assert "Expected Format: HTML" in text
    assert "Actual Format: Markdown" in text
    assert "Technical Details: details" in text
