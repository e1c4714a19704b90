import enum
from typing import List, Optional


class ErrorKind(str, enum.Enum):
    """Discriminator for the failures raised while processing an LLM response."""

    EXTRACTION = "extraction"
    FORMAT_MISMATCH = "format_mismatch"
    MARKDOWN_INVALID = "markdown_invalid"
    HTML_INVALID = "html_invalid"
    ESCAPE_MARKER_INVALID = "escape_marker_invalid"
    RESPONSE_INVALID = "response_invalid"


_TITLES = {
    ErrorKind.EXTRACTION: "Content extraction error",
    ErrorKind.FORMAT_MISMATCH: "Content format error",
    ErrorKind.MARKDOWN_INVALID: "Markdown processing error",
    ErrorKind.HTML_INVALID: "HTML processing error",
    ErrorKind.ESCAPE_MARKER_INVALID: "AI response formatting error",
    ErrorKind.RESPONSE_INVALID: "AI response validation error",
}

_SUGGESTIONS = {
    ErrorKind.ESCAPE_MARKER_INVALID: [
        "Regenerate the document",
        "Check the AI model settings",
        "Make sure the model follows formatting instructions",
    ],
    ErrorKind.MARKDOWN_INVALID: [
        "Try the Confluence format instead of Markdown",
        "Regenerate with simpler requirements",
        "Check that the template does not contain HTML tags",
    ],
    ErrorKind.HTML_INVALID: [
        "Try the Markdown format instead of HTML",
        "Regenerate and describe the document structure explicitly",
        "Make sure the AI model supports HTML generation",
    ],
    ErrorKind.RESPONSE_INVALID: [
        "Check the API keys and provider settings",
        "Try another AI model",
        "Increase the token limit in the model settings",
    ],
    ErrorKind.EXTRACTION: [
        "Switch the output format",
        "Simplify the generation requirements",
        "Check the AI provider settings",
    ],
}


class ContentProcessingError(Exception):
    """
    Single error type for the extraction pipeline.

    The ``kind`` attribute tells variants apart. Every error carries a short
    user-facing ``message``, an imperative ``recovery_action`` and
    ``technical_details`` meant for logs only. Use the classmethod
    constructors rather than calling ``__init__`` directly.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        recovery_action: Optional[str] = None,
        technical_details: Optional[str] = None,
        *,
        processor: Optional[str] = None,
        expected_format: Optional[str] = None,
        actual_format: Optional[str] = None,
        has_start: Optional[bool] = None,
        has_end: Optional[bool] = None,
        has_content: Optional[bool] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.recovery_action = recovery_action
        self.technical_details = technical_details
        self.processor = processor
        self.expected_format = expected_format
        self.actual_format = actual_format
        self.has_start = has_start
        self.has_end = has_end
        self.has_content = has_content

    def __repr__(self) -> str:
        return f"ContentProcessingError(kind={self.kind.value!r}, message={self.message!r})"

    @classmethod
    def extraction(
        cls,
        message: str,
        processor: str,
        recovery_action: Optional[str] = None,
        technical_details: Optional[str] = None,
    ) -> "ContentProcessingError":
        return cls(
            ErrorKind.EXTRACTION,
            message,
            recovery_action,
            technical_details,
            processor=processor,
        )

    @classmethod
    def format_mismatch(
        cls,
        message: str,
        expected_format: str,
        actual_format: str,
        recovery_action: Optional[str] = None,
        technical_details: Optional[str] = None,
    ) -> "ContentProcessingError":
        return cls(
            ErrorKind.FORMAT_MISMATCH,
            message,
            recovery_action,
            technical_details,
            expected_format=expected_format,
            actual_format=actual_format,
        )

    @classmethod
    def markdown_invalid(
        cls,
        message: str,
        recovery_action: Optional[str] = None,
        technical_details: Optional[str] = None,
    ) -> "ContentProcessingError":
        return cls(ErrorKind.MARKDOWN_INVALID, message, recovery_action, technical_details)

    @classmethod
    def html_invalid(
        cls,
        message: str,
        recovery_action: Optional[str] = None,
        technical_details: Optional[str] = None,
    ) -> "ContentProcessingError":
        return cls(ErrorKind.HTML_INVALID, message, recovery_action, technical_details)

    @classmethod
    def escape_marker_invalid(
        cls,
        message: str,
        has_start: bool,
        has_end: bool,
        has_content: bool,
        recovery_action: Optional[str] = None,
        technical_details: Optional[str] = None,
    ) -> "ContentProcessingError":
        return cls(
            ErrorKind.ESCAPE_MARKER_INVALID,
            message,
            recovery_action,
            technical_details,
            has_start=has_start,
            has_end=has_end,
            has_content=has_content,
        )

    @classmethod
    def response_invalid(
        cls,
        message: str,
        recovery_action: Optional[str] = None,
        technical_details: Optional[str] = None,
    ) -> "ContentProcessingError":
        return cls(ErrorKind.RESPONSE_INVALID, message, recovery_action, technical_details)

    @property
    def title(self) -> str:
        return _TITLES[self.kind]

    @property
    def is_critical(self) -> bool:
        """Whether a caller should block on this error instead of showing a hint."""
        if self.kind is ErrorKind.ESCAPE_MARKER_INVALID:
            return not self.has_start and not self.has_end
        return self.kind in (
            ErrorKind.EXTRACTION,
            ErrorKind.MARKDOWN_INVALID,
            ErrorKind.HTML_INVALID,
        )

    def user_friendly_message(self) -> str:
        """Returns the message followed by the recovery action, if there is one."""
        if self.recovery_action:
            return f"{self.message}\n\nRecommended action: {self.recovery_action}"
        return self.message

    def recovery_suggestions(self) -> List[str]:
        suggestions = list(_SUGGESTIONS.get(self.kind, []))
        if self.kind is ErrorKind.ESCAPE_MARKER_INVALID and not (
            self.has_start or self.has_end
        ):
            suggestions.append("Consider using a different AI model")
        if self.kind is ErrorKind.FORMAT_MISMATCH:
            suggestions = [
                f"Switch the output format to {self.actual_format}",
                "Regenerate with clarified requirements",
                "Check that the template matches the selected format",
            ]
        return suggestions

    def format_for_logging(self, context: Optional[str] = None) -> str:
        """Multi-line description of the error, including variant-specific fields."""
        lines = []
        if context:
            lines.append(f"Context: {context}")
        lines.append(f"Error Kind: {self.kind.value}")
        lines.append(f"Message: {self.message}")
        if self.recovery_action:
            lines.append(f"Recovery Action: {self.recovery_action}")
        if self.technical_details:
            lines.append(f"Technical Details: {self.technical_details}")
        if self.kind is ErrorKind.ESCAPE_MARKER_INVALID:
            lines.append(f"Has Start Marker: {self.has_start}")
            lines.append(f"Has End Marker: {self.has_end}")
            lines.append(f"Has Content: {self.has_content}")
        if self.kind is ErrorKind.FORMAT_MISMATCH:
            lines.append(f"Expected Format: {self.expected_format}")
            lines.append(f"Actual Format: {self.actual_format}")
        if self.processor:
            lines.append(f"Processor: {self.processor}")
        return "\n".join(lines)
