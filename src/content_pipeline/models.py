import enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FormatInfo(NamedTuple):
    display_name: str
    file_extension: str
    content_type: str
    is_default: bool


class TargetFormat(str, enum.Enum):
    """Output formats a generated document can be extracted into."""

    MARKDOWN = "markdown"
    CONFLUENCE = "confluence"

    @property
    def info(self) -> FormatInfo:
        return _FORMAT_INFO[self]

    @property
    def display_name(self) -> str:
        return self.info.display_name

    @property
    def file_extension(self) -> str:
        return self.info.file_extension

    @property
    def content_type(self) -> str:
        return self.info.content_type

    @property
    def is_default(self) -> bool:
        return self.info.is_default

    @property
    def other(self) -> "TargetFormat":
        if self is TargetFormat.MARKDOWN:
            return TargetFormat.CONFLUENCE
        return TargetFormat.MARKDOWN

    @classmethod
    def default(cls) -> "TargetFormat":
        return next(fmt for fmt in cls if fmt.is_default)


_FORMAT_INFO = {
    TargetFormat.MARKDOWN: FormatInfo("Markdown", "md", "text/markdown", True),
    TargetFormat.CONFLUENCE: FormatInfo(
        "Confluence Storage Format", "html", "text/html", False
    ),
}


class ExtractionResult(BaseModel):
    """Cleaned document content and the format it structurally conforms to."""

    model_config = ConfigDict(frozen=True)

    content: str = Field(..., description="The extracted document content.")
    format: TargetFormat
    strategy: str = Field(
        "primary", description="Name of the strategy that produced the content."
    )

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value or value.isspace():
            raise ValueError("extracted content must not be empty")
        return value
