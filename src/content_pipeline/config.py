from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Manages pipeline configuration using Pydantic."""

    model_config = SettingsConfigDict(
        env_prefix="CONTENT_PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Document title expected at the top of every generated document
    document_title: str = "Техническое задание"
    title_pattern: str = r"[Тт]ехническое\s+задание|technical\s+specification"

    # Extraction tolerances
    max_unclosed_tags: int = 3
    min_plain_text_length: int = 20
    max_response_chars: int = 2_000_000

    # Rendering
    diagram_server_url: str = "https://www.plantuml.com/plantuml/svg/~1"

    log_level: str = "INFO"
