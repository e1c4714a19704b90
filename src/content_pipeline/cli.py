import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from content_pipeline.config import Settings
from content_pipeline.confluence_render import transform_for_render
from content_pipeline.diagram import diagram_image_url
from content_pipeline.exceptions import ContentProcessingError
from content_pipeline.fallback import process
from content_pipeline.models import TargetFormat
from content_pipeline.response_validation import validate_llm_response

app = typer.Typer()
console = Console()
logger = logging.getLogger(__name__)


def _configure_logging(settings: Settings) -> None:
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def _read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except FileNotFoundError:
        console.print(f"[bold red]Error:[/bold red] File not found at: {path}")
        raise typer.Exit(code=1)
    except UnicodeDecodeError as e:
        console.print(f"[bold red]Error:[/bold red] File is not valid UTF-8: {path} ({e.reason})")
        raise typer.Exit(code=1)


def _write_or_print(content: str, output: Optional[str]) -> None:
    if output is None:
        console.print(content, markup=False, highlight=False, soft_wrap=True)
        return
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(content)
    console.print(f"[bold green]Success:[/bold green] Saved to: {output}")


def _report_error(error: ContentProcessingError) -> None:
    logger.debug(error.format_for_logging(context="cli"))
    console.print(f"[bold red]{error.title}:[/bold red] {error.message}", highlight=False)
    if error.recovery_action:
        console.print(f"[yellow]Recommended action:[/yellow] {error.recovery_action}", highlight=False)


@app.callback()
def callback() -> None:
    """
    A CLI for extracting generated documents from raw LLM responses.
    """


@app.command()
def extract(
    response_path: str = typer.Argument(
        ..., help="The local path to the raw LLM response."
    ),
    target_format: TargetFormat = typer.Option(
        TargetFormat.MARKDOWN,
        "--format",
        "-f",
        help="The format the document must be extracted into.",
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Where to save the document. Prints it if omitted."
    ),
) -> None:
    """
    Extracts a Markdown or Confluence document from a raw LLM response.
    """
    settings = Settings()
    _configure_logging(settings)
    raw_response = _read_text(response_path)

    try:
        result = process(raw_response, target_format, settings)
    except ContentProcessingError as e:
        _report_error(e)
        raise typer.Exit(code=1)

    if result.strategy != "primary":
        console.print(
            f"[yellow]Warning:[/yellow] content recovered with the '{result.strategy}' strategy."
        )
    _write_or_print(result.content, output)


@app.command()
def render(
    storage_path: str = typer.Argument(
        ..., help="The local path to a Confluence storage format document."
    ),
    output: Optional[str] = typer.Option(
        None, "--output", "-o", help="Where to save the HTML. Prints it if omitted."
    ),
) -> None:
    """
    Converts Confluence macros into plain HTML for previewing.
    """
    settings = Settings()
    _configure_logging(settings)
    storage_html = _read_text(storage_path)
    _write_or_print(transform_for_render(storage_html, settings), output)


@app.command()
def validate(
    response_path: str = typer.Argument(
        ..., help="The local path to the raw LLM response."
    ),
    target_format: TargetFormat = typer.Option(
        TargetFormat.MARKDOWN, "--format", "-f", help="The expected format."
    ),
) -> None:
    """
    Checks a raw LLM response for formatting problems without extracting it.
    """
    settings = Settings()
    _configure_logging(settings)
    raw_response = _read_text(response_path)

    try:
        validate_llm_response(raw_response, target_format)
    except ContentProcessingError as e:
        _report_error(e)
        for suggestion in e.recovery_suggestions():
            console.print(f"  • {suggestion}", highlight=False)
        raise typer.Exit(code=1)

    console.print(
        f"[bold green]Success:[/bold green] Response is valid {target_format.display_name}."
    )


@app.command("encode-diagram")
def encode_diagram_command(
    source_path: str = typer.Argument(
        ..., help="The local path to a PlantUML diagram source file."
    ),
) -> None:
    """
    Prints the image URL for a PlantUML diagram.
    """
    settings = Settings()
    source = _read_text(source_path)
    console.print(
        diagram_image_url(source, settings.diagram_server_url),
        markup=False,
        highlight=False,
        soft_wrap=True,
    )


if __name__ == "__main__":
    app()
