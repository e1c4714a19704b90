import pytest

from content_pipeline.config import Settings
from content_pipeline.confluence_render import (
    cleanup_confluence_tags,
    extract_parameter,
    extract_plain_text_body,
    transform_code_macros,
    transform_for_render,
    transform_info_macros,
    transform_note_macros,
    transform_warning_macros,
)
from content_pipeline.diagram import encode_diagram


@pytest.fixture
def settings():
    return Settings(_env_file=None)


def _macro(name: str, inner: str) -> str:
    return f'<ac:structured-macro ac:name="{name}" ac:schema-version="1">{inner}</ac:structured-macro>'


def test_info_macro_with_title(settings) -> None:
    storage = _macro(
        "info",
        '<ac:parameter ac:name="title">Heads up</ac:parameter>'
        "<ac:rich-text-body><p>Read <strong>this</strong></p></ac:rich-text-body>",
    )
    rendered = transform_for_render(storage, settings)
    assert "ac:structured-macro" not in rendered
    assert "ℹ️</span>Heads up" in rendered
    assert "<div><p>Read <strong>this</strong></p></div>" in rendered


@pytest.mark.parametrize(
    "transform, name, title",
    [
        (transform_info_macros, "info", "Information"),
        (transform_note_macros, "note", "Note"),
        (transform_warning_macros, "warning", "Attention"),
    ],
)
def test_default_titles(transform, name, title) -> None:
    rendered = transform(_macro(name, "<ac:rich-text-body><p>x</p></ac:rich-text-body>"))
    assert f"</span>{title}" in rendered
    assert "<div><p>x</p></div>" in rendered


def test_code_macro_escapes_source() -> None:
    storage = _macro(
        "code",
        '<ac:parameter ac:name="language">java</ac:parameter>'
        "<ac:plain-text-body><![CDATA[List<String> x = a && b;]]></ac:plain-text-body>",
    )
    rendered = transform_code_macros(storage)
    assert "Code (java)" in rendered
    assert "<code>List&lt;String&gt; x = a &amp;&amp; b;</code>" in rendered


def test_code_macro_without_language_has_no_label() -> None:
    rendered = transform_code_macros(
        _macro("code", "<ac:plain-text-body>print(1)</ac:plain-text-body>")
    )
    assert "Code (" not in rendered
    assert "<code>print(1)</code>" in rendered


def test_panel_macro(settings) -> None:
    storage = _macro(
        "panel",
        '<ac:parameter ac:name="title">Scope</ac:parameter>'
        "<ac:rich-text-body><ul><li>One</li></ul></ac:rich-text-body>",
    )
    rendered = transform_for_render(storage, settings)
    assert ">Scope</div>" in rendered
    assert "<div><ul><li>One</li></ul></div>" in rendered


def test_nested_macros_are_all_rewritten(settings) -> None:
    inner = _macro("info", "<ac:rich-text-body><p>inner</p></ac:rich-text-body>")
    storage = _macro("panel", f"<ac:rich-text-body>{inner}</ac:rich-text-body>")
    rendered = transform_for_render(storage, settings)
    assert "ac:structured-macro" not in rendered
    assert "ac:rich-text-body" not in rendered
    assert "</span>Information" in rendered
    assert "<p>inner</p>" in rendered


def test_unknown_macro_passes_through(settings) -> None:
    storage = (
        "<p>before</p>"
        + _macro("jira", '<ac:parameter ac:name="key">PROJ-1</ac:parameter>')
        + "<p>after</p>"
    )
    assert transform_for_render(storage, settings) == storage


def test_info_box_keeps_unknown_macro_inside(settings) -> None:
    """An unknown macro inside a box is kept verbatim and does not block the box."""
    status = _macro(
        "status",
        '<ac:parameter ac:name="title">DONE</ac:parameter>'
        '<ac:parameter ac:name="colour">Green</ac:parameter>',
    )
    storage = _macro("info", f"<ac:rich-text-body><p>State: {status}</p></ac:rich-text-body>")
    rendered = transform_for_render(storage, settings)
    assert 'ac:name="info"' not in rendered
    assert "border-left" in rendered
    assert "</span>Information" in rendered
    assert f"<div><p>State: {status}</p></div>" in rendered


def test_note_with_self_closing_macro(settings) -> None:
    anchor = '<ac:structured-macro ac:name="anchor" />'
    storage = _macro("note", f"<ac:rich-text-body><p>{anchor}Text</p></ac:rich-text-body>")
    rendered = transform_for_render(storage, settings)
    assert "</span>Note" in rendered
    assert f"<p>{anchor}Text</p>" in rendered


def test_known_macro_inside_unknown_inside_known(settings) -> None:
    note = _macro("note", "<ac:rich-text-body><p>deep</p></ac:rich-text-body>")
    expand = _macro("expand", f"<ac:rich-text-body>{note}</ac:rich-text-body>")
    storage = _macro("panel", f"<ac:rich-text-body>{expand}</ac:rich-text-body>")
    rendered = transform_for_render(storage, settings)
    assert 'ac:name="panel"' not in rendered
    assert 'ac:name="note"' not in rendered
    assert 'ac:name="expand"' in rendered
    assert "<p>deep</p>" in rendered


def test_plantuml_macro_becomes_image(settings) -> None:
    source = "@startuml\nA -> B\n@enduml"
    storage = _macro(
        "plantuml", f"<ac:plain-text-body><![CDATA[{source}]]></ac:plain-text-body>"
    )
    rendered = transform_for_render(storage, settings)
    assert f'src="https://www.plantuml.com/plantuml/svg/~1{encode_diagram(source)}"' in rendered
    assert "@startuml\nA -&gt; B\n@enduml" in rendered


def test_plantuml_uses_configured_server() -> None:
    settings = Settings(_env_file=None, diagram_server_url="http://localhost:8080/svg/")
    storage = _macro("plantuml", "<ac:plain-text-body>A -> B</ac:plain-text-body>")
    assert 'src="http://localhost:8080/svg/' in transform_for_render(storage, settings)


def test_plain_html_is_unchanged(settings) -> None:
    storage = "<h1>Техническое задание</h1><p>Text</p>"
    assert transform_for_render(storage, settings) == storage


def test_empty_input(settings) -> None:
    assert transform_for_render("", settings) == ""


def test_cleanup_confluence_tags() -> None:
    assert cleanup_confluence_tags(
        "<ac:rich-text-body><p>x</p></ac:rich-text-body><ac:plain-text-body>y</ac:plain-text-body>"
    ) == "<p>x</p>y"


def test_extract_helpers() -> None:
    content = '<ac:parameter ac:name="title">  Spaced  </ac:parameter>'
    assert extract_parameter(content, "title") == "Spaced"
    assert extract_parameter(content, "language") is None
    assert extract_plain_text_body("<ac:plain-text-body> raw </ac:plain-text-body>") == "raw"
    assert extract_plain_text_body("<p>none</p>") == ""
