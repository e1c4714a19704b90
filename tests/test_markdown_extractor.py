import pytest

from content_pipeline.exceptions import ContentProcessingError, ErrorKind
from content_pipeline.markdown_extractor import (
    clean_markdown,
    decode_html_entities,
    extract_markdown,
    has_markdown_structure,
    remove_disallowed_html_tags,
)


def test_extracts_content_between_markers() -> None:
    """Tests that surrounding chatter and trailing text are dropped."""
    raw = "blah @@@START@@@\n# Title\nBody\n@@@END@@@ trailing"
    assert extract_markdown(raw) == "# Title\nBody"


def test_round_trip_keeps_inner_content() -> None:
    content = "# Техническое задание\n\n## Goals\n\n- Fast\n- **Reliable**\n\n```python\nprint(1)\n```"
    raw = f"Sure, here it is:\n@@@START@@@\n{content}\n@@@END@@@\nHope this helps!"
    assert extract_markdown(raw) == content


def test_plain_prose_is_accepted() -> None:
    raw = "@@@START@@@\nJust a sentence without any structure.\n@@@END@@@"
    assert extract_markdown(raw) == "Just a sentence without any structure."


def test_empty_response() -> None:
    with pytest.raises(ContentProcessingError) as excinfo:
        extract_markdown("   ")
    assert excinfo.value.kind is ErrorKind.MARKDOWN_INVALID


def test_missing_start_marker_propagates_unchanged() -> None:
    with pytest.raises(ContentProcessingError) as excinfo:
        extract_markdown("# Title\n@@@END@@@")
    error = excinfo.value
    assert error.kind is ErrorKind.ESCAPE_MARKER_INVALID
    assert (error.has_start, error.has_end, error.has_content) == (False, True, False)


def test_empty_content_between_markers() -> None:
    with pytest.raises(ContentProcessingError) as excinfo:
        extract_markdown("@@@START@@@\n\n   \n@@@END@@@")
    assert excinfo.value.kind is ErrorKind.MARKDOWN_INVALID
    assert "empty" in excinfo.value.message


def test_markup_only_content_fails_after_lenient_retry() -> None:
    """Content that is nothing but disallowed tags fails with both attempts recorded."""
    with pytest.raises(ContentProcessingError) as excinfo:
        extract_markdown("@@@START@@@<div><span></span></div>@@@END@@@")
    error = excinfo.value
    assert error.kind is ErrorKind.MARKDOWN_INVALID
    assert "Strict extraction" in error.technical_details
    assert "lenient extraction" in error.technical_details


def test_disallowed_tags_removed_allowed_kept() -> None:
    content = '<div class="x">Text with <strong>bold</strong> and <code>x</code></div><br/>'
    assert (
        remove_disallowed_html_tags(content)
        == "Text with <strong>bold</strong> and <code>x</code><br/>"
    )


def test_comparison_operators_are_not_tags() -> None:
    assert remove_disallowed_html_tags("a < b and c > d") == "a < b and c > d"


def test_decode_html_entities() -> None:
    assert decode_html_entities("&lt;a&gt; &amp; &quot;q&quot; &#39;s&#39;&nbsp;x") == (
        "<a> & \"q\" 's' x"
    )


def test_decode_html_entities_single_pass() -> None:
    """A double-encoded entity is decoded only once."""
    assert decode_html_entities("&amp;lt;") == "&lt;"


def test_clean_markdown_never_leaves_disallowed_tags() -> None:
    cleaned = clean_markdown("# T\n&lt;div&gt;text&lt;/div&gt;")
    assert "<div>" not in cleaned
    assert cleaned == "# T\ntext"


def test_has_markdown_structure() -> None:
    assert has_markdown_structure("intro\n# Heading")
    assert has_markdown_structure("- item")
    assert has_markdown_structure("some **bold** text")
    assert has_markdown_structure("> quoted")
    assert has_markdown_structure("```\ncode\n```")
    assert not has_markdown_structure("Just prose. Nothing else.")
