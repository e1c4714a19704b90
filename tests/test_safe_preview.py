from content_pipeline.preview import safe_preview


def test_safe_preview_truncates() -> None:
    out = safe_preview("x" * 100, limit=10)
    assert out.endswith("...")
    assert len(out) == 10


def test_safe_preview_limit_zero() -> None:
    assert safe_preview("anything", limit=0) == ""


def test_safe_preview_escapes_newlines() -> None:
    assert safe_preview("a\nb") == "a\\nb"


def test_safe_preview_non_string() -> None:
    assert safe_preview({"content": 1}) == "{'content': 1}"
