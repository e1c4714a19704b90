from typing import Any


def safe_preview(value: Any, limit: int = 200) -> str:
    """
    Best-effort, bounded preview of an LLM response for logging.

    Strings are shown as-is with newlines escaped, anything else via ``repr``.
    Never returns more than ``limit`` characters.
    """
    if isinstance(value, str):
        text = value.replace("\n", "\\n")
    else:
        try:
            text = repr(value)
        except Exception:
            text = f"<unrepr-able {type(value)!r}>"

    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
