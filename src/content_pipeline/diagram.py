import base64
import html
import logging
import zlib

logger = logging.getLogger(__name__)

ENCODING_ERROR_TOKEN = "error_encoding"

_URL_SAFE = str.maketrans({"+": "-", "/": "_"})


def encode_diagram(source: str) -> str:
    """
    Encodes diagram source for a PlantUML server URL.

    UTF-8 bytes are compressed as a raw DEFLATE stream at level 9, base64
    encoded, then made URL-safe (``+`` to ``-``, ``/`` to ``_``, no ``=``
    padding).

    Returns:
        The encoded token, or ``ENCODING_ERROR_TOKEN`` if encoding failed.
    """
    try:
        data = source.encode("utf-8")
        compressor = zlib.compressobj(9, zlib.DEFLATED, -15)
        compressed = compressor.compress(data) + compressor.flush()
        encoded = base64.b64encode(compressed).decode("ascii")
        return encoded.translate(_URL_SAFE).rstrip("=")
    except Exception as e:
        logger.warning(f"Failed to encode diagram source: {e}")
        return ENCODING_ERROR_TOKEN


def diagram_image_url(source: str, base_url: str) -> str:
    return f"{base_url}{encode_diagram(source)}"


def render_diagram_html(source: str, base_url: str) -> str:
    """
    Renders diagram source as an image with a collapsible source fallback.

    If the image fails to load, the ``onerror`` handler reveals the original
    source so the diagram content is never lost.
    """
    if not source.strip():
        return """
<div style="border: 2px dashed #DFE1E6; padding: 16px; margin: 8px 0; text-align: center; color: #6B778C; border-radius: 4px;">
  <div style="margin-bottom: 8px;">PlantUML diagram</div>
  <div style="font-size: 12px;">Diagram code is empty</div>
</div>"""

    url = html.escape(diagram_image_url(source, base_url))
    escaped_source = html.escape(source, quote=False)
    return f"""
<div style="margin: 8px 0;">
  <img src="{url}" alt="PlantUML diagram" style="max-width: 100%;" onerror="this.style.display='none'; this.nextElementSibling.style.display='block'; this.nextElementSibling.open = true;">
  <details style="display: none; border: 1px solid #DFE1E6; border-radius: 4px;">
    <summary style="padding: 8px; font-size: 12px; color: #6B778C; cursor: pointer;">PlantUML source</summary>
    <pre style="background: #F8F9FA; padding: 12px; margin: 0; overflow-x: auto; font-size: 12px; line-height: 1.4; white-space: pre-wrap;">{escaped_source}</pre>
  </details>
</div>"""
