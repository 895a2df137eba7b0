"""
Output encoders for the two contexts a rewritten tag writes into: HTML
attribute values and JavaScript string literals.
"""

import html
import json


_JS_EXTRA_ESCAPES = {
    '<': '\\u003C',
    '>': '\\u003E',
    '&': '\\u0026',
    "'": '\\u0027',
}


def html_encode(value: str) -> str:
    return html.escape(value, quote=True)


def javascript_encode(value: str) -> str:
    """Encode text for the inside of a double- or single-quoted JS string."""
    # json.dumps escapes quotes and control characters; ensure_ascii covers U+2028/U+2029
    encoded = json.dumps(value)[1:-1]
    return ''.join(_JS_EXTRA_ESCAPES.get(ch, ch) for ch in encoded)
