"""
Body renderers for handlers: JsonBuilder for JSON, Template for HTML/text.

Both are plain per-call objects with no I/O; a handler creates one,
fills it from host state, and hands the result to the response.
"""

from .json_builder import (
    JsonBuilder,
    JsonBuilderError,
    escape_json_string,
    unescape_json_string,
    format_pretty,
)
from .template import Template, parse_template, MAX_PARTIAL_DEPTH

__all__ = [
    "JsonBuilder",
    "JsonBuilderError",
    "escape_json_string",
    "unescape_json_string",
    "format_pretty",
    "Template",
    "parse_template",
    "MAX_PARTIAL_DEPTH",
]
