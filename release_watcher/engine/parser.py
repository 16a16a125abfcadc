"""Extraction of a single tracked value from JSON and HTML responses."""

from __future__ import annotations

import json
import re
from typing import Any

from selectolax.lexbor import LexborHTMLParser

from ..config.models import SourceRecord, SourceType
from ..errors import AttributeMissingError, ParseError, RegexNoMatchError, SelectorMissError
from .fingerprint import canonical_json, format_number
from .patterns import compile_regex
from .selector import MISSING, select_json_value

DEFAULT_HTML_SELECTOR = "body"

_WHITESPACE = re.compile(r"\s+")


def normalize_text(value: str) -> str:
    return _WHITESPACE.sub(" ", value.strip())


def normalize_value(value: Any) -> str:
    """Render any extracted value as a single-line display string."""

    if value is None:
        return ""
    if isinstance(value, str):
        return normalize_text(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return canonical_json(value)


def apply_regex(value: str, expression: str) -> str:
    pattern = compile_regex(expression)
    if pattern is None:
        return value
    match = pattern.search(value)
    if match is None:
        raise RegexNoMatchError(f"Regex did not match. Expression: {expression}")
    if pattern.groups and match.group(1) is not None:
        return match.group(1)
    return match.group(0)


class Extractor:
    """Evaluate a source's selector configuration against a response body."""

    def extract(self, body: str, source: SourceRecord) -> Any:
        if source.type is SourceType.JSON:
            return self.extract_json(body, source)
        return self.extract_html(body, source)

    def extract_json(self, body: str, source: SourceRecord) -> Any:
        try:
            document = json.loads(body)
        except ValueError as exc:
            raise ParseError("Response was not valid JSON.") from exc

        selected = select_json_value(document, source.output_selector)
        if selected is MISSING:
            raise SelectorMissError(f"Selector did not resolve any value: {source.output_selector}")

        if source.regex:
            return normalize_text(apply_regex(normalize_value(selected), source.regex))
        # Without a regex the structured value is kept so it can be hashed.
        if isinstance(selected, str):
            return normalize_text(selected)
        return selected

    def extract_html(self, body: str, source: SourceRecord) -> str:
        selector = source.selector or DEFAULT_HTML_SELECTOR
        node = LexborHTMLParser(body).css_first(selector)
        if node is None:
            raise SelectorMissError(f"Selector did not match any element: {selector}")

        if source.attribute:
            attributes = node.attributes
            if source.attribute not in attributes:
                raise AttributeMissingError(
                    f"Attribute did not exist on selected element: {source.attribute}"
                )
            raw_value = attributes.get(source.attribute) or ""
        else:
            raw_value = node.text(deep=True, separator="", strip=False)

        normalized = normalize_text(raw_value)
        if source.regex:
            return normalize_text(apply_regex(normalized, source.regex))
        return normalized


__all__ = ["DEFAULT_HTML_SELECTOR", "Extractor", "apply_regex", "normalize_text", "normalize_value"]
