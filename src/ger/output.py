# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""
Output encoders for the three output formats.

Every informational command can render as human text, as XML for
language-model callers, or as JSON for scripts. Escaping happens here,
at the boundary, and never inside the data passed in:

- XML element text is either entity-escaped or wrapped in CDATA, and a
  ``]]>`` inside CDATA content is neutralized to ``]]&gt;``.
- JSON is pretty-printed with two-space indentation and optional (None)
  fields are dropped rather than serialized as null.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from enum import Enum
from typing import Any, Final

XML_DECLARATION: Final[str] = '<?xml version="1.0" encoding="UTF-8"?>'

_XML_ESCAPES: Final[dict[str, str]] = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}
_XML_ESCAPE_RE: Final[re.Pattern[str]] = re.compile(r"[&<>\"']")


class OutputFormat(str, Enum):
    """Supported output formats."""

    TEXT = "text"
    XML = "xml"
    JSON = "json"

    @classmethod
    def from_flags(cls, xml: bool = False, json_output: bool = False) -> OutputFormat:
        """Pick a format from the ``--xml``/``--json`` flags (XML wins)."""
        if xml:
            return cls.XML
        if json_output:
            return cls.JSON
        return cls.TEXT


def escape_xml(value: Any) -> str:
    """Escape text for XML element content or attribute values."""
    return _XML_ESCAPE_RE.sub(lambda m: _XML_ESCAPES[m.group(0)], str(value))


def sanitize_cdata(value: Any) -> str:
    """Neutralize CDATA terminators inside content."""
    return str(value).replace("]]>", "]]&gt;")


def cdata(value: Any) -> str:
    """Wrap text in a CDATA section."""
    return f"<![CDATA[{sanitize_cdata(value)}]]>"


def _render_attrs(attrs: Mapping[str, Any] | None) -> str:
    if not attrs:
        return ""
    return "".join(
        f' {name}="{escape_xml(value)}"'
        for name, value in attrs.items()
        if value is not None
    )


class XmlDocument:
    """
    Line-oriented XML document builder with two-space indentation.

    Elements whose value is None are omitted entirely; an explicitly
    empty element is written with ``empty()``.

    Usage:
        doc = XmlDocument("vote_result")
        doc.element("status", "success")
        with doc.section("labels"):
            doc.element("label", 2, attrs={"name": "Code-Review"})
        print(doc.render())
    """

    def __init__(self, root: str, attrs: Mapping[str, Any] | None = None) -> None:
        self._root = root
        self._lines: list[str] = [XML_DECLARATION, f"<{root}{_render_attrs(attrs)}>"]
        self._depth = 1

    def _indent(self) -> str:
        return "  " * self._depth

    def element(
        self,
        tag: str,
        value: Any,
        *,
        use_cdata: bool = False,
        attrs: Mapping[str, Any] | None = None,
    ) -> None:
        """Append ``<tag>value</tag>``; skipped when value is None."""
        if value is None:
            return
        if isinstance(value, bool):
            text = "true" if value else "false"
        else:
            text = cdata(value) if use_cdata else escape_xml(value)
        self._lines.append(
            f"{self._indent()}<{tag}{_render_attrs(attrs)}>{text}</{tag}>"
        )

    def text(self, tag: str, value: Any, **kwargs: Any) -> None:
        """Append free-form text as CDATA."""
        self.element(tag, value, use_cdata=True, **kwargs)

    def empty(self, tag: str, attrs: Mapping[str, Any] | None = None) -> None:
        """Append a self-closing element."""
        self._lines.append(f"{self._indent()}<{tag}{_render_attrs(attrs)} />")

    @contextmanager
    def section(
        self, tag: str, attrs: Mapping[str, Any] | None = None
    ) -> Iterator[XmlDocument]:
        """Open a nested element for the duration of the block."""
        self._lines.append(f"{self._indent()}<{tag}{_render_attrs(attrs)}>")
        self._depth += 1
        try:
            yield self
        finally:
            self._depth -= 1
            self._lines.append(f"{self._indent()}</{tag}>")

    def render(self) -> str:
        """Return the finished document."""
        return "\n".join([*self._lines, f"</{self._root}>"])


def prune_none(value: Any) -> Any:
    """Recursively drop None values from mappings."""
    if isinstance(value, Mapping):
        return {k: prune_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [prune_none(item) for item in value]
    return value


def to_json(payload: Mapping[str, Any]) -> str:
    """Serialize a payload as two-space indented JSON without nulls."""
    return json.dumps(prune_none(payload), indent=2, ensure_ascii=False)


def render_error(fmt: OutputFormat, tag: str, message: str) -> str:
    """
    Render the error envelope for a structured format.

    Text output has no envelope; callers print ``✗ Error: <message>`` to
    stderr instead.
    """
    if fmt == OutputFormat.JSON:
        return to_json({"status": "error", "error": message})
    doc = XmlDocument(tag)
    doc.element("status", "error")
    doc.text("error", message)
    return doc.render()


__all__ = [
    "OutputFormat",
    "XML_DECLARATION",
    "XmlDocument",
    "cdata",
    "escape_xml",
    "prune_none",
    "render_error",
    "sanitize_cdata",
    "to_json",
]
