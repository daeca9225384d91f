"""A small XML printer that writes start and end tags with namespace prefixes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, TextIO

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"

_ESCAPES = {
    '"': "&#34;",
    "'": "&#39;",
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    "\t": "&#x9;",
    "\n": "&#xA;",
    "\r": "&#xD;",
}


def _is_xml_char(ch: str) -> bool:
    code = ord(ch)
    return (
        code in (0x09, 0x0A, 0x0D)
        or 0x20 <= code <= 0xD7FF
        or 0xE000 <= code <= 0xFFFD
        or 0x10000 <= code <= 0x10FFFF
    )


class Name(NamedTuple):
    """A namespace qualified XML name."""

    space: str = ""
    local: str = ""


class Attr(NamedTuple):
    """An XML attribute."""

    name: Name
    value: str = ""


@dataclass
class StartElement:
    """An XML start tag with its attributes."""

    name: Name
    attrs: List[Attr] = field(default_factory=list)


class Printer:
    """Writes XML tags to a text stream, tracking namespace prefixes."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self.auto_close = False
        self.skip_attr_escape = False
        self._attr_prefix: Dict[str, str] = {}

    def _create_attr_prefix(self, attr: Attr) -> str:
        prefix = self._attr_prefix.get(attr.name.space, "")
        if prefix:
            return prefix
        if attr.name.space == XML_NAMESPACE:
            return "xml"
        ns, prefix = attr.name.space, attr.name.local
        if attr.name.space == "xmlns":
            ns = attr.value
        self._attr_prefix[ns] = prefix
        return attr.name.space

    def _element_prefix(self, name: Name) -> str:
        if name.space:
            prefix = self._attr_prefix.get(name.space, "")
            if prefix:
                return prefix + ":"
        return ""

    def escape_string(self, text: str) -> None:
        """Write ``text`` with XML special characters escaped."""
        self._stream.write(
            "".join(
                _ESCAPES.get(ch, ch) if _is_xml_char(ch) else "\ufffd" for ch in text
            )
        )

    def write_start(self, start: StartElement) -> None:
        """Write a start tag, self-closing when ``auto_close`` is set."""
        write = self._stream.write
        write("<" + self._element_prefix(start.name) + start.name.local)
        for attr in start.attrs:
            if not attr.name.local:
                continue
            write(" ")
            if attr.name.space:
                write(self._create_attr_prefix(attr) + ":")
            write(attr.name.local + '="')
            if self.skip_attr_escape:
                write(attr.value)
            else:
                self.escape_string(attr.value)
            write('"')
        write("/>" if self.auto_close else ">")

    def write_end(self, name: Name) -> None:
        """Write an end tag."""
        self._stream.write("</" + self._element_prefix(name) + name.local + ">")