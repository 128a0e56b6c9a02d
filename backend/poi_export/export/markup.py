"""
Small line-oriented XML builder used by the waypoint encoders.

All text and attribute values pass through xml_text() here: characters XML 1.0
does not allow are dropped, then markup characters are entity-escaped, so
user-supplied names and descriptions cannot break the document structure.
"""
import re
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape, quoteattr

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

# Outside the XML 1.0 Char production: C0 controls other than tab, LF and CR,
# lone surrogates and the U+FFFE/U+FFFF noncharacters
_ILLEGAL_XML_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def xml_text(value: Any) -> str:
    """Text of value with characters illegal in XML 1.0 removed."""
    return _ILLEGAL_XML_CHARS.sub("", str(value))


class MarkupBuilder:
    """
    Builds an XML fragment one line per element.

    Usage:
        builder = MarkupBuilder(level=1)
        builder.open("wpt", {"lat": "1", "lon": "2"})
        builder.element("name", "Spot")
        builder.close("wpt")
        builder.render()
    """

    def __init__(self, level: int = 0, indent: str = "    "):
        self.level = level
        self.indent = indent
        self._lines: List[str] = []

    def _attrs(self, attrs: Optional[Dict[str, Any]]) -> str:
        if not attrs:
            return ""
        return "".join(f" {name}={quoteattr(xml_text(value))}" for name, value in attrs.items())

    def raw(self, line: str) -> "MarkupBuilder":
        """Append a trusted line (declarations, fixed envelopes)."""
        self._lines.append(self.indent * self.level + line)
        return self

    def open(self, tag: str, attrs: Optional[Dict[str, Any]] = None) -> "MarkupBuilder":
        self._lines.append(f"{self.indent * self.level}<{tag}{self._attrs(attrs)}>")
        self.level += 1
        return self

    def close(self, tag: str) -> "MarkupBuilder":
        self.level -= 1
        self._lines.append(f"{self.indent * self.level}</{tag}>")
        return self

    def element(
        self, tag: str, text: Any = None, attrs: Optional[Dict[str, Any]] = None
    ) -> "MarkupBuilder":
        """Append <tag attrs>text</tag>, or a self-closing tag when text is None."""
        prefix = f"{self.indent * self.level}<{tag}{self._attrs(attrs)}"
        if text is None:
            self._lines.append(prefix + "/>")
        else:
            self._lines.append(f"{prefix}>{escape(xml_text(text))}</{tag}>")
        return self

    def render(self) -> str:
        if not self._lines:
            return ""
        return "\n".join(self._lines) + "\n"
