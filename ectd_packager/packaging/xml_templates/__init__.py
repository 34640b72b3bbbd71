"""
Text builders for the eCTD XML backbone files.

Output is assembled line by line rather than through a DOM so attribute
order, indentation and escaping stay exactly as regulators' tools expect.
"""

from datetime import datetime
from xml.sax.saxutils import escape

_QUOTE_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(text: str) -> str:
    """Escape & < > " ' for element text and attribute values."""
    return escape(text, _QUOTE_ENTITIES)


def format_date(value: datetime) -> str:
    return value.date().isoformat()


class XmlLines:
    """
    Accumulates (depth, text) lines.

    Pretty output indents two spaces per depth and joins with newlines;
    compact output drops both.
    """

    def __init__(self) -> None:
        self._lines: list[tuple[int, str]] = []

    def add(self, depth: int, text: str) -> None:
        self._lines.append((depth, text))

    def element(self, depth: int, tag: str, text: str | None) -> None:
        """Emit <tag>text</tag>, skipping empty values."""
        if text:
            self.add(depth, f"<{tag}>{escape_xml(text)}</{tag}>")

    def extend(self, other: "XmlLines") -> None:
        self._lines.extend(other._lines)

    def render(self, pretty_print: bool = True) -> str:
        if pretty_print:
            return "\n".join("  " * depth + text for depth, text in self._lines)
        return "".join(text for _, text in self._lines)


def xml_declaration(encoding: str) -> str:
    return f'<?xml version="1.0" encoding="{encoding}"?>'
