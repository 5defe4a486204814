from __future__ import annotations

import zipfile
import zlib
from collections import deque
from dataclasses import dataclass, field
from html.entities import name2codepoint
from typing import IO, Iterator, Mapping, Union
from xml.parsers import expat

from .paths import decode_href

_CHUNK_SIZE = 16 * 1024

# Entity names XHTML content uses without declaring them.
_HTML_ENTITIES = {name: chr(codepoint) for name, codepoint in name2codepoint.items()}

# Failures a compressed archive entry can raise while it is being read.
STREAM_READ_ERRORS = (OSError, EOFError, zlib.error, zipfile.BadZipFile)


@dataclass(frozen=True)
class StartElement:
    name: str
    attributes: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EndElement:
    name: str


@dataclass(frozen=True)
class Characters:
    text: str


XmlEvent = Union[StartElement, EndElement, Characters]


class XmlStreamError(ValueError):
    """Raised when the underlying XML stream cannot be tokenized."""


def _strip_tag(tag: str) -> str:
    return tag.split("}", 1)[-1] if "}" in tag else tag


class _EventCollector:
    """Expat handlers that queue flat start/end/characters events."""

    def __init__(self, events: deque[XmlEvent]) -> None:
        self._events = events

    def start(self, tag: str, attrib: Mapping[str, str]) -> None:
        attributes = {_strip_tag(key): value for key, value in attrib.items()}
        self._events.append(StartElement(_strip_tag(tag), attributes))

    def end(self, tag: str) -> None:
        self._events.append(EndElement(_strip_tag(tag)))

    def data(self, text: str) -> None:
        self._events.append(Characters(text))

    def skipped_entity(self, name: str, is_parameter_entity: bool) -> None:
        if is_parameter_entity:
            return
        self._events.append(Characters(_HTML_ENTITIES.get(name, f"&{name};")))


def _make_parser(collector: _EventCollector) -> expat.XMLParserType:
    parser = expat.ParserCreate(namespace_separator="}")
    # Pretend an external DTD exists so undeclared entities are reported as
    # skipped instead of failing, whatever doctype the document carries.
    parser.UseForeignDTD(True)
    parser.StartElementHandler = collector.start
    parser.EndElementHandler = collector.end
    parser.CharacterDataHandler = collector.data
    parser.SkippedEntityHandler = collector.skipped_entity
    return parser


class XmlEventReader:
    """Pull-style event reader over a binary stream.

    The stream is fed to the parser in fixed-size chunks, so a document is
    never held in memory as a whole. Iteration ends at end-of-stream. On
    malformed input, or when the stream itself cannot be read, the events
    parsed before the fault are still delivered, then ``XmlStreamError`` is
    raised.
    """

    def __init__(self, stream: IO[bytes], chunk_size: int = _CHUNK_SIZE) -> None:
        self._stream = stream
        self._chunk_size = chunk_size
        self._events: deque[XmlEvent] = deque()
        self._parser = _make_parser(_EventCollector(self._events))
        self._finished = False
        self._error: XmlStreamError | None = None

    def __iter__(self) -> Iterator[XmlEvent]:
        return self

    def __next__(self) -> XmlEvent:
        while not self._events:
            if self._error is not None:
                raise self._error
            if self._finished:
                raise StopIteration
            self._pump()
        return self._events.popleft()

    def _pump(self) -> None:
        try:
            chunk = self._stream.read(self._chunk_size)
            if chunk:
                self._parser.Parse(chunk, False)
            else:
                self._finished = True
                self._parser.Parse(b"", True)
        except (expat.ExpatError, *STREAM_READ_ERRORS) as exc:
            self._finished = True
            self._error = XmlStreamError(str(exc))
            self._error.__cause__ = exc


def get_attribute(attributes: Mapping[str, str], name: str) -> str | None:
    """Return the percent-decoded value of ``name`` or ``None`` when absent."""
    value = attributes.get(name)
    if value is None:
        return None
    return decode_href(value)


def start_attributes(event: XmlEvent, name: str) -> Mapping[str, str] | None:
    if isinstance(event, StartElement) and event.name == name:
        return event.attributes
    return None


def is_end(event: XmlEvent, name: str) -> bool:
    return isinstance(event, EndElement) and event.name == name
