from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable

from rich.console import Console
from rich.segment import Segments
from rich.text import Text

from .epub import EpubArchive, iter_paragraphs, resolve_package
from .errors import ArchiveLevelError, DocumentError, EntryError, PatternError
from .logging_utils import debug_log, report_error, report_warning
from .toc import load_navigation_tree

EXIT_MATCH = 0
EXIT_NO_MATCH = 1
EXIT_ERROR = 2

HIGHLIGHT_STYLE = "bold red"
ARCHIVE_STYLE = "magenta"
CHAPTER_STYLE = "green"
DOCUMENT_STYLE = "cyan"


class OutputMode(str, Enum):
    VERBOSE = "verbose"
    COUNT = "count"
    FILES = "files"
    QUIET = "quiet"


class ColorMode(str, Enum):
    ALWAYS = "always"
    AUTO = "auto"
    NEVER = "never"


class Outcome(Enum):
    CONTINUE = "continue"
    STOP = "stop"


@dataclass(frozen=True)
class SearchOptions:
    ignore_case: bool = False
    word: bool = False
    mode: OutputMode = OutputMode.VERBOSE
    color: ColorMode = ColorMode.AUTO
    debug: bool = False


@dataclass(frozen=True)
class Segment:
    text: str
    highlighted: bool


@dataclass(frozen=True)
class MatchRecord:
    archive: str
    chapter: str
    paragraph: str
    spans: tuple[tuple[int, int], ...]


@dataclass
class ArchiveResult:
    matches: int = 0
    outcome: Outcome = Outcome.CONTINUE


@dataclass
class RunSummary:
    archives: int = 0
    failed: int = 0
    matches: int = 0
    stopped: bool = False

    @property
    def matched(self) -> bool:
        return self.stopped or self.matches > 0

    @property
    def exit_code(self) -> int:
        if self.matched:
            return EXIT_MATCH
        if self.archives and self.failed == self.archives:
            return EXIT_ERROR
        return EXIT_NO_MATCH


def compile_pattern(pattern: str, *, ignore_case: bool = False, word: bool = False) -> re.Pattern[str]:
    """Compile the user's expression.

    Word matching wraps the expression in ``\\b`` anchors; case folding is
    requested with a leading inline ``(?i)`` so the searched text is never
    altered.
    """
    effective = pattern
    if word:
        effective = rf"\b(?:{effective})\b"
    if ignore_case:
        effective = f"(?i){effective}"
    try:
        return re.compile(effective)
    except re.error as exc:
        raise PatternError(pattern, str(exc)) from exc


def find_spans(matcher: re.Pattern[str], text: str) -> list[tuple[int, int]]:
    return [match.span() for match in matcher.finditer(text)]


def split_segments(text: str, spans: Iterable[tuple[int, int]]) -> list[Segment]:
    segments: list[Segment] = []
    cursor = 0
    for start, end in spans:
        if start > cursor:
            segments.append(Segment(text[cursor:start], False))
        if end > start:
            segments.append(Segment(text[start:end], True))
        cursor = max(cursor, end)
    if cursor < len(text):
        segments.append(Segment(text[cursor:], False))
    return segments


def render_paragraph(text: str, spans: Iterable[tuple[int, int]]) -> Text:
    rendered = Text()
    for segment in split_segments(text, spans):
        rendered.append(segment.text, style=HIGHLIGHT_STYLE if segment.highlighted else None)
    return rendered


def render_header(archive: str, chapter: str) -> Text:
    header = Text(archive, style=ARCHIVE_STYLE)
    if chapter:
        header.append(": ")
        header.append(chapter, style=CHAPTER_STYLE)
    return header


class MatchReporter:
    """Walks archives in order and reports paragraph matches to ``out``."""

    def __init__(
        self,
        matcher: re.Pattern[str],
        options: SearchOptions,
        out: Console,
        err: Console,
    ) -> None:
        self.matcher = matcher
        self.options = options
        self.out = out
        self.err = err

    def run(self, paths: Iterable[str | Path]) -> RunSummary:
        summary = RunSummary()
        for path in paths:
            summary.archives += 1
            try:
                result = self.search_archive(path)
            except ArchiveLevelError as exc:
                summary.failed += 1
                report_error(self.err, str(exc))
                continue
            summary.matches += result.matches
            if result.outcome is Outcome.STOP:
                summary.stopped = True
                break
        self.out.file.flush()
        return summary

    def search_archive(self, path: str | Path) -> ArchiveResult:
        mode = self.options.mode
        result = ArchiveResult()
        with EpubArchive.open(path) as archive:
            package = resolve_package(archive)
            tree = load_navigation_tree(archive, package)
            chapter = ""
            for document in package.spine:
                described = tree.describe(document)
                if described is not None and described != chapter:
                    debug_log(f"{archive.name}: {document} is in {described!r}")
                    chapter = described
                try:
                    outcome = self._search_document(archive, document, chapter, result)
                except DocumentError as exc:
                    report_warning(self.err, str(exc))
                    continue
                if outcome is Outcome.STOP:
                    result.outcome = Outcome.STOP
                    return result
            if mode is OutputMode.COUNT:
                line = render_header(archive.name, "")
                line.append(f": {result.matches}")
                self.out.print(line)
        return result

    def _search_document(
        self,
        archive: EpubArchive,
        document: str,
        chapter: str,
        result: ArchiveResult,
    ) -> Outcome:
        mode = self.options.mode
        try:
            stream = archive.open_entry(document)
        except EntryError as exc:
            raise DocumentError(archive.name, document, exc.reason) from exc
        debug_log(f"{archive.name}: searching {document}")
        with stream:
            for paragraph in iter_paragraphs(stream):
                spans = find_spans(self.matcher, paragraph)
                if not spans:
                    continue
                result.matches += len(spans)
                if mode is OutputMode.QUIET:
                    return Outcome.STOP
                if mode is OutputMode.FILES:
                    line = render_header(archive.name, "")
                    line.append(": ")
                    line.append(document, style=DOCUMENT_STYLE)
                    self.out.print(line)
                    break
                if mode is OutputMode.VERBOSE:
                    self.emit(MatchRecord(archive.name, chapter, paragraph, tuple(spans)))
        return Outcome.CONTINUE

    def emit(self, record: MatchRecord) -> None:
        self.out.print(render_header(record.archive, record.chapter))
        # Text.wrap would expand tabs; printing the raw segments keeps the
        # paragraph exactly as extracted.
        text = render_paragraph(record.paragraph, record.spans)
        self.out.print(Segments(list(text.render(self.out))))
