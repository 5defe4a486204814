from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Iterable, Sequence

import pytest

from epubgrep.logging_utils import set_debug_logging

XHTML = "application/xhtml+xml"
NCX = "application/x-dtbncx+xml"


class EpubBuilder:
    """Writes small EPUB archives into a temporary directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def write(self, name: str, entries: dict[str, str | bytes]) -> Path:
        epub_path = self.root / name
        with zipfile.ZipFile(epub_path, "w") as zf:
            zf.writestr("mimetype", "application/epub+zip")
            for entry, payload in entries.items():
                zf.writestr(entry, payload)
        return epub_path

    @staticmethod
    def container(opf_path: str = "OEBPS/content.opf") -> str:
        return f"""<?xml version="1.0" encoding="UTF-8"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
  <rootfiles>
    <rootfile full-path="{opf_path}" media-type="application/oebps-package+xml"/>
  </rootfiles>
</container>
"""

    @staticmethod
    def package(
        manifest: Iterable[tuple[str, str, str]],
        spine: Iterable[str],
        toc: str | None = "ncx",
    ) -> str:
        items = "\n".join(
            f'    <item id="{item_id}" href="{href}" media-type="{media_type}"/>'
            for item_id, href, media_type in manifest
        )
        itemrefs = "\n".join(f'    <itemref idref="{idref}"/>' for idref in spine)
        toc_attr = f' toc="{toc}"' if toc is not None else ""
        return f"""<?xml version="1.0" encoding="UTF-8"?>
<package version="2.0" unique-identifier="BookId" xmlns="http://www.idpf.org/2007/opf">
  <metadata xmlns:dc="http://purl.org/dc/elements/1.1/">
    <dc:title>Sample Book</dc:title>
  </metadata>
  <manifest>
{items}
  </manifest>
  <spine{toc_attr}>
{itemrefs}
  </spine>
</package>
"""

    @staticmethod
    def ncx(nav_points: str) -> str:
        return f"""<?xml version="1.0" encoding="UTF-8"?>
<ncx xmlns="http://www.daisy.org/z3986/2005/ncx/" version="2005-1">
  <head><meta name="dtb:uid" content="sample"/></head>
  <docTitle><text>Sample Book</text></docTitle>
  <navMap>
{nav_points}
  </navMap>
</ncx>
"""

    @staticmethod
    def nav_point(point_id: str, label: str, src: str, children: str = "") -> str:
        return f"""<navPoint id="{point_id}">
  <navLabel><text>{label}</text></navLabel>
  <content src="{src}"/>
  {children}
</navPoint>"""

    @staticmethod
    def xhtml(*paragraphs: str, title: str = "Document") -> str:
        body = "\n".join(f"    <p>{paragraph}</p>" for paragraph in paragraphs)
        return f"""<?xml version="1.0" encoding="utf-8"?>
<html xmlns="http://www.w3.org/1999/xhtml">
  <head><title>{title}</title></head>
  <body>
    <h1>{title}</h1>
{body}
  </body>
</html>
"""

    def book(
        self,
        name: str,
        documents: Sequence[tuple[str, str, Sequence[str]]],
        nav_points: str = "",
        opf_path: str = "OEBPS/content.opf",
    ) -> Path:
        """Write a book whose spine lists ``documents`` (id, href, paragraphs) in order."""
        base = opf_path.rsplit("/", 1)[0] + "/" if "/" in opf_path else ""
        entries: dict[str, str | bytes] = {
            "META-INF/container.xml": self.container(opf_path),
            opf_path: self.package(
                [("ncx", "toc.ncx", NCX)] + [(doc_id, href, XHTML) for doc_id, href, _ in documents],
                [doc_id for doc_id, _, _ in documents],
            ),
            f"{base}toc.ncx": self.ncx(nav_points),
        }
        for doc_id, href, paragraphs in documents:
            entries[f"{base}{href}"] = self.xhtml(*paragraphs, title=doc_id)
        return self.write(name, entries)


@pytest.fixture
def epub_builder(tmp_path: Path) -> EpubBuilder:
    return EpubBuilder(tmp_path)


@pytest.fixture
def sample_epub(epub_builder: EpubBuilder) -> Path:
    """A book with nested TOC entries, an untitled interlude and a dangling itemref."""
    b = epub_builder
    nav_points = "\n".join(
        [
            b.nav_point("np1", "Title Page", "Text/title.xhtml"),
            b.nav_point(
                "np2",
                "Part One",
                "Text/part1.xhtml",
                children=b.nav_point("np3", "The Cat", "Text/cat.xhtml#start"),
            ),
            b.nav_point("np4", "Part Two", "Text/part2.xhtml"),
        ]
    )
    manifest = [
        ("ncx", "toc.ncx", NCX),
        ("title", "Text/title.xhtml", XHTML),
        ("part1", "Text/part1.xhtml", XHTML),
        ("cat", "Text/cat.xhtml", XHTML),
        ("interlude", "Text/interlude.xhtml", XHTML),
        ("part2", "Text/part2.xhtml", XHTML),
        ("css", "Styles/book.css", "text/css"),
    ]
    spine = ["title", "part1", "cat", "css", "interlude", "ghost", "part2"]
    return b.write(
        "sample.epub",
        {
            "META-INF/container.xml": b.container(),
            "OEBPS/content.opf": b.package(manifest, spine),
            "OEBPS/toc.ncx": b.ncx(nav_points),
            "OEBPS/Text/title.xhtml": b.xhtml("A Sample Book", title="Title"),
            "OEBPS/Text/part1.xhtml": b.xhtml("Part one begins.", title="Part One"),
            "OEBPS/Text/cat.xhtml": b.xhtml(
                "the cat sat",
                "No felines here.",
                "A <em>cat</em> and another cat.",
                title="The Cat",
            ),
            "OEBPS/Text/interlude.xhtml": b.xhtml("An interlude with a cat.", title="Interlude"),
            "OEBPS/Text/part2.xhtml": b.xhtml("Category theory.", title="Part Two"),
            "OEBPS/Styles/book.css": "p { margin: 0; }",
        },
    )


@pytest.fixture(autouse=True)
def _reset_debug_logging():
    yield
    set_debug_logging(False)
