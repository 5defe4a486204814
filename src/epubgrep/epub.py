from __future__ import annotations

import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator

from .errors import (
    ArchiveNotFound,
    ContainerMissing,
    EntryError,
    EntryMissing,
    EntryUnreadable,
    MalformedContainer,
    MalformedXml,
    NotAnArchive,
    PackageError,
)
from .logging_utils import debug_log
from .paths import base_directory, join_href, normalize_zip_path
from .xmlstream import (
    Characters,
    XmlEvent,
    XmlEventReader,
    XmlStreamError,
    get_attribute,
    is_end,
    start_attributes,
)

CONTAINER_PATH = "META-INF/container.xml"
XHTML_MEDIA_TYPE = "application/xhtml+xml"
NCX_MEDIA_TYPE = "application/x-dtbncx+xml"
TEXTUAL_MEDIA_TYPES = frozenset({XHTML_MEDIA_TYPE, NCX_MEDIA_TYPE})
PARAGRAPH_TAG = "p"


@dataclass(frozen=True)
class ManifestItem:
    id: str
    href: str
    media_type: str


@dataclass
class PackageDocument:
    path: str
    toc_path: str
    toc_media_type: str
    spine: list[str]


class EpubArchive:
    """Read-only handle on an EPUB's zip container."""

    def __init__(self, zf: zipfile.ZipFile, name: str) -> None:
        self._zf = zf
        self.name = name

    @classmethod
    def open(cls, path: str | Path) -> "EpubArchive":
        name = str(path)
        try:
            zf = zipfile.ZipFile(path)
        except zipfile.BadZipFile as exc:
            raise NotAnArchive(name) from exc
        except OSError as exc:
            raise ArchiveNotFound(name, exc.strerror or str(exc)) from exc
        return cls(zf, name)

    def __enter__(self) -> "EpubArchive":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._zf.close()

    def open_entry(self, entry: str) -> IO[bytes]:
        try:
            return self._zf.open(entry, "r")
        except KeyError as exc:
            raise EntryMissing(self.name, entry) from exc
        except (zipfile.BadZipFile, NotImplementedError, RuntimeError, OSError) as exc:
            raise EntryUnreadable(self.name, entry, str(exc)) from exc


def locate_package_document(archive: EpubArchive) -> str:
    """Return the package document path named by the container descriptor."""
    try:
        stream = archive.open_entry(CONTAINER_PATH)
    except EntryMissing as exc:
        raise ContainerMissing(archive.name, CONTAINER_PATH) from exc
    except EntryUnreadable as exc:
        raise MalformedContainer(archive.name, CONTAINER_PATH, exc.reason) from exc
    with stream:
        try:
            for event in XmlEventReader(stream):
                attributes = start_attributes(event, "rootfile")
                if attributes is None:
                    continue
                full_path = get_attribute(attributes, "full-path")
                if not full_path:
                    raise MalformedContainer(
                        archive.name, CONTAINER_PATH, "rootfile has no full-path attribute"
                    )
                return normalize_zip_path(full_path)
        except XmlStreamError as exc:
            raise MalformedXml(archive.name, CONTAINER_PATH, str(exc)) from exc
    raise MalformedContainer(archive.name, CONTAINER_PATH, "no rootfile element")


def _next_event(events: Iterator[XmlEvent], archive: EpubArchive, entry: str, expected: str) -> XmlEvent:
    try:
        return next(events)
    except StopIteration:
        raise PackageError(archive.name, f"package document ended before {expected}", entry) from None


def _read_manifest(events: Iterator[XmlEvent], archive: EpubArchive, entry: str) -> dict[str, ManifestItem]:
    while start_attributes(_next_event(events, archive, entry, "<manifest>"), "manifest") is None:
        pass
    manifest: dict[str, ManifestItem] = {}
    while True:
        event = _next_event(events, archive, entry, "</manifest>")
        if is_end(event, "manifest"):
            return manifest
        attributes = start_attributes(event, "item")
        if attributes is None:
            continue
        item_id = get_attribute(attributes, "id")
        href = get_attribute(attributes, "href")
        media_type = get_attribute(attributes, "media-type")
        if item_id is None or href is None or media_type is None:
            continue
        if media_type in TEXTUAL_MEDIA_TYPES:
            manifest[item_id] = ManifestItem(id=item_id, href=href, media_type=media_type)


def _read_toc_id(events: Iterator[XmlEvent], archive: EpubArchive, entry: str) -> str:
    while True:
        attributes = start_attributes(_next_event(events, archive, entry, "<spine>"), "spine")
        if attributes is None:
            continue
        toc_id = get_attribute(attributes, "toc")
        if not toc_id:
            raise PackageError(archive.name, "spine declares no toc attribute", entry)
        return toc_id


def _read_spine(
    events: Iterator[XmlEvent],
    manifest: dict[str, ManifestItem],
    base: str,
    archive: EpubArchive,
    entry: str,
) -> list[str]:
    spine: list[str] = []
    while True:
        event = _next_event(events, archive, entry, "</spine>")
        if is_end(event, "spine"):
            return spine
        attributes = start_attributes(event, "itemref")
        if attributes is None:
            continue
        idref = get_attribute(attributes, "idref")
        item = manifest.get(idref) if idref is not None else None
        if item is None:
            # Unmanifested (or non-textual) references are tolerated.
            debug_log(f"{archive.name}: spine itemref {idref!r} has no textual manifest item")
            continue
        spine.append(join_href(base, item.href))


def resolve_package(archive: EpubArchive) -> PackageDocument:
    """Resolve the navigation document path and ordered spine of ``archive``.

    The package document is read as a single forward pass: manifest first,
    then the spine's ``toc`` declaration, then its itemrefs. Spine order is
    kept exactly as declared and no existence checks are made here.
    """
    package_path = locate_package_document(archive)
    debug_log(f"{archive.name}: package document {package_path}")
    try:
        stream = archive.open_entry(package_path)
    except EntryError as exc:
        raise PackageError(archive.name, f"cannot open package document: {exc.reason}", package_path) from exc
    base = base_directory(package_path)
    with stream:
        events = XmlEventReader(stream)
        try:
            manifest = _read_manifest(events, archive, package_path)
            toc_id = _read_toc_id(events, archive, package_path)
            toc_item = manifest.get(toc_id)
            if toc_item is None:
                raise PackageError(
                    archive.name, f"toc id {toc_id!r} is not in the manifest", package_path
                )
            spine = _read_spine(events, manifest, base, archive, package_path)
        except XmlStreamError as exc:
            raise MalformedXml(archive.name, package_path, str(exc)) from exc
    toc_path = join_href(base, toc_item.href)
    debug_log(f"{archive.name}: navigation document {toc_path}, {len(spine)} spine documents")
    return PackageDocument(
        path=package_path,
        toc_path=toc_path,
        toc_media_type=toc_item.media_type,
        spine=spine,
    )


def iter_paragraphs(stream: IO[bytes]) -> Iterator[str]:
    """Yield the text of each ``<p>`` element in ``stream``, in document order.

    Character data split over several runs (entities, inline markup) is
    concatenated. The sequence simply ends if the document turns out to be
    corrupt.
    """
    events = XmlEventReader(stream)
    try:
        for event in events:
            if start_attributes(event, PARAGRAPH_TAG) is None:
                continue
            parts: list[str] = []
            for inner in events:
                if is_end(inner, PARAGRAPH_TAG):
                    break
                if isinstance(inner, Characters):
                    parts.append(inner.text)
            else:
                return
            yield "".join(parts)
    except XmlStreamError as exc:
        debug_log(f"paragraph stream stopped early: {exc}")
