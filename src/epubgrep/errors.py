from __future__ import annotations


class EpubGrepError(Exception):
    """Base class for every error epubgrep reports to the user."""


class PatternError(EpubGrepError):
    """Raised when the search expression cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"invalid pattern {pattern!r}: {reason}")


class ArchiveLevelError(EpubGrepError):
    """An error that aborts processing of one archive but not the run."""

    def __init__(self, archive: str, message: str, entry: str | None = None) -> None:
        self.archive = archive
        self.entry = entry
        self.message = message
        super().__init__(self._render())

    def _render(self) -> str:
        if self.entry:
            return f"{self.archive}: {self.message} ({self.entry})"
        return f"{self.archive}: {self.message}"


class ArchiveError(ArchiveLevelError):
    """The archive itself could not be opened."""


class ArchiveNotFound(ArchiveError):
    def __init__(self, archive: str, reason: str = "file not found or unreadable") -> None:
        super().__init__(archive, reason)


class NotAnArchive(ArchiveError):
    def __init__(self, archive: str) -> None:
        super().__init__(archive, "not a zip archive")


class ContainerError(ArchiveLevelError):
    """The container descriptor is absent or does not name a package document."""


class ContainerMissing(ContainerError):
    def __init__(self, archive: str, entry: str) -> None:
        super().__init__(archive, "not an epub: container descriptor missing", entry)


class MalformedContainer(ContainerError):
    def __init__(self, archive: str, entry: str, detail: str) -> None:
        super().__init__(archive, f"malformed container descriptor: {detail}", entry)


class MalformedXml(ArchiveLevelError):
    def __init__(self, archive: str, entry: str, detail: str) -> None:
        super().__init__(archive, f"invalid xml: {detail}", entry)


class PackageError(ArchiveLevelError):
    """The package document is missing or lacks a required declaration."""


class NavigationError(ArchiveLevelError):
    """The navigation document could not be opened or parsed."""


class DocumentError(EpubGrepError):
    """A single spine document could not be opened; only that document is skipped."""

    def __init__(self, archive: str, entry: str, reason: str) -> None:
        self.archive = archive
        self.entry = entry
        self.reason = reason
        super().__init__(f"{archive}: skipping {entry}: {reason}")


class EntryError(EpubGrepError):
    """An archive entry could not be opened."""

    def __init__(self, archive: str, entry: str, reason: str) -> None:
        self.archive = archive
        self.entry = entry
        self.reason = reason
        super().__init__(f"{archive}: {entry}: {reason}")


class EntryMissing(EntryError):
    def __init__(self, archive: str, entry: str) -> None:
        super().__init__(archive, entry, "no such entry in archive")


class EntryUnreadable(EntryError):
    pass
