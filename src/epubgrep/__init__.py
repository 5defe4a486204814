from .epub import EpubArchive, PackageDocument, iter_paragraphs, locate_package_document, resolve_package
from .errors import (
    ArchiveLevelError,
    DocumentError,
    EpubGrepError,
    PatternError,
)
from .search import MatchReporter, OutputMode, SearchOptions, compile_pattern
from .toc import NavigationNode, NavigationTree, load_navigation_tree

__all__ = [
    "EpubArchive",
    "PackageDocument",
    "iter_paragraphs",
    "locate_package_document",
    "resolve_package",
    "NavigationNode",
    "NavigationTree",
    "load_navigation_tree",
    "MatchReporter",
    "OutputMode",
    "SearchOptions",
    "compile_pattern",
    "EpubGrepError",
    "ArchiveLevelError",
    "DocumentError",
    "PatternError",
]
