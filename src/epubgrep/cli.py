from __future__ import annotations

import argparse
import sys
from importlib import metadata
from pathlib import Path

import tomllib
from rich.console import Console

from .errors import PatternError
from .logging_utils import report_error, set_debug_logging
from .search import (
    EXIT_ERROR,
    ColorMode,
    MatchReporter,
    OutputMode,
    SearchOptions,
    compile_pattern,
)


def _read_local_version() -> str | None:
    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
    except IndexError:  # pragma: no cover - installed without a source tree
        return None
    try:
        with pyproject_path.open("rb") as fh:
            data = tomllib.load(fh)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return None
    return data.get("project", {}).get("version")


try:
    __version__ = metadata.version("epubgrep")
except metadata.PackageNotFoundError:
    __version__ = _read_local_version() or "0.0.0+unknown"


def _add_version_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"epubgrep {__version__}",
    )


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="epubgrep",
        description="Search the paragraphs of EPUB books with a regular expression.",
    )
    _add_version_flag(ap)
    ap.add_argument("pattern", help="Regular expression to search for")
    ap.add_argument(
        "paths",
        nargs="+",
        metavar="EPUB",
        help="Path to an .epub or a directory containing .epub files",
    )
    ap.add_argument(
        "-i",
        "--ignore-case",
        action="store_true",
        help="Match without regard to letter case.",
    )
    ap.add_argument(
        "-w",
        "--word-regexp",
        action="store_true",
        help="Only match whole words.",
    )
    ap.add_argument(
        "-c",
        "--count",
        action="store_true",
        help="Print the number of matches per book instead of the matching paragraphs.",
    )
    ap.add_argument(
        "-l",
        "--files-with-matches",
        action="store_true",
        help="Print each book document that contains a match, once.",
    )
    ap.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Print nothing; exit successfully as soon as any match is found.",
    )
    ap.add_argument(
        "--color",
        choices=[mode.value for mode in ColorMode],
        default=ColorMode.AUTO.value,
        help="Colorize output: 'always', 'never', or 'auto' (default; only on terminals).",
    )
    ap.add_argument(
        "--debug",
        action="store_true",
        help="Print diagnostic details about archive resolution to stderr.",
    )
    return ap


def options_from_args(args: argparse.Namespace) -> SearchOptions:
    if args.quiet:
        mode = OutputMode.QUIET
    elif args.count:
        mode = OutputMode.COUNT
    elif args.files_with_matches:
        mode = OutputMode.FILES
    else:
        mode = OutputMode.VERBOSE
    return SearchOptions(
        ignore_case=args.ignore_case,
        word=args.word_regexp,
        mode=mode,
        color=ColorMode(args.color),
        debug=args.debug,
    )


def make_console(color: ColorMode, *, stderr: bool = False) -> Console:
    common = {"stderr": stderr, "highlight": False, "markup": False, "emoji": False, "soft_wrap": True}
    if color is ColorMode.NEVER:
        return Console(color_system=None, **common)
    if color is ColorMode.ALWAYS:
        return Console(force_terminal=True, color_system="standard", **common)
    return Console(**common)


def expand_inputs(paths: list[str]) -> list[Path]:
    expanded: list[Path] = []
    for raw in paths:
        path = Path(raw).expanduser()
        if path.is_dir():
            expanded.extend(sorted(p for p in path.glob("*.epub") if p.is_file()))
        else:
            expanded.append(path)
    return expanded


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    args = build_parser().parse_args(argv)
    options = options_from_args(args)
    out = make_console(options.color)
    err = make_console(options.color, stderr=True)
    set_debug_logging(options.debug, err)

    try:
        matcher = compile_pattern(args.pattern, ignore_case=options.ignore_case, word=options.word)
    except PatternError as exc:
        report_error(err, str(exc))
        return EXIT_ERROR

    reporter = MatchReporter(matcher, options, out, err)
    summary = reporter.run(expand_inputs(args.paths))
    return summary.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
