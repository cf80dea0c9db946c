"""Main CLI entry point for the docx-cleaner command-line tool.

Cleans one DOCX document and prints how many characters of each kind were
removed, in text or JSON form.
"""

import argparse
import json
import sys
import unicodedata
from pathlib import Path
from typing import Any, Dict, List, Optional

from docx_cleaner import __version__
from docx_cleaner.api import DocxCleaner
from docx_cleaner.character import CharacterSet, default_character_set, load_character_set
from docx_cleaner.shared import (
    CleanerConfig,
    CleanerError,
    CleanResult,
    ConfigError,
    RunSummary,
    TimestampPolicy,
    configure_logging,
)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class CLIConfig:
    """Configuration assembled from command-line arguments."""

    def __init__(self) -> None:
        self.cleaner_config = CleanerConfig.default()
        self.characters: CharacterSet = default_character_set()
        self.output_format = "text"
        self.logging_level = "WARNING"

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "CLIConfig":
        """Build the CLI configuration.

        Raises:
            ConfigError: Settings or character list cannot be loaded
        """
        config = cls()

        if args.settings:
            try:
                settings_text = args.settings.read_text(encoding="utf-8")
            except OSError as e:
                raise ConfigError(f"Cannot read settings file {args.settings}: {e}") from e
            config.cleaner_config = CleanerConfig.from_json(settings_text)

        overrides: Dict[str, Any] = {}
        if args.workers:
            overrides["performance__enable_parallel_processing"] = args.workers > 1
            overrides["performance__max_worker_threads"] = args.workers
        if args.regenerate_timestamps:
            overrides["container__timestamp_policy"] = TimestampPolicy.REGENERATE
        if overrides:
            config.cleaner_config = config.cleaner_config.override(**overrides)

        if args.characters:
            config.characters = load_character_set(args.characters)

        config.output_format = args.format
        if args.verbose:
            config.logging_level = "DEBUG"
        elif args.quiet:
            config.logging_level = "ERROR"
        else:
            config.logging_level = config.cleaner_config.global_.logging_level

        return config


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value!r}")
    return number


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog="docx-cleaner",
        description="Remove invisible and unwanted Unicode characters from DOCX run text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Clean with the built-in character list
  docx-cleaner report.docx

  # Custom character list and output path
  docx-cleaner report.docx -c config.json -o clean/report.docx

  # Machine-readable statistics, rewriting parts on 4 threads
  docx-cleaner report.docx --workers 4 --format json
        """
    )

    parser.add_argument(
        "input",
        type=Path,
        help="DOCX file to clean"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        help="Output file (default: <name>_cleaned.docx next to the input)"
    )
    parser.add_argument(
        "--characters", "-c",
        type=Path,
        help="JSON character list (default: built-in list of invisible characters)"
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="JSON settings file in CleanerConfig format"
    )
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite the output file if it exists"
    )
    parser.add_argument(
        "--workers",
        type=_positive_int,
        help="Rewrite text-bearing parts on this many threads"
    )
    parser.add_argument(
        "--regenerate-timestamps",
        action="store_true",
        help="Stamp rewritten entries with the current time instead of keeping theirs"
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format"
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )
    verbosity.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only print errors"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    return parser


STATISTICS_TITLE = "Character Removal Statistics:"
STATISTICS_RULE = "=" * 28

# Categories that would break the one-line-per-character layout
_ESCAPED_CATEGORIES = ("Cc", "Zl", "Zp")


def _glyph(codepoint: int) -> str:
    char = chr(codepoint)
    if unicodedata.category(char) in _ESCAPED_CATEGORIES:
        return repr(char)[1:-1]
    return char


def format_statistics(summary: RunSummary, characters: CharacterSet) -> str:
    """Format removal statistics, most frequent character first.

    Each line shows the character's name, code point and the character
    itself, followed by how often it was removed.

    Examples:
        >>> print(format_statistics(summary, default_character_set()))
        Character Removal Statistics:
        ============================
        ZERO WIDTH SPACE (U+200B) - \u200b: 3
        SOFT HYPHEN (U+00AD) - \u00ad: 1
        <BLANKLINE>
        Total characters removed: 4
        Saved as: report_cleaned.docx
    """
    lines = [STATISTICS_TITLE, STATISTICS_RULE]
    removed = sorted(
        summary.removed_by_codepoint.items(),
        key=lambda item: (-item[1], item[0])
    )
    for codepoint, count in removed:
        lines.append(
            f"{characters.describe(codepoint)} (U+{codepoint:04X}) - {_glyph(codepoint)}: {count}"
        )

    lines.append("")
    lines.append(f"Total characters removed: {summary.characters_removed}")
    lines.append(f"Saved as: {summary.output_path}")
    return "\n".join(lines)


def format_error(error: CleanerError) -> str:
    """Format an aborted run as ``Error [<kind>] <entry>: <cause>``."""
    if error.entry_name:
        return f"Error [{error.kind}] {error.entry_name}: {error.message}"
    return f"Error [{error.kind}]: {error.message}"


def format_json(result: CleanResult) -> str:
    payload: Dict[str, Any] = {
        "success": result.success,
        "correlation_id": result.correlation_id,
    }
    if result.summary:
        payload["summary"] = result.summary.to_dict()
    if result.error:
        payload["error"] = {
            "kind": result.error.kind,
            "entry_name": result.error.entry_name,
            "message": result.error.message,
        }
    payload["diagnostics"] = [d.to_dict() for d in result.diagnostics]
    return json.dumps(payload, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_argument_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # --help and --version exit with 0, usage errors with 2
        return EXIT_SUCCESS if e.code in (0, None) else EXIT_FAILURE

    try:
        config = CLIConfig.from_args(args)
    except ConfigError as e:
        print(f"Error [Config]: {e}", file=sys.stderr)
        return EXIT_FAILURE

    configure_logging(config.logging_level)

    try:
        cleaner = DocxCleaner(config.characters, config.cleaner_config)
        result = cleaner.clean(args.input, args.output, overwrite=args.force)
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return EXIT_INTERRUPTED

    if config.output_format == "json":
        print(format_json(result))
    elif result.success and result.summary:
        if not args.quiet:
            for warning in result.summary.warnings:
                print(f"Warning {warning.entry_name}: {warning.message}", file=sys.stderr)
        print(format_statistics(result.summary, config.characters))

    if not result.success:
        if result.error and config.output_format != "json":
            print(format_error(result.error), file=sys.stderr)
        return EXIT_FAILURE

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())
