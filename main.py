"""Entry point for the translation collector tool."""

import argparse

from i18n_collector.cli import run


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line parser with one subcommand per workflow."""
    parser = argparse.ArgumentParser(
        description="Collect translation keys from source code and sync them "
        "with a translation service",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to the YAML configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    collect = commands.add_parser("collect", help="Scan source code for translations")
    collect.add_argument("--path", action="append", default=[], help="Path to scan (repeatable)")
    collect.add_argument("--module", action="append", default=[], help="Module to scan (repeatable)")
    collect.add_argument("--format", choices=["json", "csv", "table"], default="table")
    collect.add_argument("--output", help="Write the results to this file")
    collect.add_argument("--no-cache", action="store_true", help="Ignore the scan cache")
    collect.add_argument("--upload", action="store_true", help="Upload new translations")
    collect.add_argument("--dry-run", action="store_true", help="Compare without uploading")

    pull = commands.add_parser("pull", help="Write remote translations to local files")
    pull.add_argument("--language", action="append", default=[], help="Language to pull (repeatable)")
    pull.add_argument("--mode", choices=["merge", "overwrite"], default="merge")
    pull.add_argument("--format", choices=["flat", "nested"], help="Store for untagged records")
    pull.add_argument("--dry-run", action="store_true", help="Show what would be written")
    pull.add_argument("--force", action="store_true", help="Overwrite without asking")

    init = commands.add_parser("init", help="Upload local translation files to the service")
    init.add_argument("--language", action="append", default=[], help="Language to upload (repeatable)")
    init.add_argument("--batch-size", type=int, help="Translations per request")
    init.add_argument("--dry-run", action="store_true", help="Show what would be uploaded")
    init.add_argument("--force", action="store_true", help="Skip the confirmation prompt")

    report = commands.add_parser("report", help="Show translation coverage")
    report.add_argument("--format", choices=["json", "table"], default="table")
    report.add_argument("--output", help="Write the JSON report to this file")

    return parser


def main() -> None:
    """Parse CLI arguments and run the selected command."""
    run(build_parser().parse_args())


if __name__ == "__main__":
    main()
