"""CLI orchestration: wires config, collector, stores and the API client together."""

import csv
import io
import json
import logging
from argparse import Namespace
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from i18n_collector.client import RetryPolicy, TranslationApiClient
from i18n_collector.collector import TranslationCollector
from i18n_collector.config import AppConfig, load_config, validate_api_config
from i18n_collector.errors import CollectorError
from i18n_collector.models import CollectionStatistics, FileType, TranslationRecord
from i18n_collector.report import build_report
from i18n_collector.stores import StoreWriter, WriteMode
from i18n_collector.sync import initialize_remote, pull_translations, push_collected

console = Console()

TABLE_ROW_LIMIT = 50
CSV_FIELDS = ["key", "value", "module", "source_file", "line_number", "context"]


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler for colored, readable output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def build_client(config: AppConfig) -> TranslationApiClient:
    """Create the API client from validated configuration."""
    validate_api_config(config)
    api = config.api
    return TranslationApiClient(
        base_url=api.base_url,
        token=api.token,
        project_id=api.project_id,
        languages=list(config.collector.supported_languages),
        timeout=api.timeout,
        retry_policy=RetryPolicy(max_attempts=api.retry_times, base_delay=api.retry_sleep),
        batch_delay=api.batch_delay,
        endpoints=api.endpoints,
    )


def _confirm_overwrite(path: Path) -> bool:
    return Confirm.ask(f"File {path} exists. Overwrite?", console=console, default=False)


def _print_statistics(stats: CollectionStatistics) -> None:
    table = Table(title="Collection Statistics")
    table.add_column("Item", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Files scanned", f"{stats.total_files_scanned:,}")
    table.add_row("Translations found", f"{stats.total_translations_found:,}")
    table.add_row("Duplicates dropped", f"{stats.duplicates_dropped:,}")
    table.add_row("Duration", f"{stats.scan_duration:.2f}s")
    console.print(table)


def _records_table(records: list[TranslationRecord]) -> Table:
    table = Table(title="Collected Translations")
    table.add_column("Key", style="cyan")
    table.add_column("Module")
    table.add_column("File")
    table.add_column("Line", justify="right")
    for record in records[:TABLE_ROW_LIMIT]:
        table.add_row(
            record.key,
            record.module or "N/A",
            Path(record.source_file).name,
            str(record.line_number),
        )
    return table


def format_records(records: list[TranslationRecord], output_format: str) -> str:
    """Render records as JSON or CSV text."""
    if output_format == "csv":
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for record in records:
            row = record.to_dict()
            row["module"] = row["module"] or ""
            row["source_file"] = Path(record.source_file).name
            writer.writerow(row)
        return buffer.getvalue()
    return json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)


def _write_output(path: str, content: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    console.print(f"[green]Saved results to {target}[/green]")


def run_collect(config: AppConfig, args: Namespace) -> int:
    collector = TranslationCollector(config)
    result = collector.collect(
        paths=args.path or None,
        modules=args.module or None,
        use_cache=not args.no_cache,
    )
    _print_statistics(result.statistics)

    if args.format == "table" and not args.output:
        if result.records:
            console.print(_records_table(result.records))
            if len(result.records) > TABLE_ROW_LIMIT:
                console.print(
                    f"[dim]Showing first {TABLE_ROW_LIMIT} of {len(result.records)} records[/dim]"
                )
        else:
            console.print("[yellow]No translations found.[/yellow]")
    else:
        content = format_records(result.records, "csv" if args.format == "csv" else "json")
        if args.output:
            _write_output(args.output, content)
        elif args.format == "csv":
            console.print(content, markup=False)
        else:
            console.print_json(content)

    if args.upload:
        client = build_client(config)
        if not client.check_connection():
            console.print("[red bold]Cannot connect to the translation service.[/red bold]")
            return 1

        summary = push_collected(
            client, result.records, config.api.batch_size, dry_run=args.dry_run
        )
        counts = summary.differences.counts()
        console.print(
            f"[bold]Remote comparison:[/bold] {counts['new']} new, "
            f"{counts['updated']} updated, {counts['unchanged']} unchanged"
        )
        if args.dry_run:
            console.print("[yellow]Dry run: nothing uploaded.[/yellow]")
        else:
            for failure in summary.failed_batches:
                console.print(
                    f"[red]Batch {failure['batch_index'] + 1} failed:[/red] {failure['error']}"
                )
            console.print(f"[green]Uploaded {summary.uploaded} translations.[/green]")
    return 0


def run_pull(config: AppConfig, args: Namespace) -> int:
    client = build_client(config)
    if not client.check_connection():
        console.print("[red bold]Cannot connect to the translation service.[/red bold]")
        return 1

    languages = args.language or list(config.collector.supported_languages)
    mode = WriteMode.PREVIEW if args.dry_run else WriteMode(args.mode)
    writer = StoreWriter(
        config.lang_path,
        confirm=_confirm_overwrite,
        default_namespace=config.collector.default_namespace,
    )
    default_format = FileType.parse(args.format or config.collector.default_format)

    results = pull_translations(
        client, writer, languages, mode=mode, force=args.force, default_format=default_format
    )

    table = Table(title="Pull Summary")
    table.add_column("Language", style="cyan")
    table.add_column("Fetched", justify="right")
    table.add_column("Written", style="green", justify="right")
    table.add_column("Skipped", style="yellow", justify="right")
    table.add_column("Status")
    for result in results:
        status = f"[red]{escape(result.error)}[/red]" if result.error else "ok"
        table.add_row(
            result.language,
            str(result.fetched),
            str(result.valid),
            str(len(result.skipped)),
            status,
        )
        for outcome in result.outcomes:
            console.print(f"  {result.language}: {escape(outcome.describe())}")
        for key, reason in result.skipped:
            console.print(
                f"  [yellow]{result.language}: skipped {escape(key)} ({escape(reason)})[/yellow]"
            )
    console.print(table)
    return 0


def run_init(config: AppConfig, args: Namespace) -> int:
    client = build_client(config)
    if not client.check_connection():
        console.print("[red bold]Cannot connect to the translation service.[/red bold]")
        return 1

    collector = TranslationCollector(config)
    languages = args.language or None
    if not args.force and not args.dry_run:
        if not Confirm.ask("Initialize local translations on the remote service?", console=console):
            console.print("[yellow]Initialization cancelled.[/yellow]")
            return 0

    records, batches = initialize_remote(
        client,
        collector,
        languages,
        batch_size=args.batch_size or config.api.batch_size,
        dry_run=args.dry_run,
    )
    if not records:
        console.print("[yellow]No local translation files found.[/yellow]")
        return 0

    console.print(f"[bold]Local translations:[/bold] {len(records)}")
    if args.dry_run:
        console.print("[yellow]Dry run: nothing uploaded.[/yellow]")
        return 0

    for index, batch in enumerate(batches):
        if isinstance(batch, dict) and batch.get("success") is False:
            console.print(f"  [red]Batch {index + 1} failed:[/red] {batch['error']}")
        else:
            console.print(f"  [green]Batch {index + 1} uploaded[/green]")
    return 0


def run_report(config: AppConfig, args: Namespace) -> int:
    collector = TranslationCollector(config)
    result = collector.collect()
    languages = list(config.collector.supported_languages)
    local = {lang: collector.scan_existing_translations(lang) for lang in languages}

    external: list[dict] = []
    if config.api.base_url:
        try:
            client = build_client(config)
            if client.check_connection():
                external = client.get_translations()
        except (CollectorError, ValueError) as e:
            console.print(f"[yellow]Could not fetch remote translations: {e}[/yellow]")

    report = build_report(
        result.records, local, external, config.collector.supported_languages, result.statistics
    )

    if args.output or args.format == "json":
        content = json.dumps(report, indent=2, ensure_ascii=False)
        if args.output:
            _write_output(args.output, content)
        else:
            console.print_json(content)
        return 0

    table = Table(title="Language Coverage")
    table.add_column("Language", style="cyan")
    table.add_column("Translated", justify="right")
    table.add_column("Coverage", justify="right")
    table.add_column("Status")
    for language, row in report["language_coverage"].items():
        table.add_row(
            f"{row['name']} ({language})",
            f"{row['translated']} / {row['total']}",
            f"{row['coverage_percent']:.2f}%",
            row["status"],
        )
    console.print(table)
    return 0


COMMANDS = {
    "collect": run_collect,
    "pull": run_pull,
    "init": run_init,
    "report": run_report,
}


def run(args: Namespace) -> None:
    """Main synchronous entry point for the CLI.

    Loads configuration and runs the selected command.

    Args:
        args: Parsed command-line arguments.
    """
    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    try:
        console.print("[bold cyan]Translation Collector[/bold cyan]")
        console.print("[dim]" + "-" * 50 + "[/dim]")

        config = load_config(args.config)
        logger.info("Configuration loaded from %s", args.config)

        exit_code = COMMANDS[args.command](config, args)

    except FileNotFoundError as e:
        console.print(f"[red bold]Error:[/red bold] {e}")
        raise SystemExit(1)
    except ValueError as e:
        console.print(f"[red bold]Configuration error:[/red bold] {e}")
        raise SystemExit(1)
    except CollectorError as e:
        console.print(f"[red bold]Error:[/red bold] {e}")
        raise SystemExit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user.[/yellow]")
        raise SystemExit(130)
    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        raise SystemExit(1)

    if exit_code:
        raise SystemExit(exit_code)
