"""Command-line interface for the case forensics system.

Entry point: `cfx` command (defined in pyproject.toml).
"""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markdown import Markdown
from rich.table import Table

from case_forensics.config import Config

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _open_store(config: Config):
    from case_forensics.compare.attribution import load_attribution
    from case_forensics.index.store import IndexStore

    attribution = None
    if config.attribution_path:
        attribution = load_attribution(config.attribution_path)
    return IndexStore(config, attribution=attribution)


def _parse_page_ref(value: str) -> tuple[int, int]:
    try:
        volume, page = value.split(":", 1)
        return int(volume), int(page)
    except ValueError:
        raise click.BadParameter(f"expected VOLUME:PAGE, got {value!r}")


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging.")
@click.option(
    "--attribution",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="JSON file of author page ranges.",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, attribution: str | None) -> None:
    """Forensic search and copy detection over legal case volumes."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    config = Config()
    if attribution:
        config.attribution_path = Path(attribution)
    ctx.obj["config"] = config


@main.command()
@click.argument("directory", required=False, type=click.Path(file_okay=False))
@click.option("--no-ocr", is_flag=True, help="Use the PDF text layer only.")
@click.option("--multimodal", is_flag=True, help="Analyze page images with the page analyzer.")
@click.pass_context
def index(ctx: click.Context, directory: str | None, no_ocr: bool, multimodal: bool) -> None:
    """Index every PDF volume under DIRECTORY.

    Already indexed volumes are skipped; interrupted or failed volumes
    are reprocessed from the first page. Safe to run repeatedly.
    """
    from tqdm import tqdm

    from case_forensics.models import Phase

    config = ctx.obj["config"]
    target = Path(directory) if directory else config.volumes_directory
    console.print(f"[cyan]Indexing volumes in {target}[/cyan]")

    errors = []
    store = _open_store(config)
    try:
        stream = store.update(target, use_ocr=not no_ocr, use_multimodal=multimodal)
        with tqdm(total=100, desc="Indexing", unit="%") as pbar:
            try:
                for event in stream:
                    pbar.n = round(event.fraction * 100, 1)
                    pbar.set_postfix_str(event.message[:60])
                    pbar.refresh()
                    if event.phase == Phase.ERROR:
                        errors.append(event.message)
            except KeyboardInterrupt:
                stream.close()
                console.print("\n[yellow]Interrupted; rerun to resume.[/yellow]")
                return
        stats = store.get_case_statistics()
    finally:
        store.close()

    console.print("\n[green]Indexing complete:[/green]")
    console.print(f"  Volumes:    {stats.total_volumes}")
    console.print(f"  Indexed:    {stats.indexed_volumes}")
    console.print(f"  Failed:     {stats.error_volumes}")
    console.print(f"  Pages:      {stats.total_pages}")
    console.print(f"  Suspicious: {stats.suspicious_comparisons}")

    if errors:
        console.print("\n[yellow]Errors:[/yellow]")
        for message in errors:
            console.print(f"  - {message}")


@main.command()
@click.argument("query")
@click.option("--limit", "-n", type=int, default=None, help="Maximum number of hits.")
@click.option("--volumes", type=str, default=None, help="Volume numbers, e.g. 1-3,7.")
@click.option("--type", "page_type", type=str, default=None, help="Page type filter.")
@click.option("--phrase", is_flag=True, help="Match QUERY as an exact phrase.")
@click.option("--fts", is_flag=True, help="Pass QUERY to FTS5 unchanged.")
@click.option("--full", is_flag=True, help="Show full page text and context.")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    limit: int | None,
    volumes: str | None,
    page_type: str | None,
    phrase: bool,
    fts: bool,
    full: bool,
) -> None:
    """Full-text search over indexed pages.

    QUERY may contain a "том: 1-3" / "volume: 1-3" directive.
    """
    from case_forensics.index.store import SearchError
    from case_forensics.output.report import format_search_result
    from case_forensics.query.parser import (
        is_court_decision_query,
        parse_number_range,
        parse_search_query,
    )

    config = ctx.obj["config"]
    search_query = parse_search_query(query, limit=limit)
    if fts or phrase:
        search_query.query = query
    search_query.phrase = phrase
    if volumes:
        search_query.volume_numbers = parse_number_range(volumes)
    search_query.document_type = page_type

    store = _open_store(config)
    try:
        results = store.search(search_query)
    except SearchError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    finally:
        store.close()

    if not results:
        console.print(f"[yellow]No pages match {query!r}.[/yellow]")
        if is_court_decision_query(query, config.court_keywords):
            console.print("[dim]Looks like a court-decision query; try `cfx decisions`.[/dim]")
        return

    for result in results:
        console.print(Markdown(format_search_result(result, full=full)))
        console.print()


@main.command()
@click.argument("query")
@click.option("--limit", "-n", type=int, default=10, help="Maximum number of decisions.")
@click.pass_context
def decisions(ctx: click.Context, query: str, limit: int) -> None:
    """Search court decisions with structured fields.

    Case number ("дело № 1-23/2024"), court and judge ("судья Иванов
    Иван Иванович") are recognized in QUERY and used as filters.
    """
    from case_forensics.extract.decisions import CourtDecisionSearch
    from case_forensics.index.store import SearchError
    from case_forensics.output.report import format_court_decision
    from case_forensics.query.parser import parse_court_decision_query

    config = ctx.obj["config"]
    decision_query = parse_court_decision_query(query, limit=limit)

    store = _open_store(config)
    try:
        results = CourtDecisionSearch(store).search_structured(decision_query)
    except SearchError as e:
        console.print(f"[red]Error: {e}[/red]")
        return
    finally:
        store.close()

    if not results:
        console.print(f"[yellow]No court decisions match {query!r}.[/yellow]")
        return

    for result in results:
        console.print(Markdown(format_court_decision(result)))
        console.print()


@main.command("compare-pages")
@click.argument("first")
@click.argument("second")
@click.option("--visual", is_flag=True, help="Also compare page layouts by perceptual hash.")
@click.pass_context
def compare_pages(ctx: click.Context, first: str, second: str, visual: bool) -> None:
    """Compare two indexed pages, given as VOLUME:PAGE."""
    from case_forensics.compare.engine import ComparisonEngine
    from case_forensics.compare.visual import PerceptualHashComparator
    from case_forensics.models import DocumentRef
    from case_forensics.output.report import format_comparison

    config = ctx.obj["config"]
    refs = [_parse_page_ref(first), _parse_page_ref(second)]

    store = _open_store(config)
    try:
        docs = []
        for i, (volume_number, page_number) in enumerate(refs, start=1):
            page = next(
                (p for p in store.get_pages(volume_number) if p.page_number == page_number),
                None,
            )
            if page is None:
                console.print(f"[red]Error: page {volume_number}:{page_number} is not indexed[/red]")
                return
            author = None
            if store.attribution is not None:
                author = store.attribution.author_for(volume_number, page_number)
            docs.append(
                DocumentRef(
                    volume_number=volume_number,
                    page_range=(page_number, page_number),
                    author=author or page.metadata.author or f"document {i}",
                    text=page.text,
                    image_path=page.image_path,
                )
            )

        engine = ComparisonEngine(
            visual_comparator=PerceptualHashComparator() if visual else None,
            page_renderer=store.ingestor.convert_page_to_image,
        )
        comparison = engine.compare_documents(
            docs[0], docs[1], config.comparison_options(use_multimodal=visual)
        )
    finally:
        store.close()

    console.print(Markdown(format_comparison(comparison)))


@main.command()
@click.pass_context
def sweep(ctx: click.Context) -> None:
    """Compare all cross-author documents and store suspicious pairs."""
    config = ctx.obj["config"]

    store = _open_store(config)
    try:
        found = store.find_suspicious_matches()
    finally:
        store.close()

    if found:
        console.print(f"[yellow]{found} suspicious document pairs stored.[/yellow]")
    else:
        console.print("[green]No suspicious document pairs found.[/green]")


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show case statistics and the volume list."""
    config = ctx.obj["config"]

    store = _open_store(config)
    try:
        case_stats = store.get_case_statistics()
        volumes = store.list_volumes()
    finally:
        store.close()

    table = Table(title="Volumes")
    table.add_column("Volume", justify="right")
    table.add_column("File")
    table.add_column("Pages", justify="right")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Progress", justify="right")
    for volume in volumes:
        table.add_row(
            str(volume.volume_number),
            Path(volume.file_path).name,
            str(volume.total_pages),
            volume.document_type.value,
            volume.indexing_status.value,
            f"{volume.indexing_progress}%",
        )

    console.print(table)
    console.print(f"\n  Volumes:    {case_stats.total_volumes}")
    console.print(f"  Indexed:    {case_stats.indexed_volumes}")
    console.print(f"  Failed:     {case_stats.error_volumes}")
    console.print(f"  Pages:      {case_stats.total_pages}")
    console.print(f"  Suspicious: {case_stats.suspicious_comparisons}")


@main.command()
@click.option("--limit", "-n", type=int, default=20, help="Maximum number of comparisons.")
@click.pass_context
def suspicious(ctx: click.Context, limit: int) -> None:
    """List stored suspicious comparisons, most similar first."""
    from case_forensics.output.report import format_comparison

    config = ctx.obj["config"]

    store = _open_store(config)
    try:
        comparisons = store.get_suspicious_comparisons()
    finally:
        store.close()

    if not comparisons:
        console.print("[green]No suspicious comparisons stored.[/green]")
        return

    console.print(f"Found {len(comparisons)} suspicious comparisons")
    for comparison in comparisons[:limit]:
        console.print(Markdown(format_comparison(comparison)))
        console.print()


@main.command()
@click.pass_context
def schema(ctx: click.Context) -> None:
    """Create and verify the index schema.

    Idempotent, safe to run repeatedly.
    """
    import sqlite3

    from case_forensics.index.schema import create_schema, verify_schema

    config = ctx.obj["config"]
    config.index_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(config.index_path))
    try:
        console.print("[cyan]Creating schema...[/cyan]")
        created = create_schema(conn)
        console.print(f"  {created['created']} created, {created['existing']} existing")

        console.print("\n[cyan]Verifying schema...[/cyan]")
        result = verify_schema(conn)
    finally:
        conn.close()

    console.print(f"  Tables:   {len(result['tables'])}")
    console.print(f"  Triggers: {len(result['triggers'])}")
    console.print(f"  Indexes:  {len(result['indexes'])}")
    if result["missing"]:
        console.print(f"\n[red]Schema incomplete, missing: {', '.join(result['missing'])}[/red]")
    else:
        console.print("\n[green]Schema OK[/green]")


@main.command("clear-cache")
@click.pass_context
def clear_cache(ctx: click.Context) -> None:
    """Delete cached page text and page images."""
    from case_forensics.ingest.processor import VolumeIngestor

    config = ctx.obj["config"]
    result = VolumeIngestor(config).clear_cache()
    console.print(
        f"[green]Removed {result['text_entries']} cached texts "
        f"and {result['images']} page images.[/green]"
    )


if __name__ == "__main__":
    main()
