"""CLI entry point for SnapSight."""

import json
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config, use_mock

console = Console()


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """SnapSight - Analyze images with AI and browse past results."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _get_config(ctx) -> dict:
    return load_config(ctx.obj.get("config_path"))


def _records(ctx):
    from .storage import get_record_store
    return get_record_store(_get_config(ctx))


def _analyses_table(title: str, records) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim", max_width=16)
    table.add_column("When", style="cyan")
    table.add_column("File")
    table.add_column("Domain", style="magenta")
    table.add_column("Confidence", style="green")
    table.add_column("Summary", max_width=60)

    for r in records:
        table.add_row(
            r.id[:16],
            r.timestamp[:19].replace("T", " "),
            r.filename,
            r.domain,
            r.confidence_level,
            r.image_summary[:80].replace("\n", " "),
        )
    return table


@cli.command()
@click.option("--path", default=None, help="Custom data directory")
@click.pass_context
def init(ctx, path):
    """Create the data directory and a starter config.yaml."""
    import yaml

    if path:
        data_path = Path(path).expanduser().resolve()
    else:
        data_path = Path("~/.snapsight").expanduser()

    console.print(f"[bold green]Initializing SnapSight at {data_path}[/]")
    (data_path / "inbox").mkdir(parents=True, exist_ok=True)

    config_file = data_path / "config.yaml"
    if not config_file.exists():
        cfg = json.loads(json.dumps(DEFAULT_CONFIG))
        cfg["data_path"] = str(data_path)
        cfg["db_path"] = str(data_path / "analyses-db.json")
        cfg["vector_store_path"] = str(data_path / "vector-store.json")
        cfg["inbox_path"] = str(data_path / "inbox")
        header = (
            "# Claude API key for image analysis (or set ANTHROPIC_API_KEY env var).\n"
            "# Without a key, SnapSight stores mock analyses.\n"
            "# claude_api_key: sk-ant-your-key-here\n\n"
        )
        config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    console.print("[bold green]✓ SnapSight initialized![/]")
    console.print(f"  Drop images in: {data_path / 'inbox'}")
    console.print(f"  Run: snapsight analyze IMAGE  or  snapsight watch")


@cli.command()
@click.argument("images", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def analyze(ctx, images):
    """Analyze one or more image files."""
    from .analysis.analyzer import ImageAnalyzer
    from .storage import StorageUnavailableError

    config = _get_config(ctx)
    if use_mock(config):
        console.print("[yellow]Mock mode: no API key set (or use_mock_data is on).[/]")

    analyzer = ImageAnalyzer(config)
    failed = 0
    for image in images:
        try:
            record = analyzer.analyze(image)
        except ValueError as e:
            console.print(f"[red]✗ {image}: {e}[/]")
            failed += 1
            continue
        except StorageUnavailableError as e:
            console.print(f"[red]✗ {e}[/]")
            ctx.exit(1)

        body = f"[bold]{escape(record.image_summary)}[/]\n\n"
        body += f"Domain: {record.domain}   Confidence: {record.confidence_level}\n"
        if record.detected_elements:
            body += f"Elements: {escape(', '.join(record.detected_elements[:12]))}\n"
        if record.related:
            body += "\n[bold]Related:[/]\n"
            for rel in record.related:
                body += f"  • {escape(rel['summary'][:70])} ({rel['score']:.3f})\n"
        console.print(Panel(body.rstrip(), title=f"{record.filename} · {record.id[:12]}", border_style="green"))

    if failed:
        ctx.exit(1)


@cli.command("list")
@click.option("--limit", "-n", type=click.IntRange(min=1), default=None, help="Max results")
@click.option("--offset", type=click.IntRange(min=0), default=0, help="Skip this many of the newest")
@click.pass_context
def list_cmd(ctx, limit, offset):
    """List past analyses, newest first."""
    store = _records(ctx)
    records = store.list(limit=limit, offset=offset)
    if not records:
        console.print("[yellow]No analyses yet. Run 'snapsight analyze IMAGE'.[/]")
        return

    console.print(_analyses_table("Analyses", records))
    console.print(f"[dim]{len(records)} of {store.count()} shown[/]")


@cli.command()
@click.argument("analysis_id")
@click.option("--json", "as_json", is_flag=True, help="Print the raw record as JSON")
@click.pass_context
def show(ctx, analysis_id, as_json):
    """Show one analysis by id or image hash."""
    record = _records(ctx).get_by_id(analysis_id)
    if record is None:
        console.print(f"[red]Analysis not found: {analysis_id}[/]")
        ctx.exit(1)

    if as_json:
        data = record.to_dict()
        data.pop("embedding", None)
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
        return

    console.print(Panel(escape(record.image_summary or "(no summary)"), title=record.filename, border_style="cyan"))
    for label, value in (
        ("ID", record.id),
        ("Image hash", record.image_hash),
        ("Analyzed", record.timestamp),
        ("Domain", record.domain),
        ("Confidence", record.confidence_level),
        ("Elements", ", ".join(record.detected_elements)),
        ("Extracted text", record.extracted_text),
    ):
        if value:
            console.print(f"[bold]{label}:[/] {escape(value)}")
    if record.detailed_explanation:
        console.print(f"\n[bold]Explanation[/]\n{escape(record.detailed_explanation)}")
    if record.real_world_applications:
        console.print(f"\n[bold]Applications[/]\n{escape(record.real_world_applications)}")
    if record.educational_insight:
        console.print(f"\n[bold]Insight[/]\n{escape(record.educational_insight)}")


@cli.command()
@click.argument("query")
@click.pass_context
def search(ctx, query):
    """Search analyses by text (summary, explanation, domain, text, file, elements)."""
    results = _records(ctx).search(query)
    if not results:
        console.print(f"[yellow]No analyses match '{query}'.[/]")
        return
    console.print(_analyses_table(f"Matches for '{query}'", results))


@cli.command()
@click.argument("analysis_id", required=False)
@click.option("--text", "-t", "text", default=None, help="Free-text description to match instead of a stored analysis")
@click.option("--n", "-n", default=3, type=click.IntRange(min=1), help="Number of results")
@click.pass_context
def similar(ctx, analysis_id, text, n):
    """Find past images similar to a stored analysis or a text description."""
    from .storage import get_record_store, get_similarity_index

    if (analysis_id is None) == (text is None):
        raise click.UsageError("Give either an ANALYSIS_ID or --text, not both.")

    config = _get_config(ctx)
    if text is not None:
        from .embeddings.embedder import Embedder
        vector = Embedder(config).embed_query(text)
        exclude, title = None, f"Similar to '{escape(text)}'"
    else:
        record = get_record_store(config).get_by_id(analysis_id)
        if record is None:
            console.print(f"[red]Analysis not found: {escape(analysis_id)}[/]")
            ctx.exit(1)
        if not record.embedding:
            console.print("[yellow]This analysis has no embedding (mock mode or embedding failed).[/]")
            return
        vector = record.embedding
        exclude, title = record.image_hash, f"Similar to {escape(record.filename)}"

    hits = get_similarity_index(config).query(vector, n, exclude_id=exclude)
    if not hits:
        console.print("[yellow]No similar images found.[/]")
        return

    table = Table(title=title)
    table.add_column("#", style="dim", width=3)
    table.add_column("ID", style="cyan", max_width=16)
    table.add_column("Score", justify="right", style="green")
    table.add_column("Summary", max_width=60)
    for i, h in enumerate(hits, 1):
        table.add_row(str(i), h.id[:16], f"{h.score:.3f}", escape(h.summary[:80].replace("\n", " ")))
    console.print(table)


@cli.command()
@click.argument("analysis_id")
@click.pass_context
def delete(ctx, analysis_id):
    """Delete an analysis by id or image hash."""
    if not _records(ctx).delete(analysis_id):
        console.print(f"[red]Analysis not found: {analysis_id}[/]")
        ctx.exit(1)
    console.print(f"[green]✓ Deleted {analysis_id}[/]")


@cli.command()
@click.pass_context
def stats(ctx):
    """Show analysis statistics."""
    s = _records(ctx).stats()

    console.print(f"\n[bold]📊 SnapSight Statistics[/]")
    console.print(f"  Total analyses: {s['totalAnalyses']}")
    if s["domains"]:
        console.print(f"\n  [bold]Domains:[/]")
        for domain, count in sorted(s["domains"].items(), key=lambda kv: -kv[1]):
            console.print(f"    {domain}: {count}")
    if s["confidenceLevels"]:
        console.print(f"\n  [bold]Confidence:[/]")
        for level, count in sorted(s["confidenceLevels"].items()):
            console.print(f"    {level}: {count}")
    if s["recentAnalyses"]:
        console.print(f"\n  [bold]Recent:[/]")
        for r in s["recentAnalyses"]:
            console.print(f"    {r['timestamp'][:19].replace('T', ' ')}  {r['domain']}  {escape(r['imageSummary'])}")


@cli.command()
@click.option("--debounce", default=2.0, help="Seconds to wait after last change before analyzing")
@click.pass_context
def watch(ctx, debounce):
    """Watch the inbox folder and analyze new images automatically."""
    from .watcher import InboxWatcher

    config = _get_config(ctx)
    watcher = InboxWatcher(config, debounce=debounce)
    watcher.run()


if __name__ == "__main__":
    cli()
