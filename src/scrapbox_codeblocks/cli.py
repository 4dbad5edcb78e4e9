"""CLI for scrapbox-codeblocks."""

import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from scrapbox_codeblocks.api import LinesTarget, PageTarget, get_code_blocks
from scrapbox_codeblocks.parser.codeblock import CodeBlockFilter, Line, TinyCodeBlock
from scrapbox_codeblocks.source.local import load_lines
from scrapbox_codeblocks.source.rest import DEFAULT_BASE_URL, ScrapboxClient

console = Console()


def configure_logging(verbose: bool) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _line_to_dict(line: Line | None) -> dict | None:
    if line is None:
        return None
    return {"id": line.id, "text": line.text}


def block_to_dict(block: TinyCodeBlock) -> dict:
    """Convert a block into a JSON-serializable dict."""
    return {
        "filename": block.filename,
        "lang": block.lang,
        "title_line": _line_to_dict(block.title_line),
        "body": [_line_to_dict(line) for line in block.body_lines],
        "next_line": _line_to_dict(block.next_line),
    }


@click.group()
def cli():
    """Scrapbox Codeblocks - Extract code blocks from Scrapbox pages."""
    pass


@cli.command()
@click.argument("source", required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--project", "-P", help="Project to fetch the page from")
@click.option("--title", "-t", help="Title of the page to fetch")
@click.option("--filename", help="Only blocks with this exact filename")
@click.option("--lang", help="Only blocks with this exact language")
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON")
@click.option("--body", "show_body", is_flag=True, help="Print the code of each block")
@click.option("--sid", envvar="SCRAPBOX_SID", help="connect.sid session id for private projects")
@click.option("--base-url", envvar="SCRAPBOX_BASE_URL", default=DEFAULT_BASE_URL,
              show_default=True, help="Scrapbox origin")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def extract(source: Path | None, project: str | None, title: str | None,
            filename: str | None, lang: str | None, json_output: bool,
            show_body: bool, sid: str | None, base_url: str, verbose: bool):
    """Extract code blocks from a page.

    Reads SOURCE (a text file or page JSON), or fetches --title from --project.

    Exit codes:
        0 - Code blocks found
        1 - No matching code blocks
        2 - Error occurred
    """
    configure_logging(verbose)

    try:
        if source is not None and (project or title):
            raise click.UsageError("Give either SOURCE or --project/--title, not both")
        if source is None and not (project and title):
            raise click.UsageError("Give SOURCE, or both --project and --title")

        block_filter = None
        if filename or lang:
            block_filter = CodeBlockFilter(filename=filename, lang=lang)

        if source is not None:
            blocks = get_code_blocks(LinesTarget(load_lines(source)), block_filter)
            where = str(source)
        else:
            with ScrapboxClient(base_url=base_url, sid=sid) as client:
                blocks = get_code_blocks(PageTarget(project, title), block_filter, client=client)
            where = f"{project}/{title}"

        if json_output:
            output = {
                "count": len(blocks),
                "blocks": [block_to_dict(block) for block in blocks],
            }
            print(json.dumps(output, ensure_ascii=False))
        elif not blocks:
            console.print(f"[yellow]No code blocks found in {escape(where)}[/yellow]")
        elif show_body:
            for block in blocks:
                console.rule(f"[cyan]{escape(block.filename)}[/cyan] ({escape(block.lang)})")
                console.print(block.code, markup=False, highlight=False)
        else:
            table = Table(title=f"Code blocks in {escape(where)}")
            table.add_column("Filename", style="cyan")
            table.add_column("Lang", style="yellow")
            table.add_column("Line", style="magenta")
            table.add_column("Body", justify="right")

            for block in blocks:
                table.add_row(escape(block.filename), escape(block.lang),
                              escape(block.title_line.id), str(len(block.body_lines)))

            console.print(table)
            console.print(f"\n[green]Found {len(blocks)} code block(s)[/green]")

        sys.exit(0 if blocks else 1)

    except click.UsageError:
        raise
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(2)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
