"""
sqlagent CLI

Command-line interface for the ask pipeline and the knowledge-base build.

Usage:
    sqlagent ask "top 5 categories by sales" --database-url sqlite:///shop.db --execute
    sqlagent ask "revenue by region" --database-url postgresql://... --stream
    sqlagent build --database-url sqlite:///shop.db --output shop.md
    sqlagent status --database-url sqlite:///shop.db
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from sqlagent.config import get_settings
from sqlagent.connections.manager import InMemoryConnectionManager
from sqlagent.connectors.factory import create_connector, infer_database_type
from sqlagent.knowledge.builder import ConnectionBuildService
from sqlagent.models import AgentError, AskOptions, BuildStatus, SqlResult
from sqlagent.pipeline.ask import create_pipeline
from sqlagent.schema.provider import ConnectorSchemaProvider

console = Console()
CLI_CONNECTION_ID = "cli"


def configure_cli_logging(verbose: bool) -> None:
    if verbose:
        get_settings().logging.configure()
        return
    logging.basicConfig(level=logging.CRITICAL)
    for logger_name in ("sqlagent", "httpx", "openai", "anthropic", "chromadb", "asyncio"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


async def _manager_for(
    database_url: str, database_type: str | None, document: str | None = None
) -> InMemoryConnectionManager:
    manager = InMemoryConnectionManager()
    await manager.add(
        database_url,
        database_type=database_type,
        name=Path(database_url).stem or "database",
        connection_id=CLI_CONNECTION_ID,
    )
    if document:
        await manager.update_agent_document(CLI_CONNECTION_ID, document)
    return manager


def format_result(result: SqlResult) -> None:
    """Render an ask result."""
    sql = "\n".join(result.sql)
    style = "cyan" if result.is_valid else "red"
    console.print(
        Panel(sql, title=f"SQL ({result.dialect}, confidence {result.confidence})", border_style=style)
    )

    if result.parameters:
        console.print(f"[bold]Parameters:[/bold] {json.dumps(result.parameters, default=str)}")
    if result.explanation:
        console.print(Panel(result.explanation, title="Explanation", border_style="dim"))

    if result.rows is not None:
        table = Table(show_header=True, header_style="bold cyan")
        for column in result.columns:
            table.add_column(column)
        for row in result.rows:
            table.add_row(*["" if row.get(c) is None else str(row.get(c)) for c in result.columns])
        console.print(table)
    elif result.affected_rows is not None:
        console.print(f"[green]Affected {result.affected_rows} rows[/green]")

    if result.execution_preview and result.rows is None:
        console.print(Panel(result.execution_preview, title="Execution", border_style="dim"))
    if result.chart_option:
        console.print(Panel(result.chart_option, title="Chart option", border_style="magenta"))
    for warning in result.warnings:
        console.print(f"[yellow]- {warning}[/yellow]")


@click.group()
@click.version_option(version="0.1.0", prog_name="sqlagent")
@click.option("--verbose", is_flag=True, help="Enable logging output")
def cli(verbose: bool):
    """sqlagent - natural language to SQL for relational databases."""
    configure_cli_logging(verbose)


@cli.command()
@click.argument("question")
@click.option("--database-url", required=True, help="Target database URL or SQLite path")
@click.option("--database-type", default=None, help="sqlite, postgresql, mysql (inferred by default)")
@click.option("--dialect", default=None, help="Override the SQL dialect")
@click.option("--execute", is_flag=True, help="Execute the generated statement")
@click.option("--allow-write", is_flag=True, help="Allow INSERT/UPDATE/DELETE/DDL")
@click.option("--explain", "return_explanation", is_flag=True, help="Include an explanation")
@click.option("--preview", "preview_only", is_flag=True, help="Return the execution plan only")
@click.option("--top-k", default=None, type=int, help="Schema context size")
@click.option("--max-rows", default=None, type=int, help="Row cap for queries")
@click.option(
    "--document",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Knowledge-base document produced by 'sqlagent build'",
)
@click.option("--stream", is_flag=True, help="Print stream events as they arrive")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def ask(
    question: str,
    database_url: str,
    database_type: str | None,
    dialect: str | None,
    execute: bool,
    allow_write: bool,
    return_explanation: bool,
    preview_only: bool,
    top_k: int | None,
    max_rows: int | None,
    document: Path | None,
    stream: bool,
    as_json: bool,
):
    """Generate SQL for a single question."""
    settings = get_settings()
    options = AskOptions(
        connection_id=CLI_CONNECTION_ID,
        dialect=dialect,
        execute=execute or preview_only,
        allow_write=allow_write,
        top_k=top_k or settings.ask.default_top_k,
        return_explanation=return_explanation,
        max_rows=max_rows or settings.ask.max_rows,
        preview_only=preview_only,
    )

    async def run_query():
        manager = await _manager_for(
            database_url, database_type, document.read_text() if document else None
        )
        pipeline = await create_pipeline(manager)

        if stream:
            async for event in pipeline.stream(question, options):
                if event.event == "delta":
                    console.print(event.data["delta"], end="")
                else:
                    console.print_json(json.dumps(event.model_dump(), default=str))
            return

        with console.status("[cyan]Generating SQL...[/cyan]", spinner="dots"):
            result = await pipeline.ask(question, options)
        if as_json:
            console.print_json(result.model_dump_json())
        else:
            format_result(result)

    try:
        asyncio.run(run_query())
    except (AgentError, ValueError, RuntimeError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.exceptions.Exit(1) from e


@cli.command()
@click.option("--database-url", required=True, help="Target database URL or SQLite path")
@click.option("--database-type", default=None, help="sqlite, postgresql, mysql (inferred by default)")
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the generated document to this file",
)
def build(database_url: str, database_type: str | None, output: Path | None):
    """Generate the knowledge-base document for a database."""

    async def run_build():
        manager = await _manager_for(database_url, database_type)
        service = ConnectionBuildService(manager)
        started = await service.start_build(CLI_CONNECTION_ID)
        with console.status(f"[cyan]{started.message}...[/cyan]", spinner="dots"):
            state = await service.wait_for_build(CLI_CONNECTION_ID)

        if state.status != BuildStatus.COMPLETED:
            console.print(f"[red]{state.message}: {state.error_message}[/red]")
            raise click.exceptions.Exit(1)

        record = await manager.get(CLI_CONNECTION_ID)
        document = record.agent_document or ""
        if output:
            output.write_text(document)
            console.print(f"[green]{state.message}[/green] -> {output}")
        else:
            console.print(Panel(Markdown(document), title=f"[bold green]{state.message}[/bold green]"))

    try:
        asyncio.run(run_build())
    except AgentError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise click.exceptions.Exit(1) from e


@cli.command()
@click.option("--database-url", default=None, help="Target database URL or SQLite path")
@click.option("--database-type", default=None, help="sqlite, postgresql, mysql (inferred by default)")
def status(database_url: str | None, database_type: str | None):
    """Show configuration and connection status."""

    async def check_status():
        settings = get_settings()
        table = Table(title="sqlagent Status", show_header=True, header_style="bold cyan")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        table.add_row("Configuration", "ok", f"Environment: {settings.environment}")
        table.add_row("LLM", "ok", f"Provider: {settings.llm.default_provider}")
        table.add_row(
            "Vector retrieval",
            "ok" if settings.chroma.enabled else "off",
            str(settings.chroma.persist_dir) if settings.chroma.enabled else "keyword retrieval",
        )

        if database_url:
            details: dict[str, Any] = {
                "type": database_type or infer_database_type(database_url),
            }
            try:
                connector = create_connector(
                    connection_string=database_url, database_type=database_type
                )
                async with connector:
                    pass
                manager = await _manager_for(database_url, database_type)
                record = await manager.get(CLI_CONNECTION_ID)
                schema = await ConnectorSchemaProvider().load(record)
                details["tables"] = len(schema.tables)
                table.add_row(
                    "Database",
                    "ok",
                    ", ".join(f"{key}={value}" for key, value in details.items()),
                )
            except Exception as e:
                table.add_row("Database", "error", str(e))
        else:
            table.add_row("Database", "-", "No --database-url given")

        console.print(table)

    asyncio.run(check_status())


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
