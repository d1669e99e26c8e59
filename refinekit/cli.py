from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

import typer

from refinekit.config.settings import Settings
from refinekit.core.errors import InvalidGroupOperator, SearchError
from refinekit.core.filter_state import FilterState, GroupOperator
from refinekit.core.interactors import default_stats_text
from refinekit.core.session import SearchRequest
from refinekit.index.db import DB_PATH, initialize
from refinekit.index.local_service import LocalSearchService
from refinekit.index.records_repo import RecordsRepo
from refinekit.service.loader import DatasetError, iter_dataset_files, load_file

app = typer.Typer(help="RefineKit CLI")


def _repo(db_path: Path) -> RecordsRepo:
    initialize(db_path)
    return RecordsRepo(db_path=db_path)


def parse_filters(filters: List[str], operator: str = "or") -> FilterState:
    """Build a FilterState from ``attribute=value`` pairs."""
    try:
        op = GroupOperator.coerce(operator)
    except InvalidGroupOperator as exc:
        raise typer.BadParameter(str(exc), param_hint="--operator") from exc
    state = FilterState()
    for raw in filters:
        attribute, sep, value = raw.partition("=")
        if not sep or not attribute or not value:
            raise typer.BadParameter(f"expected attribute=value, got {raw!r}", param_hint="--filter")
        state.set_group(attribute.strip(), op)
        state.add(attribute.strip(), value.strip())
    return state


@app.command()
def gui(demo: str = typer.Option("getting-started", help="Demo screen: getting-started or refinement-list")) -> None:
    """Launch a demo screen."""
    from refinekit.gui.app import run_gui

    run_gui(demo)


@app.command()
def load(
    path: Path = typer.Argument(..., exists=True, help="Dataset file or directory"),
    index: Optional[str] = typer.Option(None, help="Index name (defaults to the file name)"),
    db: Path = typer.Option(DB_PATH, help="SQLite database path"),
) -> None:
    """Load JSON, JSON-lines or CSV records into the local index."""
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    repo = _repo(db)
    files = list(iter_dataset_files(path))
    if not files:
        typer.echo(f"No dataset files found in {path}", err=True)
        raise typer.Exit(code=1)
    for file in files:
        try:
            count = load_file(repo, file, index_name=index)
        except DatasetError as exc:
            typer.echo(str(exc), err=True)
            raise typer.Exit(code=1)
        typer.echo(f"{file.name}: {count} records")


@app.command()
def search(
    query: str = typer.Argument("", help="Free-text query"),
    index: Optional[str] = typer.Option(None, help="Index name"),
    filter: List[str] = typer.Option([], "--filter", "-f", help="attribute=value, repeatable"),
    operator: str = typer.Option("or", help="Operator inside each filter group: and / or"),
    facet: List[str] = typer.Option([], "--facet", help="Facet attribute to count, repeatable"),
    page: int = typer.Option(0, min=0),
    hits_per_page: int = typer.Option(20, min=1),
    db: Path = typer.Option(DB_PATH, help="SQLite database path"),
) -> None:
    """Run one search against the local index and print hits and facet counts."""
    settings = Settings.load()
    state = parse_filters(filter, operator)
    request = SearchRequest(
        index_name=index or settings.default_index,
        query=query,
        filters=state.snapshot(),
        facets=tuple(facet),
        page=page,
        hits_per_page=hits_per_page,
    )
    service = LocalSearchService(_repo(db))
    try:
        response = service.execute(request, threading.Event())
    except SearchError as exc:
        typer.echo(f"Search failed: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(default_stats_text(response))
    if not state.snapshot().is_empty():
        typer.echo(f"Filters: {state.describe()}")
    for hit in response.hits:
        typer.echo(f"  {hit.get('objectID', '')}\t{hit.get('name') or hit.get('title') or ''}")
    for attribute, counts in response.facets.items():
        typer.echo(f"{attribute}:")
        for value, count in counts.items():
            typer.echo(f"  {value} ({count})")


if __name__ == "__main__":
    sys.exit(app())
