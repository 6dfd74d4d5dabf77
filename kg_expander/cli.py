from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from kg_expander.core.ai.contracts import parse_expand_request
from kg_expander.core.ai.openai_client import DEFAULT_MODEL, OpenAIExpansionClient, model_for_role
from kg_expander.core.domains.catalog import DomainCatalog, load_and_merge
from kg_expander.core.errors import (
    CatalogConfigError,
    ExpanderError,
    GeneratorError,
    InputLoadError,
    RequestError,
)
from kg_expander.core.io.load_input import load_document
from kg_expander.core.model import ExpansionBatch, KnowledgeGraph
from kg_expander.core.sanitize.sanitize_expansion import sanitize_for_catalog
from kg_expander.core.session.expand_session import ExpansionSession, explore
from kg_expander.core.session.renderer import RecordingRenderer

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Knowledge-graph expander CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command("domains")
def domains(
    catalog_file: str | None = typer.Option(
        None,
        "--catalog-file",
        help="Optional YAML file to add/override domain catalogs",
    ),
) -> None:
    """List available domain catalogs."""
    catalogs = _load_catalogs(catalog_file)

    typer.echo("Domains:")
    for key in sorted(catalogs.keys()):
        c = catalogs[key]
        typer.echo(f"- {key}: {c.title} (root={c.root.id})")
        typer.echo(f"    kinds: {', '.join(c.allowed_kinds)}")
        typer.echo(f"    exempt: {', '.join(c.exempt_kinds) or '-'}")


@app.command("sanitize")
def sanitize(
    request_path: str = typer.Argument(..., help="Expansion request file (.json/.yaml)"),
    payload_path: str = typer.Argument(..., help="Raw generator payload file (.json/.yaml)"),
    domain: str = typer.Option("perfume", "--domain", help="Domain catalog key"),
    catalog_file: str | None = typer.Option(None, "--catalog-file"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Run the sanitizer over a recorded generator payload."""
    _check_format(format)
    catalog = _select_catalog(_load_catalogs(catalog_file), domain)

    try:
        request_obj = load_document(request_path)
        payload = load_document(payload_path, require_mapping=False)
    except InputLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    try:
        request = parse_expand_request(request_obj)
    except RequestError as e:
        e.file = request_path
        _print_errors([e])
        raise typer.Exit(code=2)

    batch = sanitize_for_catalog(catalog, request.focus_node, request.existing_element_ids, payload)

    if format == "json":
        typer.echo(json.dumps(batch.to_dict(), indent=2, sort_keys=True, ensure_ascii=False))
        return
    _echo_batch(batch)


@app.command("explore")
def explore_cmd(
    domain: str = typer.Option("perfume", "--domain", help="Domain catalog key"),
    catalog_file: str | None = typer.Option(None, "--catalog-file"),
    model: str | None = typer.Option(None, "--model", help="Defaults to OPENAI_MODEL_EXPAND / OPENAI_MODEL"),
    base_url: str | None = typer.Option(None, "--base-url"),
    max_expansions: int = typer.Option(1, "--max-expansions", help="Expansions to run, root first"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
    trace: bool = typer.Option(False, "--trace", help="Print renderer calls in order"),
) -> None:
    """Grow a graph from the domain root with the model, breadth-first."""
    _check_format(format)
    catalog = _select_catalog(_load_catalogs(catalog_file), domain)

    if not os.getenv("OPENAI_API_KEY"):
        _print_errors(
            [
                RequestError(
                    code="E_EXPLORE_NO_API_KEY",
                    message="OPENAI_API_KEY is not set",
                    path="OPENAI_API_KEY",
                )
            ]
        )
        raise typer.Exit(code=2)

    renderer = RecordingRenderer()
    session = ExpansionSession(
        catalog=catalog,
        generator=OpenAIExpansionClient(base_url=base_url),
        model=model or model_for_role("expand", DEFAULT_MODEL),
        renderer=renderer,
    )

    try:
        outcomes = asyncio.run(explore(session, max(0, max_expansions)))
    except GeneratorError as e:
        _print_errors([e])
        raise typer.Exit(code=2)

    if trace:
        for name, detail in renderer.calls:
            typer.echo(f"{name}: {detail}", err=True)

    if format == "json":
        payload: dict[str, Any] = {
            "domain": catalog.key,
            "expansions": len(outcomes),
            "graph": session.graph.to_dict(),
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
        return

    _print_graph_table(catalog, session.graph)
    typer.echo(f"OK: {len(outcomes)} expansions, {len(session.graph.nodes)} nodes, {len(session.graph.edges)} edges")


def _check_format(format: str) -> None:
    if format not in ("text", "json"):
        _print_errors(
            [
                RequestError(
                    code="E_UNKNOWN_FORMAT",
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _load_catalogs(catalog_file: str | None) -> dict[str, DomainCatalog]:
    try:
        return load_and_merge(catalog_file)
    except FileNotFoundError:
        _print_errors(
            [
                InputLoadError(
                    code="E_CATALOG_FILE_NOT_FOUND",
                    message=f"catalog file not found: {catalog_file}",
                    path="catalog_file",
                )
            ]
        )
        raise typer.Exit(code=1)
    except CatalogConfigError as e:
        _print_errors(
            [
                RequestError(
                    code="E_CATALOG_FILE_INVALID",
                    message=str(e),
                    file=catalog_file,
                    path="catalog_file",
                )
            ]
        )
        raise typer.Exit(code=2)


def _select_catalog(catalogs: dict[str, DomainCatalog], domain: str) -> DomainCatalog:
    if domain not in catalogs:
        _print_errors(
            [
                RequestError(
                    code="E_UNKNOWN_DOMAIN",
                    message=f"unknown domain: {domain} (choose one of: {', '.join(sorted(catalogs.keys()))})",
                    path="domain",
                )
            ]
        )
        raise typer.Exit(code=2)
    return catalogs[domain]


def _echo_batch(batch: ExpansionBatch) -> None:
    typer.echo(f"nodes: {len(batch.nodes)}")
    for n in batch.nodes:
        typer.echo(f"- {n.id} [{n.kind}] depth={n.depth}: {n.label}")
    typer.echo(f"edges: {len(batch.edges)}")
    for e in batch.edges:
        typer.echo(f"- {e.id}: {e.source} -> {e.target} ({e.label})")


def _print_graph_table(catalog: DomainCatalog, graph: KnowledgeGraph) -> None:
    table = Table(title=catalog.title)
    table.add_column("Id")
    table.add_column("Label")
    table.add_column("Kind")
    table.add_column("Depth")
    table.add_column("X")
    table.add_column("Y")
    table.add_column("Expanded")
    for n in sorted(graph.nodes.values(), key=lambda n: (n.depth, n.id)):
        pos = graph.positions.get(n.id)
        table.add_row(
            n.id,
            catalog.label_with_icon(n.kind, n.label).replace("\n", " "),
            n.kind,
            str(n.depth),
            f"{pos.x:.1f}" if pos else "-",
            f"{pos.y:.1f}" if pos else "-",
            "yes" if graph.is_expanded(n.id) else "no",
        )
    Console().print(table)


def _print_errors(errors: list[ExpanderError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="kg-expander")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
