"""CLI entrypoint for the Bundestag indexer."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

import requests
import typer

from bundestag_index.api.dependencies import get_orchestrator, get_watermark_store
from bundestag_index.core.logging import configure_logging
from bundestag_index.ingest.segmenter import BuiltinSegmenter
from bundestag_index.ingest.types import SourceCategory

app = typer.Typer(name="btix", help="Bundestag index command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("BTIX_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=60, **kwargs)
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


def _echo(payload: object) -> None:
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


@app.command()
def run(
    bootstrap: bool = typer.Option(True, "--bootstrap/--no-bootstrap", help="Seed watermarks first"),
) -> None:
    """Run one indexing pass in this process."""
    configure_logging()
    orchestrator = get_orchestrator()
    if bootstrap:
        orchestrator.bootstrap_watermarks()
    result = orchestrator.run_pass()
    _echo(result.to_dict())
    if result.status == "failed":
        raise typer.Exit(code=1)


@app.command()
def trigger(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Ask a running service to start a pass."""
    resp = _request("POST", "/indexer/run", host=host)
    _echo(resp.json())


@app.command()
def status(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show indexer statistics of a running service."""
    resp = _request("GET", "/indexer/status", host=host)
    _echo(resp.json())


@app.command()
def watermarks() -> None:
    """List stored watermarks."""
    _echo([watermark.to_dict() for watermark in get_watermark_store().get_all()])


@app.command()
def reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete all watermarks so the next pass runs in full mode."""
    if not yes:
        typer.confirm("Delete all watermarks?", abort=True)
    deleted = get_watermark_store().clear()
    _echo({"deleted": deleted})


@app.command()
def bootstrap() -> None:
    """Seed empty watermarks from the vector store."""
    configure_logging()
    written = get_orchestrator().bootstrap_watermarks()
    _echo({"written": written})


@app.command()
def segment(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Plain-text document"),
    category: str = typer.Option("transcript", "--category", "-c", help="Source category"),
    document_type: Optional[str] = typer.Option(None, "--type", help="Declared Drucksache type"),
    chunks: bool = typer.Option(False, "--chunks", help="Print chunk texts as well"),
) -> None:
    """Segment a local file and print the result."""
    try:
        SourceCategory(category)
    except ValueError:
        typer.echo(f"Unknown category: {category}", err=True)
        raise typer.Exit(code=2)
    text = path.read_text(encoding="utf-8")
    metadata = {"id": path.stem, "category": category, "document_type": document_type}
    result = BuiltinSegmenter().segment(text, metadata)
    payload = result.to_dict()
    if not chunks:
        payload.pop("chunks")
    _echo(payload)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
) -> None:
    """Serve the HTTP API with the background indexer."""
    import uvicorn

    uvicorn.run("bundestag_index.app:app", host=host, port=port)


if __name__ == "__main__":
    app()
