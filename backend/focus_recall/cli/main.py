"""CLI entrypoint for Focus Recall."""

from __future__ import annotations

import json
import os
from typing import List, Optional

import requests
import typer

app = typer.Typer(name="frec", help="Focus Recall command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8765"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip("/")
    env_host = os.environ.get("FREC_HOST")
    if env_host:
        return env_host.rstrip("/")
    return DEFAULT_HOST


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    try:
        resp = requests.request(method, url, timeout=60, **kwargs)
    except requests.ConnectionError as exc:
        typer.echo(f"Cannot reach {base}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    if not resp.ok:
        try:
            detail = resp.json()
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    user: str = typer.Option(..., "--user", help="User whose documents are searched"),
    max_results: Optional[int] = typer.Option(None, "--max-results", "-k", help="Number of results to return"),
    rerank: Optional[bool] = typer.Option(None, "--rerank/--no-rerank", help="Force reranking on/off"),
    model: Optional[str] = typer.Option(None, "--model", help="Rerank model: cross-encoder, semantic-similarity, hybrid"),
    diversity: Optional[bool] = typer.Option(None, "--diversity/--no-diversity", help="Force diversity on/off"),
    content_type: Optional[List[str]] = typer.Option(None, "--type", help="Restrict to content type (repeatable)"),
    window: Optional[str] = typer.Option(None, "--window", help="today, week, month or all"),
    project: Optional[List[str]] = typer.Option(None, "--project", help="Restrict to project id (repeatable)"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Run a hybrid search for a user."""
    payload: dict[str, object] = {"query": q, "user_id": user}
    optional = {
        "max_results": max_results,
        "enable_reranking": rerank,
        "reranking_model": model,
        "enable_diversity": diversity,
        "content_types": content_type or None,
        "time_window": window,
        "project_ids": project or None,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})
    resp = _request("POST", "/search", host=host, json=payload)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def classify(
    q: str = typer.Argument(..., help="Query text"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Show how a query is classified."""
    resp = _request("POST", "/classify", host=host, json={"query": q})
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def health(
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Check that the backend is up."""
    resp = _request("GET", "/health", host=host)
    typer.echo(json.dumps(resp.json()))


if __name__ == "__main__":
    app()
