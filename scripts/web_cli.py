#!/usr/bin/env python3
"""
Small CLI for poking at a running Loresmith instance over HTTP.

Every request carries the X-User-Id header, so the CLI sees exactly what that
owner would see through the API.

Prerequisites:
 1. The app is running (`python scripts/web_cli.py serve`, or compose).
 2. LORESMITH_CLI_USER is set, or --user is passed on each call.
"""
from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import Any

import click
import httpx
import uvicorn
from prettytable import PrettyTable

# Ensure src is on the path to import Loresmith modules
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from Loresmith.config import load_settings

settings = load_settings()
APP_URL = os.getenv("LORESMITH_APP_URL", f"http://127.0.0.1:{settings.app_port}")
REQUEST_TIMEOUT_SECONDS = 10


def _request(ctx: click.Context, method: str, path: str, **kwargs: Any) -> Any:
    headers = {"X-User-Id": ctx.obj["user"]}
    click.echo(f"-> {method} {APP_URL}{path}", err=True)
    with httpx.Client(timeout=REQUEST_TIMEOUT_SECONDS) as client:
        response = client.request(method, f"{APP_URL}{path}", headers=headers, **kwargs)
    if response.status_code >= 400:
        try:
            message = response.json().get("error") or response.text
        except ValueError:
            message = response.text
        click.echo(click.style(f"<- HTTP {response.status_code}: {message}", fg="red"), err=True)
        ctx.exit(1)
    return response.json().get("data")


@click.group()
@click.option("--user", default=lambda: os.getenv("LORESMITH_CLI_USER", ""), help="Owner id")
@click.pass_context
def cli(ctx: click.Context, user: str) -> None:
    ctx.ensure_object(dict)
    ctx.obj["user"] = user


@cli.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=settings.app_port, type=int)
def serve(host: str, port: int) -> None:
    """Run the API with uvicorn."""
    uvicorn.run("Loresmith.app:app", host=host, port=port, log_level="info")


@cli.command("list")
@click.option("--type", "kind", default=None)
@click.option("--favorite", is_flag=True)
@click.option("--search", default=None)
@click.pass_context
def list_content(ctx: click.Context, kind: str | None, favorite: bool, search: str | None) -> None:
    """List saved content, newest first."""
    params: dict[str, Any] = {}
    if kind:
        params["type"] = kind
    if favorite:
        params["favorite"] = "true"
    if search:
        params["search"] = search
    rows = _request(ctx, "GET", "/api/content", params=params)
    table = PrettyTable(["id", "type", "favorite", "tags", "created"])
    for r in rows:
        table.add_row([r["id"], r["type"], r["is_favorite"], ",".join(r["tags"]), r["created_at"]])
    click.echo(table)


@cli.command()
@click.argument("content_id")
@click.pass_context
def show(ctx: click.Context, content_id: str) -> None:
    data = _request(ctx, "GET", f"/api/content/{content_id}")
    click.echo(json.dumps(data, indent=2))


@cli.command()
@click.argument("content_id")
@click.pass_context
def versions(ctx: click.Context, content_id: str) -> None:
    """Version history, newest first."""
    rows = _request(ctx, "GET", f"/api/content/{content_id}/versions")
    table = PrettyTable(["#", "id", "summary", "by", "created"])
    for v in rows:
        table.add_row(
            [v["version_number"], v["id"], v["change_summary"], v["changed_by"], v["created_at"]]
        )
    click.echo(table)


@cli.command()
@click.argument("content_id")
@click.argument("base_version_id")
@click.argument("compare_version_id")
@click.pass_context
def compare(ctx: click.Context, content_id: str, base_version_id: str, compare_version_id: str):
    data = _request(
        ctx,
        "GET",
        f"/api/content/{content_id}/versions/compare",
        params={"baseVersionId": base_version_id, "compareVersionId": compare_version_id},
    )
    table = PrettyTable(["path", "before", "after"])
    for d in data["differences"]:
        table.add_row([d["path"], json.dumps(d["before"]), json.dumps(d["after"])])
    click.echo(
        f"v{data['baseVersion']['versionNumber']} -> v{data['compareVersion']['versionNumber']}"
    )
    click.echo(table)
    if data["truncated"]:
        click.echo(click.style("(differences truncated)", fg="yellow"))


@cli.command()
@click.argument("content_id")
@click.argument("version_id")
@click.option("--summary", default=None)
@click.pass_context
def restore(ctx: click.Context, content_id: str, version_id: str, summary: str | None) -> None:
    body: dict[str, Any] = {"versionId": version_id}
    if summary:
        body["change_summary"] = summary
    data = _request(ctx, "POST", f"/api/content/{content_id}/versions", json=body)
    click.echo(
        click.style(
            f"Restored v{data['restoredFromVersion']} as v{data['newVersion']['version_number']}",
            fg="green",
        )
    )


@cli.command()
@click.argument("content_id")
@click.pass_context
def links(ctx: click.Context, content_id: str) -> None:
    data = _request(ctx, "GET", f"/api/content/{content_id}/links")
    table = PrettyTable(["direction", "link", "type", "content"])
    for direction in ("outgoing", "incoming"):
        for e in data[direction]:
            table.add_row([direction, e["id"], e["linkType"], e["contentId"]])
    click.echo(table)


@cli.command()
@click.argument("campaign_id")
@click.pass_context
def campaign(ctx: click.Context, campaign_id: str) -> None:
    """Campaign details with its content in play order."""
    data = _request(ctx, "GET", f"/api/campaigns/{campaign_id}")
    click.echo(f"{data['name']}: {data['description']}")
    table = PrettyTable(["seq", "content", "type", "notes"])
    for e in data["content"]:
        kind = e["content"]["type"] if e["content"] else "(missing)"
        table.add_row([e["sequence"], e["contentId"], kind, e["notes"]])
    click.echo(table)


@cli.command()
@click.option("--campaign", "campaign_id", default=None, help="Only notes of this campaign")
@click.pass_context
def sessions(ctx: click.Context, campaign_id: str | None) -> None:
    """Session notes, most recent session first."""
    params = {"campaignId": campaign_id} if campaign_id else None
    rows = _request(ctx, "GET", "/api/sessions", params=params)
    table = PrettyTable(["date", "id", "title", "campaign", "links"])
    for n in rows:
        table.add_row(
            [
                n["session_date"],
                n["id"],
                n["title"],
                n["campaign_id"] or "",
                len(n["linked_content_ids"]),
            ]
        )
    click.echo(table)


if __name__ == "__main__":
    cli(obj={})
