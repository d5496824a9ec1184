"""Issue tracker CLI — log in, list issues and notifications, watch live events.

Usage:
    issuetracker login alice@example.com            # Prompts for password, stores token
    issuetracker issues --project-id <uuid>          # List issues
    issuetracker notifications --unread              # Your notification bell
    issuetracker watch                               # Stream live events until Ctrl-C
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

import click
import httpx

from issuetracker import __version__
from issuetracker.client import QueryCache, RealtimeSubscriber
from issuetracker.realtime.events import EventType

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("ISSUETRACKER_API_URL", DEFAULT_API_URL).rstrip("/")


def _token_path() -> Path:
    return Path(os.environ.get("ISSUETRACKER_TOKEN_FILE", Path.home() / ".issuetracker" / "token"))


def _load_token() -> str:
    token = os.environ.get("ISSUETRACKER_TOKEN")
    if not token:
        path = _token_path()
        token = path.read_text().strip() if path.exists() else None
    if not token:
        click.secho("Not logged in. Run `issuetracker login` first.", fg="red", err=True)
        sys.exit(1)
    return token


def _client(token: Optional[str] = None) -> httpx.AsyncClient:
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(base_url=_api_url(), headers=headers, timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Inside an already running loop (CliRunner under pytest-asyncio) the
    coroutine is pushed to a worker thread with its own loop.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(asyncio.run, coro).result()


def _fail(response: httpx.Response) -> None:
    try:
        detail = response.json().get("detail", response.text)
    except ValueError:
        detail = response.text
    click.secho(f"Error {response.status_code}: {detail}", fg="red", err=True)
    sys.exit(1)


def _print_table(rows: list[dict], columns: list[tuple[str, str, int]]):
    """Print a simple ASCII table. columns: (header, dict_key, width)."""
    header = "  ".join(h.ljust(w) for h, _, w in columns)
    click.secho(header, bold=True)
    click.echo("-" * len(header))
    for row in rows:
        click.echo("  ".join(str(row.get(k) or "-")[:w].ljust(w) for _, k, w in columns))


_STATUS_COLORS = {
    "OPEN": "white",
    "IN_PROGRESS": "yellow",
    "RESOLVED": "green",
    "CLOSED": "blue",
}

_EVENT_COLORS = {
    EventType.CONNECTED: "green",
    EventType.NOTIFICATION: "magenta",
    EventType.ISSUE_CREATED: "cyan",
    EventType.ISSUE_UPDATED: "yellow",
    EventType.ISSUE_COMMENTED: "blue",
}


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="issuetracker")
def main():
    """Issue tracker — projects, issues and live notifications from the terminal."""


@main.command()
@click.argument("email")
@click.password_option(confirmation_prompt=False)
def login(email: str, password: str):
    """Log in and store the access token for later commands."""
    _run(_login_impl(email, password))


async def _login_impl(email: str, password: str):
    async with _client() as c:
        r = await c.post("/api/v1/auth/login", json={"email": email, "password": password})
    if r.status_code != 200:
        _fail(r)
    data = r.json()

    path = _token_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data["token"])
    path.chmod(0o600)
    click.secho(f"Logged in as {data['user']['username']}", fg="green")


@main.command()
@click.option("--project-id", "-p", help="Only issues from this project")
@click.option("--status", "-s", "status_filter", help="OPEN, IN_PROGRESS, RESOLVED or CLOSED")
@click.option("--query", "-q", help="Search title and description")
@click.option("--json", "as_json", is_flag=True, help="Raw JSON output")
def issues(project_id: Optional[str], status_filter: Optional[str], query: Optional[str], as_json: bool):
    """List issues you can see."""
    _run(_issues_impl(project_id, status_filter, query, as_json))


async def _issues_impl(project_id, status_filter, query, as_json):
    params: dict[str, Any] = {}
    if project_id:
        params["project_id"] = project_id
    if status_filter:
        params["status"] = status_filter.upper()
    if query:
        params["q"] = query

    async with _client(_load_token()) as c:
        r = await c.get("/api/v1/issues", params=params)
    if r.status_code != 200:
        _fail(r)
    rows = r.json()

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return
    if not rows:
        click.echo("No issues.")
        return
    for row in rows:
        row["status"] = click.style(row["status"], fg=_STATUS_COLORS.get(row["status"], "white"))
    _print_table(rows, [("ID", "id", 36), ("STATUS", "status", 20), ("PRIORITY", "priority", 8), ("TITLE", "title", 50)])


@main.command()
@click.option("--unread", is_flag=True, help="Only unread notifications")
@click.option("--limit", "-l", default=20, help="Max results (up to 100)")
@click.option("--mark-read", is_flag=True, help="Mark everything read afterwards")
def notifications(unread: bool, limit: int, mark_read: bool):
    """Show your notifications."""
    _run(_notifications_impl(unread, limit, mark_read))


async def _notifications_impl(unread: bool, limit: int, mark_read: bool):
    async with _client(_load_token()) as c:
        r = await c.get("/api/v1/notifications", params={"unread_only": unread, "limit": limit})
        if r.status_code != 200:
            _fail(r)
        rows = r.json()
        if mark_read and rows:
            await c.post("/api/v1/notifications/read-all")

    if not rows:
        click.echo("No notifications.")
        return
    for row in rows:
        marker = " " if row["read"] else click.style("*", fg="yellow")
        click.echo(f"{marker} {row['created_at'][:19]}  {row['title']}")
        if row.get("body"):
            click.echo(f"    {row['body']}")


@main.command()
def watch():
    """Print live events as they arrive (Ctrl-C to stop)."""
    try:
        _run(_watch_impl())
    except KeyboardInterrupt:
        click.echo()


async def _watch_impl():
    def show(event_type: EventType, payload: dict):
        color = _EVENT_COLORS.get(event_type, "white")
        click.echo(f"{click.style(event_type.value, fg=color)}  {json.dumps(payload, default=str)}")

    subscriber = RealtimeSubscriber(_api_url(), cache=QueryCache(), on_event=show)
    await subscriber.set_token(_load_token())
    try:
        await subscriber.wait()
    finally:
        await subscriber.close()
    if subscriber.unauthorized:
        click.secho("Token rejected. Run `issuetracker login` again.", fg="red", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
