"""newstracker CLI — search news and watch live keyword feeds.

Usage:
    newstracker serve                            # Run the API + WebSocket server
    newstracker search "python" -d 5             # One page of search results
    newstracker trending                         # Latest news for the trending seeds
    newstracker page "python" 3                  # Page 3 of results for a keyword
    newstracker cache "python"                   # What the tracker last fetched
    newstracker status                           # Tracked keywords + subscriber counts
    newstracker watch "python" -i 30s            # Subscribe and print live events
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from typing import Optional

import click
import httpx
import websockets

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("NEWSTRACKER_API_URL", DEFAULT_API_URL).rstrip("/")


def _ws_url() -> str:
    url = _api_url()
    if url.startswith("https://"):
        return "wss://" + url[len("https://"):] + "/ws"
    return "ws://" + url.removeprefix("http://") + "/ws"


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the newstracker backend."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous click handler.

    Handles nested event loops (e.g. CliRunner inside an async test) by
    offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(resp: httpx.Response) -> None:
    """Print the API's error detail and exit non-zero."""
    try:
        detail = resp.json().get("detail", resp.text)
    except ValueError:
        detail = resp.text
    click.secho(f"Error [{resp.status_code}]: {detail}", fg="red", err=True)
    sys.exit(1)


def _print_items(items: list[dict], limit: Optional[int] = None):
    if not items:
        click.echo("  (no articles)")
        return
    for idx, item in enumerate(items[:limit] if limit else items, start=1):
        published = (item.get("published_at") or "")[:16].replace("T", " ")
        click.echo(f"  {idx:3d}. {item['title'][:80]}")
        click.secho(f"       {published}  {item['link']}", dim=True)


_EVENT_COLORS = {"new": "green", "updated": "cyan", "error": "red"}


def _print_event(event: dict):
    kind = event.get("type", "?")
    label = click.style(f"[{kind}]", fg=_EVENT_COLORS.get(kind, "white"), bold=True)
    if kind == "error":
        click.echo(f"{label} {event.get('keyword')}: {event.get('error')}")
        return
    click.echo(f"{label} {event.get('keyword')}: {event.get('count', 0)} article(s)")
    if kind == "new":
        _print_items(event.get("items", []), limit=5)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version="0.1.0", prog_name="newstracker")
def main():
    """newstracker — keyword news search with live updates."""


@main.command()
@click.option("--host", default=None, help="Bind address (default: NEWSTRACKER_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: NEWSTRACKER_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP + WebSocket server."""
    import uvicorn

    from newstracker.config import settings

    uvicorn.run(
        "newstracker.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command()
@click.argument("query")
@click.option("--display", "-d", default=10, help="Results per page (1-100)")
@click.option("--start", "-s", default=1, help="Result offset (1-1000)")
@click.option("--sort", type=click.Choice(["date", "sim", "relevance"]), default="date")
def search(query: str, display: int, start: int, sort: str):
    """Search the news API once."""
    _run(_search_impl(query, display, start, sort))


async def _search_impl(query: str, display: int, start: int, sort: str):
    async with _client() as c:
        r = await c.get("/api/v1/news/search", params={
            "query": query, "display": display, "start": start, "sort": sort,
        })
        if r.status_code != 200:
            _fail(r)
        data = r.json()
        click.secho(f"{data['total']} result(s) for {query!r} (from #{data['start']})", bold=True)
        _print_items(data["items"])


@main.command()
def trending():
    """Latest articles for each trending seed keyword."""
    _run(_trending_impl())


async def _trending_impl():
    async with _client() as c:
        r = await c.get("/api/v1/news/trending")
        if r.status_code != 200:
            _fail(r)
        for entry in r.json()["data"]:
            click.secho(f"\n{entry['keyword']} ({entry['count']})", bold=True)
            _print_items(entry["items"])


@main.command()
@click.argument("keyword")
@click.argument("page_number", type=int)
@click.option("--display", "-d", default=None, type=int, help="Results per page")
@click.option("--sort", type=click.Choice(["date", "sim", "relevance"]), default=None)
def page(keyword: str, page_number: int, display: Optional[int], sort: Optional[str]):
    """Fetch page PAGE_NUMBER of results for KEYWORD."""
    _run(_page_impl(keyword, page_number, display, sort))


async def _page_impl(keyword: str, page_number: int, display: Optional[int], sort: Optional[str]):
    params: dict = {}
    if display:
        params["display"] = display
    if sort:
        params["sort"] = sort
    async with _client() as c:
        r = await c.get(f"/api/v1/news/{keyword}/pages/{page_number}", params=params)
        if r.status_code != 200:
            _fail(r)
        data = r.json()
        more = "more available" if data["has_next_page"] else "last page"
        click.secho(
            f"{keyword}: page {data['page']}/{data['total_pages']} "
            f"({data['total']} total, {more})",
            bold=True,
        )
        _print_items(data["items"])


@main.command()
@click.argument("keyword", required=False)
def cache(keyword: Optional[str]):
    """Show cached snapshots (one keyword, or all)."""
    _run(_cache_impl(keyword))


async def _cache_impl(keyword: Optional[str]):
    async with _client() as c:
        path = f"/api/v1/news/{keyword}/cache" if keyword else "/api/v1/news/cache"
        r = await c.get(path)
        if r.status_code != 200:
            _fail(r)
        entries = [r.json()] if keyword else r.json()
        if not entries:
            click.echo("Cache is empty.")
        for entry in entries:
            click.secho(f"{entry['keyword']} ({entry['count']} cached)", bold=True)
            _print_items(entry["items"])


@main.command()
def status():
    """Show tracked keywords and subscriber counts."""
    _run(_status_impl())


async def _status_impl():
    async with _client() as c:
        r = await c.get("/api/v1/realtime/status")
        if r.status_code != 200:
            _fail(r)
        data = r.json()
        click.secho("Tracked keywords:", bold=True)
        counts = data["subscriber_count_by_keyword"]
        if counts:
            for kw, n in counts.items():
                click.echo(f"  {kw:30s}  {n} subscriber(s)")
        else:
            click.echo("  (none)")
        click.secho("Cached keywords:", bold=True)
        click.echo("  " + (", ".join(data["cached_keywords"]) or "(none)"))


@main.command()
@click.argument("keyword")
@click.option("--interval", "-i", default=None, help='Refresh interval ("*/5 * * * *", "30s", ...)')
@click.option("--display", "-d", default=None, type=int, help="Articles per refresh")
@click.option("--count", "-n", default=0, help="Exit after N events (0 = run until Ctrl-C)")
def watch(keyword: str, interval: Optional[str], display: Optional[int], count: int):
    """Subscribe to KEYWORD over WebSocket and print live events."""
    try:
        _run(_watch_impl(keyword, interval, display, count))
    except KeyboardInterrupt:
        click.echo("\nStopped.")


async def _watch_impl(keyword: str, interval: Optional[str], display: Optional[int], count: int):
    command: dict = {"type": "subscribe", "keyword": keyword}
    if interval:
        command["interval"] = interval
    if display:
        command["display"] = display

    async with websockets.connect(_ws_url()) as ws:
        await ws.send(json.dumps(command))
        seen = 0
        async for raw in ws:
            msg = json.loads(raw)
            kind = msg.get("type")
            if kind == "connected":
                continue
            if kind == "error":
                click.secho(f"Error: {msg['message']}", fg="red", err=True)
                sys.exit(1)
            if kind == "subscribed":
                click.secho(f"Subscribed to {keyword} ({msg['subscription_id']})", fg="green")
                continue
            if kind == "news":
                _print_event(msg["data"])
                seen += 1
                if count and seen >= count:
                    break
