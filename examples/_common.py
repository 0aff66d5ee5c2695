"""
Shared helpers for newstracker examples.

Checks that the server is up so each example can focus on its own flow.
"""

import sys

import httpx

BASE = "http://localhost:8000/api/v1"
WS_URL = "ws://localhost:8000/ws"


def check_backend() -> dict:
    """Verify the server is reachable and healthy; return the health payload."""
    try:
        resp = httpx.get(f"{BASE}/health", timeout=5)
    except httpx.ConnectError:
        print(f"ERROR: Server not reachable at {BASE}")
        print("Start it with:  newstracker serve --reload")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"ERROR: Health check returned {resp.status_code}")
        sys.exit(1)

    health = resp.json()
    print("Server health:")
    print(f"  Version:       {health['version']}")
    print(f"  Trackers:      {health['trackers']}")
    print(f"  Subscriptions: {health['subscriptions']}")
    return health


def create_client() -> httpx.Client:
    """Check the server and return an httpx Client pointed at the API."""
    check_backend()
    return httpx.Client(base_url=BASE, timeout=15)


def print_items(items: list[dict], limit: int = 5) -> None:
    for idx, item in enumerate(items[:limit], start=1):
        print(f"   {idx}. {item['title'][:70]}")
    if len(items) > limit:
        print(f"   ... and {len(items) - limit} more")
