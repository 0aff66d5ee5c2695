#!/usr/bin/env python3
"""
newstracker search walkthrough — the request/response surface.

Search → page through results → trending → cache.
Run with: python examples/search_walkthrough.py [keyword]

Requires: pip install httpx
Server must be running: http://localhost:8000
"""

import sys

from _common import create_client, print_items


def main():
    keyword = sys.argv[1] if len(sys.argv) > 1 else "python"
    client = create_client()

    # ── One page straight from the upstream ───────────────────────
    print(f"\n1. Searching for {keyword!r}...")
    resp = client.get("/news/search", params={"query": keyword, "display": 5, "sort": "date"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    data = resp.json()
    print(f"   {data['total']} total result(s)")
    print_items(data["items"])

    # ── Paging ────────────────────────────────────────────────────
    print("\n2. Fetching page 2 (10 per page, by relevance)...")
    resp = client.get(f"/news/{keyword}/pages/2", params={"display": 10, "sort": "sim"})
    assert resp.status_code == 200, f"Failed: {resp.text}"
    page = resp.json()
    print(f"   Page {page['page']}/{page['total_pages']}, has next: {page['has_next_page']}")
    print_items(page["items"], limit=3)

    # ── The 1000-result ceiling ───────────────────────────────────
    print("\n3. Asking for page 101 (past result 1000)...")
    resp = client.get(f"/news/{keyword}/pages/101", params={"display": 10})
    print(f"   {resp.status_code}: {resp.json()['detail']}")

    # ── Trending seeds ────────────────────────────────────────────
    print("\n4. Trending keywords...")
    resp = client.get("/news/trending")
    assert resp.status_code == 200, f"Failed: {resp.text}"
    for entry in resp.json()["data"]:
        print(f"   {entry['keyword']}: {entry['count']} article(s)")

    # ── Cache (filled only by live trackers) ──────────────────────
    print("\n5. Cached snapshot...")
    resp = client.get(f"/news/{keyword}/cache")
    cached = resp.json()
    if cached["count"]:
        print_items(cached["items"])
    else:
        print("   (empty; run live_subscription.py to start a tracker)")

    print("\nDone.")


if __name__ == "__main__":
    main()
