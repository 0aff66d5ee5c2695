#!/usr/bin/env python3
"""
newstracker live subscription — push updates over WebSocket.

Subscribe → wait for events → check status → unsubscribe.
Run with: python examples/live_subscription.py [keyword] [interval]

The default interval is 30 seconds so events show up quickly. The first
"new"/"updated" pair arrives one interval after subscribing.

Requires: pip install httpx websockets
Server must be running: http://localhost:8000
"""

import asyncio
import json
import sys

import websockets

from _common import WS_URL, check_backend, print_items

EVENTS_TO_WAIT_FOR = 4


async def run(keyword: str, interval: str):
    async with websockets.connect(WS_URL) as ws:
        greeting = json.loads(await ws.recv())
        print(f"\n1. {greeting['message']}")

        # ── Subscribe ─────────────────────────────────────────────
        print(f"\n2. Subscribing to {keyword!r} every {interval}...")
        await ws.send(json.dumps({
            "type": "subscribe",
            "keyword": keyword,
            "interval": interval,
            "display": 10,
        }))
        reply = json.loads(await ws.recv())
        if reply["type"] == "error":
            print(f"   ERROR: {reply['message']}")
            sys.exit(1)
        subscription_id = reply["subscription_id"]
        print(f"   Subscription: {subscription_id[:8]}...")

        # ── Snapshot taken by the first fetch ─────────────────────
        await ws.send(json.dumps({"type": "get-cached-news", "keyword": keyword}))
        cached = json.loads(await ws.recv())
        print(f"\n3. Initial snapshot: {cached['count']} article(s)")
        print_items(cached["items"], limit=3)

        # ── Live events ───────────────────────────────────────────
        print(f"\n4. Waiting for {EVENTS_TO_WAIT_FOR} live events...")
        seen = 0
        while seen < EVENTS_TO_WAIT_FOR:
            msg = json.loads(await ws.recv())
            if msg["type"] != "news":
                continue
            event = msg["data"]
            seen += 1
            if event["type"] == "error":
                print(f"   [error]   {event['error']}")
            elif event["type"] == "new":
                print(f"   [new]     {event['count']} fresh article(s)")
                print_items(event["items"], limit=3)
            else:
                print(f"   [updated] snapshot of {event['count']}")

        # ── Status ────────────────────────────────────────────────
        await ws.send(json.dumps({"type": "get-status"}))
        status = json.loads(await ws.recv())
        print(f"\n5. Tracked keywords: {status['subscriber_count_by_keyword']}")

        # ── Unsubscribe ───────────────────────────────────────────
        await ws.send(json.dumps({"type": "unsubscribe", "subscription_id": subscription_id}))
        reply = json.loads(await ws.recv())
        print(f"\n6. Unsubscribed ({len(reply['subscription_ids'])} subscription)")

    print("\nDone.")


def main():
    keyword = sys.argv[1] if len(sys.argv) > 1 else "python"
    interval = sys.argv[2] if len(sys.argv) > 2 else "30s"
    check_backend()
    asyncio.run(run(keyword, interval))


if __name__ == "__main__":
    main()
