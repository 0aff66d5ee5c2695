"""WebSocket endpoint — live keyword feeds for browser/CLI clients.

Learn: Each client connects to /ws and drives its subscriptions with
JSON commands:

  {"type": "subscribe", "keyword": "python", "interval": "*/5 * * * *", "display": 10}
  {"type": "unsubscribe", "subscription_id": "..."}   (or "keyword": "...")
  {"type": "get-cached-news", "keyword": "python"}
  {"type": "get-page", "keyword": "python", "page": 2}
  {"type": "get-status"}
  {"type": "ping"}

Live events arrive as {"type": "news", "data": {...NewsEvent...}}.
Command failures come back as {"type": "error", "message": "..."}.

The connection owns its subscriptions: when the socket goes away,
every subscription it created is unsubscribed, which in turn stops the
trackers nobody else is listening to.
"""

import asyncio
import json
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from newstracker.errors import NewsTrackerError
from newstracker.realtime.events import NewsEvent, NewsListener
from newstracker.realtime.registry import SubscriptionRegistry
from newstracker.schemas.news import (
    CachedNewsCommand,
    PageCommand,
    SubscribeCommand,
    UnsubscribeCommand,
)

logger = structlog.get_logger()
router = APIRouter()


class WebSocketListener(NewsListener):
    """Forwards tracker events to one WebSocket connection."""

    def __init__(self, connection: "NewsConnection"):
        self._connection = connection

    async def deliver(self, event: NewsEvent) -> None:
        await self._connection.send({"type": "news", "data": event.to_dict()})


class NewsConnection:
    """Per-socket command handler and subscription bookkeeping."""

    def __init__(self, websocket: WebSocket, registry: SubscriptionRegistry):
        self.websocket = websocket
        self.registry = registry
        self.listener = WebSocketListener(self)
        self.subscriptions: dict[str, str] = {}  # subscription id → keyword
        self._send_lock = asyncio.Lock()

    async def send(self, payload: dict[str, Any]) -> None:
        # Tracker deliveries and command replies share the socket
        async with self._send_lock:
            await self.websocket.send_text(json.dumps(payload, default=str))

    async def send_error(self, message: str) -> None:
        await self.send({"type": "error", "message": message})

    async def handle(self, raw: str) -> None:
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            await self.send_error("Message is not valid JSON")
            return
        if not isinstance(msg, dict):
            await self.send_error("Message must be a JSON object")
            return

        handler = self._handlers.get(msg.get("type", ""))
        if handler is None:
            await self.send_error(f"Unknown message type: {msg.get('type')!r}")
            return

        try:
            await handler(self, msg)
        except ValidationError as e:
            await self.send_error(f"Invalid {msg['type']} message: {e.errors()[0]['msg']}")
        except NewsTrackerError as e:
            await self.send_error(str(e))
        except Exception:
            logger.exception("ws.command_failed", command=msg["type"])
            await self.send_error(f"Internal error while handling {msg['type']}")

    # ─── Commands ──────────────────────────────────────────

    async def _subscribe(self, msg: dict) -> None:
        cmd = SubscribeCommand.model_validate(msg)
        subscription_id = await self.registry.subscribe(
            cmd.keyword,
            self.listener,
            interval=cmd.interval,
            display=cmd.display,
            sort=cmd.sort,
        )
        self.subscriptions[subscription_id] = cmd.keyword
        await self.send({
            "type": "subscribed",
            "keyword": cmd.keyword,
            "subscription_id": subscription_id,
            "message": f"Subscribed to {cmd.keyword}",
        })

    async def _unsubscribe(self, msg: dict) -> None:
        cmd = UnsubscribeCommand.model_validate(msg)
        if cmd.subscription_id:
            ids = [cmd.subscription_id] if cmd.subscription_id in self.subscriptions else []
        elif cmd.keyword:
            ids = [sid for sid, kw in self.subscriptions.items() if kw == cmd.keyword]
        else:
            await self.send_error("unsubscribe needs a subscription_id or a keyword")
            return

        for sid in ids:
            self.registry.unsubscribe(sid)
            del self.subscriptions[sid]
        await self.send({
            "type": "unsubscribed",
            "keyword": cmd.keyword,
            "subscription_ids": ids,
        })

    async def _cached_news(self, msg: dict) -> None:
        cmd = CachedNewsCommand.model_validate(msg)
        items = self.registry.get_cache(cmd.keyword)
        await self.send({
            "type": "cached-news",
            "keyword": cmd.keyword,
            "items": [item.to_dict() for item in items],
            "count": len(items),
        })

    async def _page(self, msg: dict) -> None:
        cmd = PageCommand.model_validate(msg)
        page = await self.registry.get_page(
            cmd.keyword, cmd.page, display=cmd.display, sort=cmd.sort
        )
        payload = asdict(page)
        payload["items"] = [item.to_dict() for item in page.items]
        await self.send({"type": "news-page", **payload})

    async def _status(self, msg: dict) -> None:
        await self.send({"type": "status", **asdict(self.registry.status())})

    async def _ping(self, msg: dict) -> None:
        await self.send({"type": "pong"})

    _handlers = {
        "subscribe": _subscribe,
        "unsubscribe": _unsubscribe,
        "get-cached-news": _cached_news,
        "get-page": _page,
        "get-status": _status,
        "ping": _ping,
    }

    # ─── Teardown ──────────────────────────────────────────

    def close(self) -> None:
        """Drop every subscription this connection created."""
        for sid in list(self.subscriptions):
            self.registry.unsubscribe(sid)
        self.subscriptions.clear()


@router.websocket("/ws")
async def news_websocket(websocket: WebSocket):
    """WebSocket endpoint for live keyword feeds."""
    await websocket.accept()
    connection = NewsConnection(websocket, websocket.app.state.registry)
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "unknown"
    log = logger.bind(client=client)
    log.info("ws.connected")

    await connection.send({
        "type": "connected",
        "message": "Connected to newstracker",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })

    try:
        while True:
            raw = await websocket.receive_text()
            await connection.handle(raw)
    except WebSocketDisconnect:
        pass
    finally:
        dropped = len(connection.subscriptions)
        connection.close()
        log.info("ws.disconnected", subscriptions_dropped=dropped)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
