"""Internal API routers — /, /health, /prices/{symbol}, and the /ws stream.

No signal logic here.  Reads the price store and relays hub messages.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

from marketengine.api.hub import Hub
from marketengine.store import PriceStore

logger = logging.getLogger("marketengine")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_price_store: Optional[PriceStore] = None
_hub: Optional[Hub] = None


def configure_routers(price_store: PriceStore, hub: Hub) -> None:
    """Inject the price store and broadcast hub used by the endpoints."""
    global _price_store, _hub  # noqa: PLW0603
    _price_store = price_store
    _hub = hub


_INDEX_HTML = """<!doctype html>
<html>
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>marketengine</title>
  </head>
  <body style="font-family: ui-sans-serif, system-ui, -apple-system; padding: 16px;">
    <h2>Live signals</h2>
    <div id="status">Connecting…</div>
    <pre id="out" style="background:#111;color:#eee;padding:12px;border-radius:8px;overflow:auto;max-height:70vh;"></pre>
    <script>
      const status = document.getElementById('status');
      const out = document.getElementById('out');
      const scheme = location.protocol === 'https:' ? 'wss' : 'ws';
      const ws = new WebSocket(scheme + '://' + location.host + '/ws');
      ws.onopen = () => status.textContent = 'Connected';
      ws.onclose = () => status.textContent = 'Disconnected';
      ws.onerror = () => status.textContent = 'Error';
      ws.onmessage = (ev) => {
        out.textContent = ev.data + "\\n" + out.textContent;
      };
    </script>
  </body>
</html>
"""


@router.get("/", response_class=HTMLResponse)
async def index():
    """Minimal page that prints every /ws message."""
    return HTMLResponse(content=_INDEX_HTML)


@router.get("/health")
async def health():
    return {"status": "ok"}


@router.get("/prices/{symbol}")
async def price_by_symbol(symbol: str):
    """Latest tick for *symbol*; 404 when none has been seen."""
    tick = _price_store.get(symbol.upper()) if _price_store is not None else None
    if tick is None:
        raise HTTPException(status_code=404, detail="not found")
    return tick.as_message()


@router.websocket("/ws")
async def stream(websocket: WebSocket):
    """Relay every hub message to this client until it disconnects."""
    if _hub is None:
        await websocket.close(code=1011)
        return

    sub = _hub.register()
    await websocket.accept()

    async def _send() -> None:
        while True:
            message = await sub.next_message()
            if message is None:
                return
            await websocket.send_text(message)
            if sub.closed:
                return

    async def _receive() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            return

    tasks = [asyncio.create_task(_send()), asyncio.create_task(_receive())]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    _hub.unregister(sub)

    for task in done:
        exc = task.exception()
        if exc is not None:
            logger.debug("websocket client error: %s", exc)

    # Dropped by the hub (slow client or shutdown): the client is still connected.
    sender = tasks[0]
    if sender in done and sender.exception() is None:
        await websocket.close()
