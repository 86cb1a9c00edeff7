"""
HTTP and WebSocket handlers for the quiz server
"""
import logging

from aiohttp import web

from .fallback import FALLBACK_QUESTIONS
from .questions import CATEGORY_IDS

logger = logging.getLogger("quiz_server")

# ============================================================
# WEBSOCKET GAME CHANNEL
# ============================================================

async def ws_quiz(request: web.Request) -> web.WebSocketResponse:
    """One quiz player connection; JSON text frames in both directions"""
    dispatcher = request.app["dispatcher"]
    ws = web.WebSocketResponse(heartbeat=30)
    await ws.prepare(request)

    conn_id = dispatcher.connect(ws)
    logger.info("📡 Client connected: %s", conn_id)

    try:
        async for msg in ws:
            if msg.type == web.WSMsgType.TEXT:
                await dispatcher.handle_message(conn_id, msg.data)
            elif msg.type == web.WSMsgType.ERROR:
                logger.debug("WebSocket error on %s: %s", conn_id, ws.exception())
    finally:
        await dispatcher.disconnect(conn_id)
        logger.info("📡 Client disconnected: %s", conn_id)

    return ws

# ============================================================
# CATEGORIES
# ============================================================

async def api_categories(request: web.Request) -> web.Response:
    """Categories a quiz can be started with, plus the provider's own list"""
    names = sorted(set(CATEGORY_IDS) | set(FALLBACK_QUESTIONS))
    provider = await request.app["question_source"].get_categories()
    return web.json_response({
        "ok": True,
        "categories": ["random"] + names,
        "provider": provider,
    })
