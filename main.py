#!/usr/bin/env python3
"""
Quiz Duel - Entry Point
WebSocket quiz rooms + rate limiting + history cleanup task
"""
import asyncio
import logging
import random
import socket
import time
from collections import defaultdict, deque
from typing import Any, Optional

import aiohttp
from aiohttp import web

from quiz_server import config
from quiz_server.api import api_categories, ws_quiz
from quiz_server.dispatcher import Dispatcher
from quiz_server.history import QuestionHistory
from quiz_server.questions import QuestionSource
from quiz_server.rooms import RoomRegistry

logger = logging.getLogger("quiz_server")


async def index(request):
    return web.FileResponse(config.STATIC_DIR / 'index.html')


def rate_limiter(limit: int = config.RATE_LIMIT_REQUESTS,
                 window: float = config.RATE_LIMIT_WINDOW_SEC):
    """Per-IP sliding window limit for plain HTTP routes"""
    hits = defaultdict(deque)
    last_sweep = [time.monotonic()]

    def sweep(now):
        # Forget clients whose whole window has expired
        for ip in [ip for ip, times in hits.items() if not times or now - times[-1] >= window]:
            del hits[ip]
        last_sweep[0] = now

    @web.middleware
    async def rate_limit_middleware(request, handler):
        now = time.monotonic()
        if now - last_sweep[0] >= window:
            sweep(now)
        if request.path.startswith(('/static', '/ws')):
            return await handler(request)

        ip = request.remote
        recent = hits[ip]
        while recent and now - recent[0] >= window:
            recent.popleft()

        if len(recent) >= limit:
            logger.warning("Rate limit exceeded for %s", ip)
            return web.json_response(
                {"ok": False, "error": "Rate limit exceeded"},
                status=429
            )

        recent.append(now)
        return await handler(request)

    rate_limit_middleware.hits = hits
    return rate_limit_middleware


def create_app(api_url: str = config.QUIZ_API_URL,
               categories_url: str = config.QUIZ_API_CATEGORIES_URL,
               seed: Optional[int] = None,
               rate_limit: int = config.RATE_LIMIT_REQUESTS,
               **timing: Any) -> web.Application:
    """Create and configure the aiohttp application.

    `seed` makes shuffles and lifelines reproducible; `timing` overrides the
    dispatcher/engine delays (answer_delay, skip_delay, start_delay,
    solo_start_delay).
    """
    app = web.Application(middlewares=[rate_limiter(rate_limit)])
    rng = random.Random(seed)

    async def start_services(app):
        app["http_session"] = aiohttp.ClientSession()
        app["question_source"] = QuestionSource(
            app["http_session"], rng, api_url=api_url, categories_url=categories_url
        )
        app["history"] = QuestionHistory(app["question_source"], rng)
        app["rooms"] = RoomRegistry()
        app["dispatcher"] = Dispatcher(app["rooms"], app["history"], rng=rng, **timing)
        app["cleanup_task"] = asyncio.create_task(app["history"].run_periodic_cleanup())

    async def stop_services(app):
        app["cleanup_task"].cancel()
        try:
            await app["cleanup_task"]
        except asyncio.CancelledError:
            pass
        await app["dispatcher"].engine.shutdown()
        await app["http_session"].close()

    app.on_startup.append(start_services)
    app.on_cleanup.append(stop_services)

    app.router.add_get("/ws", ws_quiz)
    app.router.add_get("/categories", api_categories)

    if config.STATIC_DIR.is_dir():
        app.router.add_get("/", index)
        app.router.add_static('/static', config.STATIC_DIR, name='static')

    logger.info("🧠 Quiz server ready • WebSocket at /ws")
    return app


def get_local_ip():
    """Get local network IP address"""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
    except OSError:
        return "localhost"


def main():
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    app = create_app()
    local_ip = get_local_ip()

    logger.info("🚀 Starting server on %s:%s", config.SERVER_HOST, config.PORT)
    logger.info("💡 Access at: http://%s:%s", local_ip, config.PORT)

    web.run_app(app, host=config.SERVER_HOST, port=config.PORT)


if __name__ == "__main__":
    main()
