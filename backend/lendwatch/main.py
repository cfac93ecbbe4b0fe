"""
LendWatch - FastAPI application hosting the bot runner.

File: backend/lendwatch/main.py
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI

from .api.health import router as health_router
from .bots import build_bots
from .chains.evm_client import ChainEventSource, LendingProtocolClient, build_web3
from .core.exceptions import LendWatchError, exception_handler
from .core.settings import Settings, get_settings
from .monitoring.alerts import FindingPublisher
from .runner import BotRunner

logger = logging.getLogger(__name__)


async def build_runner(settings: Settings, publisher: FindingPublisher) -> BotRunner:
    """Connect to the node and initialize every enabled bot."""
    w3 = build_web3(settings)
    client = LendingProtocolClient(w3, settings.contracts)
    bots = await build_bots(settings, client)
    return BotRunner(
        bots,
        ChainEventSource(w3),
        publisher,
        start_block=settings.start_block,
    )


def create_app(
    settings: Optional[Settings] = None,
    runner: Optional[BotRunner] = None,
    publisher: Optional[FindingPublisher] = None,
    start_runner: bool = True,
) -> FastAPI:
    """
    Build the application.

    A runner and publisher may be injected; otherwise they are built from
    settings on startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(f"Starting {settings.app_name} {settings.version}")
        app.state.publisher = app.state.publisher or FindingPublisher.from_settings(settings.alerts)
        if app.state.runner is None:
            app.state.runner = await build_runner(settings, app.state.publisher)

        task: Optional[asyncio.Task] = None
        if start_runner:
            task = asyncio.create_task(
                app.state.runner.run(settings.poll_interval_seconds),
                name="bot-runner",
            )

        try:
            yield
        finally:
            logger.info(f"Shutting down {settings.app_name}")
            app.state.runner.stop()
            if task is not None:
                try:
                    await asyncio.wait_for(task, timeout=settings.poll_interval_seconds)
                except asyncio.TimeoutError:
                    task.cancel()
            await app.state.publisher.aclose()

    app = FastAPI(
        title=settings.app_name,
        description="Statistical anomaly monitoring for lending protocols",
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.runner = runner
    app.state.publisher = publisher

    app.add_exception_handler(LendWatchError, exception_handler)
    app.add_exception_handler(Exception, exception_handler)
    app.include_router(health_router)
    return app


__all__ = ["build_runner", "create_app"]
