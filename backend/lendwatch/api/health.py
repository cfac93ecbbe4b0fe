"""
Status endpoints: health, per-bot statistics and recent findings.
File: backend/lendwatch/api/health.py
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

logger = logging.getLogger(__name__)
router = APIRouter(tags=["status"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime
    version: str
    running: bool
    bots: List[str] = []
    last_block: Optional[int] = None
    blocks_processed: int = 0
    handler_errors: int = 0
    findings_published: int = 0
    uptime_seconds: float = 0.0


class BotStatus(BaseModel):
    name: str
    handles_blocks: bool
    handles_transactions: bool
    statistics: Dict[str, Dict[str, Any]]


def _runner(request: Request) -> Any:
    return getattr(request.app.state, "runner", None)


def _publisher(request: Request) -> Any:
    return getattr(request.app.state, "publisher", None)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Report whether the polling loop is alive.

    A runner that was never started (e.g. bots failed to initialize) is
    reported as DEGRADED rather than an error.
    """
    runner = _runner(request)
    publisher = _publisher(request)
    settings = request.app.state.settings

    status = runner.status() if runner is not None else {}
    running = bool(status.get("running"))

    return HealthResponse(
        status="OK" if running else "DEGRADED",
        timestamp=datetime.now(timezone.utc),
        version=settings.version,
        running=running,
        bots=status.get("bots", []),
        last_block=status.get("last_block"),
        blocks_processed=status.get("blocks_processed", 0),
        handler_errors=status.get("handler_errors", 0),
        findings_published=publisher.published_count if publisher is not None else 0,
        uptime_seconds=status.get("uptime_seconds", 0.0),
    )


@router.get("/bots", response_model=List[BotStatus])
async def list_bots(request: Request) -> List[BotStatus]:
    """Statistics tracked by each bot, keyed by the observed entity."""
    runner = _runner(request)
    if runner is None:
        return []
    return [
        BotStatus(
            name=bot.name,
            handles_blocks=bot.handles_blocks,
            handles_transactions=bot.handles_transactions,
            statistics=bot.snapshot(),
        )
        for bot in runner.bots
    ]


@router.get("/findings")
async def recent_findings(
    request: Request,
    limit: int = Query(50, ge=1, le=1000),
) -> List[Dict[str, Any]]:
    """Most recent findings, newest first."""
    publisher = _publisher(request)
    if publisher is None:
        return []
    return publisher.recent(limit)
