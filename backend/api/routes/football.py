"""
Football-data gateway.

GET /v1/football/{path} — Cached pass-through to the provider. The token is
added server side; the ``path`` and ``proxy`` query parameters used by
client-side routing are dropped. Upstream statuses are passed through.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from shared.utils.logging import get_logger

from api.dependencies import get_feed
from ingest.football_data import FootballDataFeed

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/football", tags=["gateway"])


@router.get("/{path:path}")
async def proxy_football_data(
    path: str,
    request: Request,
    feed: FootballDataFeed = Depends(get_feed),
) -> Response:
    """Serve ``path`` from the cache, fetching it once per TTL."""
    entry = await feed.get(path, request.query_params.multi_items())
    headers = {"X-Cache-Key": entry.key}
    if entry.is_json:
        return JSONResponse(content=entry.body, status_code=entry.status, headers=headers)
    logger.warning("gateway_non_json_body", key=entry.key, status=entry.status)
    return Response(
        content=entry.body,
        status_code=entry.status,
        media_type="text/plain",
        headers=headers,
    )
