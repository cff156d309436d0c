import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text

router = APIRouter()
logger = logging.getLogger(__name__)

_DB_CHECK_TIMEOUT_SECONDS = 2.0


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.head("/healthz")
async def healthz_head() -> Response:
    return Response(status_code=200)


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    session_factory = getattr(request.app.state, "db_session_factory", None)
    if session_factory is None:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "database": "session factory unavailable"},
        )

    async def _ping_db() -> None:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(_ping_db(), timeout=_DB_CHECK_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        return JSONResponse(status_code=503, content={"status": "unavailable", "database": "timeout"})
    except Exception as exc:  # noqa: BLE001
        logger.debug("database_check_failed", exc_info=exc)
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "database": type(exc).__name__},
        )
    return JSONResponse(status_code=200, content={"status": "ok", "database": "reachable"})


@router.get("/metrics")
async def metrics_endpoint(request: Request) -> Response:
    metrics_client = getattr(request.app.state, "metrics", None)
    if metrics_client is None or not getattr(metrics_client, "enabled", False):
        raise HTTPException(status_code=404, detail="Metrics disabled")
    payload, content_type = metrics_client.render()
    return Response(content=payload, media_type=content_type)
