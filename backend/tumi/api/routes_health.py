import asyncio
import logging

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tumi.infra.db import get_session_factory

router = APIRouter()
logger = logging.getLogger(__name__)

_DB_CHECK_TIMEOUT_SECONDS = 2.0


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.head("/healthz")
async def healthz_head() -> Response:
    return Response(status_code=200)


async def _database_ok(request: Request) -> bool:
    session_factory = getattr(request.app.state, "db_session_factory", None) or get_session_factory()
    try:
        async with session_factory() as session:
            await asyncio.wait_for(session.execute(text("SELECT 1")), timeout=_DB_CHECK_TIMEOUT_SECONDS)
    except (SQLAlchemyError, OSError, asyncio.TimeoutError) as exc:
        logger.warning("readyz_database_unavailable", extra={"extra": {"error_type": type(exc).__name__}})
        return False
    return True


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    database_ok = await _database_ok(request)
    status_code = 200 if database_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={"status": "ok" if database_ok else "unavailable", "database": database_ok},
    )
