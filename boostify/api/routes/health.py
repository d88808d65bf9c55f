from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from sqlalchemy import text

from boostify.core.config import get_settings
from boostify.db.session import SessionLocal
from boostify.workers.celery_app import celery_app

router = APIRouter(tags=["health"])

CheckResult = dict[str, Any]


def _passed(**extra: Any) -> CheckResult:
    return {"status": "ok", **extra}


def _failed(error: str) -> CheckResult:
    return {"status": "failed", "error": error}


async def _check_database() -> CheckResult:
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return _failed(str(exc))
    return _passed()


async def _check_redis() -> CheckResult:
    client = Redis.from_url(get_settings().redis_url)
    try:
        if await client.ping() is not True:
            return _failed("redis ping returned an unexpected reply")
    except Exception as exc:
        return _failed(str(exc))
    finally:
        await client.aclose()
    return _passed()


def _ping_celery_workers() -> CheckResult:
    try:
        inspector = celery_app.control.inspect(timeout=1.0)
        replies = (inspector.ping() if inspector is not None else None) or {}
    except Exception as exc:
        return _failed(str(exc))
    if not replies:
        return _failed("no celery workers responded to ping")
    return _passed(workers=len(replies))


async def _check_celery_worker() -> CheckResult:
    return await asyncio.to_thread(_ping_celery_workers)


def _report(checks: dict[str, CheckResult], *, ok_label: str, failed_label: str) -> JSONResponse:
    healthy = all(check["status"] == "ok" for check in checks.values())
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": ok_label if healthy else failed_label, "checks": checks},
    )


@router.get("/live")
async def live() -> dict[str, str]:
    return {"status": "live"}


@router.get("/health")
async def health() -> JSONResponse:
    database, redis, celery = await asyncio.gather(
        _check_database(),
        _check_redis(),
        _check_celery_worker(),
    )
    return _report(
        {"database": database, "redis": redis, "celery": celery},
        ok_label="ok",
        failed_label="degraded",
    )


@router.get("/ready")
async def ready() -> JSONResponse:
    # Workers only drain refund retries; the API can serve traffic without them.
    database, redis = await asyncio.gather(_check_database(), _check_redis())
    return _report({"database": database, "redis": redis}, ok_label="ready", failed_label="not_ready")
