"""
core_utils.health – health-check routes for FastAPI services.

Provides attach_health_routes() to wire /healthz and /readyz with custom
liveness and readiness checks.
"""

import asyncio
from typing import Awaitable, Callable, Mapping, Union

from fastapi import APIRouter, FastAPI
from fastapi.responses import JSONResponse

# A health check can return:
#  - bool
#  - dict (arbitrary JSON body)
#  - Awaitable of either
HealthCheck = Callable[[], Union[bool, dict, Awaitable[Union[bool, dict]]]]
HealthChecks = Mapping[str, HealthCheck]


def attach_health_routes(app: FastAPI, *, checks: HealthChecks) -> None:
    """
    Register health-check endpoints on the app.

    Args:
        app: FastAPI application
        checks: mapping with keys "liveness" and/or "readiness" to callables
            returning bool or dict (sync or async).

    Endpoints:
        GET /healthz -> { "status": "ok" | "fail" } or custom dict.
        GET /readyz  -> readiness dict, or { "ready": <bool> }; answers 503
                        whenever the result is not ready.
    """
    router = APIRouter()

    async def _run_check(fn: HealthCheck) -> Union[bool, dict]:
        try:
            res = fn()
            if asyncio.iscoroutine(res):
                res = await res
            return res
        except Exception as exc:  # a broken probe reports "not ready"
            return {"ready": False, "error": f"{type(exc).__name__}: {exc}"}

    if "liveness" in checks:
        @router.get("/healthz")
        async def _healthz():
            res = await _run_check(checks["liveness"])
            if isinstance(res, dict):
                return res
            return {"status": "ok" if bool(res) else "fail"}
    else:
        @router.get("/healthz")
        async def _healthz_default():
            return {"status": "ok"}

    if "readiness" in checks:
        @router.get("/readyz")
        async def _readyz():
            res = await _run_check(checks["readiness"])
            body = res if isinstance(res, dict) else {"ready": bool(res)}
            return JSONResponse(body, status_code=200 if body.get("ready") else 503)
    else:
        @router.get("/readyz")
        async def _readyz_default():
            return {"ready": True}

    app.include_router(router)

__all__ = ["attach_health_routes"]
