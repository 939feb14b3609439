import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from lgu_sso.db import SessionLocal, engine
from lgu_sso.errors import ApiError, error_response
from lgu_sso.logging_utils import setup_json_logging
from lgu_sso.routers import applications, audit, auth, employees, reference
from lgu_sso.services.bootstrap import bootstrap_admin
from lgu_sso.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from lgu_sso.settings import DEFAULT_JWT_SECRET, get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.log_level)
logger = logging.getLogger("lgu_sso.request")
startup_logger = logging.getLogger("lgu_sso.startup")


app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-Id"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    request.state.actor = getattr(request.state, "actor", "anonymous")
    request.state.actor_id = getattr(request.state, "actor_id", None)

    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "request_complete",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "latency_ms": latency_ms,
                "actor": getattr(request.state, "actor", "anonymous"),
                "actor_id": getattr(request.state, "actor_id", None),
            },
        )


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        errors=exc.errors,
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    status_code = exc.status_code
    code_map = {
        401: "UNAUTHENTICATED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        429: "TOO_MANY_ATTEMPTS",
    }
    code = code_map.get(status_code, "HTTP_ERROR")
    message = str(exc.detail) if exc.detail else "Request failed."
    return error_response(
        request,
        status_code=status_code,
        code=code,
        message=message,
    )


def _validation_errors(exc: RequestValidationError) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for item in exc.errors():
        location = [str(part) for part in item.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(location) or "request"
        grouped.setdefault(field, []).append(str(item.get("msg", "Invalid value.")))
    return grouped


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = _validation_errors(exc)
    first_field, first_messages = next(iter(errors.items()))
    return error_response(
        request,
        status_code=422,
        code="VALIDATION_ERROR",
        message=f"{first_field}: {first_messages[0]}",
        errors=errors,
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_error",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "path": request.url.path,
            "method": request.method,
        },
    )
    return error_response(
        request,
        status_code=500,
        code="INTERNAL_ERROR",
        message="Unexpected server error.",
    )


for router_module in (auth, employees, applications, audit, reference):
    app.include_router(router_module.router, prefix=settings.api_prefix)


def _default_schema_guard_result() -> SchemaGuardResult:
    return SchemaGuardResult(
        ok=False,
        checked_at_utc=datetime.now(timezone.utc),
        issues=["SCHEMA_GUARD_NOT_RUN"],
        warnings=[],
    )


def _run_bootstrap() -> None:
    with SessionLocal() as db:
        bootstrap_admin(db)


@app.on_event("startup")
async def run_schema_guard() -> None:
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        startup_logger.warning("jwt_secret_is_default")

    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        startup_logger.info("schema_guard_ok", extra=result.to_dict())
    else:
        startup_logger.error("schema_guard_failed", extra=result.to_dict())
        if settings.schema_guard_strict:
            joined_issues = "; ".join(result.issues)
            raise RuntimeError(f"Runtime schema guard failed: {joined_issues}")
        return

    await asyncio.to_thread(_run_bootstrap)


@app.get("/health")
def health() -> dict[str, Any]:
    schema_guard_result: SchemaGuardResult = getattr(app.state, "schema_guard_result", _default_schema_guard_result())
    return {
        "status": "ok",
        "app": settings.app_name,
        "schema_guard": schema_guard_result.to_dict(),
    }
