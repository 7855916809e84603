"""
전역 예외 핸들러

- 4xx: warning (잔액 부족, 티어 부족 등 비즈니스 규칙 위반 포함)
- 5xx / 처리되지 않은 예외: error + 스택 트레이스
모든 로그에는 LoggingMiddleware가 부여한 요청 ID가 포함됩니다.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .exceptions import InternalServerError

logger = logging.getLogger("rewardsapi")


def _describe(request: Request) -> str:
    request_id = getattr(request.state, "request_id", "-")
    client = request.client.host if request.client else "-"
    return f"[{request_id}] {request.method} {request.url.path} from {client}"


def _error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
    }


def _log_http_error(request: Request, label: str, exc) -> None:
    message = f"[{label}] {_describe(request)} -> {exc.status_code}: {exc.detail}"
    if exc.status_code >= 500:
        tb_str = "".join(traceback.format_tb(exc.__traceback__))
        logger.error(f"{message}\n{tb_str}")
    else:
        logger.warning(message)


async def handle_base_api_exception(request: Request, exc):
    _log_http_error(request, "APIError", exc)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def handle_http_exception(request: Request, exc):
    _log_http_error(request, "HTTPException", exc)
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
    else:
        content = _error_body("HTTP_ERROR", str(exc.detail))
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def handle_validation_error(request: Request, exc):
    errors = jsonable_encoder(exc.errors())
    logger.warning(f"[ValidationError] {_describe(request)} -> 422: {errors}")
    return JSONResponse(
        status_code=422,
        content=_error_body("VALIDATION_001", "Validation failed", {"errors": errors}),
    )


async def handle_unexpected_error(request: Request, exc: Exception):
    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    logger.error(
        f"[Unhandled] {_describe(request)} {type(exc).__name__}: {exc}\n{tb_str}"
    )
    internal = InternalServerError()
    return JSONResponse(status_code=internal.status_code, content=internal.detail)
