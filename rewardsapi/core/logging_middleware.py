import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

logger = logging.getLogger("rewardsapi")

REQUEST_ID_HEADER = "X-Request-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """요청/응답 로깅 + 요청 ID 전파"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        start = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        route = f"{request.method} {request.url.path}"

        logger.info(f"[{request_id}] -> {route}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"[{request_id}] {route} raised")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        summary = f"[{request_id}] <- {route} {response.status_code} ({duration_ms:.1f}ms)"
        if response.status_code >= 500:
            logger.error(summary)
        elif response.status_code >= 400:
            logger.warning(summary)
        else:
            logger.info(summary)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
