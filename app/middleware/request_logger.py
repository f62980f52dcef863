from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
import logging
import time

logger = logging.getLogger("app.requests")


class RequestLoggerMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and response time of every request"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        response_status = 500
        try:
            response = await call_next(request)
            response_status = response.status_code
            return response
        finally:
            response_time_ms = int((time.time() - start_time) * 1000)
            client = request.client.host if request.client else "-"
            message = f"{request.method} {request.url.path} {response_status} {response_time_ms}ms - {client}"
            if response_status >= 500:
                logger.error(message)
            elif response_status == 404:
                logger.warning(message)
            else:
                logger.info(message)
