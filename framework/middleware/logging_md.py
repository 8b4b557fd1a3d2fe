import uuid
import time
from fastapi import Request
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware
from framework.logging.logger import _current_request

TRACE_HEADER = "X-Trace-ID"
TENANT_HEADER = "X-Tenant-ID"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Attach trace id and requested tenant to the request scope and log timings."""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get(TRACE_HEADER, str(uuid.uuid4()))
        tenant_id = request.headers.get(TENANT_HEADER)
        request.state.trace_id = trace_id
        request.state.tenant_id = tenant_id
        token = _current_request.set(request)

        with logger.contextualize(trace_id=trace_id, tenant_id=tenant_id or "-"):
            start_time = time.time()

            logger.info(
                f"Request Started | Method: {request.method} | Path: {request.url.path} | "
                f"Client: {request.client.host if request.client else 'unknown'}"
            )

            try:
                response = await call_next(request)
                process_time = (time.time() - start_time) * 1000
                logger.info(
                    f"Request Finished | Status: {response.status_code} | "
                    f"Duration: {process_time:.2f}ms"
                )
                response.headers[TRACE_HEADER] = trace_id
                return response

            except Exception as e:
                process_time = (time.time() - start_time) * 1000
                logger.error(
                    f"Request Failed | Error: {str(e)} | Duration: {process_time:.2f}ms"
                )
                raise
            finally:
                _current_request.reset(token)
