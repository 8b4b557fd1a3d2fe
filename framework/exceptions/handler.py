from contextlib import contextmanager
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import MultipleResultsFound, SQLAlchemyError
from framework.logging.logger import get_logger
from framework.response import ResponseModel
from typing import Any, Optional
from framework.config import settings

logger = get_logger("exception_handler")

class BusinessException(Exception):
    """Base class for business exceptions."""
    def __init__(self, message: str, status_code: int = 200, code: int = 400, detail: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.detail = detail


class NotFoundError(BusinessException):
    """Requested row does not exist."""
    def __init__(self, message: str, detail: Any = None):
        super().__init__(message, code=404, detail=detail)


class AuthRequiredError(BusinessException):
    """Operation needs an authenticated acting user."""
    def __init__(self, message: str = "Authentication required", detail: Any = None):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, code=401, detail=detail)


class ActiveSubscriptionConflict(BusinessException):
    """Tenant already has an active subscription."""
    def __init__(self, tenant_id: int, active_subscription_id: Optional[int] = None):
        super().__init__(
            f"Tenant {tenant_id} already has an active subscription",
            code=409,
            detail={"tenant_id": tenant_id, "active_subscription_id": active_subscription_id},
        )


class BackendError(BusinessException):
    """Database, cache or upstream function failure; never an access denial."""
    def __init__(self, message: str = "Backend request failed", detail: Any = None):
        super().__init__(message, code=502, detail=detail)


class BackendTimeoutError(BackendError):
    """Backend call did not finish in time (network error)."""
    def __init__(self, message: str = "Backend request timed out", detail: Any = None):
        super().__init__(message, detail=detail)
        self.code = 504


@contextmanager
def backend_errors(action: str):
    """Re-raise database failures inside the block as BackendError."""
    try:
        yield
    except MultipleResultsFound as e:
        raise BackendError(f"{action}: more than one matching row", detail=str(e)) from e
    except SQLAlchemyError as e:
        raise BackendError(f"{action} failed", detail=str(e)) from e


def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    trace_id = getattr(request.state, "trace_id", "unknown")

    if isinstance(exc, BackendError):
        logger.error(f"Trace[{trace_id}] - BackendError: {exc.message} | {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ResponseModel.fail(code=exc.code, message=exc.message)
        )

    if isinstance(exc, BusinessException):
        logger.warning(f"Trace[{trace_id}] - BusinessError: {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content=ResponseModel.fail(code=exc.code, message=exc.message, data=exc.detail)
        )

    if isinstance(exc, RequestValidationError):
        logger.error(f"Trace[{trace_id}] - ValidationError: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ResponseModel.fail(code=422, message="Invalid request parameters", data=exc.errors())
        )

    if isinstance(exc, SQLAlchemyError):
        logger.critical(f"Trace[{trace_id}] - DatabaseError: {str(exc)}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ResponseModel.fail(code=500, message="Service temporarily unavailable")
        )

    logger.opt(exception=True).error(f"Trace[{trace_id}] - UncaughtException: {str(exc)}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ResponseModel.fail(
            code=500,
            message="System busy, please try again later",
            data={"trace_id": trace_id} if settings.DEBUG else None
        )
    )
