"""Exception handling middleware for consistent error responses."""
from __future__ import annotations

from collections.abc import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from quantfolio.core.exceptions import InvalidDateRangeError, StrategyNotFoundError
from quantfolio.core.logging import logger


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except StarletteHTTPException as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": exc.detail, "status_code": exc.status_code},
            )
        except StrategyNotFoundError as exc:
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content={"error": str(exc), "magic_number": exc.magic_number},
            )
        except InvalidDateRangeError as exc:
            return JSONResponse(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                content={"error": exc.reason, "start": str(exc.start), "end": str(exc.end)},
            )
        except Exception as exc:
            logger.error(f"Unhandled exception: {exc}", exc_info=True, extra={"path": request.url.path})
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Internal server error",
                    "message": str(exc) if logger.getEffectiveLevel() <= 10 else "An error occurred",
                },
            )
