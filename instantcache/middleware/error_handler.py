# middleware/error_handler.py
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from redis.exceptions import ConnectionError as RedisConnectionError
from instantcache.core.exceptions import CatalogUpstreamError
import logging
import traceback
from typing import Callable

logger = logging.getLogger(__name__)

class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware for the cache service
    """

    async def dispatch(self, request: Request, call_next: Callable):
        try:
            response = await call_next(request)
            return response

        except HTTPException as e:
            raise e

        except ValueError as e:
            logger.warning(f"Validation error on {request.url}: {str(e)}")
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Validation Error",
                    "message": str(e),
                    "path": str(request.url.path)
                }
            )

        except (ConnectionError, RedisConnectionError) as e:
            logger.error(f"Connection error on {request.url}: {str(e)}")
            return JSONResponse(
                status_code=503,
                content={
                    "error": "Service Unavailable",
                    "message": "Cache store connection error",
                    "path": str(request.url.path)
                }
            )

        except CatalogUpstreamError as e:
            logger.error(f"Upstream error on {request.url}: {str(e)}")
            return JSONResponse(
                status_code=502,
                content={
                    "error": "Bad Gateway",
                    "message": "Catalog provider unavailable",
                    "path": str(request.url.path)
                }
            )

        except Exception as e:
            logger.error(f"Unexpected error on {request.url}: {str(e)}")
            logger.error(f"Traceback: {traceback.format_exc()}")

            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal Server Error",
                    "message": "An unexpected error occurred",
                    "path": str(request.url.path)
                }
            )
