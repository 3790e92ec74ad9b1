from fastapi import Request
from fastapi.responses import JSONResponse
import logging

from .exceptions import RegistrationError

logger = logging.getLogger(__name__)

async def registration_exception_handler(request: Request, exc: RegistrationError):
    """Handle typed registration outcomes that reach the HTTP layer"""
    logger.warning(f"Registration error: {exc.message} - Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )

async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unexpected error: {str(exc)} - Path: {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "type": "InternalError"}
    )
