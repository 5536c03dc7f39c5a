"""
Gestionnaires d'exceptions.
- CheckoutError (et sous-classes): {"error", "code"[, "field"|"item"|"fallback"]} avec le status de l'erreur
- HTTPException: forme FastAPI standard {"detail": ...}
"""
import logging
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from checkout.errors import CheckoutError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        logger.info("checkout error path=%s code=%s status=%s", request.url.path, exc.code, exc.status_code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})
