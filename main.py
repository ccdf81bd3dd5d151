from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import settings
from errors import (
    ConferenceNotFound,
    FeeNotFound,
    InvalidPricingInput,
    NotAuthenticated,
    PermissionDenied,
    RegistrationNotFound,
)
from observability import configure_logging, get_logger
from payments import router as payments_router
from registration_fees import admin_router as admin_fees_router
from registration_fees import router as fees_router

logger = get_logger(__name__)

ERROR_STATUS = {
    InvalidPricingInput: 400,
    NotAuthenticated: 401,
    PermissionDenied: 403,
    ConferenceNotFound: 404,
    RegistrationNotFound: 404,
    FeeNotFound: 404,
}


def _error_handler(status_code: int):
    async def handler(request: Request, exc: Exception) -> JSONResponse:
        logger.info(
            "request_rejected",
            path=request.url.path,
            status=status_code,
            error=str(exc),
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    return handler


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(title="Conference Registration API")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for exc_class, status_code in ERROR_STATUS.items():
        app.add_exception_handler(exc_class, _error_handler(status_code))

    # Register routes
    app.include_router(fees_router, prefix="/conferences", tags=["Registration fees"])
    app.include_router(admin_fees_router, prefix="/admin/conferences", tags=["Admin"])
    app.include_router(payments_router, prefix="/payments", tags=["Payments"])

    return app


app = create_app()
