from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.api.v1 import routes
from app.core.config import settings
from app.core.errors import (
    DomainError,
    DuplicateTenderId,
    Forbidden,
    NotFound,
    StorageCleanupFailure,
    UploadFailure,
    ValidationError,
)
from app.core.logging_config import logger
from app.services.document_store import S3DocumentStore
from app.services.upload_orchestrator import drain_background_cleanups


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.validate()
    app.state.document_store = S3DocumentStore.from_settings(settings)
    logger.info(f"Document store ready (bucket {settings.S3_BUCKET_NAME})")
    yield
    await drain_background_cleanups()
    logger.info("Shutting down")


app = FastAPI(
    title="Tender Registry API",
    version="1.0.0",
    description="Tender submissions, their documents and the review workflow.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

ERROR_STATUS = {
    ValidationError: 400,
    Forbidden: 403,
    NotFound: 404,
    DuplicateTenderId: 409,
    UploadFailure: 500,
    StorageCleanupFailure: 500,
}


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    # The web client reads `message`; `detail` stays for FastAPI-style callers
    return JSONResponse(status_code=status_code, content={"detail": message, "message": message}, headers=headers)


@app.exception_handler(DomainError)
async def domain_error_handler(_request: Request, exc: DomainError) -> JSONResponse:
    status_code = next((code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    return error_response(status_code, exc.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    message = f"Invalid {field}: {first.get('msg', 'invalid value')}" if field else "Invalid request"
    return error_response(400, message)


# Internal details never reach the response body
@app.exception_handler(Exception)
async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error: {str(exc)}")
    return error_response(500, "Internal Server Error")


app.include_router(routes.router, prefix="/api")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=settings.APP_PORT)
