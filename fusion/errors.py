import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    def __init__(self, code: str, message: str, status: int = 400, details: dict | None = None):
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}
        super().__init__(message)


class NotFoundError(APIError):
    def __init__(self, code: str = "NOT_FOUND", message: str = "Resource not found", details: dict | None = None):
        super().__init__(code, message, 404, details)


class ValidationError(APIError):
    def __init__(self, code: str = "VALIDATION_ERROR", message: str = "Invalid input", details: dict | None = None):
        super().__init__(code, message, 400, details)


class ServiceError(APIError):
    def __init__(self, code: str = "SERVICE_ERROR", message: str = "External service error", details: dict | None = None):
        super().__init__(code, message, 502, details)


# ── Element store ────────────────────────────────────

class UnknownElementError(NotFoundError):
    def __init__(self, name: str):
        self.name = name
        super().__init__("UNKNOWN_ELEMENT", f"Element '{name}' does not exist", {"name": name})


class ElementNotFoundError(NotFoundError):
    def __init__(self, name: str):
        super().__init__("ELEMENT_NOT_FOUND", "Element not found", {"name": name})


class DuplicateNameError(APIError):
    def __init__(self, name: str):
        self.name = name
        super().__init__("DUPLICATE_NAME", f"Element with name '{name}' already exists.", 409, {"name": name})


# ── Asset pipeline ───────────────────────────────────

class AssetPipelineError(ServiceError):
    pass


class TextGenerationError(AssetPipelineError):
    def __init__(self, message: str):
        super().__init__("TEXT_GENERATION_ERROR", message)


class MalformedGenerationError(AssetPipelineError):
    def __init__(self, message: str, output: str = ""):
        super().__init__("MALFORMED_GENERATION", message, {"output": output[:500]})


class ImageGenerationError(AssetPipelineError):
    def __init__(self, message: str):
        super().__init__("IMAGE_GENERATION_ERROR", message)


class StorageUploadError(AssetPipelineError):
    def __init__(self, message: str):
        super().__init__("STORAGE_UPLOAD_ERROR", message)


# ── Fusion ───────────────────────────────────────────

class GenerationFailedError(APIError):
    def __init__(self, message: str = "Failed to generate the new element. Try again."):
        super().__init__("GENERATION_FAILED", message, 500)


class StorageFailedError(APIError):
    def __init__(self, message: str = "Failed to store the element icon. Try again."):
        super().__init__("STORAGE_FAILED", message, 500)


class ResetNotConfirmedError(APIError):
    def __init__(self, production: bool, token: str):
        if production:
            message = f"Deletion in production requires specific confirmation ({token})."
            status = 403
        else:
            message = f"To delete all elements in development, add ?confirm={token} to the URL."
            status = 400
        super().__init__("RESET_NOT_CONFIRMED", message, status)


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    return {"error": {"code": code, "message": message, "details": details or {}}}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return JSONResponse(status_code=exc.status, content=_error_body(exc.code, exc.message, exc.details))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=_error_body("VALIDATION_ERROR", "Invalid request body", {"errors": jsonable_encoder(exc.errors())}),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_body("INTERNAL_ERROR", str(exc) if app.debug else "Internal server error"),
        )
