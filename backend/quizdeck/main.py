import json
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from quizdeck.core.config import settings
from quizdeck.core.security_audit_log import request_id
from quizdeck.routers import attempts, auth, health, quizzes

logger = logging.getLogger("quizdeck")

ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
    503: "unavailable",
}

_UNSAFE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


def _csv(value: str) -> list[str]:
    return [x.strip() for x in str(value or "").split(",") if x.strip()]


def _cors_options() -> dict:
    origins = _csv(settings.cors_allow_origins)
    if "*" in origins:
        raise RuntimeError("CORS_ALLOW_ORIGINS must list explicit origins; credentials are allowed")

    methods = _csv(settings.cors_allow_methods)
    headers = _csv(settings.cors_allow_headers)
    if methods == ["*"] and settings.is_production:
        methods = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    if headers == ["*"] and settings.is_production:
        headers = ["authorization", "content-type", "x-request-id"]

    return {"allow_origins": origins, "allow_credentials": True, "allow_methods": methods, "allow_headers": headers}


def error_body(request: Request, status_code: int, message: str, **extra) -> dict:
    body = {
        "ok": False,
        "error_code": ERROR_CODES.get(int(status_code), "internal_error" if status_code >= 500 else "http_error"),
        "message": message,
        "request_id": request_id(request),
    }
    body.update(extra)
    return body


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(request, exc.status_code, str(exc.detail or "request failed")),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": str(e.get("msg", ""))}
            for e in exc.errors()
        ]
        body = error_body(request, 400, "validation failed", errors=errors)
        body["error_code"] = "validation_failed"
        return JSONResponse(status_code=400, content=jsonable_encoder(body))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.exception("unhandled error: rid=%s path=%s", request_id(request), request.url.path)
        return JSONResponse(status_code=500, content=error_body(request, 500, "internal server error"))


def create_app() -> FastAPI:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)

    app = FastAPI(title="Quizdeck API", version="1.0.0")
    cors = _cors_options()
    allowed_origins = set(cors["allow_origins"])

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        started = time.perf_counter()
        rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = rid

        origin = (request.headers.get("origin") or "").strip()
        if request.method in _UNSAFE_METHODS and origin and origin not in allowed_origins:
            response = JSONResponse(status_code=403, content=error_body(request, 403, "invalid origin"))
        else:
            response = await call_next(request)

        if not request.url.path.startswith("/health"):
            logger.info(
                json.dumps(
                    {
                        "rid": rid,
                        "user_id": getattr(request.state, "user_id", None),
                        "method": request.method,
                        "path": request.url.path,
                        "status": response.status_code,
                        "duration_ms": round((time.perf_counter() - started) * 1000, 1),
                    }
                )
            )

        response.headers["X-Request-ID"] = rid
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        if settings.is_production:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        return response

    _install_error_handlers(app)
    app.add_middleware(CORSMiddleware, **cors)

    for module in (health, auth, quizzes, attempts):
        app.include_router(module.router)

    return app


app = create_app()
