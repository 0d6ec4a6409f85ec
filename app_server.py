import logging

import jwt as pyjwt
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from auth import bearer_token, decode_token
from certificate_generator import (
    GenerationOptions,
    generate_diagnostic_pdf,
    generate_merged_batch_pdf,
    generate_pdf,
)
from errors import BatchLimitExceededError, CertificateError, ValidationError
from font_loader import FontLoader
from layout_models import BatchGenerateRequest, GenerateRequest
from settings import Settings, configure_logging, get_settings

logger = logging.getLogger(__name__)

# Exact-match public paths
_PUBLIC_API_PATHS: frozenset[str] = frozenset({
    "/api/health",
    "/api/fonts",
})


def _options(request: GenerateRequest | BatchGenerateRequest) -> GenerationOptions:
    return GenerationOptions(
        page_size=request.page_size,
        coordinate_mode=request.coordinate_mode,
        debug=request.debug,
    )


def _check_batch(rows: list, settings: Settings) -> None:
    """Caller-side batch policy, enforced before any document is created."""
    if not rows:
        raise ValidationError("No data rows provided")
    if len(rows) > settings.max_batch_size:
        raise BatchLimitExceededError(settings.max_batch_size, len(rows))


def _pdf_response(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )


def create_app(settings: Settings | None = None, resolver: FontLoader | None = None) -> FastAPI:
    settings = settings or get_settings()
    resolver = resolver or FontLoader(settings)

    app = FastAPI(title="Certificate Generator API")
    app.state.settings = settings
    app.state.font_loader = resolver

    # ── CORS ──────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── AUTH MIDDLEWARE ───────────────────────────────────────────────────────
    @app.middleware("http")
    async def _auth_middleware(request: Request, call_next):
        """Reject unauthenticated calls to /api/* (except public endpoints)."""
        path = request.url.path
        if (
            not settings.auth_enabled
            or not path.startswith("/api/")
            or path in _PUBLIC_API_PATHS
            or request.method == "OPTIONS"
        ):
            return await call_next(request)

        token = bearer_token(request.headers.get("Authorization"))
        if token is None:
            return JSONResponse(
                status_code=401,
                content={"data": None, "error": "Missing or invalid Authorization header."},
            )
        try:
            decode_token(token, settings)
        except pyjwt.ExpiredSignatureError:
            return JSONResponse(
                status_code=401,
                content={"data": None, "error": "Token has expired."},
                headers={"WWW-Authenticate": "Bearer"},
            )
        except pyjwt.InvalidTokenError as exc:
            return JSONResponse(
                status_code=401,
                content={"data": None, "error": f"Invalid token: {exc}"},
                headers={"WWW-Authenticate": "Bearer"},
            )
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "data": None,
                "error": "Request validation failed.",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(CertificateError)
    async def certificate_error_handler(request: Request, exc: CertificateError) -> JSONResponse:
        logger.warning("[%s] %s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/fonts")
    def list_fonts() -> dict:
        fonts = resolver.available_families()
        return {"fonts": fonts, "count": len(fonts), "cache": resolver.cache.stats()}

    @app.post("/api/generate")
    def generate(request: GenerateRequest) -> dict:
        result = generate_pdf(request.layout, request.user_data, "base64", _options(request), resolver)
        return result.to_payload()

    @app.post("/api/generate-batch")
    def generate_batch(request: BatchGenerateRequest) -> dict:
        _check_batch(request.rows, settings)
        result = generate_merged_batch_pdf(
            request.layout,
            request.rows,
            "base64",
            _options(request),
            resolver,
            max_rows=settings.max_batch_size,
        )
        return result.to_payload()

    @app.post("/api/generate-file")
    def generate_file(request: GenerateRequest) -> Response:
        result = generate_pdf(request.layout, request.user_data, "buffer", _options(request), resolver)
        return _pdf_response(result.data, "certificate.pdf")

    @app.post("/api/generate-batch-file")
    def generate_batch_file(request: BatchGenerateRequest) -> Response:
        _check_batch(request.rows, settings)
        result = generate_merged_batch_pdf(
            request.layout,
            request.rows,
            "buffer",
            _options(request),
            resolver,
            max_rows=settings.max_batch_size,
        )
        return _pdf_response(result.data, "certificates.pdf")

    @app.get("/api/debug-pdf")
    def debug_pdf() -> Response:
        """Markers at known percentages; each must sit where its label says."""
        result = generate_diagnostic_pdf("buffer", resolver=resolver)
        return _pdf_response(result.data, "coordinate-diagnostic.pdf")

    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)
    if not settings.auth_enabled:
        logger.warning("No SUPABASE_JWT_SECRET or SUPABASE_URL configured; API auth is disabled.")
    return create_app(settings)


app = _build_default_app()
