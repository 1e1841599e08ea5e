import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError
from starlette.exceptions import HTTPException

from .. import __version__
from ..config.settings import configure_logging, get_settings
from ..services.rate_limit import rate_limit_body
from ..services.supabase_client import SupabaseNotConfigured
from .deps import RateLimitExceeded
from .estimates_api import router as estimates_router
from .rules_api import router as rules_router
from .settings_api import router as settings_router

configure_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="Roof Estimator API",
    description="Instant roofing estimates and pricing rule management",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(estimates_router)
app.include_router(rules_router)
app.include_router(settings_router)


def flatten_validation_errors(errors) -> dict:
    """Group validation messages by dotted field path."""
    form_errors: list[str] = []
    field_errors: dict[str, list[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get('loc', ()) if part not in ('body', 'query', 'path')]
        if loc:
            field_errors.setdefault('.'.join(loc), []).append(err.get('msg', 'Invalid value'))
        else:
            form_errors.append(err.get('msg', 'Invalid request'))
    return {"formErrors": form_errors, "fieldErrors": field_errors}


@app.exception_handler(HTTPException)
async def http_error(request: Request, exc: HTTPException):
    if isinstance(exc.detail, dict) and 'error' in exc.detail:
        body = exc.detail
    else:
        body = {"error": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": flatten_validation_errors(exc.errors())},
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_error(request: Request, exc: RateLimitExceeded):
    body = rate_limit_body(exc.result)
    headers = {**exc.result.headers(), 'Retry-After': str(body['retryAfter'])}
    return JSONResponse(status_code=429, content=body, headers=headers)


@app.exception_handler(SupabaseNotConfigured)
async def not_configured_error(request: Request, exc: SupabaseNotConfigured):
    logger.error("%s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Database is not configured"})


@app.exception_handler(APIError)
async def database_error(request: Request, exc: APIError):
    logger.error("%s %s: database error %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "Database error"})


@app.get("/")
async def root():
    return {"status": "online", "message": "Roof Estimator API Active"}


@app.get("/health")
async def health():
    return {"ok": True}
