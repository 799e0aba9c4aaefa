import logging
from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from athena.api.v1.router import api_router
from athena.config import settings
from athena.core.exceptions import GENERIC_FAILURE_MESSAGE, AppError, PipelineError
from athena.core.middleware import RequestLogMiddleware
from athena.core.rate_limit import limiter

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=0.2,
        environment="development" if settings.DEBUG else "production",
        send_default_pii=False,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s API starting (corpus backend: %s)", settings.APP_NAME, settings.CORPUS_BACKEND)
    if settings.CORPUS_BACKEND == "qdrant":
        from athena.dependencies import get_pipeline

        await get_pipeline().corpus.ensure_collection()
    yield
    logger.info("%s API stopped", settings.APP_NAME)


app = FastAPI(
    title="Athena API",
    version="0.1.0",
    description=(
        "Grounded legal Q&A for England and Wales.\n\n"
        "Answers are generated only from verified sources retrieved by semantic "
        "similarity, with citations and a confidence score."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "qa", "description": "Grounded question answering with citations"},
    ],
)
app.state.limiter = limiter


@app.exception_handler(AppError)
async def app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    # reason goes to the log only; the body carries the generic message
    if isinstance(exc, PipelineError):
        logger.warning("Request failed: %s", exc)
    else:
        logger.error("Request failed: %s", exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    body = AppError(GENERIC_FAILURE_MESSAGE, details=details).to_dict()
    body["error"]["code"] = "INVALID_INPUT"
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content=AppError(GENERIC_FAILURE_MESSAGE).to_dict())


app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.update(SECURITY_HEADERS)
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLogMiddleware)

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {"status": "ok", "service": settings.APP_NAME}
