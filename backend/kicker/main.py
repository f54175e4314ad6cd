import logging
import os
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import API_PREFIX, get_mutation_policy, get_storage_backend, get_win_rule
from .exceptions import Busy, DomainException, ProblemDetail
from .routers import queue, stats, tournament
from .scoring import parse_rule
from .services.registry import registry
from .utils.sentry import init_sentry

logger = logging.getLogger(__name__)

init_sentry()


def _allowed_origins() -> list[str]:
    """Parse ``ALLOWED_ORIGINS``; the scorekeeping UI origins must be listed explicitly."""

    raw = os.getenv("ALLOWED_ORIGINS", "").strip()
    if not raw:
        raise ValueError(
            "ALLOWED_ORIGINS environment variable must be set to a comma-separated "
            "list of scoreboard UI origins."
        )
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if not origins:
        raise ValueError("ALLOWED_ORIGINS must contain at least one non-empty origin.")
    if "*" in origins:
        raise ValueError(
            "ALLOWED_ORIGINS cannot include '*' (wildcard). Specify explicit, trusted origins."
        )
    return origins


ALLOWED_ORIGINS = _allowed_origins()
ALLOW_CREDENTIALS = os.getenv("ALLOW_CREDENTIALS", "true").lower() == "true"


@asynccontextmanager
async def lifespan(app: FastAPI):
    # refuse to serve without a match-winning rule
    rule = parse_rule(get_win_rule())
    logger.info(
        "Kicker API ready (rule=%s, storage=%s, policy=%s)",
        rule.description,
        get_storage_backend(),
        get_mutation_policy(),
    )
    yield
    registry.clear()


app = FastAPI(
    title="Kicker Tournament API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("API_PREFIX=%r", API_PREFIX)


@app.get("/healthz", tags=["health"])  # Unprefixed for reverse proxy / uptime checks
def root_healthz():
    return {"status": "ok"}


# -----------------------------------------------------------------------------
# Problem details
# -----------------------------------------------------------------------------
def _problem_response(problem: ProblemDetail, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        media_type="application/problem+json",
        headers=headers,
    )


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    problem = ProblemDetail(
        type=exc.type,
        title=exc.title,
        detail=exc.detail,
        status=exc.status_code,
        code=exc.code,
        instance=str(request.url.path),
    )
    # the scorekeeper UI retries a rejected tap after a short pause
    headers = {"Retry-After": "1"} if isinstance(exc, Busy) else None
    return _problem_response(problem, headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    problem = ProblemDetail(
        title=detail,
        detail=detail,
        status=exc.status_code,
        code=getattr(exc, "code", f"http_{exc.status_code}"),
        instance=str(request.url.path),
    )
    return _problem_response(problem, getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    problem = ProblemDetail(
        title="Internal Server Error",
        status=500,
        detail=str(exc),
        code="internal_server_error",
    )
    return _problem_response(problem)


# -----------------------------------------------------------------------------
# Routers
# -----------------------------------------------------------------------------
api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])


@api_router.get("/healthz", tags=["health"])
def api_healthz():
    return {"status": "ok"}


@api_router.get("")
def api_root():
    return {"message": "Kicker Tournament API. See /docs."}


v0_router = APIRouter(prefix="/v0")
v0_router.include_router(tournament.router, tags=["tournament"])
v0_router.include_router(stats.router, tags=["stats"])
v0_router.include_router(queue.router, tags=["queue"])

api_router.include_router(v0_router)
app.include_router(api_router)
