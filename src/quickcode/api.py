"""HTTP API for QuickCode.

Routes under ``/api`` require a bearer identity token, except the sample
parents listing used for diagnostics.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Body, Depends, FastAPI, Header, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .clients.identity import FirebaseTokenVerifier, TokenVerifier
from .clients.sheets import GoogleSheetsClient, LedgerStore
from .config import Settings, load_settings
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConservationError,
    DomainNotAllowedError,
    MissingColumnError,
    NotFoundError,
    PartialCommitError,
    RecordNotFoundError,
    UpstreamError,
    ValidationError,
)
from .models import Identity
from .review.lookups import LookupService
from .review.service import ReviewService, parse_approve_request, parse_submit_request
from .split.service import SplitService, resolve_mode_flags

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_split_service(request: Request) -> SplitService:
    return SplitService(request.app.state.settings, request.app.state.store)


def get_review_service(request: Request) -> ReviewService:
    return ReviewService(request.app.state.settings, request.app.state.store)


def get_lookup_service(request: Request) -> LookupService:
    return LookupService(request.app.state.settings, request.app.state.store)


def require_identity(
    request: Request, authorization: str | None = Header(default=None)
) -> Identity:
    """Resolve the caller from ``Authorization: Bearer <token>``."""
    header = authorization or ""
    token = header[7:].strip() if header.startswith("Bearer ") else ""
    if not token:
        raise AuthenticationError("Missing Authorization: Bearer <token>")
    verifier: TokenVerifier = request.app.state.verifier
    return verifier.verify(token)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

router = APIRouter()


@router.get("/ping")
def ping() -> dict[str, bool]:
    return {"ok": True}


@router.get("/sheets/test")
def sheets_test(request: Request, settings: Settings = Depends(get_settings)):
    """Report the ledger's live header row."""
    title = settings.sheets_log_title
    rows = request.app.state.store.read_all_rows(title)
    return {"title": title, "headers": list(rows[0]) if rows else []}


@router.get("/api/log/sample-parents")
def sample_parents(service: SplitService = Depends(get_split_service)):
    items = service.sample_parents()
    return {"items": [item.model_dump(by_alias=True) for item in items]}


@router.post("/api/log/split")
def split(
    payload: Any = Body(default=None),
    dry_run: str | None = Query(default=None, alias="dryRun"),
    assign_ids: str | None = Query(default=None, alias="assignIds"),
    identity: Identity = Depends(require_identity),
    service: SplitService = Depends(get_split_service),
):
    """Preview or commit a split of one ledger row."""
    dry, assign = resolve_mode_flags(payload, dry_run, assign_ids)
    logger.info(f"Split requested by {identity.email} (dry_run={dry}, assign_ids={assign})")
    result = service.split(payload, dry_run=dry, assign_ids=assign)
    return result.model_dump(by_alias=True)


@router.get("/api/log/new")
def new_transactions(
    identity: Identity = Depends(require_identity),
    service: ReviewService = Depends(get_review_service),
):
    return service.transactions_for_user(identity.username).model_dump(by_alias=True)


@router.get("/api/approvals/submitted")
def submitted_for_approval(
    identity: Identity = Depends(require_identity),
    service: ReviewService = Depends(get_review_service),
):
    return service.approval_queues(identity.username).model_dump(by_alias=True)


@router.post("/api/log/submit-batch")
def submit_batch(
    payload: Any = Body(default=None),
    identity: Identity = Depends(require_identity),
    service: ReviewService = Depends(get_review_service),
):
    request = parse_submit_request(payload)
    logger.info(f"{identity.email} submitting {len(request.items)} row(s)")
    return service.submit_batch(request).model_dump(by_alias=True)


@router.post("/api/log/approve-batch")
def approve_batch(
    payload: Any = Body(default=None),
    identity: Identity = Depends(require_identity),
    service: ReviewService = Depends(get_review_service),
):
    request = parse_approve_request(payload)
    logger.info(f"{identity.email} approving rows")
    return service.approve_batch(request).model_dump(by_alias=True)


@router.get("/api/lookups")
def lookups(
    identity: Identity = Depends(require_identity),
    service: LookupService = Depends(get_lookup_service),
):
    return service.fetch().model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"ok": False, "error": message, **extra}
    )


def register_error_handlers(app: FastAPI) -> None:
    """Map the QuickCode error taxonomy onto HTTP responses."""

    @app.exception_handler(ValidationError)
    async def _validation(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"ok": False, "errors": exc.errors})

    @app.exception_handler(ConservationError)
    async def _conservation(request: Request, exc: ConservationError):
        return JSONResponse(status_code=422, content={"ok": False, "errors": exc.errors})

    @app.exception_handler(RecordNotFoundError)
    async def _record_not_found(request: Request, exc: RecordNotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return _error(404, str(exc))

    @app.exception_handler(MissingColumnError)
    async def _missing_column(request: Request, exc: MissingColumnError):
        logger.error(f"Ledger schema problem on {request.url.path}: {exc}")
        return _error(500, str(exc))

    @app.exception_handler(AuthenticationError)
    async def _unauthenticated(request: Request, exc: AuthenticationError):
        return JSONResponse(status_code=401, content={"error": str(exc)})

    @app.exception_handler(DomainNotAllowedError)
    async def _forbidden(request: Request, exc: DomainNotAllowedError):
        return JSONResponse(status_code=403, content={"error": str(exc)})

    @app.exception_handler(PartialCommitError)
    async def _partial_commit(request: Request, exc: PartialCommitError):
        logger.error(f"Partial commit on {request.url.path}: {exc}")
        return _error(502, str(exc), appended=exc.appended)

    @app.exception_handler(UpstreamError)
    async def _upstream(request: Request, exc: UpstreamError):
        logger.error(f"Upstream failure on {request.url.path}: {exc}")
        return _error(502, str(exc))

    @app.exception_handler(ConfigurationError)
    async def _configuration(request: Request, exc: ConfigurationError):
        logger.error(f"Configuration problem on {request.url.path}: {exc}")
        return _error(500, "Server is not configured")

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception(f"{request.method} {request.url.path} failed")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Settings | None = None,
    store: LedgerStore | None = None,
    verifier: TokenVerifier | None = None,
) -> FastAPI:
    """
    Build the API application.

    Args:
        settings: Settings, loaded from the environment if omitted
        store: Ledger store, a Google Sheets client if omitted
        verifier: Identity verifier, Firebase tokens if omitted
    """
    settings = settings or load_settings()
    store = store or GoogleSheetsClient.from_settings(settings)
    verifier = verifier or FirebaseTokenVerifier.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting QuickCode API for ledger '{settings.sheets_log_title}'")
        yield
        close = getattr(store, "close", None)
        if callable(close):
            close()
        logger.info("QuickCode API stopped")

    app = FastAPI(title="QuickCode", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.verifier = verifier

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)
    app.include_router(router)
    return app
