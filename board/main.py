import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import FastAPI, Response, Request, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse

from board.config import settings
from board.errors import (
    BoardError,
    InvalidInput,
    NotFound,
    Gone,
    Forbidden,
    AlreadyApproved,
    AlreadyDeleted,
    ReentrantCall,
)
from board.logging_utils import setup_logging, RequestLoggingMiddleware, log_board_data
from board.metrics import record_board_failure, get_metrics, get_metrics_content_type
from board.schemas import (
    CreatedResponse,
    EditRequestCreate,
    EditRequestResponse,
    EditRequestsListResponse,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    MessagesListResponse,
    PostMessageRequest,
    StatusResponse,
)
from board.state_machine import BoardStateMachine
from board.storage import SessionLocal, SqlBoardStore, check_db_health, init_db
from board.utils import make_owner_check, verify_caller_signature


# Setup structured JSON logging
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Gone: status.HTTP_410_GONE,
    AlreadyApproved: status.HTTP_409_CONFLICT,
    AlreadyDeleted: status.HTTP_409_CONFLICT,
    ReentrantCall: status.HTTP_409_CONFLICT,
}

ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in (400, 401, 403, 404, 409, 410)
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: create tables and load the board from durable storage
    - Shutdown: close the board's session
    """
    init_db()
    session = SessionLocal()
    app.state.board = BoardStateMachine(
        store=SqlBoardStore(session),
        is_owner=make_owner_check(settings.OWNER_ID),
    )
    yield
    session.close()


app = FastAPI(
    title="Board API",
    description="Message board with owner-approved edits",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError) -> JSONResponse:
    """Translate board failures into HTTP responses with a stable reason."""
    record_board_failure(exc.reason)
    board_data = getattr(request.state, "board_log_data", None)
    if board_data is not None:
        board_data["result"] = exc.reason
    logger.info(f"Board operation rejected: {exc.reason}: {exc.detail}")
    return JSONResponse(
        status_code=ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST),
        content={"detail": exc.detail, "reason": exc.reason},
    )


# =============================================================================
# Dependencies
# =============================================================================

def get_board(request: Request) -> BoardStateMachine:
    return request.app.state.board


def get_caller(
    x_caller_id: Annotated[str | None, Header(alias="X-Caller-Id")] = None,
    x_signature: Annotated[str | None, Header(alias="X-Signature")] = None,
) -> str:
    """
    Resolve the authenticated caller.

    Headers:
        - X-Caller-Id: caller identity
        - X-Signature: hex HMAC-SHA256 of the caller id using AUTH_SECRET
    """
    if not x_caller_id or not x_signature:
        logger.error("Missing X-Caller-Id or X-Signature header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing caller credentials"
        )

    if not verify_caller_signature(x_caller_id, x_signature, settings.AUTH_SECRET):
        logger.error(f"Invalid signature for caller {x_caller_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid signature"
        )

    return x_caller_id


Board = Annotated[BoardStateMachine, Depends(get_board)]
Caller = Annotated[str, Depends(get_caller)]


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response) -> HealthResponse:
    """
    Readiness probe - returns 200 only if:
    1. OWNER_ID and AUTH_SECRET are set
    2. DB is reachable and schema is applied

    Otherwise returns 503 (Service Unavailable).
    """
    if not settings.OWNER_ID or not settings.AUTH_SECRET:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="OWNER_ID or AUTH_SECRET not configured"
        )

    if not check_db_health():
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not_ready",
            reason="Database not reachable or schema not applied"
        )

    return HealthResponse(status="ready")


# =============================================================================
# Message Routes
# =============================================================================

@app.post(
    "/messages",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def post_message(
    body: PostMessageRequest,
    request: Request,
    board: Board,
    caller: Caller,
) -> CreatedResponse:
    """Post a message authored by the authenticated caller."""
    log_board_data(request, operation="post_message", caller=caller)
    message_id = board.post_message(caller, body.content)
    log_board_data(request, operation="post_message", caller=caller, result="ok", target_id=message_id)
    return CreatedResponse(id=message_id)


@app.get("/messages", response_model=MessagesListResponse)
async def list_messages(board: Board) -> MessagesListResponse:
    """
    List every message that has not been deleted, in post order.
    """
    messages = board.get_all_messages()
    logger.info(f"GET /messages: returned {len(messages)} messages")
    return MessagesListResponse(
        data=[MessageResponse.model_validate(msg) for msg in messages],
        total=len(messages),
    )


@app.get("/messages/{message_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def get_message(message_id: int, request: Request, board: Board) -> MessageResponse:
    log_board_data(request, operation="get_message", target_id=message_id)
    return MessageResponse.model_validate(board.get_message(message_id))


@app.delete("/messages/{message_id}", response_model=StatusResponse, responses=ERROR_RESPONSES)
async def delete_message(
    message_id: int,
    request: Request,
    board: Board,
    caller: Caller,
) -> StatusResponse:
    """Soft-delete a message. Owner only."""
    log_board_data(request, operation="delete_message", caller=caller, target_id=message_id)
    board.delete_message(message_id, caller)
    request.state.board_log_data["result"] = "ok"
    return StatusResponse(status="ok")


# =============================================================================
# Edit Request Routes
# =============================================================================

@app.post(
    "/messages/{message_id}/edit-requests",
    response_model=CreatedResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def request_edit(
    message_id: int,
    body: EditRequestCreate,
    request: Request,
    board: Board,
    caller: Caller,
) -> CreatedResponse:
    """File an edit of one of the caller's own messages."""
    log_board_data(request, operation="request_edit", caller=caller, target_id=message_id)
    edit_request_id = board.request_edit(message_id, caller, body.new_content)
    log_board_data(request, operation="request_edit", caller=caller, result="ok", target_id=edit_request_id)
    return CreatedResponse(id=edit_request_id)


@app.get("/edit-requests/pending", response_model=EditRequestsListResponse)
async def list_pending_edit_requests(board: Board) -> EditRequestsListResponse:
    pending = board.get_pending_edit_requests()
    logger.info(f"GET /edit-requests/pending: returned {len(pending)} edit requests")
    return EditRequestsListResponse(
        data=[EditRequestResponse.model_validate(req) for req in pending],
        total=len(pending),
    )


@app.post(
    "/edit-requests/{edit_request_id}/approve",
    response_model=StatusResponse,
    responses=ERROR_RESPONSES,
)
async def approve_edit(
    edit_request_id: int,
    request: Request,
    board: Board,
    caller: Caller,
) -> StatusResponse:
    """Apply a pending edit to its message. Owner only."""
    log_board_data(request, operation="approve_edit", caller=caller, target_id=edit_request_id)
    board.approve_edit(edit_request_id, caller)
    request.state.board_log_data["result"] = "ok"
    return StatusResponse(status="ok")


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )
