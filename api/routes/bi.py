"""Business-intelligence routes.

- POST /api/bi/query: answer a natural-language question (rate limited per tenant)
- GET /api/bi/capabilities: capabilities visible to the tenant's tier
- GET /api/bi/history: the caller's recent questions, newest first

Tenant and user identity arrive in the X-Tenant-Id / X-User-Id headers,
already resolved by the upstream gateway.
A running query is cancelled when its client disconnects.
"""
import asyncio

from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from orchestration import (
    ErrorCode,
    ConversationTurn,
    Orchestrator,
    RateLimitDecision,
    RateLimitExceededError,
    TenantRateLimiter,
    get_message,
    resolve_language,
)
from utils import get_logger, CancellationToken

logger = get_logger(__name__)

router = APIRouter(prefix="/api/bi", tags=["bi"])

# How often a running query checks whether its client is still connected
DISCONNECT_POLL_SECONDS = 0.5

STATUS_BY_ERROR_CODE = {
    ErrorCode.EMPTY_QUERY.value: 400,
    ErrorCode.VALIDATION_FAILED.value: 400,
    ErrorCode.OUT_OF_SCOPE.value: 400,
    ErrorCode.TENANT_NOT_FOUND.value: 403,
    ErrorCode.TENANT_INACTIVE.value: 403,
    ErrorCode.ONBOARDING_INCOMPLETE.value: 403,
    ErrorCode.NO_SUBSCRIPTION.value: 403,
    ErrorCode.SUBSCRIPTION_EXPIRED.value: 403,
    ErrorCode.DATA_SOURCE_NOT_CONNECTED.value: 403,
    ErrorCode.DAILY_QUOTA_EXCEEDED.value: 429,
    ErrorCode.MONTHLY_QUOTA_EXCEEDED.value: 429,
    ErrorCode.PLANNING_SERVICE_BUSY.value: 503,
    ErrorCode.AI_SERVICE_ERROR.value: 502,
    ErrorCode.INTERNAL_ERROR.value: 500,
}


# ============================================================================
# Request Schemas
# ============================================================================


class HistoryTurn(BaseModel):
    role: str = Field(..., examples=["user", "assistant"])
    content: str


class QueryRequest(BaseModel):
    """A natural-language question plus optional prior conversation."""

    query: str = Field(..., description="The question to answer", examples=["What were my top 5 products last month?"])
    history: list[HistoryTurn] = Field(default_factory=list, description="Previous turns, oldest first")


# ============================================================================
# Dependencies
# ============================================================================


def get_orchestrator_dep(request: Request) -> Orchestrator:
    return request.app.state.orchestrator


def get_rate_limiter_dep(request: Request) -> TenantRateLimiter:
    return request.app.state.rate_limiter


def get_language(accept_language: str | None = Header(default=None, alias="Accept-Language")) -> str:
    return resolve_language(accept_language)


async def cancel_on_disconnect(request: Request, cancel: CancellationToken) -> None:
    """Fire the token as soon as the client goes away"""
    while not cancel.is_cancelled:
        if await request.is_disconnected():
            logger.info(f"Client disconnected from {request.url.path}, cancelling query")
            cancel.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


def enforce_rate_limit(
    tenant_id: str = Header(..., alias="X-Tenant-Id"),
    orchestrator: Orchestrator = Depends(get_orchestrator_dep),
    limiter: TenantRateLimiter = Depends(get_rate_limiter_dep),
) -> RateLimitDecision:
    """Admit the request or raise RateLimitExceededError (rendered as 429)"""
    decision = limiter.check(tenant_id, orchestrator.tier_for(tenant_id))
    if not decision.allowed:
        raise RateLimitExceededError(decision, tenant_id)
    return decision


# ============================================================================
# Routes
# ============================================================================


@router.post("/query")
async def ask_question(
    request: Request,
    body: QueryRequest,
    tenant_id: str = Header(..., alias="X-Tenant-Id"),
    user_id: str | None = Header(default=None, alias="X-User-Id"),
    language: str = Depends(get_language),
    decision: RateLimitDecision = Depends(enforce_rate_limit),
    orchestrator: Orchestrator = Depends(get_orchestrator_dep),
) -> JSONResponse:
    """Answer one natural-language question about the tenant's retail data."""
    if not body.query or not body.query.strip():
        payload = {
            "success": False,
            "query": body.query,
            "error_code": ErrorCode.EMPTY_QUERY.value,
            "error_message": get_message(ErrorCode.EMPTY_QUERY.value, language),
        }
        return JSONResponse(status_code=400, content=payload, headers=decision.headers())

    history = [ConversationTurn(role=turn.role, content=turn.content) for turn in body.history]
    cancel = CancellationToken()
    watcher = asyncio.create_task(cancel_on_disconnect(request, cancel))
    try:
        response = await asyncio.to_thread(
            orchestrator.process_query,
            tenant_id=tenant_id,
            user_id=user_id,
            query=body.query.strip(),
            history=history,
            language=language,
            cancel=cancel,
        )
    finally:
        watcher.cancel()
    status_code = 200 if response.success else STATUS_BY_ERROR_CODE.get(response.error_code, 200)
    return JSONResponse(status_code=status_code, content=response.to_dict(), headers=decision.headers())


@router.get("/capabilities")
def list_capabilities(
    tenant_id: str = Header(..., alias="X-Tenant-Id"),
    language: str = Depends(get_language),
    orchestrator: Orchestrator = Depends(get_orchestrator_dep),
):
    """Capabilities the tenant's subscription tier can use."""
    capabilities = orchestrator.list_capabilities(tenant_id)
    if capabilities is None:
        return JSONResponse(
            status_code=403,
            content={
                "success": False,
                "error_code": ErrorCode.TENANT_NOT_FOUND.value,
                "error_message": get_message(ErrorCode.TENANT_NOT_FOUND.value, language),
            },
        )
    return {
        "success": True,
        "tier": orchestrator.tier_for(tenant_id).value,
        "capabilities": capabilities,
        "count": len(capabilities),
    }


@router.get("/history")
def get_history(
    tenant_id: str = Header(..., alias="X-Tenant-Id"),
    user_id: str | None = Header(default=None, alias="X-User-Id"),
    limit: int = Query(default=20, description="Max records, clamped to 1..100"),
    orchestrator: Orchestrator = Depends(get_orchestrator_dep),
):
    """The caller's recent questions, newest first."""
    records = orchestrator.get_history(tenant_id, user_id, limit)
    return {
        "success": True,
        "history": [record.to_dict() for record in records],
        "count": len(records),
    }


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    language = resolve_language(request.headers.get("Accept-Language"))
    retry_after = exc.decision.retry_after
    return JSONResponse(
        status_code=429,
        content={
            "success": False,
            "error_code": ErrorCode.RATE_LIMIT_EXCEEDED.value,
            "error_message": get_message(ErrorCode.RATE_LIMIT_EXCEEDED.value, language, retry_after=retry_after),
            "retry_after": retry_after,
        },
        headers=exc.decision.headers(),
    )
