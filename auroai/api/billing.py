"""
Billing API routes.

- POST /api/billing/webhook: Stripe webhook (push reconciliation)
- GET|POST /api/billing/check-subscription: pull reconciliation for the caller
- POST /api/billing/checkout: create a Stripe Checkout session
- GET /api/billing/diagnostics: Stripe connectivity check (admin key)
"""
import asyncio
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from auroai.core.admin_auth import require_admin_key
from auroai.core.auth import AuthContext, get_current_user, get_optional_user
from auroai.core.config import settings
from auroai.core.errors import AppError, AuthenticationError, ValidationError
from auroai.core.logging import get_request_id, log_event
from auroai.features.billing.checkout import user_message
from auroai.features.billing.diagnostics import check_secret_key, run_diagnostics
from auroai.features.billing.provider import BillingProviderError
from auroai.features.billing.reconcile import ReconciliationService
from auroai.features.billing.service import (
    get_checkout_initiator,
    get_provider,
    get_reconciliation_service,
    get_webhook_verifier,
)
from auroai.features.billing.webhooks import WebhookVerifier
from auroai.features.plans.service import list_plans


router = APIRouter(prefix="/billing", tags=["billing"])


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: Optional[str] = Field(default=None, alias="priceId")


class CheckoutResponse(BaseModel):
    url: str


class CheckoutErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
    type: Optional[str] = None
    message: str


class SubscriptionStatusResponse(BaseModel):
    subscribed: bool
    current_plan: str
    subscription_end: Optional[str] = None  # ISO8601, only while subscribed


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """
    Handle Stripe webhook events.

    The signature is checked over the raw body before anything else.

    Errors:
        400: Missing or invalid signature
        500: Webhook secret missing, or processing failed (Stripe retries)
    """
    body = await request.body()
    event = verifier.verify(body, stripe_signature)

    try:
        await asyncio.to_thread(service.reconcile_from_webhook_event, event)
    except Exception as e:
        log_event(
            "error",
            "webhook.processing_failed",
            event_type=event.event_type,
            extra={"event_id": event.event_id, "error_code": getattr(e, "code", "internal_error"), "error": e},
        )
        raise AppError(
            f"Webhook processing failed: {e}",
            code="webhook_processing_error",
            status_code=500,
        ) from e

    return {"received": True}


@router.api_route(
    "/check-subscription",
    methods=["GET", "POST"],
    response_model=SubscriptionStatusResponse,
)
async def check_subscription(
    auth: AuthContext = Depends(get_current_user),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """
    Reconcile the caller's plan with Stripe and return the result.

    Returns:
        {"subscribed": bool, "current_plan": str, "subscription_end": str | null}
    """
    if not auth.user.email:
        raise AuthenticationError("User not authenticated or email not available")

    profile = await asyncio.to_thread(service.reconcile, auth.user.user_id, auth.user.email)
    subscription_end = None
    if profile.subscribed and profile.plan_expires_at:
        subscription_end = profile.plan_expires_at.isoformat()
    return SubscriptionStatusResponse(
        subscribed=profile.subscribed,
        current_plan=profile.current_plan,
        subscription_end=subscription_end,
    )


async def _read_checkout_request(request: Request) -> CheckoutRequest:
    raw = await request.body()
    if not raw.strip():
        return CheckoutRequest()
    try:
        return CheckoutRequest.model_validate_json(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            "Request body must be JSON like {\"priceId\": \"price_...\"}",
            code="invalid_request",
        ) from e


def _checkout_error_response(exc: AppError) -> JSONResponse:
    provider_code = exc.provider_code if isinstance(exc, BillingProviderError) else None
    error_type = exc.error_type if isinstance(exc, BillingProviderError) else None
    content = CheckoutErrorResponse(
        error=exc.message,
        code=provider_code or exc.code,
        type=error_type or type(exc).__name__,
        message=user_message(exc),
    )
    rid = get_request_id()
    response = JSONResponse(status_code=exc.status_code, content=content.model_dump())
    if rid:
        response.headers["x-request-id"] = rid
    return response


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    responses={400: {"model": CheckoutErrorResponse}, 401: {"model": CheckoutErrorResponse}},
)
async def create_checkout(
    request: Request,
    auth: Optional[AuthContext] = Depends(get_optional_user),
):
    """
    Create a Stripe Checkout session for the caller.

    Returns:
        {"url": "https://checkout.stripe.com/..."}

    Errors (body: {error, code, type, message}):
        400: Unreadable body; missing/malformed/inactive price; Stripe rejected the request
        401: Not authenticated, or Stripe rejected the API key
        500: Stripe is not configured
        502: Other Stripe failures
    """
    try:
        payload = await _read_checkout_request(request)
        initiator = get_checkout_initiator()
        result = await asyncio.to_thread(
            initiator.create_checkout,
            auth.user.user_id if auth else None,
            auth.user.email if auth else None,
            payload.price_id,
            auth.access_token if auth else None,
        )
    except AppError as e:
        log_event(
            "warning" if e.status_code < 500 else "error",
            "checkout.failed",
            user_id=auth.user.user_id if auth else None,
            extra={"error_code": e.code, "status": e.status_code},
        )
        return _checkout_error_response(e)

    return CheckoutResponse(url=result.checkout_url)


@router.get("/diagnostics")
async def stripe_diagnostics(_: str = Depends(require_admin_key)):
    """
    Check Stripe connectivity and every paid plan's price id.

    Errors:
        400: Stripe key missing or malformed
        500: Stripe API unreachable or rejected the key
    """
    failure = check_secret_key(settings.STRIPE_SECRET_KEY)
    if failure:
        return JSONResponse(status_code=400, content=failure)

    report = await asyncio.to_thread(run_diagnostics, get_provider(), list_plans())
    return JSONResponse(status_code=200 if report["success"] else 500, content=report)
