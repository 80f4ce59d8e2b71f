"""
Checkout session creation.

Validates the requested price locally, confirms it is active at Stripe, then
opens a Stripe-hosted subscription checkout for the authenticated user.
Plan changes are never written here; they arrive later through the webhook
or the next status check.
"""
import re
from dataclasses import dataclass
from typing import Optional

from auroai.core.errors import AppError, AuthenticationError, ValidationError
from auroai.core.logging import log_event
from auroai.features.billing.provider import BillingProvider, BillingProviderError


PRICE_ID_PATTERN = re.compile(r"^price_[A-Za-z0-9]+$")


class Unauthenticated(AuthenticationError):
    pass


class MissingPriceId(ValidationError):
    code = "missing_price_id"


class InvalidPriceFormat(ValidationError):
    code = "invalid_price_format"


class PriceInactive(ValidationError):
    code = "price_inactive"


class CheckoutProviderError(BillingProviderError):
    """Stripe rejected a checkout call; carries Stripe's code and error type."""
    code = "checkout_provider_error"

    @classmethod
    def from_provider_error(cls, exc: BillingProviderError) -> "CheckoutProviderError":
        status_code = 502
        if exc.error_type == "InvalidRequestError":
            status_code = 400
        elif exc.error_type in ("AuthenticationError", "PermissionError"):
            status_code = 401
        return cls(
            exc.message,
            provider_code=exc.provider_code,
            error_type=exc.error_type,
            status_code=status_code,
        )


@dataclass(frozen=True)
class CheckoutResult:
    checkout_url: str
    session_id: str


class CheckoutInitiator:
    """Creates subscription checkout sessions with fixed return URLs."""

    def __init__(self, provider: BillingProvider, app_base_url: str, return_path: str = "/planos"):
        self.provider = provider
        base = app_base_url.rstrip("/")
        path = return_path if return_path.startswith("/") else f"/{return_path}"
        self.success_url = f"{base}{path}?payment=success"
        self.cancel_url = f"{base}{path}?payment=canceled"

    def create_checkout(
        self,
        user_id: Optional[str],
        email: Optional[str],
        price_id: Optional[str],
        access_token: Optional[str],
    ) -> CheckoutResult:
        """
        Open a checkout session for ``price_id``.

        Checks run in order: authentication, price presence, price format
        (local, no network), price active at Stripe. Any other Stripe failure
        surfaces as CheckoutProviderError.
        """
        if not access_token or not user_id:
            raise Unauthenticated("User not authenticated")
        if not email:
            raise Unauthenticated("User not authenticated or email not available")

        if not price_id:
            raise MissingPriceId("Price ID is required")
        if not isinstance(price_id, str) or not PRICE_ID_PATTERN.match(price_id):
            raise InvalidPriceFormat(f"Invalid price ID format: {price_id}")

        log_event("info", "checkout.started", user_id=user_id, extra={"price_id": price_id})

        try:
            price = self.provider.retrieve_price(price_id)
            if not price.active:
                raise PriceInactive(f"Price {price_id} is not active")

            customer_id = self.provider.find_customer_by_email(email)
            log_event(
                "info",
                "checkout.customer_resolved" if customer_id else "checkout.customer_missing",
                user_id=user_id,
                extra={"customer_id": customer_id},
            )

            session = self.provider.create_checkout_session(
                customer_id=customer_id,
                email=email,
                price_id=price_id,
                success_url=self.success_url,
                cancel_url=self.cancel_url,
                metadata={"user_id": user_id, "price_id": price_id},
            )
        except BillingProviderError as e:
            raise CheckoutProviderError.from_provider_error(e) from e

        log_event("info", "checkout.session_created", user_id=user_id, extra={"session_id": session.session_id})
        return CheckoutResult(checkout_url=session.url, session_id=session.session_id)


GENERIC_MESSAGE = "Erro ao processar checkout. Tente novamente."


def user_message(error: AppError) -> str:
    """Map a checkout failure to a message the user can act on (pt-BR)."""
    if isinstance(error, AuthenticationError):
        return "Faça login para continuar com a assinatura."
    if isinstance(error, (MissingPriceId, InvalidPriceFormat)):
        return "Plano inválido. Atualize a página e escolha um plano novamente."
    if isinstance(error, PriceInactive):
        return "Este plano não está disponível no momento. Escolha outro plano."

    text = (error.message or "").lower()
    if "no such price" in text:
        return "Plano não encontrado. Atualize a página e tente novamente."
    if "not active" in text:
        return "Este plano não está disponível no momento. Escolha outro plano."
    if isinstance(error, BillingProviderError) and error.error_type in ("AuthenticationError", "PermissionError"):
        return "Pagamentos temporariamente indisponíveis. Tente novamente mais tarde."
    return GENERIC_MESSAGE
