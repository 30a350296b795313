import json
import logging
from typing import Optional

import stripe

from marketplace.config import get_settings

logger = logging.getLogger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


class StripeServiceError(Exception):
    pass


def _configure() -> None:
    settings = get_settings()
    if not settings.stripe_secret_key:
        raise StripeServiceError("Stripe secret key not configured")
    stripe.api_key = settings.stripe_secret_key


# -----------------------------
# Connect (author payouts)
# -----------------------------
def create_connect_account(email: str, country: str = "US") -> stripe.Account:
    _configure()
    try:
        account = stripe.Account.create(
            type="express",
            country=country,
            email=email,
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
        )
    except stripe.StripeError as e:
        logger.error(f"Stripe account creation failed: {e}")
        raise StripeServiceError(getattr(e, "user_message", None) or str(e))

    logger.info(f"Created Stripe Connect account {account.id} for {email}")
    return account


def create_onboarding_link(account_id: str, origin: str) -> str:
    _configure()
    try:
        link = stripe.AccountLink.create(
            account=account_id,
            type="account_onboarding",
            refresh_url=f"{origin}/dashboard?stripe_refresh=true",
            return_url=f"{origin}/dashboard?stripe_success=true",
        )
    except stripe.StripeError as e:
        logger.error(f"Failed to create onboarding link: {e}")
        raise StripeServiceError(getattr(e, "user_message", None) or str(e))
    return link.url


def get_account_status(account_id: str) -> dict:
    _configure()
    try:
        account = stripe.Account.retrieve(account_id)
    except stripe.StripeError as e:
        logger.error(f"Failed to check account status: {e}")
        raise StripeServiceError(getattr(e, "user_message", None) or str(e))

    return {
        "onboarding_completed": bool(getattr(account, "details_submitted", False)),
        "payouts_enabled": bool(getattr(account, "payouts_enabled", False)),
    }


# -----------------------------
# Checkout
# -----------------------------
def find_customer_id(email: str) -> Optional[str]:
    customers = stripe.Customer.list(email=email, limit=1)
    if customers.data:
        return customers.data[0].id
    return None


def create_checkout_session(
    *,
    email: str,
    name: str,
    description: str,
    amount_cents: int,
    success_url: str,
    cancel_url: str,
    metadata: dict,
    destination_account: Optional[str] = None,
    application_fee_cents: Optional[int] = None,
) -> stripe.checkout.Session:
    """
    Create a one-off payment Checkout session.

    When a destination Connect account is given, the payment is routed to it
    with the platform fee taken as an application fee.
    """
    _configure()
    try:
        customer_id = find_customer_id(email)
        params = dict(
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": name, "description": description},
                    "unit_amount": amount_cents,
                },
                "quantity": 1,
            }],
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
        if customer_id:
            params["customer"] = customer_id
        else:
            params["customer_email"] = email
        if destination_account:
            params["payment_intent_data"] = {
                "application_fee_amount": application_fee_cents or 0,
                "transfer_data": {"destination": destination_account},
            }
        session = stripe.checkout.Session.create(**params)
    except stripe.StripeError as e:
        logger.error(f"Checkout session creation failed: {e}")
        raise StripeServiceError(getattr(e, "user_message", None) or str(e))

    logger.info(f"Created checkout session {session.id} ({amount_cents} cents)")
    return session


def construct_webhook_event(payload: bytes, signature: str) -> dict:
    """Verify the Stripe-Signature header and return the event as a plain dict."""
    settings = get_settings()
    if not settings.stripe_webhook_secret:
        raise StripeServiceError("Stripe webhook secret not configured")
    body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    try:
        stripe.WebhookSignature.verify_header(
            body, signature, settings.stripe_webhook_secret, WEBHOOK_TOLERANCE_SECONDS
        )
        return json.loads(body)
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise StripeServiceError(f"Invalid webhook: {e}")
