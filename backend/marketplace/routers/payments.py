import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from bookcore.payments import format_usd, is_free_book, split_amount, validate_tip_amount
from marketplace.auth import get_profile, require_writer
from marketplace.config import get_settings
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.payment import CheckoutRequest, ConnectRequest, TipRequest
from marketplace.services import email_service, stripe_service
from marketplace.services.stripe_service import StripeServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _origin(request: Request) -> str:
    return request.headers.get("origin") or get_settings().site_url


def _get_profile_row(supabase, user_id: str) -> dict:
    row = first_row(supabase.table("profiles").select("*").eq("id", user_id).limit(1).execute())
    if not row:
        raise HTTPException(status_code=404, detail="Profile not found")
    return row


# -----------------------------
# Stripe Connect onboarding
# -----------------------------
@router.post("/connect")
async def create_connect_account(
    body: ConnectRequest,
    request: Request,
    profile: dict = Depends(require_writer),
    supabase=Depends(get_supabase_client),
):
    """Create (or reuse) the writer's Express account and return an onboarding link."""
    if not profile.get("email"):
        raise HTTPException(status_code=400, detail="User email is required")

    try:
        account_id = profile.get("stripe_connect_account_id")
        if not account_id:
            account = stripe_service.create_connect_account(profile["email"], body.country)
            account_id = account.id
            supabase.table("profiles").update({
                "stripe_connect_account_id": account_id,
                "stripe_onboarding_completed": False,
                "updated_at": _now(),
            }).eq("id", profile["id"]).execute()

        url = stripe_service.create_onboarding_link(account_id, _origin(request))
    except StripeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {"account_id": account_id, "url": url}


@router.get("/connect/status")
async def connect_status(profile: dict = Depends(require_writer), supabase=Depends(get_supabase_client)):
    account_id = profile.get("stripe_connect_account_id")
    if not account_id:
        return {"connected": False, "onboarding_completed": False, "payouts_enabled": False}

    try:
        status = stripe_service.get_account_status(account_id)
    except StripeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))

    update = {
        "stripe_onboarding_completed": status["onboarding_completed"],
        "stripe_payouts_enabled": status["payouts_enabled"],
        "updated_at": _now(),
    }
    if status["onboarding_completed"] and status["payouts_enabled"]:
        update["is_verified"] = True
    supabase.table("profiles").update(update).eq("id", profile["id"]).execute()

    return {"connected": True, **status}


# -----------------------------
# Checkout
# -----------------------------
@router.post("/tips")
async def create_tip(
    tip: TipRequest,
    request: Request,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    try:
        amount = validate_tip_amount(tip.amount_cents)
        fee, author_earnings = split_amount(amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    author = _get_profile_row(supabase, tip.author_id)
    if not author.get("stripe_connect_account_id"):
        raise HTTPException(status_code=400, detail="Author has not set up payments yet")

    author_name = author.get("display_name") or "the author"
    origin = _origin(request)
    try:
        session = stripe_service.create_checkout_session(
            email=profile["email"],
            name=f"Tip for {author_name}",
            description=tip.tip_message or f"Support {author_name}'s writing",
            amount_cents=amount,
            success_url=f"{origin}/author/{tip.author_id}?tip=success",
            cancel_url=f"{origin}/author/{tip.author_id}?tip=cancelled",
            metadata={"type": "tip", "author_id": tip.author_id, "tipper_id": profile["id"]},
            destination_account=author["stripe_connect_account_id"],
            application_fee_cents=fee,
        )
    except StripeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))

    # holds the session id until the webhook swaps in the payment intent
    supabase.table("tips").insert({
        "tipper_id": profile["id"],
        "author_id": tip.author_id,
        "book_id": tip.book_id,
        "amount_cents": amount,
        "platform_fee_cents": fee,
        "author_earnings_cents": author_earnings,
        "tip_message": tip.tip_message,
        "stripe_payment_intent_id": session.id,
        "payment_status": "pending",
        "created_at": _now(),
    }).execute()

    logger.info(f"Tip checkout created: {format_usd(amount)} from {profile['id']} to {tip.author_id}")
    return {"url": session.url, "session_id": session.id}


@router.post("/checkout")
async def create_book_checkout(
    body: CheckoutRequest,
    request: Request,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    book = first_row(supabase.table("books").select("*").eq("id", body.book_id).limit(1).execute())
    if not book or book.get("book_status") != "published":
        raise HTTPException(status_code=404, detail="Book not found")
    if is_free_book(book.get("price_cents")):
        raise HTTPException(status_code=400, detail="This book is free and does not need to be purchased")

    owned = (
        supabase.table("purchases")
        .select("id")
        .eq("user_id", profile["id"])
        .eq("book_id", body.book_id)
        .eq("payment_status", "completed")
        .limit(1)
        .execute()
    )
    if owned.data:
        raise HTTPException(status_code=409, detail="Book already purchased")

    amount = book["price_cents"]
    fee, author_earnings = split_amount(amount)
    author = {}
    if book.get("author_id"):
        author = first_row(
            supabase.table("profiles")
            .select("stripe_connect_account_id")
            .eq("id", book["author_id"])
            .limit(1)
            .execute()
        ) or {}
    connect_account = author.get("stripe_connect_account_id")

    origin = _origin(request)
    try:
        session = stripe_service.create_checkout_session(
            email=profile["email"],
            name=book["title"],
            description=f"by {book.get('author_name') or 'Unknown author'}",
            amount_cents=amount,
            success_url=f"{origin}/book/{body.book_id}?purchase=success",
            cancel_url=f"{origin}/book/{body.book_id}?purchase=cancelled",
            metadata={"type": "purchase", "book_id": body.book_id, "user_id": profile["id"]},
            destination_account=connect_account,
            application_fee_cents=fee,
        )
    except StripeServiceError as e:
        raise HTTPException(status_code=502, detail=str(e))

    supabase.table("purchases").insert({
        "user_id": profile["id"],
        "book_id": body.book_id,
        "amount_cents": amount,
        "commission_cents": fee,
        "platform_fee_cents": fee,
        "author_earnings_cents": author_earnings,
        "payment_method": "stripe",
        "stripe_connect_account_id": connect_account,
        "stripe_payment_intent_id": session.id,
        "payment_status": "pending",
        "purchased_at": _now(),
    }).execute()

    return {"url": session.url, "session_id": session.id}


# -----------------------------
# Webhook
# -----------------------------
def _completed(session: dict) -> dict:
    update = {"payment_status": "completed"}
    if session.get("payment_intent"):
        update["stripe_payment_intent_id"] = session["payment_intent"]
    return update


def _complete_purchase(supabase, session: dict) -> None:
    update = {**_completed(session), "purchased_at": _now()}
    resp = (
        supabase.table("purchases")
        .update(update)
        .eq("stripe_payment_intent_id", session["id"])
        .execute()
    )
    for purchase in resp.data or []:
        try:
            address = email_service.resolve_email(supabase, purchase["user_id"])
            book = first_row(
                supabase.table("books").select("title, author_name").eq("id", purchase["book_id"]).limit(1).execute()
            ) or {}
            if address and email_service.notification_allowed(supabase, purchase["user_id"], "purchase_confirmation"):
                template = email_service.purchase_confirmation(
                    book.get("title", ""), book.get("author_name") or "", format_usd(purchase["amount_cents"])
                )
                email_service.send_email(address, template["subject"], template["html"], "purchase_confirmation")
        except Exception as e:
            logger.warning(f"Purchase confirmation email failed for session {session['id']}: {e}")


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None, alias="stripe-signature"),
    supabase=Depends(get_supabase_client),
):
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe signature")

    payload = await request.body()
    try:
        event = stripe_service.construct_webhook_event(payload, stripe_signature)
    except StripeServiceError as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    event_type = event["type"]
    logger.info(f"Stripe webhook received: {event_type}")

    if event_type == "checkout.session.completed":
        session = event["data"]["object"]
        kind = (session.get("metadata") or {}).get("type")
        if kind == "tip":
            supabase.table("tips").update(_completed(session)).eq("stripe_payment_intent_id", session["id"]).execute()
        elif kind == "purchase":
            _complete_purchase(supabase, session)
        else:
            logger.info(f"Ignoring checkout session {session['id']} with type {kind}")

    return {"received": True}
