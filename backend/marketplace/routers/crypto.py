import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from bookcore.constants import PLATFORM_WALLET_ADDRESS, POLYGON_CHAIN_ID, USDC_CONTRACT_ADDRESS
from bookcore.payments import (
    format_usdc,
    is_valid_wallet_address,
    split_amount,
    split_shares,
    total_author_earnings,
    validate_crypto_amount,
)
from marketplace.auth import get_profile, require_writer
from marketplace.config import get_settings
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.payment import CryptoPaymentRequest, SplitContractRequest
from marketplace.services import crypto_service
from marketplace.services.crypto_service import ThirdwebError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/crypto", tags=["crypto"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _active_contract(supabase, author_id: str):
    return first_row(
        supabase.table("split_contracts")
        .select("*")
        .eq("author_id", author_id)
        .eq("is_active", True)
        .limit(1)
        .execute()
    )


# -----------------------------
# Split contracts
# -----------------------------
@router.post("/split-contract")
async def create_split_contract(
    body: SplitContractRequest,
    profile: dict = Depends(require_writer),
    supabase=Depends(get_supabase_client),
):
    """
    Deploy a 90/10 revenue split contract for the calling author.

    An author has at most one active contract; an existing one is returned
    unchanged instead of deploying again.
    """
    if not is_valid_wallet_address(body.author_wallet_address):
        raise HTTPException(status_code=400, detail="Invalid author wallet address")
    platform_wallet = get_settings().platform_wallet_address or PLATFORM_WALLET_ADDRESS
    if not is_valid_wallet_address(platform_wallet):
        raise HTTPException(status_code=500, detail="Platform wallet address is misconfigured")
    try:
        shares = split_shares(body.author_share, body.platform_share)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    existing = _active_contract(supabase, profile["id"])
    if existing:
        return {"success": True, "contract": existing, "message": "Split contract already exists"}

    try:
        deployed = crypto_service.deploy_split_contract(
            profile["id"], [body.author_wallet_address, platform_wallet], shares
        )
    except ThirdwebError as e:
        logger.error(f"Split contract deployment failed for {profile['id']}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    row = {
        "author_id": profile["id"],
        "contract_address": deployed["contract_address"],
        "author_share_percentage": body.author_share,
        "platform_share_percentage": body.platform_share,
        "chain_id": POLYGON_CHAIN_ID,
        "deployment_tx_hash": deployed["transaction_hash"],
        "is_active": True,
        "created_at": _now(),
    }
    response = supabase.table("split_contracts").insert(row).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to store contract details")

    supabase.table("profiles").update({
        "wallet_address": body.author_wallet_address,
        "split_contract_address": deployed["contract_address"],
        "updated_at": _now(),
    }).eq("id", profile["id"]).execute()

    logger.info(f"Split contract {deployed['contract_address']} deployed for {profile['id']}")
    return {"success": True, "contract": response.data[0]}


@router.get("/split-contract/{author_id}")
async def get_split_contract(author_id: str, supabase=Depends(get_supabase_client)):
    contract = _active_contract(supabase, author_id)
    if not contract:
        raise HTTPException(status_code=404, detail="No active split contract for this author")
    return contract


# -----------------------------
# Payments
# -----------------------------
def _notify_author(supabase, book: dict, amount_cents: int, tx_hash: str) -> None:
    try:
        supabase.table("notifications").insert({
            "user_id": book["author_id"],
            "type": "crypto_payment_received",
            "title": "Crypto Payment Received",
            "message": f"You received ${format_usdc(amount_cents)} USDC for your book purchase!",
            "data": {"amount_usdc_cents": amount_cents, "transaction_hash": tx_hash, "book_id": book["id"]},
            "is_read": False,
            "created_at": _now(),
        }).execute()
    except Exception as e:
        logger.warning(f"Failed to notify author {book['author_id']} of crypto sale: {e}")


@router.post("/payments")
async def create_crypto_payment(
    body: CryptoPaymentRequest,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """
    Record a USDC book payment.

    The amount must cover the book price and a transaction hash can only be
    recorded once. When a hash is supplied its receipt is checked on Polygon
    and the payment is marked completed or failed; otherwise it stays
    pending. A completed payment also creates the purchase and notifies the
    author.
    """
    if not is_valid_wallet_address(body.buyer_wallet_address):
        raise HTTPException(status_code=400, detail="Invalid buyer wallet address")

    book = first_row(supabase.table("books").select("*").eq("id", body.book_id).limit(1).execute())
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    if not book.get("author_id"):
        raise HTTPException(status_code=400, detail="Book has no author to pay")
    try:
        amount = validate_crypto_amount(body.amount_cents, book.get("price_cents"))
        fee, author_earnings = split_amount(amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if body.transaction_hash:
        seen = (
            supabase.table("crypto_transactions")
            .select("id")
            .eq("transaction_hash", body.transaction_hash)
            .limit(1)
            .execute()
        )
        if seen.data:
            raise HTTPException(status_code=409, detail="Transaction has already been recorded")

    contract = _active_contract(supabase, book["author_id"])
    if not contract:
        raise HTTPException(status_code=400, detail="Author has not enabled crypto payments")

    status = "pending"
    verification = None
    if body.transaction_hash:
        verification = crypto_service.verify_transaction(body.transaction_hash)
        status = "completed" if verification["verified"] else "failed"

    tx = {
        "user_id": profile["id"],
        "author_id": book["author_id"],
        "book_id": body.book_id,
        "amount_usdc_cents": amount,
        "platform_fee_cents": fee,
        "author_earnings_cents": author_earnings,
        "wallet_address": body.buyer_wallet_address,
        "split_contract_address": contract["contract_address"],
        "chain_id": POLYGON_CHAIN_ID,
        "transaction_hash": body.transaction_hash,
        "transaction_data": {"token_address": USDC_CONTRACT_ADDRESS},
        "payment_status": status,
        "created_at": _now(),
    }
    if verification:
        tx["block_number"] = verification["block_number"]
        tx["gas_fee_wei"] = verification["gas_used"]
        if status == "completed":
            tx["confirmed_at"] = _now()
        else:
            tx["failed_at"] = _now()
            tx["failure_reason"] = verification["error"]

    response = supabase.table("crypto_transactions").insert(tx).execute()
    if not response.data:
        raise HTTPException(status_code=500, detail="Failed to record transaction")
    recorded = response.data[0]

    if status == "completed":
        supabase.table("purchases").insert({
            "user_id": profile["id"],
            "book_id": body.book_id,
            "amount_cents": amount,
            "commission_cents": fee,
            "platform_fee_cents": fee,
            "author_earnings_cents": author_earnings,
            "payment_method": "crypto",
            "payment_status": "completed",
            "crypto_transaction_id": recorded.get("id"),
            "purchased_at": _now(),
        }).execute()
        _notify_author(supabase, book, amount, body.transaction_hash)

    logger.info(f"Crypto payment {status} for book {body.book_id} ({format_usdc(amount)} USDC)")
    return recorded


@router.get("/transactions")
async def list_transactions(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    """Transactions where the caller is buyer or author, newest first."""
    response = (
        supabase.table("crypto_transactions")
        .select("*")
        .or_(f"user_id.eq.{profile['id']},author_id.eq.{profile['id']}")
        .order("created_at", desc=True)
        .execute()
    )
    return response.data or []


@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    tx = first_row(supabase.table("crypto_transactions").select("*").eq("id", transaction_id).limit(1).execute())
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    if profile["id"] not in (tx.get("user_id"), tx.get("author_id")) and profile.get("user_role") != "admin":
        raise HTTPException(status_code=403, detail="Not a party to this transaction")
    return tx


@router.get("/earnings")
async def get_earnings(profile: dict = Depends(require_writer), supabase=Depends(get_supabase_client)):
    txs = supabase.table("crypto_transactions").select("*").eq("author_id", profile["id"]).execute().data or []
    total = total_author_earnings(txs)
    return {
        "author_id": profile["id"],
        "total_earnings_cents": total,
        "total_earnings_usdc": format_usdc(total),
        "completed_transactions": sum(1 for tx in txs if tx.get("payment_status") == "completed"),
    }
