import re
from typing import Iterable, List

from bookcore.constants import (
    AUTHOR_SHARE_PCT,
    MIN_TIP_CENTS,
    PLATFORM_FEE_RATE,
    PLATFORM_SHARE_PCT,
)

WALLET_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def _round_half_up(x: float) -> int:
    return int(x + 0.5)


def split_amount(amount_cents: int) -> tuple:
    """Return (platform_fee_cents, author_earnings_cents) for a payment."""
    if amount_cents is None or amount_cents < 0:
        raise ValueError("Amount must be a non-negative number of cents")
    fee = _round_half_up(amount_cents * PLATFORM_FEE_RATE)
    return fee, amount_cents - fee


def validate_tip_amount(amount_cents: int) -> int:
    if not amount_cents or amount_cents < MIN_TIP_CENTS:
        raise ValueError("Minimum tip amount is $1.00")
    return int(amount_cents)


def format_usdc(amount_cents: int) -> str:
    return f"{amount_cents / 100:.2f}"


def format_usd(amount_cents: int) -> str:
    return f"${amount_cents / 100:.2f}"


def is_valid_wallet_address(address: str) -> bool:
    return bool(address) and WALLET_ADDRESS_RE.match(address) is not None


def split_shares(author_share: int = AUTHOR_SHARE_PCT, platform_share: int = PLATFORM_SHARE_PCT) -> List[int]:
    """Convert percentage shares into basis points for a split contract."""
    if author_share < 0 or platform_share < 0:
        raise ValueError("Shares must be non-negative")
    if author_share + platform_share != 100:
        raise ValueError("Author and platform shares must add up to 100")
    return [author_share * 100, platform_share * 100]


def total_author_earnings(transactions: Iterable[dict]) -> int:
    return sum(
        tx.get("author_earnings_cents") or 0
        for tx in transactions
        if tx.get("payment_status") == "completed"
    )


def is_free_book(price_cents) -> bool:
    return not price_cents


def validate_crypto_amount(amount_cents: int, price_cents) -> int:
    """A crypto payment must cover the book price."""
    if is_free_book(price_cents):
        raise ValueError("Free books cannot be purchased")
    if amount_cents is None or amount_cents < price_cents:
        raise ValueError(f"Payment of {format_usdc(amount_cents or 0)} USDC is below the book price")
    return int(amount_cents)
