from pydantic import BaseModel
from typing import Optional


class ConnectRequest(BaseModel):
    country: str = "US"


class TipRequest(BaseModel):
    author_id: str
    amount_cents: int
    book_id: Optional[str] = None
    tip_message: Optional[str] = None


class CheckoutRequest(BaseModel):
    book_id: str


class SplitContractRequest(BaseModel):
    author_wallet_address: str
    author_share: int = 90
    platform_share: int = 10


class CryptoPaymentRequest(BaseModel):
    book_id: str
    amount_cents: int
    buyer_wallet_address: str
    transaction_hash: Optional[str] = None
