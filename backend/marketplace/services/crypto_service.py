import logging
from typing import List, Optional

import requests

from bookcore.constants import POLYGON_CHAIN_ID
from marketplace.config import get_settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_S = 30


class ThirdwebError(Exception):
    pass


# -----------------------------
# Thirdweb Engine: split contracts
# -----------------------------
def deploy_split_contract(author_id: str, recipients: List[str], shares_bps: List[int]) -> dict:
    """
    Deploy a revenue split contract on Polygon through Thirdweb Engine.

    Returns a dict with ``contract_address`` and ``transaction_hash``.
    """
    settings = get_settings()
    if not settings.thirdweb_secret_key:
        raise ThirdwebError("Thirdweb secret key not configured")

    payload = {
        "contractMetadata": {
            "name": f"Author Split Contract - {author_id[:8]}",
            "description": "Revenue split contract for author payments",
            "symbol": "SPLIT",
        },
        "recipients": recipients,
        "shares": shares_bps,
    }
    url = f"{settings.thirdweb_engine_url.rstrip('/')}/polygon/{POLYGON_CHAIN_ID}/deploy/split"
    logger.info(f"Deploying split contract for author {author_id}")

    response = requests.post(
        url,
        json=payload,
        headers={
            "Authorization": f"Bearer {settings.thirdweb_secret_key}",
            "Content-Type": "application/json",
        },
        timeout=REQUEST_TIMEOUT_S,
    )
    logger.info(f"Thirdweb Engine API response status: {response.status_code}")
    if not response.ok:
        raise ThirdwebError(f"Failed to deploy split contract: {response.text}")

    result = response.json()
    contract_address = result.get("contractAddress") or result.get("address")
    if not contract_address:
        raise ThirdwebError("No contract address returned from Thirdweb Engine")

    return {
        "contract_address": contract_address,
        "transaction_hash": result.get("transactionHash") or result.get("txHash"),
    }


# -----------------------------
# Polygon JSON-RPC: receipts
# -----------------------------
def get_transaction_receipt(tx_hash: str) -> Optional[dict]:
    settings = get_settings()
    response = requests.post(
        settings.polygon_rpc_url,
        json={
            "jsonrpc": "2.0",
            "method": "eth_getTransactionReceipt",
            "params": [tx_hash],
            "id": 1,
        },
        timeout=REQUEST_TIMEOUT_S,
    )
    response.raise_for_status()
    result = response.json()
    if result.get("error"):
        raise ThirdwebError(result["error"].get("message", "RPC error"))
    return result.get("result")


def verify_transaction(tx_hash: str) -> dict:
    """
    Check a transaction receipt on Polygon.

    A receipt with status ``0x1`` is verified; a missing receipt or any other
    status is reported as unverified with a reason.
    """
    logger.info(f"Verifying transaction on blockchain: {tx_hash}")
    try:
        receipt = get_transaction_receipt(tx_hash)
    except (requests.RequestException, ThirdwebError, ValueError) as e:
        logger.warning(f"Error verifying transaction {tx_hash}: {e}")
        return {"verified": False, "block_number": None, "gas_used": None, "error": str(e)}

    if not receipt:
        return {
            "verified": False,
            "block_number": None,
            "gas_used": None,
            "error": "Transaction not found or not confirmed",
        }

    success = receipt.get("status") == "0x1"
    block_number = int(receipt["blockNumber"], 16) if receipt.get("blockNumber") else None
    logger.info(f"Transaction verification result: success={success} block={block_number}")
    return {
        "verified": success,
        "block_number": block_number,
        "gas_used": receipt.get("gasUsed"),
        "error": None if success else "Transaction failed on blockchain",
    }
