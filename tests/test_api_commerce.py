"""Endpoint tests for Stripe checkout, the Stripe webhook and USDC payments."""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock, patch

from marketplace.services import crypto_service, email_service, stripe_service

WALLET = "0x" + "a" * 40
WEBHOOK_SECRET = "whsec_test"

BOOK = {
    "id": "book-1",
    "author_id": "writer-1",
    "title": "Night Train",
    "author_name": "Walt",
    "book_status": "published",
    "price_cents": 100,
}


def signed(payload: str, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_completed(kind: str) -> str:
    return json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "object": "checkout.session",
            "payment_intent": "pi_1",
            "metadata": {"type": kind},
        }},
    })


class TestConnect:
    def test_status_marks_verified(self, make_client, supabase, writer_profile):
        profile = {**writer_profile, "stripe_connect_account_id": "acct_1"}
        status = {"onboarding_completed": True, "payouts_enabled": True}
        with patch.object(stripe_service, "get_account_status", return_value=status):
            body = make_client(profile).get("/api/payments/connect/status").json()

        assert body["connected"] is True
        update = supabase.table("profiles").update.call_args[0][0]
        assert update["stripe_onboarding_completed"] is True
        assert update["stripe_payouts_enabled"] is True
        assert update["is_verified"] is True

    def test_status_without_account(self, make_client, writer_profile):
        with patch.object(stripe_service, "get_account_status") as status:
            body = make_client(writer_profile).get("/api/payments/connect/status").json()
        assert body["connected"] is False
        status.assert_not_called()

    def test_connect_stores_account(self, make_client, supabase, writer_profile):
        with patch.object(stripe_service, "create_connect_account", return_value=MagicMock(id="acct_9")), \
                patch.object(stripe_service, "create_onboarding_link", return_value="https://connect.test"):
            body = make_client(writer_profile).post("/api/payments/connect", json={}).json()

        assert body == {"account_id": "acct_9", "url": "https://connect.test"}
        assert supabase.table("profiles").update.call_args[0][0]["stripe_connect_account_id"] == "acct_9"


class TestTips:
    def test_below_minimum(self, make_client, reader_profile):
        response = make_client(reader_profile).post(
            "/api/payments/tips", json={"author_id": "writer-1", "amount_cents": 50}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Minimum tip amount is $1.00"

    def test_author_without_stripe(self, make_client, supabase, reader_profile):
        supabase.set_rows("profiles", [{"id": "writer-1"}])
        response = make_client(reader_profile).post(
            "/api/payments/tips", json={"author_id": "writer-1", "amount_cents": 500}
        )
        assert response.status_code == 400

    def test_checkout(self, make_client, supabase, reader_profile):
        supabase.set_rows("profiles", [{"id": "writer-1", "stripe_connect_account_id": "acct_1", "display_name": "Walt"}])
        session = MagicMock(id="cs_1", url="https://checkout.test/cs_1")
        with patch.object(stripe_service, "create_checkout_session", return_value=session) as create:
            response = make_client(reader_profile).post(
                "/api/payments/tips",
                json={"author_id": "writer-1", "amount_cents": 500, "tip_message": "Loved it"},
            )

        assert response.json() == {"url": "https://checkout.test/cs_1", "session_id": "cs_1"}
        assert create.call_args[1]["application_fee_cents"] == 50
        assert create.call_args[1]["destination_account"] == "acct_1"
        tip = supabase.table("tips").insert.call_args[0][0]
        assert tip["author_earnings_cents"] == 450
        assert tip["tip_message"] == "Loved it"
        assert tip["stripe_payment_intent_id"] == "cs_1"
        assert tip["payment_status"] == "pending"

    def test_stripe_failure_is_bad_gateway(self, make_client, supabase, reader_profile):
        supabase.set_rows("profiles", [{"id": "writer-1", "stripe_connect_account_id": "acct_1"}])
        error = stripe_service.StripeServiceError("stripe down")
        with patch.object(stripe_service, "create_checkout_session", side_effect=error):
            response = make_client(reader_profile).post(
                "/api/payments/tips", json={"author_id": "writer-1", "amount_cents": 500}
            )
        assert response.status_code == 502


class TestBookCheckout:
    def test_priced_book(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [{**BOOK, "price_cents": 299}])
        supabase.set_rows("profiles", [{"stripe_connect_account_id": "acct_1"}])
        session = MagicMock(id="cs_2", url="https://checkout.test/cs_2")
        with patch.object(stripe_service, "create_checkout_session", return_value=session) as create:
            response = make_client(reader_profile).post("/api/payments/checkout", json={"book_id": "book-1"})

        assert response.status_code == 200
        assert create.call_args[1]["amount_cents"] == 299
        purchase = supabase.table("purchases").insert.call_args[0][0]
        assert purchase["user_id"] == "reader-1"
        assert purchase["amount_cents"] == 299
        assert purchase["commission_cents"] == 30
        assert purchase["stripe_payment_intent_id"] == "cs_2"
        assert purchase["stripe_connect_account_id"] == "acct_1"

    def test_free_book_is_rejected(self, make_client, supabase, reader_profile):
        client = make_client(reader_profile)
        with patch.object(stripe_service, "create_checkout_session") as create:
            for price in (None, 0):
                supabase.set_rows("books", [{**BOOK, "price_cents": price}])
                response = client.post("/api/payments/checkout", json={"book_id": "book-1"})
                assert response.status_code == 400
        create.assert_not_called()
        supabase.table("purchases").insert.assert_not_called()

    def test_draft_book_is_not_sold(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [{**BOOK, "book_status": "draft"}])
        response = make_client(reader_profile).post("/api/payments/checkout", json={"book_id": "book-1"})
        assert response.status_code == 404

    def test_already_owned(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        supabase.set_rows("purchases", [{"id": "p1"}])
        response = make_client(reader_profile).post("/api/payments/checkout", json={"book_id": "book-1"})
        assert response.status_code == 409


class TestWebhook:
    """The webhook is verified against a real Stripe-Signature header."""

    def post(self, client, payload, header):
        return client.post(
            "/api/payments/webhook",
            content=payload.encode(),
            headers={"stripe-signature": header, "content-type": "application/json"},
        )

    def test_requires_signature(self, make_client):
        assert make_client().post("/api/payments/webhook", content=b"{}").status_code == 400

    def test_signed_event_completes_tip(self, make_client, supabase):
        payload = checkout_completed("tip")
        settings = MagicMock(stripe_webhook_secret=WEBHOOK_SECRET)
        with patch.object(stripe_service, "get_settings", return_value=settings):
            response = self.post(make_client(), payload, signed(payload))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        tips = supabase.table("tips")
        tips.update.assert_called_once_with({"payment_status": "completed", "stripe_payment_intent_id": "pi_1"})
        tips.eq.assert_called_with("stripe_payment_intent_id", "cs_1")

    def test_tampered_payload_is_rejected(self, make_client, supabase):
        payload = checkout_completed("tip")
        header = signed(payload)
        settings = MagicMock(stripe_webhook_secret=WEBHOOK_SECRET)
        with patch.object(stripe_service, "get_settings", return_value=settings):
            response = self.post(make_client(), payload.replace("cs_1", "cs_2"), header)

        assert response.status_code == 400
        supabase.table("tips").update.assert_not_called()

    def test_stale_signature_is_rejected(self, make_client, supabase):
        payload = checkout_completed("tip")
        settings = MagicMock(stripe_webhook_secret=WEBHOOK_SECRET)
        with patch.object(stripe_service, "get_settings", return_value=settings):
            response = self.post(make_client(), payload, signed(payload, timestamp=int(time.time()) - 3600))
        assert response.status_code == 400

    def test_signed_event_completes_purchase(self, make_client, supabase):
        payload = checkout_completed("purchase")
        supabase.set_rows("purchases", [{"user_id": "reader-1", "book_id": "book-1", "amount_cents": 100}])
        supabase.set_rows("books", [BOOK])
        supabase.auth.admin.get_user_by_id.return_value = MagicMock(user=MagicMock(email="reader@example.com"))
        settings = MagicMock(stripe_webhook_secret=WEBHOOK_SECRET)
        with patch.object(stripe_service, "get_settings", return_value=settings), \
                patch.object(email_service, "send_email") as send:
            response = self.post(make_client(), payload, signed(payload))

        assert response.status_code == 200
        update = supabase.table("purchases").update.call_args[0][0]
        assert update["payment_status"] == "completed"
        assert update["stripe_payment_intent_id"] == "pi_1"
        supabase.table("purchases").eq.assert_called_with("stripe_payment_intent_id", "cs_1")
        supabase.auth.admin.get_user_by_id.assert_called_once_with("reader-1")
        assert send.call_args[0][0] == "reader@example.com"


class TestCrypto:
    """Tests for USDC payments and split contracts."""

    def pay(self, client, **overrides):
        body = {
            "book_id": "book-1",
            "amount_cents": 100,
            "buyer_wallet_address": WALLET,
            "transaction_hash": "0xhash",
            **overrides,
        }
        return client.post("/api/crypto/payments", json=body)

    def test_existing_contract_is_returned(self, make_client, supabase, writer_profile):
        supabase.set_rows("split_contracts", [{"id": "sc1", "contract_address": "0xsplit"}])
        with patch.object(crypto_service, "deploy_split_contract") as deploy:
            body = make_client(writer_profile).post(
                "/api/crypto/split-contract", json={"author_wallet_address": WALLET}
            ).json()

        deploy.assert_not_called()
        assert body["contract"]["contract_address"] == "0xsplit"

    def test_deploys_new_contract(self, make_client, supabase, writer_profile):
        supabase.set_results("split_contracts", [], [{"id": "sc1", "contract_address": "0xnew"}])
        deployed = {"contract_address": "0xnew", "transaction_hash": "0xtx"}
        with patch.object(crypto_service, "deploy_split_contract", return_value=deployed) as deploy:
            response = make_client(writer_profile).post(
                "/api/crypto/split-contract", json={"author_wallet_address": WALLET}
            )

        assert response.status_code == 200
        assert deploy.call_args[0][2] == [9000, 1000]
        contract = supabase.table("split_contracts").insert.call_args[0][0]
        assert contract["author_share_percentage"] == 90
        assert contract["platform_share_percentage"] == 10
        profile = supabase.table("profiles").update.call_args[0][0]
        assert profile["split_contract_address"] == "0xnew"
        assert profile["wallet_address"] == WALLET

    def test_invalid_wallet(self, make_client, writer_profile):
        response = make_client(writer_profile).post(
            "/api/crypto/split-contract", json={"author_wallet_address": "0x123"}
        )
        assert response.status_code == 400

    def test_verified_payment_creates_purchase(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        supabase.set_rows("split_contracts", [{"contract_address": "0xsplit"}])
        supabase.set_results("crypto_transactions", [], [{"id": "tx1", "payment_status": "completed"}])
        verification = {"verified": True, "block_number": 26, "gas_used": "0x1", "error": None}
        with patch.object(crypto_service, "verify_transaction", return_value=verification):
            response = self.pay(make_client(reader_profile))

        assert response.status_code == 200
        tx = supabase.table("crypto_transactions").insert.call_args[0][0]
        assert tx["user_id"] == "reader-1"
        assert tx["payment_status"] == "completed"
        assert tx["amount_usdc_cents"] == 100
        assert tx["platform_fee_cents"] == 10
        assert tx["author_earnings_cents"] == 90
        assert tx["block_number"] == 26
        assert "confirmed_at" in tx
        purchase = supabase.table("purchases").insert.call_args[0][0]
        assert purchase["payment_method"] == "crypto"
        assert purchase["crypto_transaction_id"] == "tx1"
        notice = supabase.table("notifications").insert.call_args[0][0]
        assert notice["type"] == "crypto_payment_received"
        assert notice["user_id"] == "writer-1"

    def test_failed_verification(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        supabase.set_rows("split_contracts", [{"contract_address": "0xsplit"}])
        supabase.set_results("crypto_transactions", [], [{"id": "tx1", "payment_status": "failed"}])
        verification = {"verified": False, "block_number": None, "gas_used": None, "error": "reverted"}
        with patch.object(crypto_service, "verify_transaction", return_value=verification):
            self.pay(make_client(reader_profile))

        tx = supabase.table("crypto_transactions").insert.call_args[0][0]
        assert tx["payment_status"] == "failed"
        assert tx["failure_reason"] == "reverted"
        assert "failed_at" in tx
        supabase.table("purchases").insert.assert_not_called()

    def test_duplicate_transaction_hash(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        supabase.set_rows("split_contracts", [{"contract_address": "0xsplit"}])
        supabase.set_rows("crypto_transactions", [{"id": "tx0"}])
        with patch.object(crypto_service, "verify_transaction") as verify:
            response = self.pay(make_client(reader_profile))

        assert response.status_code == 409
        verify.assert_not_called()
        supabase.table("crypto_transactions").eq.assert_called_with("transaction_hash", "0xhash")
        supabase.table("crypto_transactions").insert.assert_not_called()

    def test_underpayment_is_rejected(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [{**BOOK, "price_cents": 499}])
        supabase.set_rows("split_contracts", [{"contract_address": "0xsplit"}])
        with patch.object(crypto_service, "verify_transaction") as verify:
            response = self.pay(make_client(reader_profile), amount_cents=100)

        assert response.status_code == 400
        assert "below the book price" in response.json()["detail"]
        verify.assert_not_called()
        supabase.table("crypto_transactions").insert.assert_not_called()

    def test_free_book_cannot_be_bought(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [{**BOOK, "price_cents": None}])
        assert self.pay(make_client(reader_profile)).status_code == 400

    def test_pending_without_hash(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        supabase.set_rows("split_contracts", [{"contract_address": "0xsplit"}])
        supabase.set_rows("crypto_transactions", [{"id": "tx1", "payment_status": "pending"}])
        with patch.object(crypto_service, "verify_transaction") as verify:
            response = self.pay(make_client(reader_profile), transaction_hash=None)

        assert response.status_code == 200
        verify.assert_not_called()
        assert supabase.table("crypto_transactions").insert.call_args[0][0]["payment_status"] == "pending"

    def test_earnings(self, make_client, supabase, writer_profile):
        supabase.set_rows("crypto_transactions", [
            {"author_earnings_cents": 90, "payment_status": "completed"},
            {"author_earnings_cents": 90, "payment_status": "pending"},
        ])
        body = make_client(writer_profile).get("/api/crypto/earnings").json()
        assert body["total_earnings_cents"] == 90
        assert body["total_earnings_usdc"] == "0.90"
