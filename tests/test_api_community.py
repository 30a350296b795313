"""Endpoint tests for chat, notifications, reader reviews and social features."""

import base64
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from marketplace.services import email_service

BOOK = {
    "id": "book-1",
    "author_id": "writer-1",
    "title": "Night Train",
    "author_name": "Walt",
    "book_status": "published",
    "price_cents": 100,
}


def encoded(text):
    return base64.b64encode(text.encode()).decode()


def auth_user(email):
    return MagicMock(user=MagicMock(email=email))


class TestPublicChat:
    def test_muted_user_cannot_post(self, make_client, supabase, reader_profile):
        future = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
        supabase.set_rows("chat_mutes", [{"expires_at": future}])
        response = make_client(reader_profile).post("/api/chat/public", json={"message": "hello"})
        assert response.status_code == 403

    def test_message_is_stored_encoded(self, make_client, supabase, reader_profile):
        supabase.set_rows("public_chat_messages", [{"id": "m1", "encrypted_content": encoded("hello")}])
        response = make_client(reader_profile).post("/api/chat/public", json={"message": "hello"})

        assert response.json()["message"] == "hello"
        stored = supabase.table("public_chat_messages").insert.call_args[0][0]
        assert stored["encrypted_content"] == encoded("hello")
        assert stored["message_type"] == "text"

    def test_reader_cannot_delete_others_message(self, make_client, supabase, reader_profile):
        supabase.set_rows("public_chat_messages", [{"id": "m1", "user_id": "someone"}])
        response = make_client(reader_profile).delete("/api/chat/public/m1")
        assert response.status_code == 403

    def test_moderator_delete_is_logged(self, make_client, supabase, admin_profile):
        supabase.set_rows("public_chat_messages", [
            {"id": "m1", "user_id": "someone", "encrypted_content": encoded("buy my stuff")},
        ])
        response = make_client(admin_profile).delete("/api/chat/public/m1", params={"reason": "spam"})

        assert response.status_code == 200
        log = supabase.table("chat_moderation_log").insert.call_args[0][0]
        assert log["message_id"] == "m1"
        assert log["user_id"] == "someone"
        assert log["moderator_id"] == "admin-1"
        assert log["message_content"] == "buy my stuff"
        assert log["deletion_reason"] == "spam"

    def test_own_delete_is_not_logged(self, make_client, supabase, reader_profile):
        supabase.set_rows("public_chat_messages", [{"id": "m1", "user_id": "reader-1"}])
        assert make_client(reader_profile).delete("/api/chat/public/m1").status_code == 200
        supabase.table("chat_moderation_log").insert.assert_not_called()


class TestModeration:
    def test_mute_requires_moderator(self, make_client, reader_profile):
        response = make_client(reader_profile).post("/api/chat/mutes", json={"user_id": "x"})
        assert response.status_code == 403

    def test_mute_counts_warnings(self, make_client, supabase, admin_profile):
        supabase.set_rows("chat_warnings", [{"id": "w1"}, {"id": "w2"}])
        supabase.set_rows("chat_mutes", [{"id": "mute1"}])
        response = make_client(admin_profile).post("/api/chat/mutes", json={"user_id": "u2", "duration_minutes": 30})

        assert response.status_code == 200
        mute = supabase.table("chat_mutes").insert.call_args[0][0]
        assert mute["muted_by"] == "admin-1"
        assert mute["warning_count"] == 2
        assert mute["reason"] == "Violation of chat rules"

    def test_warning(self, make_client, supabase, admin_profile):
        supabase.set_rows("chat_warnings", [{"id": "w1"}])
        response = make_client(admin_profile).post(
            "/api/chat/warnings", json={"user_id": "u2", "reason": "Rude", "expires_in_days": 7}
        )

        assert response.status_code == 200
        warning = supabase.table("chat_warnings").insert.call_args[0][0]
        assert warning["issued_by"] == "admin-1"
        assert "expires_at" in warning


class TestPrivateChat:
    def test_message_in_existing_conversation(self, make_client, supabase, reader_profile):
        supabase.set_rows("profiles", [{"id": "writer-1"}])
        supabase.set_rows("chat_conversations", [{"id": "conv1"}])
        supabase.set_rows("chat_messages", [{"id": "pm1", "encrypted_content": encoded("hi")}])
        supabase.auth.admin.get_user_by_id.return_value = auth_user("w@example.com")
        with patch.object(email_service, "send_email") as send:
            response = make_client(reader_profile).post("/api/chat/private/writer-1", json={"message": "hi"})

        assert response.status_code == 200
        assert response.json()["message"] == "hi"
        stored = supabase.table("chat_messages").insert.call_args[0][0]
        assert stored["conversation_id"] == "conv1"
        assert stored["sender_id"] == "reader-1"
        assert stored["message_type"] == "text"
        supabase.table("chat_conversations").insert.assert_not_called()
        assert send.call_args[0][0] == "w@example.com"

    def test_first_message_starts_conversation(self, make_client, supabase, reader_profile):
        supabase.set_rows("profiles", [{"id": "writer-1"}])
        supabase.set_results("chat_conversations", [], [{"id": "conv2"}], [])
        supabase.set_rows("chat_messages", [{"id": "pm1", "encrypted_content": encoded("hi")}])
        supabase.set_rows("notification_preferences", [{"email_messages": False}])
        make_client(reader_profile).post(
            "/api/chat/private/writer-1", json={"message": "hi", "book_recommendation_id": "book-1"}
        )

        conversation = supabase.table("chat_conversations").insert.call_args[0][0]
        assert conversation["participant1_id"] == "reader-1"
        assert conversation["participant2_id"] == "writer-1"
        stored = supabase.table("chat_messages").insert.call_args[0][0]
        assert stored["conversation_id"] == "conv2"
        assert stored["message_type"] == "book_recommendation"

    def test_respects_email_preference(self, make_client, supabase, reader_profile):
        supabase.set_rows("profiles", [{"id": "writer-1"}])
        supabase.set_rows("chat_conversations", [{"id": "conv1"}])
        supabase.set_rows("chat_messages", [{"id": "pm1", "encrypted_content": ""}])
        supabase.set_rows("notification_preferences", [{"email_messages": False}])
        with patch.object(email_service, "send_email") as send:
            make_client(reader_profile).post("/api/chat/private/writer-1", json={"message": "hi"})

        send.assert_not_called()
        supabase.auth.admin.get_user_by_id.assert_not_called()

    def test_unknown_recipient(self, make_client, reader_profile):
        response = make_client(reader_profile).post("/api/chat/private/ghost", json={"message": "hi"})
        assert response.status_code == 404


class TestNotifications:
    def test_unknown_email_type(self, make_client, reader_profile):
        response = make_client(reader_profile).post(
            "/api/notifications/email", json={"user_id": "u2", "email_type": "spam"}
        )
        assert response.status_code == 400

    def test_recipient_without_address(self, make_client, supabase, reader_profile):
        supabase.auth.admin.get_user_by_id.side_effect = Exception("User not found")
        response = make_client(reader_profile).post(
            "/api/notifications/email", json={"user_id": "u2", "email_type": "welcome"}
        )
        assert response.status_code == 404

    def test_email_skipped_when_opted_out(self, make_client, supabase, reader_profile):
        supabase.auth.admin.get_user_by_id.return_value = auth_user("u2@example.com")
        supabase.set_rows("notification_preferences", [{"email_marketing": False}])
        with patch.object(email_service, "send_email") as send:
            body = make_client(reader_profile).post(
                "/api/notifications/email", json={"user_id": "u2", "email_type": "release_update"}
            ).json()

        assert body == {"success": True, "skipped": True}
        send.assert_not_called()
        supabase.table("notification_preferences").select.assert_called_once_with("email_marketing")

    def test_welcome_email(self, make_client, supabase, reader_profile):
        supabase.auth.admin.get_user_by_id.return_value = auth_user("u2@example.com")
        supabase.set_rows("profiles", [{"id": "u2", "display_name": "Bo"}])
        with patch.object(email_service, "send_email", return_value={"success": True, "id": "em_1"}) as send:
            body = make_client(reader_profile).post(
                "/api/notifications/email", json={"user_id": "u2", "email_type": "welcome"}
            ).json()

        assert body["id"] == "em_1"
        assert send.call_args[0][0] == "u2@example.com"
        assert "Bo" in send.call_args[0][2]
        supabase.auth.admin.get_user_by_id.assert_called_once_with("u2")

    def test_group_notification(self, make_client, supabase, admin_profile):
        supabase.set_rows("profiles", [{"id": "w1", "display_name": "Wes"}, {"id": "w2", "display_name": None}])
        supabase.auth.admin.list_users.return_value = [
            MagicMock(id="w1", email="w1@example.com"),
            MagicMock(id="r1", email="r1@example.com"),
        ]
        with patch.object(email_service, "send_email") as send:
            body = make_client(admin_profile).post(
                "/api/notifications/group",
                json={"role": "writer", "title": "Hi", "message": "News", "send_email": True},
            ).json()

        assert body == {"notified": 2, "emailed": 1}
        rows = supabase.table("notifications").insert.call_args[0][0]
        assert [r["user_id"] for r in rows] == ["w1", "w2"]
        assert rows[0]["type"] == "admin_announcement"
        assert rows[0]["data"] == {"userGroup": "writer", "sentBy": "admin"}
        supabase.table("profiles").eq.assert_called_once_with("user_role", "writer")
        assert send.call_args[0][0] == "w1@example.com"
        assert "Hi Wes" in send.call_args[0][2]

    def test_release_update(self, make_client, supabase, admin_profile):
        supabase.set_rows("profiles", [{"id": "u1"}])
        supabase.set_rows("notification_preferences", [{"email_marketing": False}])
        supabase.auth.admin.list_users.return_value = [MagicMock(id="u1", email="u1@example.com")]
        with patch.object(email_service, "send_email") as send:
            body = make_client(admin_profile).post(
                "/api/notifications/release",
                json={"version": "2.1", "title": "New reader", "message": "Faster pages", "link": "/changelog"},
            ).json()

        assert body == {"notified": 1, "emailed": 0}
        send.assert_not_called()
        row = supabase.table("notifications").insert.call_args[0][0][0]
        assert row["type"] == "release_update"
        assert row["data"] == {"version": "2.1", "link": "/changelog"}


class TestReviews:
    """Tests for reader reviews and book rating aggregation."""

    def test_create_updates_book_rating(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        supabase.set_rows("purchases", [{"id": "p1"}])
        supabase.set_results("reviews", [], [{"id": "rv1", "rating": 4}], [{"rating": 4}, {"rating": 5}])
        supabase.auth.admin.get_user_by_id.return_value = auth_user("writer@example.com")
        with patch.object(email_service, "send_email") as send:
            response = make_client(reader_profile).post(
                "/api/books/book-1/reviews", json={"rating": 4, "review_text": "  Gripping  "}
            )

        assert response.status_code == 200
        assert response.json()["book_rating"] == {"rating_average": 4.5, "rating_count": 2}
        row = supabase.table("reviews").insert.call_args[0][0]
        assert row["user_id"] == "reader-1"
        assert row["review_text"] == "Gripping"
        assert row["is_verified_purchase"] is True
        supabase.table("books").update.assert_called_once_with({"rating_average": 4.5, "rating_count": 2})
        assert send.call_args[0][0] == "writer@example.com"
        assert send.call_args[0][3] == "new_review"

    def test_rating_out_of_range(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        response = make_client(reader_profile).post("/api/books/book-1/reviews", json={"rating": 6})

        assert response.status_code == 400
        supabase.table("reviews").insert.assert_not_called()

    def test_second_review_conflicts(self, make_client, supabase, reader_profile):
        supabase.set_rows("books", [BOOK])
        supabase.set_rows("reviews", [{"id": "rv1"}])
        response = make_client(reader_profile).post("/api/books/book-1/reviews", json={"rating": 3})
        assert response.status_code == 409

    def test_review_of_missing_book(self, make_client, reader_profile):
        assert make_client(reader_profile).post("/api/books/nope/reviews", json={"rating": 3}).status_code == 404

    def test_list_with_summary(self, make_client, supabase):
        supabase.set_rows("reviews", [{"rating": 5}, {"rating": 5}, {"rating": 2}])
        body = make_client().get("/api/books/book-1/reviews").json()

        assert len(body["reviews"]) == 3
        assert body["summary"] == {"rating_average": 4.0, "rating_count": 3}
        assert body["distribution"] == {"1": 0, "2": 1, "3": 0, "4": 0, "5": 2}

    def test_delete_own_review(self, make_client, supabase, reader_profile):
        supabase.set_results("reviews", [{"id": "rv1"}], [{"rating": 3}])
        body = make_client(reader_profile).delete("/api/books/book-1/reviews/rv1").json()

        assert body["book_rating"] == {"rating_average": 3.0, "rating_count": 1}
        supabase.table("reviews").eq.assert_any_call("user_id", "reader-1")

    def test_delete_missing_review(self, make_client, reader_profile):
        assert make_client(reader_profile).delete("/api/books/book-1/reviews/rv9").status_code == 404


class TestSocial:
    def test_favorite_author_toggle(self, make_client, supabase, reader_profile):
        client = make_client(reader_profile)
        assert client.post("/api/social/favorite-authors/writer-1").json()["favorite"] is True
        supabase.table("favorite_authors").insert.assert_called_once_with(
            {"user_id": "reader-1", "author_id": "writer-1"}
        )

        supabase.set_rows("favorite_authors", [{"id": "fa1"}])
        assert client.post("/api/social/favorite-authors/writer-1").json()["favorite"] is False

    def test_cannot_favorite_yourself(self, make_client, reader_profile):
        assert make_client(reader_profile).post("/api/social/favorite-authors/reader-1").status_code == 400

    def test_friend_request(self, make_client, supabase, reader_profile):
        supabase.set_results("friends", [], [{"id": "f1", "status": "pending"}])
        response = make_client(reader_profile).post("/api/social/friends", json={"addressee_id": "u2"})

        assert response.status_code == 200
        assert supabase.table("friends").insert.call_args[0][0] == {
            "requester_id": "reader-1", "addressee_id": "u2", "status": "pending",
        }

    def test_existing_friend_request_conflicts(self, make_client, supabase, reader_profile):
        supabase.set_rows("friends", [{"id": "f1"}])
        response = make_client(reader_profile).post("/api/social/friends", json={"addressee_id": "u2"})
        assert response.status_code == 409

    def test_only_addressee_accepts(self, make_client, supabase, reader_profile):
        supabase.set_rows("friends", [{"id": "f1", "requester_id": "reader-1", "addressee_id": "u2", "status": "pending"}])
        assert make_client(reader_profile).post("/api/social/friends/f1/accept").status_code == 404

    def test_accept(self, make_client, supabase, reader_profile):
        supabase.set_rows("friends", [{"id": "f1", "requester_id": "u2", "addressee_id": "reader-1", "status": "pending"}])
        response = make_client(reader_profile).post("/api/social/friends/f1/accept")

        assert response.status_code == 200
        assert supabase.table("friends").update.call_args[0][0]["status"] == "accepted"

    def test_support_request(self, make_client, supabase, reader_profile):
        supabase.set_rows("support_requests", [{"id": "sr1"}])
        response = make_client(reader_profile).post(
            "/api/social/support", json={"subject": "Refund", "description": "Wrong book", "priority": "high"}
        )

        assert response.status_code == 200
        row = supabase.table("support_requests").insert.call_args[0][0]
        assert row["email"] == "reader@example.com"
        assert row["status"] == "open"

    def test_support_priority_is_validated(self, make_client, reader_profile):
        response = make_client(reader_profile).post(
            "/api/social/support", json={"subject": "Refund", "description": "Wrong book", "priority": "asap"}
        )
        assert response.status_code == 400

    def test_resolving_support_request(self, make_client, supabase, admin_profile):
        supabase.set_rows("support_requests", [{"id": "sr1", "status": "resolved"}])
        response = make_client(admin_profile).patch(
            "/api/social/support/sr1", json={"status": "resolved", "resolution_notes": "Refunded"}
        )

        assert response.status_code == 200
        update = supabase.table("support_requests").update.call_args[0][0]
        assert update["resolved_by"] == "admin-1"
        assert update["resolution_notes"] == "Refunded"
        assert "resolved_at" in update

    def test_support_queue_is_admin_only(self, make_client, reader_profile):
        assert make_client(reader_profile).get("/api/social/support").status_code == 403
