import logging
from html import escape

import requests

from marketplace.config import get_settings

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"

EMAIL_TYPES = [
    "welcome",
    "purchase_confirmation",
    "new_review",
    "book_published",
    "upgrade_confirmation",
    "comment_notification",
    "gift_notification",
    "message_notification",
    "new_book_from_favorite",
    "new_story_from_favorite",
    "early_user_special",
    "release_update",
    "group_notification",
]


# Opt-out columns of notification_preferences per email type. Types that are
# not listed are transactional and always sent.
EMAIL_PREFERENCE_COLUMNS = {
    "new_review": "email_book_reviews",
    "comment_notification": "email_comments",
    "gift_notification": "email_gifts",
    "message_notification": "email_messages",
    "new_book_from_favorite": "email_new_books_from_favorites",
    "new_story_from_favorite": "email_new_stories_from_favorites",
    "release_update": "email_marketing",
    "group_notification": "email_marketing",
    "early_user_special": "email_marketing",
}


class EmailError(Exception):
    pass


def send_email(to: str, subject: str, html: str, email_type: str = "") -> dict:
    settings = get_settings()
    if not settings.resend_api_key:
        raise EmailError("RESEND_API_KEY not configured")
    if not to or not subject or not html:
        raise EmailError("Missing required email fields: to, subject, or html")

    response = requests.post(
        RESEND_URL,
        json={"from": settings.email_from, "to": [to], "subject": subject, "html": html},
        headers={"Authorization": f"Bearer {settings.resend_api_key}"},
        timeout=30,
    )
    if not response.ok:
        raise EmailError(f"Resend API error: {response.status_code} - {response.text}")

    result = response.json()
    logger.info(f"Email sent successfully: {email_type} to {to}")
    return {"success": True, "id": result.get("id")}


def notification_allowed(supabase, user_id: str, email_type: str) -> bool:
    """Users are opted in unless their preferences row says otherwise."""
    column = EMAIL_PREFERENCE_COLUMNS.get(email_type)
    if column is None:
        return True
    try:
        resp = (
            supabase.table("notification_preferences")
            .select(column)
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
    except Exception as e:
        logger.warning(f"Error checking notification preference for {user_id}: {e}")
        return True

    if not resp.data:
        return True
    value = resp.data[0].get(column)
    return True if value is None else bool(value)


def resolve_email(supabase, user_id: str):
    """Address of an auth user; profiles carry no email column."""
    try:
        res = supabase.auth.admin.get_user_by_id(user_id)
    except Exception as e:
        logger.warning(f"Could not look up email for {user_id}: {e}")
        return None
    user = res.user if res else None
    return getattr(user, "email", None) if user else None


def user_emails(supabase) -> dict:
    """Map of auth user id to email address."""
    try:
        users = supabase.auth.admin.list_users()
    except Exception as e:
        logger.warning(f"Could not list auth users: {e}")
        return {}
    return {u.id: u.email for u in users or [] if getattr(u, "email", None)}


# -----------------------------
# Templates
# -----------------------------
def _layout(heading: str, body: str, color: str = "#dc2626") -> str:
    return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
  <h1 style="color: {color}; font-size: 24px;">{heading}</h1>
  <div style="background: #f8f9fa; padding: 24px; border-radius: 10px; color: #555; line-height: 1.6;">
    {body}
  </div>
  <p style="color: #999; font-size: 12px; margin-top: 24px;">Million Dollar eBooks</p>
</div>"""


def welcome(display_name: str, user_role: str) -> dict:
    name = escape(display_name or "there")
    if user_role == "writer":
        perks = ("Publish unlimited books and stories", "Earn 90% of every sale",
                 "Access to advanced analytics", "Daily story competition")
    else:
        perks = ("Books for just $1 each", "Daily stories from new voices",
                 "Reading streaks and achievements", "Chat with authors")
    items = "".join(f"<li>{p}</li>" for p in perks)
    return {
        "subject": f"Welcome to Million Dollar eBooks, {display_name}!",
        "html": _layout("Welcome to Million Dollar eBooks!",
                        f"<p>Hello {name}! Your {escape(user_role)} journey begins now.</p><ul>{items}</ul>"),
    }


def purchase_confirmation(book_title: str, author_name: str, amount: str) -> dict:
    return {
        "subject": f"Your purchase: {book_title}",
        "html": _layout("Thanks for your purchase!",
                        f"<p>You bought <strong>{escape(book_title)}</strong> by {escape(author_name)} "
                        f"for {escape(amount)}. It is now in your library.</p>"),
    }


def book_published(book_title: str) -> dict:
    return {
        "subject": f"Your book \"{book_title}\" is live!",
        "html": _layout("Your book is published",
                        f"<p><strong>{escape(book_title)}</strong> is now available to readers.</p>"),
    }


def message_notification(sender_name: str, site_url: str) -> dict:
    return {
        "subject": f"New message from {sender_name}",
        "html": _layout("You have a new message",
                        f"<p>{escape(sender_name)} sent you a private message.</p>"
                        f"<p><a href=\"{site_url}/chat\">Open chat</a></p>"),
    }


def gift_notification(sender_name: str, book_title: str, message: str = "") -> dict:
    note = f"<blockquote>{escape(message)}</blockquote>" if message else ""
    return {
        "subject": f"{sender_name} sent you a book!",
        "html": _layout("You received a gift",
                        f"<p>{escape(sender_name)} gifted you <strong>{escape(book_title)}</strong>.</p>{note}"),
    }


def generic(title: str, message: str) -> dict:
    return {"subject": title, "html": _layout(escape(title), f"<p>{escape(message)}</p>")}
