import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from bookcore.constants import USER_ROLES
from marketplace.auth import get_profile, require_admin
from marketplace.config import get_settings
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.notification import EmailRequest, GroupNotification, ReleaseNotification
from marketplace.services import email_service
from marketplace.services.email_service import EmailError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


def _render(email_type: str, profile: dict, data: dict) -> dict:
    if email_type == "welcome":
        return email_service.welcome(profile.get("display_name") or "", profile.get("user_role") or "reader")
    if email_type == "purchase_confirmation":
        return email_service.purchase_confirmation(
            data.get("book_title", ""), data.get("author_name", ""), data.get("amount", "")
        )
    if email_type == "book_published":
        return email_service.book_published(data.get("book_title", ""))
    if email_type == "gift_notification":
        return email_service.gift_notification(
            data.get("sender_name", ""), data.get("book_title", ""), data.get("message", "")
        )
    if email_type == "message_notification":
        return email_service.message_notification(data.get("sender_name", ""), get_settings().site_url)
    return email_service.generic(data.get("title") or "Million Dollar eBooks", data.get("message") or "")


def insert_notifications(supabase, user_ids: list, title: str, message: str, kind: str, data=None) -> int:
    if not user_ids:
        return 0
    now = datetime.now(timezone.utc).isoformat()
    rows = [
        {
            "user_id": uid,
            "title": title,
            "message": message,
            "type": kind,
            "data": data or {},
            "is_read": False,
            "created_at": now,
        }
        for uid in user_ids
    ]
    supabase.table("notifications").insert(rows).execute()
    return len(rows)


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    query = supabase.table("notifications").select("*").eq("user_id", profile["id"])
    if unread_only:
        query = query.eq("is_read", False)
    return query.order("created_at", desc=True).limit(limit).execute().data or []


@router.post("/read-all")
async def mark_all_read(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    response = (
        supabase.table("notifications")
        .update({"is_read": True})
        .eq("user_id", profile["id"])
        .eq("is_read", False)
        .execute()
    )
    return {"updated": len(response.data or [])}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    response = (
        supabase.table("notifications")
        .update({"is_read": True})
        .eq("id", notification_id)
        .eq("user_id", profile["id"])
        .execute()
    )
    if not response.data:
        raise HTTPException(status_code=404, detail="Notification not found")
    return response.data[0]


@router.post("/email")
async def send_templated_email(
    body: EmailRequest,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """Send a templated email to a user unless their preferences opt out."""
    if body.email_type not in email_service.EMAIL_TYPES:
        raise HTTPException(status_code=400, detail=f"Unknown email type: {body.email_type}")

    address = email_service.resolve_email(supabase, body.user_id)
    if not address:
        raise HTTPException(status_code=404, detail="Recipient email not found")

    if not email_service.notification_allowed(supabase, body.user_id, body.email_type):
        logger.info(f"Email {body.email_type} skipped for {body.user_id}: disabled in preferences")
        return {"success": True, "skipped": True}

    recipient = first_row(supabase.table("profiles").select("*").eq("id", body.user_id).limit(1).execute()) or {}
    template = _render(body.email_type, recipient, body.data)
    try:
        result = email_service.send_email(address, template["subject"], template["html"], body.email_type)
    except EmailError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {**result, "skipped": False}


def _fan_out_email(supabase, recipients: list, email_type: str, title: str, message: str) -> int:
    addresses = email_service.user_emails(supabase)
    sent = 0
    for recipient in recipients:
        address = addresses.get(recipient["id"])
        if not address:
            continue
        if not email_service.notification_allowed(supabase, recipient["id"], email_type):
            continue
        name = recipient.get("display_name") or address.split("@")[0]
        template = email_service.generic(title, f"Hi {name}, {message}")
        try:
            email_service.send_email(address, template["subject"], template["html"], email_type)
            sent += 1
        except EmailError as e:
            logger.warning(f"Email to {recipient['id']} failed: {e}")
    return sent


@router.post("/group")
async def notify_group(
    body: GroupNotification,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    if body.role not in USER_ROLES + ["all"]:
        raise HTTPException(status_code=400, detail=f"Unknown role: {body.role}")

    query = supabase.table("profiles").select("id, display_name")
    if body.role != "all":
        query = query.eq("user_role", body.role)
    recipients = query.execute().data or []

    created = insert_notifications(
        supabase, [r["id"] for r in recipients], body.title, body.message,
        "admin_announcement", {"userGroup": body.role, "sentBy": "admin"},
    )
    emailed = (
        _fan_out_email(supabase, recipients, "group_notification", body.title, body.message)
        if body.send_email else 0
    )

    logger.info(f"Group notification to {body.role}: {created} in-app, {emailed} emails")
    return {"notified": created, "emailed": emailed}


@router.post("/release")
async def notify_release(
    body: ReleaseNotification,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    recipients = supabase.table("profiles").select("id, display_name").execute().data or []
    title = f"{body.title} (v{body.version})"
    created = insert_notifications(
        supabase, [r["id"] for r in recipients], title, body.message,
        "release_update", {"version": body.version, "link": body.link},
    )
    emailed = _fan_out_email(supabase, recipients, "release_update", title, body.message)

    logger.info(f"Release {body.version} announced: {created} in-app, {emailed} emails")
    return {"notified": created, "emailed": emailed}
