import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from bookcore.chat import can_delete_message, decode_message, encode_message, is_muted, needs_moderation_log
from marketplace.auth import get_profile, require_moderator
from marketplace.config import get_settings
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.chat import MessageCreate, MuteCreate, WarningCreate
from marketplace.services import email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _active_mutes(supabase, user_id: str) -> list:
    return supabase.table("chat_mutes").select("*").eq("user_id", user_id).execute().data or []


def _log_deletion(supabase, moderator_id: str, message: dict, reason: Optional[str]) -> None:
    try:
        supabase.table("chat_moderation_log").insert({
            "message_id": message["id"],
            "user_id": message["user_id"],
            "moderator_id": moderator_id,
            "message_content": decode_message(message.get("encrypted_content") or ""),
            "deletion_reason": reason,
            "created_at": _now(),
        }).execute()
    except Exception as e:
        logger.warning(f"Failed to log deletion of message {message['id']}: {e}")


def _decoded(rows: list) -> list:
    return [{**row, "message": decode_message(row.get("encrypted_content") or "")} for row in rows]


# -----------------------------
# Public chat
# -----------------------------
@router.get("/public")
async def list_public_messages(
    limit: int = Query(50, ge=1, le=200),
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    response = (
        supabase.table("public_chat_messages")
        .select("*, profiles(display_name, user_role)")
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return list(reversed(_decoded(response.data or [])))


@router.post("/public")
async def post_public_message(
    body: MessageCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    text = body.message.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    if is_muted(_active_mutes(supabase, profile["id"]), datetime.now(timezone.utc)):
        raise HTTPException(status_code=403, detail="You are muted and cannot send messages")

    response = supabase.table("public_chat_messages").insert({
        "user_id": profile["id"],
        "encrypted_content": encode_message(text),
        "message_type": "text",
        "created_at": _now(),
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to send message")
    return _decoded(response.data)[0]


@router.delete("/public/{message_id}")
async def delete_public_message(
    message_id: str,
    reason: Optional[str] = None,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    message = first_row(
        supabase.table("public_chat_messages").select("*").eq("id", message_id).limit(1).execute()
    )
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")

    role = profile.get("user_role")
    if not can_delete_message(profile["id"], role, message["user_id"]):
        raise HTTPException(status_code=403, detail="You can only delete your own messages")

    if needs_moderation_log(profile["id"], role, message["user_id"]):
        _log_deletion(supabase, profile["id"], message, reason)
    supabase.table("public_chat_messages").delete().eq("id", message_id).execute()

    return {"status": "deleted"}


# -----------------------------
# Moderation
# -----------------------------
@router.post("/warnings")
async def warn_user(
    body: WarningCreate,
    profile: dict = Depends(require_moderator),
    supabase=Depends(get_supabase_client),
):
    now = datetime.now(timezone.utc)
    row = {
        "user_id": body.user_id,
        "issued_by": profile["id"],
        "reason": body.reason,
        "message_id": body.message_id,
        "created_at": now.isoformat(),
    }
    if body.expires_in_days:
        row["expires_at"] = (now + timedelta(days=body.expires_in_days)).isoformat()

    response = supabase.table("chat_warnings").insert(row).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to issue warning")
    logger.info(f"Moderator {profile['id']} warned {body.user_id}")
    return response.data[0]


@router.post("/mutes")
async def mute_user(
    body: MuteCreate,
    profile: dict = Depends(require_moderator),
    supabase=Depends(get_supabase_client),
):
    if body.duration_minutes <= 0:
        raise HTTPException(status_code=400, detail="Mute duration must be positive")

    warnings = supabase.table("chat_warnings").select("id").eq("user_id", body.user_id).execute().data or []
    now = datetime.now(timezone.utc)
    response = supabase.table("chat_mutes").insert({
        "user_id": body.user_id,
        "muted_by": profile["id"],
        "reason": body.reason,
        "warning_count": len(warnings),
        "expires_at": (now + timedelta(minutes=body.duration_minutes)).isoformat(),
        "created_at": now.isoformat(),
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to mute user")
    logger.info(f"Moderator {profile['id']} muted {body.user_id} for {body.duration_minutes} minutes")
    return response.data[0]


@router.get("/moderation-log")
async def moderation_log(
    limit: int = Query(100, ge=1, le=500),
    profile: dict = Depends(require_moderator),
    supabase=Depends(get_supabase_client),
):
    response = (
        supabase.table("chat_moderation_log")
        .select("*")
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return response.data or []


@router.get("/mute-status")
async def mute_status(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    mutes = _active_mutes(supabase, profile["id"])
    return {"muted": is_muted(mutes, datetime.now(timezone.utc))}


# -----------------------------
# Private messages
# -----------------------------
def _find_conversation(supabase, me: str, other_id: str):
    pair = (
        f"and(participant1_id.eq.{me},participant2_id.eq.{other_id}),"
        f"and(participant1_id.eq.{other_id},participant2_id.eq.{me})"
    )
    return first_row(supabase.table("chat_conversations").select("*").or_(pair).limit(1).execute())


@router.get("/private")
async def list_conversations(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    me = profile["id"]
    response = (
        supabase.table("chat_conversations")
        .select("*")
        .or_(f"participant1_id.eq.{me},participant2_id.eq.{me}")
        .order("last_message_at", desc=True)
        .execute()
    )
    return response.data or []


@router.get("/private/{other_id}")
async def get_conversation(
    other_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    conversation = _find_conversation(supabase, profile["id"], other_id)
    if not conversation:
        return []
    response = (
        supabase.table("chat_messages")
        .select("*")
        .eq("conversation_id", conversation["id"])
        .order("created_at")
        .execute()
    )
    return _decoded(response.data or [])


@router.post("/private/{other_id}")
async def send_private_message(
    other_id: str,
    body: MessageCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    text = body.message.strip()
    if not text:
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    if other_id == profile["id"]:
        raise HTTPException(status_code=400, detail="Cannot message yourself")

    recipient = first_row(supabase.table("profiles").select("*").eq("id", other_id).limit(1).execute())
    if not recipient:
        raise HTTPException(status_code=404, detail="Recipient not found")

    conversation = _find_conversation(supabase, profile["id"], other_id)
    if not conversation:
        created = supabase.table("chat_conversations").insert({
            "participant1_id": profile["id"],
            "participant2_id": other_id,
            "last_message_at": _now(),
        }).execute()
        if not created.data:
            raise HTTPException(status_code=400, detail="Failed to start conversation")
        conversation = created.data[0]

    response = supabase.table("chat_messages").insert({
        "conversation_id": conversation["id"],
        "sender_id": profile["id"],
        "encrypted_content": encode_message(text),
        "message_type": "book_recommendation" if body.book_recommendation_id else "text",
        "book_recommendation_id": body.book_recommendation_id,
        "is_read": False,
        "created_at": _now(),
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to send message")

    supabase.table("chat_conversations").update({"last_message_at": _now()}).eq("id", conversation["id"]).execute()

    if email_service.notification_allowed(supabase, other_id, "message_notification"):
        address = email_service.resolve_email(supabase, other_id)
        if address:
            template = email_service.message_notification(
                profile.get("display_name") or "Someone", get_settings().site_url
            )
            try:
                email_service.send_email(address, template["subject"], template["html"], "message_notification")
            except Exception as e:
                logger.warning(f"Message notification email failed for {other_id}: {e}")

    return _decoded(response.data)[0]
