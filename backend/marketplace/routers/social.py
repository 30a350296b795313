import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from bookcore.constants import SUPPORT_PRIORITIES, SUPPORT_STATUSES
from marketplace.auth import get_profile, require_admin
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.social import FriendRequest, SupportRequestCreate, SupportRequestUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/social", tags=["social"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# -----------------------------
# Favorite authors
# -----------------------------
@router.get("/favorite-authors")
async def list_favorite_authors(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    response = (
        supabase.table("favorite_authors")
        .select("*, author:profiles!favorite_authors_author_id_fkey(display_name, avatar_url, username)")
        .eq("user_id", profile["id"])
        .execute()
    )
    return response.data or []


@router.post("/favorite-authors/{author_id}")
async def toggle_favorite_author(
    author_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """Follow an author, or unfollow one already followed."""
    if author_id == profile["id"]:
        raise HTTPException(status_code=400, detail="Cannot favorite yourself")

    table = supabase.table("favorite_authors")
    existing = table.select("id").eq("user_id", profile["id"]).eq("author_id", author_id).limit(1).execute()
    if existing.data:
        table.delete().eq("id", existing.data[0]["id"]).execute()
        return {"author_id": author_id, "favorite": False}

    table.insert({"user_id": profile["id"], "author_id": author_id}).execute()
    return {"author_id": author_id, "favorite": True}


# -----------------------------
# Friends
# -----------------------------
@router.get("/friends")
async def list_friends(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    me = profile["id"]
    friends = (
        supabase.table("friends")
        .select("*")
        .or_(f"requester_id.eq.{me},addressee_id.eq.{me}")
        .eq("status", "accepted")
        .execute()
    )
    pending = (
        supabase.table("friends")
        .select("*")
        .eq("addressee_id", me)
        .eq("status", "pending")
        .execute()
    )
    return {"friends": friends.data or [], "pending": pending.data or []}


@router.post("/friends")
async def send_friend_request(
    body: FriendRequest,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    me = profile["id"]
    if body.addressee_id == me:
        raise HTTPException(status_code=400, detail="Cannot befriend yourself")

    pair = (
        f"and(requester_id.eq.{me},addressee_id.eq.{body.addressee_id}),"
        f"and(requester_id.eq.{body.addressee_id},addressee_id.eq.{me})"
    )
    if supabase.table("friends").select("id").or_(pair).limit(1).execute().data:
        raise HTTPException(status_code=409, detail="Friend request already exists")

    response = supabase.table("friends").insert({
        "requester_id": me,
        "addressee_id": body.addressee_id,
        "status": "pending",
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to send friend request")
    return response.data[0]


@router.post("/friends/{request_id}/accept")
async def accept_friend_request(
    request_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    request = first_row(supabase.table("friends").select("*").eq("id", request_id).limit(1).execute())
    if not request or request.get("addressee_id") != profile["id"]:
        raise HTTPException(status_code=404, detail="Friend request not found")
    if request.get("status") != "pending":
        raise HTTPException(status_code=409, detail="Friend request already answered")

    response = (
        supabase.table("friends")
        .update({"status": "accepted", "updated_at": _now()})
        .eq("id", request_id)
        .execute()
    )
    return response.data[0] if response.data else {**request, "status": "accepted"}


@router.delete("/friends/{request_id}")
async def remove_friend(
    request_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    me = profile["id"]
    response = (
        supabase.table("friends")
        .delete()
        .eq("id", request_id)
        .or_(f"requester_id.eq.{me},addressee_id.eq.{me}")
        .execute()
    )
    if not response.data:
        raise HTTPException(status_code=404, detail="Friend request not found")
    return {"status": "deleted"}


# -----------------------------
# Support requests
# -----------------------------
@router.post("/support")
async def create_support_request(
    body: SupportRequestCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    if not body.subject.strip() or not body.description.strip():
        raise HTTPException(status_code=400, detail="Subject and description are required")
    if body.priority not in SUPPORT_PRIORITIES:
        raise HTTPException(status_code=400, detail=f"Unknown priority: {body.priority}")
    email = body.email or profile.get("email")
    if not email:
        raise HTTPException(status_code=400, detail="A contact email is required")

    response = supabase.table("support_requests").insert({
        "user_id": profile["id"],
        "email": email,
        "subject": body.subject.strip(),
        "category": body.category,
        "priority": body.priority,
        "description": body.description.strip(),
        "status": "open",
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to save support request")

    logger.info(f"Support request from {profile['id']}: {body.subject}")
    return response.data[0]


@router.get("/support")
async def list_support_requests(
    status: str = None,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    query = supabase.table("support_requests").select("*")
    if status:
        query = query.eq("status", status)
    return query.order("created_at", desc=True).execute().data or []


@router.patch("/support/{request_id}")
async def update_support_request(
    request_id: str,
    body: SupportRequestUpdate,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    if body.status not in SUPPORT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown status: {body.status}")

    data = {"status": body.status, "updated_at": _now()}
    if body.status == "resolved":
        data["resolved_at"] = _now()
        data["resolved_by"] = profile["id"]
    if body.resolution_notes:
        data["resolution_notes"] = body.resolution_notes

    response = supabase.table("support_requests").update(data).eq("id", request_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Support request not found")
    return response.data[0]
