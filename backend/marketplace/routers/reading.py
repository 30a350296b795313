import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from bookcore.reading import calculate_streak, clamp_progress, is_completed
from marketplace.auth import get_profile
from marketplace.db.supabase import get_supabase_client
from marketplace.models.reading import BookmarkCreate, ProgressUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reading", tags=["reading"])


@router.get("")
async def get_reading_progress(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    """Reading progress rows of the caller, most recent first."""
    response = (
        supabase.table("reading_progress")
        .select("*, books(title, author_name, cover_image_url)")
        .eq("user_id", profile["id"])
        .order("last_read_at", desc=True)
        .execute()
    )
    return response.data or []


@router.get("/streak")
async def get_streak(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    response = (
        supabase.table("reading_progress")
        .select("last_read_at")
        .eq("user_id", profile["id"])
        .order("last_read_at", desc=True)
        .limit(365)
        .execute()
    )
    timestamps = [row["last_read_at"] for row in response.data or [] if row.get("last_read_at")]
    streak = calculate_streak(timestamps, datetime.now(timezone.utc).date())
    out = asdict(streak)
    if out["last_read_date"] is not None:
        out["last_read_date"] = out["last_read_date"].isoformat()
    return out


# -----------------------------
# Bookmarks
# -----------------------------
@router.get("/bookmarks")
async def list_bookmarks(
    book_id: Optional[str] = None,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    query = supabase.table("bookmarks").select("*").eq("user_id", profile["id"])
    if book_id:
        query = query.eq("book_id", book_id)
    return query.order("created_at", desc=True).execute().data or []


@router.post("/bookmarks")
async def create_bookmark(
    bookmark: BookmarkCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    existing = (
        supabase.table("bookmarks")
        .select("id")
        .eq("user_id", profile["id"])
        .eq("book_id", bookmark.book_id)
        .limit(1)
        .execute()
    )
    if existing.data:
        raise HTTPException(status_code=409, detail="Book is already bookmarked")

    response = supabase.table("bookmarks").insert({
        "user_id": profile["id"],
        "book_id": bookmark.book_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to create bookmark")
    return response.data[0]


@router.delete("/bookmarks/{bookmark_id}")
async def delete_bookmark(
    bookmark_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    response = (
        supabase.table("bookmarks")
        .delete()
        .eq("id", bookmark_id)
        .eq("user_id", profile["id"])
        .execute()
    )
    if not response.data:
        raise HTTPException(status_code=404, detail="Bookmark not found")
    return {"status": "deleted"}


@router.get("/history")
async def get_reading_history(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    response = (
        supabase.table("reading_history")
        .select("*, books(title, author_name, cover_image_url)")
        .eq("user_id", profile["id"])
        .order("started_at", desc=True)
        .execute()
    )
    return response.data or []


@router.put("/{book_id}")
async def update_progress(
    book_id: str,
    update: ProgressUpdate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """
    Record reading progress for a book.

    Upserts the reading_history and reading_progress rows (one per user and
    book), stamps reading_history.completed_at at 100% and logs a
    reading_progress analytics event.
    """
    try:
        percentage = clamp_progress(update.progress_percentage)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    now = datetime.now(timezone.utc).isoformat()
    user_id = profile["id"]

    history = {
        "user_id": user_id,
        "book_id": book_id,
        "last_position": f"{percentage:g}%",
    }
    if is_completed(percentage):
        history["completed_at"] = now
    try:
        supabase.table("reading_history").upsert(history, on_conflict="user_id,book_id").execute()
    except Exception as e:
        logger.warning(f"Failed to update reading history for {book_id}: {e}")

    progress = {
        "user_id": user_id,
        "book_id": book_id,
        "progress_percentage": percentage,
        "last_read_at": now,
    }
    response = (
        supabase.table("reading_progress").upsert(progress, on_conflict="user_id,book_id").execute()
    )
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to update reading progress")

    try:
        supabase.table("analytics_events").insert({
            "event_type": "reading_progress",
            "user_id": user_id,
            "event_data": {
                "book_id": book_id,
                "progress_percentage": percentage,
                "page": update.current_page,
                "timestamp": now,
            },
            "created_at": now,
        }).execute()
    except Exception as e:
        logger.warning(f"Failed to log reading event for {book_id}: {e}")

    return response.data[0]
