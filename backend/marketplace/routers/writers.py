from fastapi import APIRouter, Depends, HTTPException, Query

from bookcore.analytics import frame_to_records, revenue_by_day, top_books, writer_summary
from marketplace.auth import get_profile
from marketplace.db.supabase import get_supabase_client
from marketplace.models.admin import AuthorApplicationCreate

router = APIRouter(prefix="/api/writers", tags=["writers"])


@router.get("")
async def list_writers(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    supabase=Depends(get_supabase_client),
):
    response = (
        supabase.table("profiles")
        .select("id, display_name, bio, avatar_url, is_verified")
        .eq("user_role", "writer")
        .order("display_name")
        .range(offset, offset + limit - 1)
        .execute()
    )
    return response.data or []


@router.get("/{writer_id}/dashboard")
async def writer_dashboard(
    writer_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """Sales, tips and revenue trend for a writer's own books."""
    if profile["id"] != writer_id and profile.get("user_role") != "admin":
        raise HTTPException(status_code=403, detail="You can only view your own dashboard")

    books = supabase.table("books").select("id, title, book_status").eq("author_id", writer_id).execute().data or []
    book_ids = [b["id"] for b in books]
    purchases = (
        supabase.table("purchases")
        .select("*")
        .in_("book_id", book_ids)
        .eq("payment_status", "completed")
        .execute()
        .data
        or []
        if book_ids
        else []
    )
    tips = supabase.table("tips").select("*").eq("author_id", writer_id).execute().data or []

    return {
        "summary": writer_summary(purchases, tips),
        "books_published": sum(1 for b in books if b.get("book_status") == "published"),
        "revenue_by_day": frame_to_records(revenue_by_day(purchases)),
        "top_books": frame_to_records(top_books(purchases, books, 5)),
    }


@router.post("/applications")
async def apply_as_author(
    body: AuthorApplicationCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """Submit an author application for admin review."""
    email = body.email or profile.get("email")
    if not email:
        raise HTTPException(status_code=400, detail="A contact email is required")
    if not body.display_name.strip() or not body.bio.strip():
        raise HTTPException(status_code=400, detail="Display name and bio are required")
    if profile.get("user_role") in ("writer", "admin"):
        raise HTTPException(status_code=409, detail="You can already publish")

    pending = (
        supabase.table("author_applications")
        .select("id")
        .eq("email", email)
        .eq("status", "pending")
        .limit(1)
        .execute()
    )
    if pending.data:
        raise HTTPException(status_code=409, detail="An application is already pending review")

    response = supabase.table("author_applications").insert({
        "display_name": body.display_name.strip(),
        "email": email,
        "bio": body.bio.strip(),
        "writing_genres": body.writing_genres,
        "writing_samples": body.writing_samples,
        "previous_publications": body.previous_publications,
        "social_media_links": body.social_media_links,
        "status": "pending",
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to submit application")
    return response.data[0]
