import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query

from bookcore.reviews import rating_distribution, rating_summary, validate_rating
from marketplace.auth import get_profile
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.book import ReviewCreate
from marketplace.routers.books import has_purchased
from marketplace.services import email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/books", tags=["reviews"])


def refresh_book_rating(supabase, book_id: str) -> dict:
    """Recompute rating_average and rating_count on the book row."""
    rows = supabase.table("reviews").select("rating").eq("book_id", book_id).execute().data or []
    summary = rating_summary(r.get("rating") for r in rows)
    supabase.table("books").update(summary).eq("id", book_id).execute()
    return summary


def _notify_author(supabase, book: dict, reviewer: dict, rating: int) -> None:
    author_id = book.get("author_id")
    if not author_id or author_id == reviewer["id"]:
        return
    if not email_service.notification_allowed(supabase, author_id, "new_review"):
        return
    address = email_service.resolve_email(supabase, author_id)
    if not address:
        return
    name = reviewer.get("display_name") or "A reader"
    template = email_service.generic(
        f"New review for {book.get('title', 'your book')}",
        f"{name} rated your book {rating} out of 5.",
    )
    try:
        email_service.send_email(address, template["subject"], template["html"], "new_review")
    except Exception as e:
        logger.warning(f"Review email failed for book {book.get('id')}: {e}")


@router.get("/{book_id}/reviews")
async def list_reviews(
    book_id: str,
    limit: int = Query(50, ge=1, le=200),
    supabase=Depends(get_supabase_client),
):
    response = (
        supabase.table("reviews")
        .select("*, profiles(display_name, avatar_url)")
        .eq("book_id", book_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    reviews = response.data or []
    ratings = [r.get("rating") for r in reviews]
    return {
        "reviews": reviews,
        "summary": rating_summary(ratings),
        "distribution": rating_distribution(ratings),
    }


@router.post("/{book_id}/reviews")
async def create_review(
    book_id: str,
    body: ReviewCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    try:
        rating = validate_rating(body.rating)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    book = first_row(supabase.table("books").select("*").eq("id", book_id).limit(1).execute())
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")

    existing = (
        supabase.table("reviews")
        .select("id")
        .eq("book_id", book_id)
        .eq("user_id", profile["id"])
        .limit(1)
        .execute()
    )
    if existing.data:
        raise HTTPException(status_code=409, detail="You have already reviewed this book")

    now = datetime.now(timezone.utc).isoformat()
    response = supabase.table("reviews").insert({
        "book_id": book_id,
        "user_id": profile["id"],
        "rating": rating,
        "review_text": (body.review_text or "").strip() or None,
        "is_verified_purchase": has_purchased(supabase, profile["id"], book_id),
        "created_at": now,
        "updated_at": now,
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to save review")

    summary = refresh_book_rating(supabase, book_id)
    _notify_author(supabase, book, profile, rating)

    logger.info(f"Review by {profile['id']} on {book_id}: {rating} stars")
    return {**response.data[0], "book_rating": summary}


@router.delete("/{book_id}/reviews/{review_id}")
async def delete_review(
    book_id: str,
    review_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    query = supabase.table("reviews").delete().eq("id", review_id).eq("book_id", book_id)
    if profile.get("user_role") != "admin":
        query = query.eq("user_id", profile["id"])
    response = query.execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Review not found")
    return {"status": "deleted", "book_rating": refresh_book_rating(supabase, book_id)}
