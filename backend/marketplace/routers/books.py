import logging
from dataclasses import asdict
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from bookcore.constants import PREVIEW_WORDS
from bookcore.gamification import book_points, current_author_level
from bookcore.pagination import (
    calculate_reading_progress,
    clean_html_content,
    count_words,
    estimate_reading_time,
    find_page_by_chapter,
    paginate_chapters,
    paginate_content,
)
from bookcore.payments import is_free_book
from marketplace.auth import get_profile, require_writer
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.book import Book, BookCreate, BookUpdate, GiftCreate, ThankMessageCreate
from marketplace.services import email_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/books", tags=["books"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _get_book(supabase, book_id: str) -> dict:
    book = first_row(supabase.table("books").select("*").eq("id", book_id).limit(1).execute())
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


def _require_owner(book: dict, profile: dict) -> None:
    if book.get("author_id") != profile["id"] and profile.get("user_role") != "admin":
        raise HTTPException(status_code=403, detail="Not the author of this book")


def get_book_content(supabase, book_id: str) -> str:
    row = first_row(
        supabase.table("book_content").select("full_content").eq("book_id", book_id).limit(1).execute()
    )
    return (row or {}).get("full_content") or ""


def _save_content(supabase, book_id: str, html: str) -> int:
    """Store the full text in book_content; returns its word count."""
    text = clean_html_content(html)
    words = count_words(text)
    supabase.table("book_content").upsert(
        {
            "book_id": book_id,
            "full_content": html,
            "preview_content": " ".join(text.split()[:PREVIEW_WORDS]),
            "content_type": "html",
            "word_count": words,
            "updated_at": _now(),
        },
        on_conflict="book_id",
    ).execute()
    return words


def has_purchased(supabase, user_id: str, book_id: str) -> bool:
    resp = (
        supabase.table("purchases")
        .select("id")
        .eq("user_id", user_id)
        .eq("book_id", book_id)
        .eq("payment_status", "completed")
        .limit(1)
        .execute()
    )
    return bool(resp.data)


def has_claimed_gift(supabase, user_id: str, book_id: str) -> bool:
    resp = (
        supabase.table("book_gifts")
        .select("id")
        .eq("recipient_id", user_id)
        .eq("book_id", book_id)
        .eq("status", "claimed")
        .limit(1)
        .execute()
    )
    return bool(resp.data)


def can_read(supabase, profile: dict, book: dict) -> bool:
    return (
        is_free_book(book.get("price_cents"))
        or book.get("author_id") == profile["id"]
        or has_purchased(supabase, profile["id"], book["id"])
        or has_claimed_gift(supabase, profile["id"], book["id"])
    )


def award_author_points(supabase, author_id: str, points: int) -> None:
    """Add points to author_progress; failures are logged only."""
    if points <= 0:
        return
    try:
        row = first_row(
            supabase.table("author_progress").select("*").eq("author_id", author_id).limit(1).execute()
        )
        total = ((row or {}).get("author_points") or 0) + points
        supabase.table("author_progress").upsert(
            {
                "author_id": author_id,
                "author_points": total,
                "author_level": current_author_level(total)["level"],
                "last_activity_date": datetime.now(timezone.utc).date().isoformat(),
                "updated_at": _now(),
            },
            on_conflict="author_id",
        ).execute()
        logger.info(f"Awarded {points} author points to {author_id}")
    except Exception as e:
        logger.warning(f"Failed to award author points to {author_id}: {e}")


@router.get("", response_model=List[Book])
async def list_books(
    search: Optional[str] = None,
    genre: Optional[str] = None,
    tag: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    supabase=Depends(get_supabase_client),
):
    """Published books, newest first. ``genre`` is a genre slug."""
    query = supabase.table("books").select("*").eq("book_status", "published")
    if search:
        query = query.or_(f"title.ilike.%{search}%,author_name.ilike.%{search}%")
    if genre:
        found = first_row(supabase.table("genres").select("id").eq("slug", genre).limit(1).execute())
        if not found:
            return []
        links = supabase.table("book_genres").select("book_id").eq("genre_id", found["id"]).execute().data or []
        if not links:
            return []
        query = query.in_("id", [link["book_id"] for link in links])
    if tag:
        query = query.contains("tags", [tag])

    response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
    return response.data or []


@router.get("/genres")
async def list_genres(supabase=Depends(get_supabase_client)):
    return supabase.table("genres").select("*").order("name").execute().data or []


@router.get("/gifts")
async def list_gifts(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    """Gifts sent or received by the caller."""
    sent = (
        supabase.table("book_gifts")
        .select("*, book:books(title, author_name, cover_image_url)")
        .eq("giver_id", profile["id"])
        .order("created_at", desc=True)
        .execute()
    )
    received = (
        supabase.table("book_gifts")
        .select("*, book:books(title, author_name, cover_image_url, preview_text)")
        .eq("recipient_id", profile["id"])
        .order("created_at", desc=True)
        .execute()
    )
    return {"sent": sent.data or [], "received": received.data or []}


@router.post("/gifts/{gift_id}/claim")
async def claim_gift(gift_id: str, profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    gift = first_row(supabase.table("book_gifts").select("*").eq("id", gift_id).limit(1).execute())
    if not gift or gift.get("recipient_id") != profile["id"]:
        raise HTTPException(status_code=404, detail="Gift not found")
    if gift.get("status") != "pending":
        raise HTTPException(status_code=409, detail="Gift has already been claimed")

    response = (
        supabase.table("book_gifts")
        .update({"status": "claimed", "claimed_at": _now()})
        .eq("id", gift_id)
        .execute()
    )
    if not response.data:
        raise HTTPException(status_code=404, detail="Gift not found")
    return response.data[0]


@router.post("/gifts/{gift_id}/thanks")
async def thank_giver(
    gift_id: str,
    body: ThankMessageCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    if not body.message.strip():
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    gift = first_row(supabase.table("book_gifts").select("giver_id, recipient_id").eq("id", gift_id).limit(1).execute())
    if not gift or gift.get("recipient_id") != profile["id"]:
        raise HTTPException(status_code=404, detail="Gift not found")

    response = supabase.table("thank_messages").insert({
        "gift_id": gift_id,
        "sender_id": profile["id"],
        "recipient_id": gift["giver_id"],
        "message": body.message.strip(),
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to send thank you message")
    return response.data[0]


@router.get("/{book_id}", response_model=Book)
async def get_book(book_id: str, supabase=Depends(get_supabase_client)):
    return _get_book(supabase, book_id)


@router.post("", response_model=Book)
async def create_book(
    book: BookCreate,
    profile: dict = Depends(require_writer),
    supabase=Depends(get_supabase_client),
):
    data = book.model_dump(exclude={"content", "genre_ids"})
    data["author_id"] = profile["id"]
    data["author_name"] = data.get("author_name") or profile.get("display_name")
    data["book_status"] = "draft"
    data["created_at"] = _now()
    data["updated_at"] = _now()

    response = supabase.table("books").insert(data).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to create book")
    created = response.data[0]

    if book.content:
        words = _save_content(supabase, created["id"], book.content)
        updated = supabase.table("books").update({"word_count": words}).eq("id", created["id"]).execute()
        created = updated.data[0] if updated.data else {**created, "word_count": words}
    if book.genre_ids:
        supabase.table("book_genres").insert(
            [{"book_id": created["id"], "genre_id": genre_id} for genre_id in book.genre_ids]
        ).execute()

    logger.info(f"Book created by {profile['id']}: {data['title']}")
    return created


@router.patch("/{book_id}", response_model=Book)
async def update_book(
    book_id: str,
    book: BookUpdate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    existing = _get_book(supabase, book_id)
    _require_owner(existing, profile)

    # Filter out None values
    data = {k: v for k, v in book.model_dump(exclude={"content"}).items() if v is not None}
    if book.content is not None:
        data["word_count"] = _save_content(supabase, book_id, book.content)
    data["updated_at"] = _now()

    response = supabase.table("books").update(data).eq("id", book_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Book not found")
    return response.data[0]


@router.post("/{book_id}/publish", response_model=Book)
async def publish_book(
    book_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    existing = _get_book(supabase, book_id)
    _require_owner(existing, profile)
    if existing.get("book_status") == "published":
        raise HTTPException(status_code=409, detail="Book is already published")
    if not get_book_content(supabase, book_id).strip() and not existing.get("book_file_url"):
        raise HTTPException(status_code=400, detail="Cannot publish a book without content")

    response = (
        supabase.table("books")
        .update({"book_status": "published", "publication_date": _now(), "updated_at": _now()})
        .eq("id", book_id)
        .execute()
    )
    if not response.data:
        raise HTTPException(status_code=404, detail="Book not found")

    if existing.get("author_id"):
        award_author_points(supabase, existing["author_id"], book_points(existing.get("word_count")))
    return response.data[0]


@router.delete("/{book_id}")
async def delete_book(
    book_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    existing = _get_book(supabase, book_id)
    _require_owner(existing, profile)

    response = supabase.table("books").delete().eq("id", book_id).execute()
    if not response.data:
        raise HTTPException(status_code=404, detail="Book not found")
    return {"status": "deleted"}


@router.get("/{book_id}/ownership")
async def get_ownership(
    book_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    return {"book_id": book_id, "owned": has_purchased(supabase, profile["id"], book_id)}


@router.get("/{book_id}/pages")
async def get_pages(
    book_id: str,
    mode: str = Query("chapters", pattern="^(simple|chapters)$"),
    current_page: Optional[int] = Query(None, ge=1),
    chapter: Optional[str] = None,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """
    Paginated content for readers allowed to read the book.

    Free books are open to everyone; paid books need a completed purchase or
    a claimed gift, except for their author. ``chapter`` resolves a chapter
    title to its first page and ``current_page`` adds reading progress and
    the time left to finish.
    """
    book = _get_book(supabase, book_id)
    if not can_read(supabase, profile, book):
        raise HTTPException(status_code=403, detail="Purchase required to read this book")

    content = get_book_content(supabase, book_id)
    pagination = paginate_content(content) if mode == "simple" else paginate_chapters(content)
    out = asdict(pagination)

    if chapter is not None and mode == "chapters":
        out["chapter_page"] = find_page_by_chapter(pagination, chapter)
    if current_page is not None:
        page = min(current_page, max(pagination.total_pages, 1))
        out["current_page"] = page
        out["progress"] = calculate_reading_progress(page, pagination.total_pages)
        words_left = sum(p.word_count for p in pagination.pages[page - 1:])
        out["reading_time"] = estimate_reading_time(words_left)
    return out


@router.post("/{book_id}/gift")
async def gift_book(
    book_id: str,
    gift: GiftCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    book = _get_book(supabase, book_id)
    if book.get("book_status") != "published":
        raise HTTPException(status_code=400, detail="Only published books can be gifted")
    if gift.recipient_id == profile["id"]:
        raise HTTPException(status_code=400, detail="Cannot gift a book to yourself")

    row = {
        "book_id": book_id,
        "giver_id": profile["id"],
        "recipient_id": gift.recipient_id,
        "gift_message": gift.gift_message,
        "status": "pending",
        "created_at": _now(),
    }
    response = supabase.table("book_gifts").insert(row).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to send gift")

    if email_service.notification_allowed(supabase, gift.recipient_id, "gift_notification"):
        address = email_service.resolve_email(supabase, gift.recipient_id)
        template = email_service.gift_notification(
            profile.get("display_name") or "A reader", book.get("title", ""), gift.gift_message or ""
        )
        try:
            if address:
                email_service.send_email(address, template["subject"], template["html"], "gift_notification")
        except Exception as e:
            logger.warning(f"Gift email failed for book {book_id}: {e}")

    return response.data[0]
