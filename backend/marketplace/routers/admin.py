import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from bookcore.analytics import frame_to_records, overview, revenue_by_day, top_books
from bookcore.constants import USER_ROLES
from marketplace.auth import require_admin
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.admin import ApplicationReview, RoleUpdate
from marketplace.models.book import BookStatusUpdate
from marketplace.routers.books import get_book_content
from marketplace.routers.notifications import insert_notifications
from marketplace.services import email_service, review_service
from marketplace.services.review_service import ReviewError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _completed_purchases(supabase) -> list:
    return supabase.table("purchases").select("*").eq("payment_status", "completed").execute().data or []


# -----------------------------
# Analytics
# -----------------------------
@router.get("/overview")
async def get_overview(profile: dict = Depends(require_admin), supabase=Depends(get_supabase_client)):
    profiles = supabase.table("profiles").select("id, user_role").execute().data or []
    books = supabase.table("books").select("id, book_status").execute().data or []
    return overview(profiles, books, _completed_purchases(supabase))


@router.get("/analytics/revenue")
async def get_revenue(profile: dict = Depends(require_admin), supabase=Depends(get_supabase_client)):
    return frame_to_records(revenue_by_day(_completed_purchases(supabase)))


@router.get("/analytics/top-books")
async def get_top_books(
    n: int = Query(10, ge=1, le=100),
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    books = supabase.table("books").select("id, title").execute().data or []
    return frame_to_records(top_books(_completed_purchases(supabase), books, n))


# -----------------------------
# Author applications
# -----------------------------
@router.get("/writer-applications")
async def list_writer_applications(
    status: str = "pending",
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    response = (
        supabase.table("author_applications")
        .select("*")
        .eq("status", status)
        .order("created_at", desc=True)
        .execute()
    )
    return response.data or []


def _review_application(supabase, application_id: str, reviewer_id: str, status: str, notes=None) -> dict:
    application = first_row(
        supabase.table("author_applications").select("*").eq("id", application_id).limit(1).execute()
    )
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    if application.get("status") != "pending":
        raise HTTPException(status_code=409, detail=f"Application already {application.get('status')}")

    update = {"status": status, "reviewed_by": reviewer_id, "reviewed_at": _now(), "updated_at": _now()}
    if notes:
        update["review_notes"] = notes
    response = supabase.table("author_applications").update(update).eq("id", application_id).execute()
    return response.data[0] if response.data else {**application, **update}


def _user_id_for_email(supabase, email: str):
    wanted = (email or "").strip().lower()
    for user_id, address in email_service.user_emails(supabase).items():
        if address.lower() == wanted:
            return user_id
    return None


@router.post("/writer-applications/{application_id}/approve")
async def approve_writer_application(
    application_id: str,
    body: Optional[ApplicationReview] = None,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    """Approve an application and promote the applicant's account to writer."""
    application = first_row(
        supabase.table("author_applications").select("email").eq("id", application_id).limit(1).execute()
    )
    if not application:
        raise HTTPException(status_code=404, detail="Application not found")
    user_id = _user_id_for_email(supabase, application.get("email"))
    if not user_id:
        raise HTTPException(status_code=404, detail="No account found for the applicant's email")

    reviewed = _review_application(
        supabase, application_id, profile["id"], "approved", body.review_notes if body else None
    )
    supabase.table("profiles").update({"user_role": "writer", "updated_at": _now()}).eq("id", user_id).execute()
    logger.info(f"Author application {application_id} approved by {profile['id']}")
    return {**reviewed, "user_id": user_id}


@router.post("/writer-applications/{application_id}/reject")
async def reject_writer_application(
    application_id: str,
    body: Optional[ApplicationReview] = None,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    reviewed = _review_application(
        supabase, application_id, profile["id"], "denied", body.review_notes if body else None
    )
    logger.info(f"Author application {application_id} denied by {profile['id']}")
    return reviewed


@router.post("/users/{user_id}/role")
async def set_user_role(
    user_id: str,
    body: RoleUpdate,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    if body.user_role not in USER_ROLES:
        raise HTTPException(status_code=400, detail=f"Unknown role: {body.user_role}")

    response = (
        supabase.table("profiles")
        .update({"user_role": body.user_role, "updated_at": _now()})
        .eq("id", user_id)
        .execute()
    )
    if not response.data:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"Role of {user_id} set to {body.user_role} by {profile['id']}")
    return response.data[0]


# -----------------------------
# Book review and approval
# -----------------------------
def _get_book(supabase, book_id: str) -> dict:
    book = first_row(supabase.table("books").select("*").eq("id", book_id).limit(1).execute())
    if not book:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.post("/books/{book_id}/ai-review")
async def ai_review_book(
    book_id: str,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    book = _get_book(supabase, book_id)
    content = get_book_content(supabase, book_id)
    if not content.strip():
        raise HTTPException(status_code=400, detail="Book has no content to review")

    try:
        review = review_service.review_book({**book, "content": content})
    except ReviewError as e:
        logger.error(f"AI review failed for book {book_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    row = {
        "book_id": book_id,
        "reviewer_id": profile["id"],
        "overall_score": review.get("overallScore"),
        "recommendation": review["recommendation"],
        "review_data": review,
        "created_at": _now(),
    }
    response = supabase.table("book_reviews").insert(row).execute()
    return response.data[0] if response.data else row


def _notify_book_status(supabase, book: dict, status: str, body: BookStatusUpdate) -> None:
    try:
        title = "Your book was approved" if body.approve else "Your book was not approved"
        message = f"\"{book.get('title')}\" is now {status}."
        if body.reason:
            message += f" Reason: {body.reason}"
        insert_notifications(
            supabase, [book["author_id"]], title, message, "book_status", {"book_id": book["id"], "status": status}
        )

        address = email_service.resolve_email(supabase, book["author_id"]) if body.approve else None
        if address:
            template = email_service.book_published(book.get("title", ""))
            email_service.send_email(address, template["subject"], template["html"], "book_published")
    except Exception as e:
        logger.warning(f"Failed to notify author of book {book['id']} status: {e}")


@router.post("/books/{book_id}/status")
async def set_book_status(
    book_id: str,
    body: BookStatusUpdate,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    book = _get_book(supabase, book_id)
    status = "published" if body.approve else "archived"

    response = (
        supabase.table("books")
        .update({"book_status": status, "updated_at": _now()})
        .eq("id", book_id)
        .execute()
    )
    if not response.data:
        raise HTTPException(status_code=404, detail="Book not found")

    if book.get("author_id"):
        _notify_book_status(supabase, book, status, body)

    logger.info(f"Book {book_id} set to {status} by {profile['id']}")
    return response.data[0]
