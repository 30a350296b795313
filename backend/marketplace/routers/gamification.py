import logging
from dataclasses import asdict, fields
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from bookcore.gamification import (
    UserProgress,
    apply_achievements,
    author_base_points,
    check_author_achievements,
    current_author_level,
    level_progress,
    next_author_level,
    reaction_points,
    start_reading_session,
    sync_reader_progress,
    unlock_author_achievement,
)
from bookcore.reading import calculate_streak
from bookcore.stories import story_date
from marketplace.auth import get_profile, require_writer
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.reading import ReadingSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/gamification", tags=["gamification"])

_PROGRESS_FIELDS = {f.name for f in fields(UserProgress)}


def _count(resp) -> int:
    if getattr(resp, "count", None) is not None:
        return resp.count
    return len(resp.data or [])


# -----------------------------
# Reader progress
# -----------------------------
def load_user_progress(supabase, user_id: str) -> UserProgress:
    row = first_row(supabase.table("user_progress").select("*").eq("user_id", user_id).limit(1).execute())
    if not row:
        return UserProgress(user_id=user_id)
    values = {k: v for k, v in row.items() if k in _PROGRESS_FIELDS and v is not None}
    values["user_id"] = user_id
    return UserProgress(**values)


def save_user_progress(supabase, progress: UserProgress) -> None:
    row = asdict(progress)
    row["updated_at"] = datetime.now(timezone.utc).isoformat()
    supabase.table("user_progress").upsert(row, on_conflict="user_id").execute()


def _reader_response(progress: UserProgress, new_achievements: list, points_awarded: int = 0) -> dict:
    return {
        "progress": asdict(progress),
        "level": level_progress(progress.total_points),
        "new_achievements": new_achievements,
        "points_awarded": points_awarded,
    }


@router.get("/reader")
async def get_reader_progress(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    """
    Reader progress reconciled with the database.

    Counts completed books, reviews and daily-story wins, folds in the
    author points and reading streak, then unlocks any newly earned
    achievements.
    """
    user_id = profile["id"]
    base = load_user_progress(supabase, user_id)

    completed = (
        supabase.table("reading_history")
        .select("id", count="exact")
        .eq("user_id", user_id)
        .not_.is_("completed_at", "null")
        .execute()
    )
    reviews = supabase.table("reviews").select("id", count="exact").eq("user_id", user_id).execute()
    wins = supabase.table("daily_story_winners").select("id", count="exact").eq("author_id", user_id).execute()
    author = first_row(
        supabase.table("author_progress").select("author_points").eq("author_id", user_id).limit(1).execute()
    )
    activity = (
        supabase.table("reading_progress")
        .select("last_read_at")
        .eq("user_id", user_id)
        .order("last_read_at", desc=True)
        .limit(365)
        .execute()
    )

    progress = sync_reader_progress(
        base,
        author_points=(author or {}).get("author_points") or 0,
        completed_books=_count(completed),
        reviews=_count(reviews),
        story_wins=_count(wins),
    )

    streak = calculate_streak(
        [r["last_read_at"] for r in activity.data or [] if r.get("last_read_at")],
        datetime.now(timezone.utc).date(),
    )
    progress.current_streak = streak.current_streak
    progress.longest_streak = max(progress.longest_streak, streak.longest_streak)

    progress, earned = apply_achievements(progress)
    save_user_progress(supabase, progress)
    if earned:
        logger.info(f"User {user_id} unlocked {[a['id'] for a in earned]}")

    return _reader_response(progress, earned)


@router.post("/reader/session")
async def record_reading_session(
    session: ReadingSession,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    progress = load_user_progress(supabase, profile["id"])
    progress, points = start_reading_session(progress, session.book_id, story_date())
    earned = []
    if points:
        progress, earned = apply_achievements(progress)
        save_user_progress(supabase, progress)
    return _reader_response(progress, earned, points)


# -----------------------------
# Author progress
# -----------------------------
def _author_response(row: dict) -> dict:
    points = row.get("author_points") or 0
    return {
        **row,
        "current_level": current_author_level(points),
        "next_level": next_author_level(points),
    }


@router.get("/author")
async def get_author_progress(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    row = first_row(
        supabase.table("author_progress").select("*").eq("author_id", profile["id"]).limit(1).execute()
    )
    if not row:
        row = {"author_id": profile["id"], "author_points": 0, "author_level": 1, "achievements_unlocked": []}
    return _author_response(row)


@router.post("/author/refresh")
async def refresh_author_progress(profile: dict = Depends(require_writer), supabase=Depends(get_supabase_client)):
    """Recompute author points from books, stories and story reactions."""
    user_id = profile["id"]

    books = (
        supabase.table("books")
        .select("id, word_count")
        .eq("author_id", user_id)
        .eq("book_status", "published")
        .execute()
        .data
        or []
    )
    stories = supabase.table("daily_stories").select("id, author_id, created_at").eq("author_id", user_id).execute().data or []
    story_ids = [s["id"] for s in stories]
    reactions = (
        supabase.table("story_reactions").select("*").in_("story_id", story_ids).execute().data or []
        if story_ids
        else []
    )
    sales = (
        supabase.table("purchases")
        .select("author_earnings_cents, books!inner(author_id)")
        .eq("books.author_id", user_id)
        .eq("payment_status", "completed")
        .execute()
        .data
        or []
    )

    points = author_base_points(len(stories), [b.get("word_count") for b in books])
    points += reaction_points(reactions, {s["id"]: s["author_id"] for s in stories})
    streak = calculate_streak([s["created_at"] for s in stories if s.get("created_at")], datetime.now(timezone.utc).date())

    existing = first_row(supabase.table("author_progress").select("*").eq("author_id", user_id).limit(1).execute()) or {}
    unlocked = list(existing.get("achievements_unlocked") or [])
    progress = {
        "author_id": user_id,
        "author_points": points,
        "total_words_written": sum(b.get("word_count") or 0 for b in books),
        "books_published": len(books),
        "total_sales": len(sales),
        "total_revenue_cents": sum(s.get("author_earnings_cents") or 0 for s in sales),
        "streak_days": streak.current_streak,
        "longest_streak": max(existing.get("longest_streak") or 0, streak.longest_streak),
        "achievements_unlocked": unlocked,
    }

    achievements = supabase.table("author_achievements").select("*").execute().data or []
    earned = check_author_achievements(progress, achievements)
    # rewards from previously unlocked achievements are kept on top of the recomputed base
    bonus = sum(a.get("points_reward") or 0 for a in achievements if a.get("achievement_key") in unlocked)
    progress["author_points"] += bonus
    for achievement in earned:
        progress = unlock_author_achievement(progress, achievement)

    progress["author_level"] = current_author_level(progress["author_points"])["level"]
    progress["updated_at"] = datetime.now(timezone.utc).isoformat()

    response = supabase.table("author_progress").upsert(progress, on_conflict="author_id").execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to save author progress")

    logger.info(f"Author {user_id} progress refreshed: {progress['author_points']} points")
    return {**_author_response(response.data[0]), "new_achievements": earned}
