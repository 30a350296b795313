import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from bookcore.constants import STORY_PUBLISH_POINTS
from bookcore.stories import build_story_payload, next_reaction, pick_daily_winner, story_date, tally_reactions
from marketplace.auth import get_profile, require_admin, require_writer
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.story import CommentCreate, ReactionRequest, StoryCreate
from marketplace.routers.books import award_author_points

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/stories", tags=["stories"])


def _stories_for_date(supabase, day: str) -> list:
    response = (
        supabase.table("daily_stories")
        .select("*")
        .eq("story_date", day)
        .eq("is_published", True)
        .order("created_at")
        .execute()
    )
    return response.data or []


def _reactions_for(supabase, story_ids: list) -> list:
    if not story_ids:
        return []
    return supabase.table("story_reactions").select("*").in_("story_id", story_ids).execute().data or []


@router.get("")
async def list_stories(
    date: Optional[str] = None,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """Stories of a day with reaction counts and the caller's own reaction."""
    day = date or story_date()
    stories = _stories_for_date(supabase, day)
    reactions = _reactions_for(supabase, [s["id"] for s in stories])

    out = []
    for story in stories:
        story_reactions = [r for r in reactions if r.get("story_id") == story["id"]]
        mine = next((r["reaction_type"] for r in story_reactions if r.get("user_id") == profile["id"]), None)
        out.append({**story, "reactions": tally_reactions(story_reactions), "user_reaction": mine})
    return out


@router.post("")
async def create_story(
    story: StoryCreate,
    profile: dict = Depends(require_writer),
    supabase=Depends(get_supabase_client),
):
    try:
        payload = build_story_payload(profile["id"], story.title, story.description, story.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    existing = (
        supabase.table("daily_stories")
        .select("id")
        .eq("author_id", profile["id"])
        .eq("story_date", payload["story_date"])
        .limit(1)
        .execute()
    )
    if existing.data:
        raise HTTPException(status_code=409, detail="You have already submitted a story today")

    payload["created_at"] = datetime.now(timezone.utc).isoformat()
    response = supabase.table("daily_stories").insert(payload).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to submit story")

    award_author_points(supabase, profile["id"], STORY_PUBLISH_POINTS)
    logger.info(f"Story submitted by {profile['id']} for {payload['story_date']}")
    return response.data[0]


@router.get("/winners")
async def list_winners(limit: int = Query(30, ge=1, le=365), supabase=Depends(get_supabase_client)):
    response = (
        supabase.table("daily_story_winners")
        .select("*, daily_stories(title, author_id)")
        .order("story_date", desc=True)
        .limit(limit)
        .execute()
    )
    return response.data or []


@router.post("/winner")
async def select_winner(
    date: Optional[str] = None,
    profile: dict = Depends(require_admin),
    supabase=Depends(get_supabase_client),
):
    """Compute and store the winner for a day (today by default)."""
    day = date or story_date()
    stories = _stories_for_date(supabase, day)
    winner = pick_daily_winner(stories, _reactions_for(supabase, [s["id"] for s in stories]))
    if winner is None:
        raise HTTPException(status_code=404, detail=f"No stories found for {day}")

    winner["created_at"] = datetime.now(timezone.utc).isoformat()
    response = supabase.table("daily_story_winners").upsert(winner, on_conflict="story_date").execute()
    logger.info(f"Daily winner for {day}: story {winner['story_id']} score={winner['total_score']}")
    return response.data[0] if response.data else winner


@router.post("/{story_id}/reactions")
async def react(
    story_id: str,
    request: ReactionRequest,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    """Toggle a reaction; a different type replaces the previous one."""
    current = first_row(
        supabase.table("story_reactions")
        .select("*")
        .eq("story_id", story_id)
        .eq("user_id", profile["id"])
        .limit(1)
        .execute()
    )
    try:
        new_type = next_reaction(current["reaction_type"] if current else None, request.reaction_type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if current:
        supabase.table("story_reactions").delete().eq("id", current["id"]).execute()
    if new_type:
        supabase.table("story_reactions").insert({
            "story_id": story_id,
            "user_id": profile["id"],
            "reaction_type": new_type,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }).execute()

    reactions = _reactions_for(supabase, [story_id])
    return {"story_id": story_id, "user_reaction": new_type, "reactions": tally_reactions(reactions)}


@router.post("/{story_id}/view")
async def record_view(story_id: str, supabase=Depends(get_supabase_client)):
    try:
        supabase.rpc("increment_story_view", {"story_id": story_id}).execute()
    except Exception as e:
        logger.warning(f"Failed to increment view count for story {story_id}: {e}")
    return {"status": "ok"}


# -----------------------------
# Comments
# -----------------------------
@router.get("/{story_id}/comments")
async def list_comments(story_id: str, supabase=Depends(get_supabase_client)):
    response = (
        supabase.table("story_comments")
        .select("*, profiles(display_name)")
        .eq("story_id", story_id)
        .order("created_at")
        .execute()
    )
    return response.data or []


@router.post("/{story_id}/comments")
async def add_comment(
    story_id: str,
    comment: CommentCreate,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    content = comment.content.strip()
    if not content:
        raise HTTPException(status_code=400, detail="Comment cannot be empty")

    response = supabase.table("story_comments").insert({
        "story_id": story_id,
        "user_id": profile["id"],
        "content": content,
        "created_at": datetime.now(timezone.utc).isoformat(),
    }).execute()
    if not response.data:
        raise HTTPException(status_code=400, detail="Failed to add comment")
    return response.data[0]


# -----------------------------
# Bookmarks
# -----------------------------
@router.get("/bookmarks/mine")
async def list_story_bookmarks(profile: dict = Depends(get_profile), supabase=Depends(get_supabase_client)):
    response = (
        supabase.table("story_bookmarks")
        .select("*, daily_stories(title, author_id, story_date)")
        .eq("user_id", profile["id"])
        .order("created_at", desc=True)
        .execute()
    )
    return response.data or []


@router.post("/{story_id}/bookmark")
async def toggle_story_bookmark(
    story_id: str,
    profile: dict = Depends(get_profile),
    supabase=Depends(get_supabase_client),
):
    table = supabase.table("story_bookmarks")
    existing = table.select("id").eq("story_id", story_id).eq("user_id", profile["id"]).limit(1).execute()
    if existing.data:
        table.delete().eq("id", existing.data[0]["id"]).execute()
        return {"story_id": story_id, "bookmarked": False}

    table.insert({"story_id": story_id, "user_id": profile["id"]}).execute()
    return {"story_id": story_id, "bookmarked": True}
