from datetime import datetime, timezone
from typing import Dict, List, Optional

from bookcore.constants import REACTION_POINTS, REACTION_TYPES


def story_date(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date().isoformat()


def build_story_payload(author_id: str, title: str, description: Optional[str], content: str,
                        now: Optional[datetime] = None) -> dict:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title:
        raise ValueError("Story title is required")
    if not content:
        raise ValueError("Story content is required")

    return {
        "title": title,
        "description": description or None,
        "content": content,
        "author_id": author_id,
        "story_date": story_date(now),
        "is_published": True,
        "view_count": 0,
        "read_count": 0,
    }


# -----------------------------
# Reactions
# -----------------------------
def next_reaction(existing: Optional[str], requested: str) -> Optional[str]:
    """Toggle semantics: repeating the same reaction removes it."""
    if requested not in REACTION_TYPES:
        raise ValueError(f"Unknown reaction type: {requested}")
    if existing == requested:
        return None
    return requested


def tally_reactions(reactions: List[dict]) -> Dict[str, int]:
    counts = {t: 0 for t in REACTION_TYPES}
    for reaction in reactions:
        rtype = reaction.get("reaction_type")
        if rtype in counts:
            counts[rtype] += 1
    return counts


def story_score(counts: Dict[str, int]) -> int:
    return sum(REACTION_POINTS[t] * counts.get(t, 0) for t in REACTION_TYPES)


# -----------------------------
# Daily winner
# -----------------------------
def pick_daily_winner(stories: List[dict], reactions: List[dict]) -> Optional[dict]:
    """
    Pick the best published story of a day.

    Ranked by reaction score, then read_count, then earliest submission.
    """
    candidates = [s for s in stories if s.get("is_published", True)]
    if not candidates:
        return None

    by_story: Dict[str, List[dict]] = {}
    for reaction in reactions:
        by_story.setdefault(reaction.get("story_id"), []).append(reaction)

    scored = []
    for story in candidates:
        counts = tally_reactions(by_story.get(story["id"], []))
        scored.append((story, counts, story_score(counts)))

    scored.sort(key=lambda x: (-x[2], -(x[0].get("read_count") or 0), x[0].get("created_at") or ""))
    story, counts, score = scored[0]

    return {
        "story_id": story["id"],
        "author_id": story["author_id"],
        "story_date": story["story_date"],
        "heart_count": counts["heart"],
        "shock_count": counts["shock"],
        "thumbs_down_count": counts["thumbs-down"],
        "total_score": score,
    }
