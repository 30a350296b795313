import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from bookcore.constants import (
    ACHIEVEMENTS,
    AUTHOR_LEVELS,
    BOOK_COMPLETED_POINTS,
    LEVELS,
    POINTS_PER_THOUSAND_WORDS,
    REACTION_POINTS,
    READING_SESSION_POINTS,
    REVIEW_POINTS,
    STORY_PUBLISH_POINTS,
)


@dataclass
class UserProgress:
    user_id: str
    total_points: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    books_read: int = 0
    reviews_written: int = 0
    friends_referred: int = 0
    level: int = 1
    story_wins: int = 0
    unlocked_achievements: List[str] = field(default_factory=list)
    daily_reading_sessions: Dict[str, List[str]] = field(default_factory=dict)
    last_activity_date: Optional[str] = None


# -----------------------------
# Reader levels
# -----------------------------
def calculate_level(points: int) -> int:
    level = LEVELS[0]["level"]
    for info in LEVELS:
        if points >= info["points_required"]:
            level = info["level"]
    return level


def level_progress(points: int) -> dict:
    current = calculate_level(points)
    current_info = LEVELS[current - 1]
    next_info = LEVELS[current] if current < len(LEVELS) else None

    if next_info is None:
        return {
            "level": current,
            "title": current_info["title"],
            "next_level": None,
            "points_to_next_level": 0,
            "progress_pct": 100.0,
        }

    span = next_info["points_required"] - current_info["points_required"]
    into = points - current_info["points_required"]
    return {
        "level": current,
        "title": current_info["title"],
        "next_level": next_info["level"],
        "points_to_next_level": next_info["points_required"] - points,
        "progress_pct": round(100.0 * into / span, 1),
    }


# -----------------------------
# Reader achievements
# -----------------------------
def _achievement_metric(progress: UserProgress, achievement_type: str) -> int:
    if achievement_type == "reading":
        return progress.books_read
    if achievement_type == "writing":
        return progress.story_wins
    if achievement_type == "streak":
        return max(progress.current_streak, progress.longest_streak)
    if achievement_type == "social":
        return progress.reviews_written
    return 0


def check_achievements(progress: UserProgress) -> List[dict]:
    """Return achievements the user has earned but not yet unlocked."""
    earned = []
    for achievement in ACHIEVEMENTS:
        if achievement["id"] in progress.unlocked_achievements:
            continue

        if achievement["type"] == "milestone":
            # milestones are measured in points, except the level one
            if achievement["id"] == "elite-member":
                value = progress.level
            else:
                value = progress.total_points
        else:
            value = _achievement_metric(progress, achievement["type"])

        if value >= achievement["requirement"]:
            earned.append(achievement)
    return earned


def apply_achievements(progress: UserProgress) -> tuple:
    """Unlock earned achievements and add their reward points."""
    earned = check_achievements(progress)
    if not earned:
        return progress, []

    total = progress.total_points + sum(a["points"] for a in earned)
    updated = replace(
        progress,
        unlocked_achievements=progress.unlocked_achievements + [a["id"] for a in earned],
        total_points=total,
        level=calculate_level(total),
    )
    return updated, earned


# -----------------------------
# Reader point rules
# -----------------------------
def start_reading_session(progress: UserProgress, book_id: str, day: str) -> tuple:
    """
    Award reading-session points once per book per day.

    Returns the updated progress and the number of points awarded (0 if the
    book was already read that day).
    """
    sessions = progress.daily_reading_sessions.get(day, [])
    if book_id in sessions:
        return progress, 0

    updated_sessions = dict(progress.daily_reading_sessions)
    updated_sessions[day] = sessions + [book_id]
    total = progress.total_points + READING_SESSION_POINTS

    updated = replace(
        progress,
        daily_reading_sessions=updated_sessions,
        total_points=total,
        level=calculate_level(total),
        last_activity_date=day,
    )
    return updated, READING_SESSION_POINTS


def sync_reader_progress(
    base: UserProgress,
    author_points: int,
    completed_books: int,
    reviews: int,
    story_wins: int,
) -> UserProgress:
    """Reconcile saved progress with the counts stored in the database."""
    counted = author_points + completed_books * BOOK_COMPLETED_POINTS + reviews * REVIEW_POINTS
    total = max(base.total_points, counted)
    return replace(
        base,
        total_points=total,
        books_read=max(base.books_read, completed_books),
        reviews_written=max(base.reviews_written, reviews),
        story_wins=story_wins,
        level=calculate_level(total),
    )


# -----------------------------
# Author levels and points
# -----------------------------
def current_author_level(points: int) -> dict:
    for info in reversed(AUTHOR_LEVELS):
        if points >= info["points_required"]:
            return info
    return AUTHOR_LEVELS[0]


def next_author_level(points: int) -> Optional[dict]:
    current = current_author_level(points)
    idx = AUTHOR_LEVELS.index(current) + 1
    return AUTHOR_LEVELS[idx] if idx < len(AUTHOR_LEVELS) else None


def book_points(word_count: Optional[int]) -> int:
    return ((word_count or 0) // 1000) * POINTS_PER_THOUSAND_WORDS


def author_base_points(story_count: int, book_word_counts: List[Optional[int]]) -> int:
    return story_count * STORY_PUBLISH_POINTS + sum(book_points(wc) for wc in book_word_counts)


def reaction_points(reactions: List[dict], story_authors: Dict[str, str]) -> int:
    """
    Score reactions on an author's stories.

    Each reaction is worth REACTION_POINTS[type]; a reaction left by the
    story's own author counts for half. The total is floored at zero.
    """
    total = 0.0
    for reaction in reactions:
        points = REACTION_POINTS.get(reaction.get("reaction_type"), 0)
        author_id = story_authors.get(reaction.get("story_id"))
        if author_id is not None and author_id == reaction.get("user_id"):
            total += points * 0.5
        else:
            total += points
    return max(0, math.floor(total))


# -----------------------------
# Author achievements
# -----------------------------
_AUTHOR_REQUIREMENT_FIELDS = {
    "words": "total_words_written",
    "books": "books_published",
    "sales": "total_sales",
    "streak": "streak_days",
    "revenue": "total_revenue_cents",
}


def check_author_achievements(progress: dict, achievements: List[dict]) -> List[dict]:
    unlocked = set(progress.get("achievements_unlocked") or [])
    earned = []
    for achievement in achievements:
        if achievement["achievement_key"] in unlocked:
            continue
        field_name = _AUTHOR_REQUIREMENT_FIELDS.get(achievement["requirement_type"])
        if field_name is None:
            continue
        if (progress.get(field_name) or 0) >= achievement["requirement_value"]:
            earned.append(achievement)
    return earned


def unlock_author_achievement(progress: dict, achievement: dict) -> dict:
    out = dict(progress)
    out["achievements_unlocked"] = list(progress.get("achievements_unlocked") or []) + [
        achievement["achievement_key"]
    ]
    out["author_points"] = (progress.get("author_points") or 0) + achievement["points_reward"]
    out["author_level"] = current_author_level(out["author_points"])["level"]
    return out
