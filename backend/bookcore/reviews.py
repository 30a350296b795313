from typing import Iterable, Optional

from bookcore.constants import MAX_RATING, MIN_RATING


def validate_rating(rating: int) -> int:
    if rating is None or not MIN_RATING <= int(rating) <= MAX_RATING:
        raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return int(rating)


def rating_summary(ratings: Iterable[Optional[int]]) -> dict:
    """
    Aggregate review ratings into the values cached on a book row.

    Null ratings are ignored. The average is rounded to two decimals and is
    ``None`` for a book without reviews.
    """
    values = [int(r) for r in ratings if r is not None]
    if not values:
        return {"rating_average": None, "rating_count": 0}
    return {
        "rating_average": round(sum(values) / len(values), 2),
        "rating_count": len(values),
    }


def rating_distribution(ratings: Iterable[Optional[int]]) -> dict:
    counts = {star: 0 for star in range(MIN_RATING, MAX_RATING + 1)}
    for rating in ratings:
        if rating in counts:
            counts[rating] += 1
    return counts
