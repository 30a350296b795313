import json
import logging
import re

import requests

from marketplace.config import get_settings

logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
CONTENT_PREVIEW_CHARS = 3000
RECOMMENDATIONS = ["APPROVE", "REJECT", "NEEDS_REVISION"]

REVIEW_PROMPT = """
Please provide a comprehensive review of this book submission for publication approval.

BOOK DETAILS:
Title: {title}
Author: {author}
Genre: {genre}
Description: {description}
Content: {content}... [truncated for analysis]

REVIEW CRITERIA (score each 1-10):
1. CONTENT QUALITY: writing quality, grammar, coherence, structure
2. APPROPRIATENESS: suitable for the platform, no harmful material
3. ORIGINALITY: uniqueness, creativity, not plagiarized
4. MARKETABILITY: potential reader interest
5. TECHNICAL QUALITY: formatting, readability

Respond with JSON only:
{{
  "overallScore": number,
  "recommendation": "APPROVE" | "REJECT" | "NEEDS_REVISION",
  "contentQuality": {{"score": number, "analysis": "string"}},
  "appropriateness": {{"score": number, "analysis": "string"}},
  "originality": {{"score": number, "analysis": "string"}},
  "marketability": {{"score": number, "analysis": "string"}},
  "technicalQuality": {{"score": number, "analysis": "string"}},
  "strengths": ["string"],
  "weaknesses": ["string"],
  "concerns": ["string"],
  "authorFeedback": "string",
  "adminNotes": "string"
}}
"""


class ReviewError(Exception):
    pass


def build_prompt(book: dict) -> str:
    return REVIEW_PROMPT.format(
        title=book.get("title", ""),
        author=book.get("author_name", ""),
        genre=", ".join(book.get("tags") or []),
        description=book.get("description") or "",
        content=(book.get("content") or "")[:CONTENT_PREVIEW_CHARS],
    )


def parse_review(text: str) -> dict:
    """Pull the JSON object out of a model reply (fenced or bare)."""
    match = re.search(r"\{.*\}", text or "", re.DOTALL)
    if not match:
        raise ReviewError("AI response did not contain JSON")
    try:
        review = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise ReviewError(f"AI response was not valid JSON: {e}")

    if review.get("recommendation") not in RECOMMENDATIONS:
        review["recommendation"] = "NEEDS_REVISION"
    return review


def review_book(book: dict) -> dict:
    settings = get_settings()
    if not settings.openai_api_key:
        raise ReviewError("OPENAI_API_KEY not configured")

    logger.info(f"Requesting AI review for book {book.get('id')}")
    response = requests.post(
        OPENAI_URL,
        json={
            "model": settings.openai_model,
            "messages": [
                {"role": "system", "content": "You are an experienced editor reviewing ebook submissions."},
                {"role": "user", "content": build_prompt(book)},
            ],
            "temperature": 0.3,
        },
        headers={"Authorization": f"Bearer {settings.openai_api_key}"},
        timeout=60,
    )
    if not response.ok:
        raise ReviewError(f"OpenAI API error: {response.status_code} - {response.text}")

    content = response.json()["choices"][0]["message"]["content"]
    return parse_review(content)
