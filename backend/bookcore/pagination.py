import copy
import math
import re
from dataclasses import dataclass, field
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from bookcore.constants import (
    WORDS_PER_PAGE,
    MAX_WORDS_PER_PAGE,
    WORDS_PER_MINUTE,
    MIN_BLOCK_CHARS,
)

BLOCK_TAGS = ["p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "section", "article", "blockquote"]
CHAPTER_TAGS = ["h1", "h2", "h3"]
SKIP_TAGS = ["script", "style", "meta", "link", "title"]
STRIPPED_ATTRIBUTES = ["id", "class", "style", "onclick", "onload"]
VOID_TAGS = ["img", "br", "hr"]

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^<]*(?:(?!</style>)<[^<]*)*</style>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")
_SENTENCE_BREAK_RE = re.compile(r"\. ([A-Z])")


@dataclass
class BookPage:
    page_number: int
    content: str
    word_count: int
    start_index: int
    end_index: int


@dataclass
class PaginationInfo:
    pages: List[BookPage] = field(default_factory=list)
    total_pages: int = 0
    total_words: int = 0
    average_words_per_page: int = 0


@dataclass
class EnhancedBookPage:
    page_number: int
    content: str
    html_content: str
    word_count: int
    chapter_title: Optional[str]
    is_chapter_start: bool
    reading_time_minutes: int


@dataclass
class Chapter:
    title: str
    start_page: int
    end_page: int = 0


@dataclass
class EnhancedPaginationInfo:
    pages: List[EnhancedBookPage] = field(default_factory=list)
    total_pages: int = 0
    total_words: int = 0
    average_words_per_page: int = 0
    chapters: List[Chapter] = field(default_factory=list)


def count_words(text: str) -> int:
    if not text:
        return 0
    return len(text.split())


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


# -----------------------------
# Simple word-count paginator
# -----------------------------
def clean_html_content(html: str) -> str:
    text = _SCRIPT_RE.sub("", html)
    text = _STYLE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    return _WS_RE.sub(" ", text).strip()


def _format_page(words: List[str]) -> str:
    page_text = " ".join(words)
    body = _SENTENCE_BREAK_RE.sub(r".</p><p>\1", page_text)
    return f'<div class="book-page"><p>{body}</p></div>'


def paginate_content(content: str) -> PaginationInfo:
    """
    Split book content into fixed-size pages of WORDS_PER_PAGE words.

    HTML tags are stripped and the page text is re-wrapped into simple
    paragraphs, so inline formatting is not preserved.
    """
    if not content or not content.strip():
        return PaginationInfo()

    words = clean_html_content(content).split()
    total_words = len(words)
    if total_words == 0:
        return PaginationInfo()

    pages = []
    for page_number, start in enumerate(range(0, total_words, WORDS_PER_PAGE), start=1):
        page_words = words[start:start + WORDS_PER_PAGE]
        pages.append(BookPage(
            page_number=page_number,
            content=_format_page(page_words),
            word_count=len(page_words),
            start_index=start,
            end_index=start + len(page_words) - 1,
        ))

    return PaginationInfo(
        pages=pages,
        total_pages=len(pages),
        total_words=total_words,
        average_words_per_page=_round_half_up(total_words / len(pages)),
    )


# -----------------------------
# Chapter-aware paginator
# -----------------------------
def _iter_blocks(node):
    # innermost content blocks only, so nested containers don't repeat text
    for child in node.children:
        if not isinstance(child, Tag):
            continue
        name = child.name.lower()
        if name in SKIP_TAGS:
            continue
        if name in BLOCK_TAGS and child.find(BLOCK_TAGS) is None:
            yield child
        else:
            yield from _iter_blocks(child)


def _clean_element_html(element: Tag) -> str:
    clone = copy.copy(element)
    for tag in [clone] + clone.find_all(True):
        for attr in STRIPPED_ATTRIBUTES:
            if attr in tag.attrs:
                del tag.attrs[attr]

    for tag in clone.find_all(True):
        if tag.decomposed:
            continue
        if tag.name.lower() in VOID_TAGS or tag.find(VOID_TAGS):
            continue
        if not tag.get_text(strip=True):
            tag.decompose()

    return str(clone)


def _extract_blocks(content: str) -> List[dict]:
    soup = BeautifulSoup(content, "html.parser")
    root = soup.body or soup

    elements = list(_iter_blocks(root))
    if not elements:
        # plain text manuscript: treat blank-line separated chunks as paragraphs
        text = soup.get_text()
        paragraphs = [p.strip() for p in re.split(r"\n\s*\n", text) if p.strip()]
        wrapped = "".join(f"<p>{p}</p>" for p in paragraphs)
        elements = list(_iter_blocks(BeautifulSoup(wrapped, "html.parser")))

    blocks = []
    for element in elements:
        text = element.get_text(" ", strip=True)
        if len(text) < MIN_BLOCK_CHARS:
            continue
        blocks.append({
            "html": _clean_element_html(element),
            "text": text,
            "is_chapter": element.name.lower() in CHAPTER_TAGS,
        })
    return blocks


def _strip_html(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)


def _create_page(page_number, html_parts, word_count, chapter_title, is_chapter_start):
    html = "\n".join(html_parts)
    return EnhancedBookPage(
        page_number=page_number,
        content=_strip_html(html),
        html_content=f'<div class="book-page-content">\n{html}\n</div>',
        word_count=word_count,
        chapter_title=chapter_title,
        is_chapter_start=is_chapter_start,
        reading_time_minutes=math.ceil(word_count / WORDS_PER_MINUTE),
    )


def paginate_chapters(content: str) -> EnhancedPaginationInfo:
    """
    Paginate HTML content on block boundaries, starting a new page at every
    chapter heading (h1-h3).

    A page is closed once it reaches WORDS_PER_PAGE words; a block that would
    push the page past MAX_WORDS_PER_PAGE starts a fresh page instead.
    """
    if not content or not content.strip():
        return EnhancedPaginationInfo()

    pages: List[EnhancedBookPage] = []
    chapters: List[Chapter] = []

    current: List[str] = []
    current_words = 0
    page_number = 1
    chapter_title = None
    chapter_start = 1

    for block in _extract_blocks(content):
        block_words = count_words(block["text"])

        if block["is_chapter"]:
            if current:
                pages.append(_create_page(page_number, current, current_words, chapter_title,
                                          page_number == chapter_start))
                page_number += 1

            if chapters:
                chapters[-1].end_page = page_number - 1

            chapter_title = block["text"]
            chapter_start = page_number
            chapters.append(Chapter(title=chapter_title, start_page=chapter_start))

            current = [block["html"]]
            current_words = block_words
            continue

        if current and current_words + block_words > MAX_WORDS_PER_PAGE:
            pages.append(_create_page(page_number, current, current_words, chapter_title,
                                      page_number == chapter_start))
            page_number += 1
            current = [block["html"]]
            current_words = block_words
        else:
            current.append(block["html"])
            current_words += block_words

        if current_words >= WORDS_PER_PAGE:
            pages.append(_create_page(page_number, current, current_words, chapter_title,
                                      page_number == chapter_start))
            page_number += 1
            current = []
            current_words = 0

    if current:
        pages.append(_create_page(page_number, current, current_words, chapter_title,
                                  page_number == chapter_start))

    if not pages:
        return EnhancedPaginationInfo()

    if chapters:
        chapters[-1].end_page = len(pages)

    total_words = sum(p.word_count for p in pages)
    return EnhancedPaginationInfo(
        pages=pages,
        total_pages=len(pages),
        total_words=total_words,
        average_words_per_page=_round_half_up(total_words / len(pages)),
        chapters=chapters,
    )


def find_page_by_chapter(pagination: EnhancedPaginationInfo, chapter_title: str) -> int:
    needle = chapter_title.lower()
    for chapter in pagination.chapters:
        if needle in chapter.title.lower():
            return chapter.start_page or 1
    return 1


# -----------------------------
# Reader progress
# -----------------------------
def calculate_reading_progress(current_page: int, total_pages: int) -> dict:
    pages_read = max(0, current_page - 1)
    percentage = _round_half_up(pages_read / total_pages * 100) if total_pages > 0 else 0
    pages_remaining = max(0, total_pages - current_page)
    return {
        "percentage": percentage,
        "pages_read": pages_read,
        "pages_remaining": pages_remaining,
        "estimated_minutes_remaining": math.ceil(pages_remaining * WORDS_PER_PAGE / WORDS_PER_MINUTE),
    }


def estimate_reading_time(words_remaining: int, words_per_minute: int = WORDS_PER_MINUTE) -> dict:
    if words_per_minute <= 0:
        raise ValueError("words_per_minute must be positive")

    total_minutes = math.ceil(max(0, words_remaining) / words_per_minute)
    hours, minutes = divmod(total_minutes, 60)
    formatted = f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"
    return {"minutes": total_minutes, "hours": hours, "formatted_time": formatted}
