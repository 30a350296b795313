from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from bookcore.seo import (
    STATIC_PAGES,
    book_sitemap_entries,
    book_structured_data,
    generate_meta_tags,
    generate_sitemap,
)
from marketplace.config import get_settings
from marketplace.db.supabase import first_row, get_supabase_client

router = APIRouter(tags=["seo"])


@router.get("/sitemap.xml")
async def sitemap(supabase=Depends(get_supabase_client)):
    books = (
        supabase.table("books")
        .select("id, updated_at")
        .eq("book_status", "published")
        .execute()
        .data
        or []
    )
    xml = generate_sitemap(STATIC_PAGES + book_sitemap_entries(books), get_settings().site_url)
    return Response(content=xml, media_type="application/xml")


@router.get("/api/seo/books/{book_id}")
async def book_seo(book_id: str, supabase=Depends(get_supabase_client)):
    book = first_row(supabase.table("books").select("*").eq("id", book_id).limit(1).execute())
    if not book or book.get("book_status") != "published":
        raise HTTPException(status_code=404, detail="Book not found")

    site_url = get_settings().site_url
    seo = {
        "title": f"{book['title']} by {book.get('author_name') or 'Unknown'}",
        "description": (book.get("description") or "")[:160] or None,
        "image": book.get("cover_image_url"),
        "url": f"{site_url}/book/{book_id}",
        "type": "book",
        "author": book.get("author_name"),
        "published_time": book.get("publication_date") or book.get("created_at"),
        "modified_time": book.get("updated_at"),
        "section": book.get("series_name"),
        "tags": book.get("tags"),
    }
    return {
        "meta": generate_meta_tags(seo),
        "structured_data": book_structured_data(book, site_url),
    }
