import json
from typing import List, Optional
from xml.sax.saxutils import escape

from bookcore.constants import SITE_LOGO, SITE_NAME, SITE_URL

DEFAULT_SEO = {
    "title": "Million Dollar eBooks - Discover Fresh Voices & Support Rising Authors",
    "description": (
        "Discover amazing eBooks for just $1 and support rising authors. "
        "Read daily stories, connect with writers, and find your next great read."
    ),
    "keywords": ["ebooks", "authors", "reading", "books", "stories", "writers", "literature"],
    "image": SITE_LOGO,
    "url": SITE_URL,
    "type": "website",
}

ORGANIZATION_STRUCTURED_DATA = {
    "@context": "https://schema.org",
    "@type": "Organization",
    "name": SITE_NAME,
    "description": "Discover Fresh Voices & Support Rising Authors for Just $1",
    "url": SITE_URL,
    "logo": SITE_LOGO,
    "sameAs": ["https://www.producthunt.com/products/million-dollar-ebooks"],
    "contactPoint": {
        "@type": "ContactPoint",
        "contactType": "customer service",
        "url": f"{SITE_URL}/support",
    },
}

WEBSITE_STRUCTURED_DATA = {
    "@context": "https://schema.org",
    "@type": "WebSite",
    "name": SITE_NAME,
    "url": SITE_URL,
    "description": "Discover Fresh Voices & Support Rising Authors for Just $1",
    "potentialAction": {
        "@type": "SearchAction",
        "target": f"{SITE_URL}/discover?search={{search_term_string}}",
        "query-input": "required name=search_term_string",
    },
}

STATIC_PAGES = [
    {"url": "/", "changefreq": "daily", "priority": 1.0},
    {"url": "/discover", "changefreq": "daily", "priority": 0.9},
    {"url": "/stories", "changefreq": "daily", "priority": 0.9},
    {"url": "/library", "changefreq": "weekly", "priority": 0.7},
    {"url": "/dashboard", "changefreq": "daily", "priority": 0.8},
    {"url": "/support", "changefreq": "monthly", "priority": 0.5},
    {"url": "/terms", "changefreq": "yearly", "priority": 0.3},
    {"url": "/privacy", "changefreq": "yearly", "priority": 0.3},
]


def generate_meta_tags(seo: Optional[dict] = None) -> dict:
    meta = {**DEFAULT_SEO, **{k: v for k, v in (seo or {}).items() if v is not None}}

    tags = {
        "title": meta["title"],
        "description": meta["description"],
        "keywords": ", ".join(meta.get("keywords") or []),
        "og:title": meta["title"],
        "og:description": meta["description"],
        "og:image": meta["image"],
        "og:url": meta["url"],
        "og:type": meta["type"],
        "twitter:card": "summary_large_image",
        "twitter:title": meta["title"],
        "twitter:description": meta["description"],
        "twitter:image": meta["image"],
    }

    optional = {
        "article:author": meta.get("author"),
        "article:published_time": meta.get("published_time"),
        "article:modified_time": meta.get("modified_time"),
        "article:section": meta.get("section"),
        "article:tag": ",".join(meta["tags"]) if meta.get("tags") else None,
    }
    tags.update({k: v for k, v in optional.items() if v})
    return tags


def generate_structured_data(schema_type: str, data: dict) -> str:
    return json.dumps({"@context": "https://schema.org", "@type": schema_type, **data})


def book_structured_data(book: dict, base_url: str = SITE_URL) -> str:
    data = {
        "name": book.get("title"),
        "author": {"@type": "Person", "name": book.get("author_name")},
        "url": f"{base_url}/book/{book.get('id')}",
        "description": book.get("description") or "",
    }
    if book.get("cover_image_url"):
        data["image"] = book["cover_image_url"]
    if book.get("price_cents") is not None:
        data["offers"] = {
            "@type": "Offer",
            "price": f"{book['price_cents'] / 100:.2f}",
            "priceCurrency": "USD",
        }
    if book.get("rating_count"):
        data["aggregateRating"] = {
            "@type": "AggregateRating",
            "ratingValue": book.get("rating_average"),
            "reviewCount": book["rating_count"],
        }
    return generate_structured_data("Book", data)


# -----------------------------
# Sitemap
# -----------------------------
def generate_sitemap(entries: List[dict], base_url: str = SITE_URL) -> str:
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
    ]
    for entry in entries:
        url = entry["url"]
        if not url.startswith("http"):
            url = f"{base_url.rstrip('/')}{url}"
        lines.append("  <url>")
        lines.append(f"    <loc>{escape(url)}</loc>")
        if entry.get("lastmod"):
            lines.append(f"    <lastmod>{escape(entry['lastmod'])}</lastmod>")
        if entry.get("changefreq"):
            lines.append(f"    <changefreq>{entry['changefreq']}</changefreq>")
        if entry.get("priority"):
            lines.append(f"    <priority>{entry['priority']}</priority>")
        lines.append("  </url>")
    lines.append("</urlset>")
    return "\n".join(lines)


def book_sitemap_entries(books: List[dict]) -> List[dict]:
    entries = []
    for book in books:
        lastmod = (book.get("updated_at") or "")[:10] or None
        entries.append({
            "url": f"/book/{book['id']}",
            "lastmod": lastmod,
            "changefreq": "weekly",
            "priority": 0.6,
        })
    return entries
