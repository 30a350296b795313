"""Unit tests for bookcore.seo."""

import json

from bookcore.seo import (
    DEFAULT_SEO,
    ORGANIZATION_STRUCTURED_DATA,
    STATIC_PAGES,
    book_sitemap_entries,
    book_structured_data,
    generate_meta_tags,
    generate_sitemap,
    generate_structured_data,
)


class TestMetaTags:
    """Tests for meta tag generation."""

    def test_defaults(self):
        tags = generate_meta_tags()
        assert tags["title"] == DEFAULT_SEO["title"]
        assert tags["og:type"] == "website"
        assert tags["twitter:card"] == "summary_large_image"
        assert not any(key.startswith("article:") for key in tags)

    def test_article_tags_only_when_set(self):
        tags = generate_meta_tags({
            "title": "A Book",
            "author": "Jane",
            "tags": ["mystery", "noir"],
            "section": None,
        })
        assert tags["og:title"] == "A Book"
        assert tags["article:author"] == "Jane"
        assert tags["article:tag"] == "mystery,noir"
        assert "article:section" not in tags
        assert tags["description"] == DEFAULT_SEO["description"]


class TestStructuredData:
    def test_generic_schema(self):
        data = json.loads(generate_structured_data("Person", {"name": "Jane"}))
        assert data == {"@context": "https://schema.org", "@type": "Person", "name": "Jane"}

    def test_book_schema(self):
        book = {"id": "b1", "title": "Night", "author_name": "Jane", "price_cents": 100}
        data = json.loads(book_structured_data(book, "https://example.com"))
        assert data["@type"] == "Book"
        assert data["url"] == "https://example.com/book/b1"
        assert data["offers"]["price"] == "1.00"
        assert "image" not in data

    def test_organization_constant(self):
        assert ORGANIZATION_STRUCTURED_DATA["@type"] == "Organization"


class TestSitemap:
    """Tests for sitemap XML."""

    def test_relative_urls_are_prefixed(self):
        xml = generate_sitemap([{"url": "/discover"}], "https://example.com/")
        assert "<loc>https://example.com/discover</loc>" in xml
        assert "<lastmod>" not in xml
        assert "<priority>" not in xml

    def test_absolute_urls_kept_and_escaped(self):
        xml = generate_sitemap([{"url": "https://other.com/?a=1&b=2", "priority": 0.5}])
        assert "<loc>https://other.com/?a=1&amp;b=2</loc>" in xml
        assert "<priority>0.5</priority>" in xml

    def test_static_pages_and_books(self):
        entries = STATIC_PAGES + book_sitemap_entries([
            {"id": "b1", "updated_at": "2025-03-01T10:00:00Z"},
            {"id": "b2", "updated_at": None},
        ])
        xml = generate_sitemap(entries, "https://example.com")
        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert xml.count("<url>") == len(STATIC_PAGES) + 2
        assert "<loc>https://example.com/book/b1</loc>" in xml
        assert "<lastmod>2025-03-01</lastmod>" in xml

    def test_book_entries(self):
        entries = book_sitemap_entries([{"id": "b2"}])
        assert entries == [{"url": "/book/b2", "lastmod": None, "changefreq": "weekly", "priority": 0.6}]
