"""Unit tests for bookcore.analytics."""

from bookcore.analytics import frame_to_records, overview, revenue_by_day, top_books, writer_summary

PURCHASES = [
    {"book_id": "b1", "amount_cents": 100, "commission_cents": 10, "author_earnings_cents": 90,
     "purchased_at": "2025-03-01T10:00:00Z", "payment_status": "completed"},
    {"book_id": "b1", "amount_cents": 100, "commission_cents": 10, "author_earnings_cents": 90,
     "purchased_at": "2025-03-01T18:00:00Z", "payment_status": "completed"},
    {"book_id": "b2", "amount_cents": 300, "commission_cents": 30, "author_earnings_cents": 270,
     "purchased_at": "2025-03-02T09:00:00Z", "payment_status": "completed"},
    {"book_id": "b3", "amount_cents": 500, "commission_cents": 50, "author_earnings_cents": 450,
     "purchased_at": "2025-03-02T09:00:00Z", "payment_status": "pending"},
]


class TestRevenueByDay:
    def test_daily_totals(self):
        records = frame_to_records(revenue_by_day(PURCHASES))
        assert [r["day"] for r in records] == ["2025-03-01", "2025-03-02"]
        assert records[0]["purchases"] == 2
        assert records[0]["amount_cents"] == 200
        assert records[1]["author_earnings_cents"] == 270

    def test_empty(self):
        assert frame_to_records(revenue_by_day([])) == []


class TestTopBooks:
    def test_ranked_by_revenue(self):
        books = [{"id": "b1", "title": "First"}]
        records = frame_to_records(top_books(PURCHASES, books, n=5))
        assert [r["book_id"] for r in records] == ["b2", "b1"]
        assert records[0]["title"] == "Unknown"
        assert records[1]["title"] == "First"
        assert records[1]["sales"] == 2

    def test_limit(self):
        assert len(top_books(PURCHASES, [], n=1)) == 1


class TestDashboards:
    def test_writer_summary(self):
        tips = [
            {"author_earnings_cents": 450, "payment_status": "completed"},
            {"author_earnings_cents": 900, "payment_status": "pending"},
        ]
        summary = writer_summary(PURCHASES, tips)
        assert summary["total_sales"] == 3
        assert summary["gross_revenue_cents"] == 500
        assert summary["sales_earnings_cents"] == 450
        assert summary["tip_earnings_cents"] == 450
        assert summary["total_earnings_cents"] == 900
        assert summary["books_sold"] == 2

    def test_writer_summary_empty(self):
        summary = writer_summary([], [])
        assert summary["total_sales"] == 0
        assert summary["total_earnings_cents"] == 0

    def test_overview(self):
        profiles = [
            {"id": "1", "user_role": "reader"},
            {"id": "2", "user_role": None},
            {"id": "3", "user_role": "writer"},
        ]
        books = [{"id": "b1", "book_status": "published"}, {"id": "b2", "book_status": "draft"}]
        result = overview(profiles, books, PURCHASES)
        assert result["total_users"] == 3
        assert result["users_by_role"] == {"reader": 2, "writer": 1}
        assert result["books_by_status"] == {"published": 1, "draft": 1}
        assert result["total_purchases"] == 3
        assert result["total_revenue_cents"] == 500
        assert result["platform_commission_cents"] == 50
