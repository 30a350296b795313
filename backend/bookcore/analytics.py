from typing import List

import numpy as np
import pandas as pd

PURCHASE_COLUMNS = ["book_id", "amount_cents", "commission_cents", "author_earnings_cents", "purchased_at"]


def _purchases_frame(purchases: List[dict]) -> pd.DataFrame:
    df = pd.DataFrame(purchases, columns=None if purchases else PURCHASE_COLUMNS)
    for col in PURCHASE_COLUMNS:
        if col not in df.columns:
            df[col] = np.nan
    if "payment_status" in df.columns:
        df = df[df["payment_status"].fillna("completed") == "completed"].copy()
    for col in ["amount_cents", "commission_cents", "author_earnings_cents"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0).astype(int)
    df["purchased_at"] = pd.to_datetime(df["purchased_at"], utc=True, errors="coerce")
    return df


# -----------------------------
# Revenue
# -----------------------------
def revenue_by_day(purchases: List[dict]) -> pd.DataFrame:
    """Daily purchase totals, oldest first."""
    df = _purchases_frame(purchases)
    df = df.dropna(subset=["purchased_at"]).copy()
    if df.empty:
        return pd.DataFrame(columns=["day", "purchases", "amount_cents", "commission_cents", "author_earnings_cents"])

    df["day"] = df["purchased_at"].dt.strftime("%Y-%m-%d")
    out = df.groupby("day", as_index=False).agg(
        purchases=("amount_cents", "size"),
        amount_cents=("amount_cents", "sum"),
        commission_cents=("commission_cents", "sum"),
        author_earnings_cents=("author_earnings_cents", "sum"),
    )
    return out.sort_values("day").reset_index(drop=True)


def top_books(purchases: List[dict], books: List[dict], n: int = 10) -> pd.DataFrame:
    """Books ranked by revenue, with sales count and title."""
    df = _purchases_frame(purchases)
    df = df.dropna(subset=["book_id"])
    if df.empty:
        return pd.DataFrame(columns=["book_id", "title", "sales", "revenue_cents"])

    ranked = df.groupby("book_id", as_index=False).agg(
        sales=("amount_cents", "size"),
        revenue_cents=("amount_cents", "sum"),
    )
    titles = pd.DataFrame(books or [], columns=["id", "title"]).rename(columns={"id": "book_id"})
    ranked = ranked.merge(titles[["book_id", "title"]], on="book_id", how="left")
    ranked["title"] = ranked["title"].fillna("Unknown")
    ranked = ranked.sort_values(["revenue_cents", "sales"], ascending=False).head(n)
    return ranked[["book_id", "title", "sales", "revenue_cents"]].reset_index(drop=True)


# -----------------------------
# Dashboards
# -----------------------------
def writer_summary(purchases: List[dict], tips: List[dict]) -> dict:
    df = _purchases_frame(purchases)
    tips_df = pd.DataFrame(tips or [], columns=["author_earnings_cents", "payment_status"])
    tips_df = tips_df[tips_df["payment_status"] == "completed"]
    tip_earnings = int(pd.to_numeric(tips_df["author_earnings_cents"], errors="coerce").fillna(0).sum())

    sales_earnings = int(df["author_earnings_cents"].sum())
    return {
        "total_sales": int(len(df)),
        "gross_revenue_cents": int(df["amount_cents"].sum()),
        "sales_earnings_cents": sales_earnings,
        "tips_count": int(len(tips_df)),
        "tip_earnings_cents": tip_earnings,
        "total_earnings_cents": sales_earnings + tip_earnings,
        "books_sold": int(df["book_id"].nunique()),
    }


def overview(profiles: List[dict], books: List[dict], purchases: List[dict]) -> dict:
    users = pd.DataFrame(profiles or [], columns=["id", "user_role"])
    book_df = pd.DataFrame(books or [], columns=["id", "book_status"])
    df = _purchases_frame(purchases)

    roles = users["user_role"].fillna("reader").value_counts().to_dict()
    statuses = book_df["book_status"].fillna("draft").value_counts().to_dict()

    return {
        "total_users": int(len(users)),
        "users_by_role": {k: int(v) for k, v in roles.items()},
        "total_books": int(len(book_df)),
        "books_by_status": {k: int(v) for k, v in statuses.items()},
        "total_purchases": int(len(df)),
        "total_revenue_cents": int(df["amount_cents"].sum()),
        "platform_commission_cents": int(df["commission_cents"].sum()),
    }


def frame_to_records(df: pd.DataFrame) -> List[dict]:
    return df.replace({np.nan: None}).to_dict(orient="records")
