"""
Reporting queries. Every time window is half-open: [start, end).
Revenue means the amount members actually paid (final_amount) on completed
transactions; gross is the pre-discount amount.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from core import db

_COMPLETED = "status = 'completed'"


async def overview_totals() -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        SELECT
          (SELECT count(*) FROM users) AS total_users,
          (SELECT count(*) FROM users WHERE is_active) AS active_users,
          (SELECT count(*) FROM shops) AS total_shops,
          (SELECT count(*) FROM shops WHERE status = 'approved') AS approved_shops,
          (SELECT count(*) FROM shops WHERE status = 'pending') AS pending_shops,
          (SELECT count(*) FROM discount_cards WHERE is_active AND expires_at > now()) AS active_cards,
          (SELECT count(*) FROM transactions WHERE {_COMPLETED}) AS total_transactions,
          (SELECT COALESCE(sum(final_amount), 0) FROM transactions WHERE {_COMPLETED}) AS total_revenue,
          (SELECT COALESCE(sum(discount_amount), 0) FROM transactions WHERE {_COMPLETED}) AS total_discount
        """
    )
    return row or {}


async def period_totals(start: datetime, end: datetime) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        SELECT
          (SELECT count(*) FROM users WHERE created_at >= $1 AND created_at < $2) AS new_users,
          (SELECT count(*) FROM shops WHERE created_at >= $1 AND created_at < $2) AS new_shops,
          (SELECT count(*) FROM transactions
             WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2) AS transactions,
          (SELECT COALESCE(sum(final_amount), 0) FROM transactions
             WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2) AS revenue,
          (SELECT COALESCE(sum(discount_amount), 0) FROM transactions
             WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2) AS discount,
          (SELECT COALESCE(avg(amount), 0) FROM transactions
             WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2) AS average_transaction_value,
          (SELECT count(DISTINCT user_id) FROM transactions
             WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2) AS active_customers
        """,
        start,
        end,
    )
    return row or {}


async def tier_distribution() -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT current_tier AS tier, count(*) AS count
        FROM users
        GROUP BY current_tier
        ORDER BY count DESC
        """
    )


async def registrations_per_day(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT created_at::date AS date, count(*) AS count
        FROM users
        WHERE created_at >= $1 AND created_at < $2
        GROUP BY 1
        ORDER BY 1
        """,
        start,
        end,
    )


async def city_distribution(*, limit: int = 10) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT COALESCE(NULLIF(city, ''), NULLIF(location, ''), 'Unknown') AS city, count(*) AS count
        FROM users
        GROUP BY 1
        ORDER BY count DESC
        LIMIT $1
        """,
        limit,
    )


async def verification_counts() -> dict[str, Any]:
    row = await db.fetch_one(
        """
        SELECT
          count(*) FILTER (WHERE is_email_verified) AS email_verified,
          count(*) FILTER (WHERE is_phone_verified) AS phone_verified,
          count(*) FILTER (WHERE is_profile_complete) AS profile_complete,
          count(*) AS total
        FROM users
        """
    )
    return row or {}


async def shops_by_status() -> list[dict[str, Any]]:
    return await db.fetch_all("SELECT status, count(*) AS count FROM shops GROUP BY status ORDER BY count DESC")


async def shops_by_category() -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT COALESCE(category, 'Other') AS category, count(*) AS count
        FROM shops
        GROUP BY 1
        ORDER BY count DESC
        """
    )


async def new_shops_per_day(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT created_at::date AS date, count(*) AS count
        FROM shops
        WHERE created_at >= $1 AND created_at < $2
        GROUP BY 1
        ORDER BY 1
        """,
        start,
        end,
    )


async def top_shops(start: datetime, end: datetime, *, order: str = "revenue", limit: int = 10) -> list[dict[str, Any]]:
    order_column = "transaction_count" if order == "transactions" else "revenue"
    return await db.fetch_all(
        f"""
        SELECT s.id, s.name, s.category, s.district,
               count(t.id) AS transaction_count,
               COALESCE(sum(t.final_amount), 0) AS revenue,
               COALESCE(sum(t.discount_amount), 0) AS discount_given
        FROM shops s
        JOIN transactions t ON t.shop_id = s.id
        WHERE t.{_COMPLETED} AND t.transaction_date >= $1 AND t.transaction_date < $2
        GROUP BY s.id
        ORDER BY {order_column} DESC, s.id
        LIMIT $3
        """,
        start,
        end,
        limit,
    )


async def top_users(start: datetime, end: datetime, *, order: str = "revenue", limit: int = 10) -> list[dict[str, Any]]:
    order_column = "transaction_count" if order == "transactions" else "total_spent"
    return await db.fetch_all(
        f"""
        SELECT u.id, u.full_name, u.email, u.current_tier,
               count(t.id) AS transaction_count,
               COALESCE(sum(t.amount), 0) AS total_spent,
               COALESCE(sum(t.discount_amount), 0) AS total_saved
        FROM users u
        JOIN transactions t ON t.user_id = u.id
        WHERE t.{_COMPLETED} AND t.transaction_date >= $1 AND t.transaction_date < $2
        GROUP BY u.id
        ORDER BY {order_column} DESC, u.id
        LIMIT $3
        """,
        start,
        end,
        limit,
    )


async def transactions_per_day(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT transaction_date::date AS date,
               count(*) AS count,
               COALESCE(sum(amount), 0) AS amount
        FROM transactions
        WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2
        GROUP BY 1
        ORDER BY 1
        """,
        start,
        end,
    )


async def transactions_by_status(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT status, count(*) AS count, COALESCE(sum(amount), 0) AS amount
        FROM transactions
        WHERE transaction_date >= $1 AND transaction_date < $2
        GROUP BY status
        ORDER BY count DESC
        """,
        start,
        end,
    )


async def transactions_by_payment_method(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT payment_method, count(*) AS count, COALESCE(sum(amount), 0) AS amount
        FROM transactions
        WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2
        GROUP BY payment_method
        ORDER BY count DESC
        """,
        start,
        end,
    )


async def revenue_per_day(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT transaction_date::date AS date,
               COALESCE(sum(amount), 0) AS gross,
               COALESCE(sum(discount_amount), 0) AS discount,
               COALESCE(sum(final_amount), 0) AS net
        FROM transactions
        WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2
        GROUP BY 1
        ORDER BY 1
        """,
        start,
        end,
    )


async def revenue_totals(start: datetime, end: datetime) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        SELECT count(*) AS transactions,
               COALESCE(sum(amount), 0) AS gross,
               COALESCE(sum(discount_amount), 0) AS discount,
               COALESCE(sum(final_amount), 0) AS net
        FROM transactions
        WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2
        """,
        start,
        end,
    )
    return row or {}


async def discount_summary(start: datetime, end: datetime) -> dict[str, Any]:
    row = await db.fetch_one(
        f"""
        SELECT
          count(*) AS total_transactions,
          count(*) FILTER (WHERE discount_amount > 0) AS discounted_transactions,
          COALESCE(sum(discount_amount), 0) AS total_discount,
          COALESCE(avg(discount_amount) FILTER (WHERE discount_amount > 0), 0) AS average_discount,
          COALESCE(avg(discount_percentage) FILTER (WHERE discount_amount > 0), 0) AS average_percentage
        FROM transactions
        WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2
        """,
        start,
        end,
    )
    return row or {}


async def discount_by_tier(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT u.current_tier AS tier,
               count(DISTINCT u.id) AS user_count,
               COALESCE(sum(t.discount_amount), 0) AS discount_used,
               count(t.id) AS transaction_count
        FROM users u
        LEFT JOIN transactions t
          ON t.user_id = u.id AND t.{_COMPLETED}
         AND t.transaction_date >= $1 AND t.transaction_date < $2
        GROUP BY u.current_tier
        ORDER BY u.current_tier
        """,
        start,
        end,
    )


async def top_rules(*, limit: int = 10) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT r.id, r.rule_name, r.discount_percentage, r.tier, r.usage_count,
               r.is_active, s.name AS shop_name
        FROM discount_rules r
        LEFT JOIN shops s ON s.id = r.shop_id
        ORDER BY r.usage_count DESC, r.id
        LIMIT $1
        """,
        limit,
    )


async def monthly_growth(first_month: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        WITH months AS (
          SELECT generate_series(date_trunc('month', $1::timestamptz),
                                 date_trunc('month', now()),
                                 interval '1 month') AS month
        )
        SELECT
          to_char(m.month, 'YYYY-MM') AS month,
          (SELECT count(*) FROM users
             WHERE created_at >= m.month AND created_at < m.month + interval '1 month') AS new_users,
          (SELECT count(*) FROM shops
             WHERE created_at >= m.month AND created_at < m.month + interval '1 month') AS new_shops,
          (SELECT COALESCE(sum(final_amount), 0) FROM transactions
             WHERE {_COMPLETED} AND transaction_date >= m.month
               AND transaction_date < m.month + interval '1 month') AS revenue
        FROM months m
        ORDER BY m.month
        """,
        first_month,
    )


async def export_users(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT id, full_name, email, phone, city, current_tier, total_spent, is_active, created_at
        FROM users
        WHERE created_at >= $1 AND created_at < $2
        ORDER BY created_at
        """,
        start,
        end,
    )


async def export_shops(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT id, name, owner_name, email, phone, category, district, status,
               total_transactions, total_revenue, created_at
        FROM shops
        WHERE created_at >= $1 AND created_at < $2
        ORDER BY created_at
        """,
        start,
        end,
    )


async def export_transactions(start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT t.transaction_ref, t.transaction_date, u.full_name AS user_name,
               s.name AS shop_name, t.amount, t.discount_percentage,
               t.discount_amount, t.final_amount, t.payment_method, t.status
        FROM transactions t
        JOIN users u ON u.id = t.user_id
        LEFT JOIN shops s ON s.id = t.shop_id
        WHERE t.transaction_date >= $1 AND t.transaction_date < $2
        ORDER BY t.transaction_date
        """,
        start,
        end,
    )


async def shop_district_distribution(*, limit: int = 20) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT COALESCE(NULLIF(district, ''), 'Unknown') AS district,
               count(*) AS count,
               count(*) FILTER (WHERE status = 'approved') AS approved
        FROM shops
        GROUP BY 1
        ORDER BY count DESC
        LIMIT $1
        """,
        limit,
    )


async def revenue_by_district(start: datetime, end: datetime, *, limit: int = 20) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT COALESCE(NULLIF(s.district, ''), 'Unknown') AS district,
               count(*) AS transactions,
               COALESCE(sum(t.final_amount), 0) AS revenue
        FROM transactions t
        JOIN shops s ON s.id = t.shop_id
        WHERE t.{_COMPLETED} AND t.transaction_date >= $1 AND t.transaction_date < $2
        GROUP BY 1
        ORDER BY revenue DESC
        LIMIT $3
        """,
        start,
        end,
        limit,
    )


async def realtime_counts(*, day_start: datetime, hour_ago: datetime, active_since: datetime) -> dict[str, Any]:
    """
    Activity counters for the live dashboard. A member counts as online when
    one of their refresh tokens was issued or used since `active_since`.
    """
    row = await db.fetch_one(
        f"""
        SELECT
          (SELECT count(*) FROM transactions WHERE {_COMPLETED} AND transaction_date >= $1) AS transactions_today,
          (SELECT count(*) FROM transactions WHERE {_COMPLETED} AND transaction_date >= $2) AS transactions_last_hour,
          (SELECT COALESCE(sum(final_amount), 0) FROM transactions
            WHERE {_COMPLETED} AND transaction_date >= $1) AS revenue_today,
          (SELECT COALESCE(sum(final_amount), 0) FROM transactions
            WHERE {_COMPLETED} AND transaction_date >= $2) AS revenue_last_hour,
          (SELECT count(*) FROM users WHERE created_at >= $1) AS users_today,
          (SELECT count(DISTINCT account_id) FROM refresh_tokens
            WHERE account_type = 'member'
              AND revoked_at IS NULL
              AND COALESCE(last_used_at, created_at) >= $3) AS users_online
        """,
        day_start,
        hour_ago,
        active_since,
    )
    return row or {}


_METRIC_TOTALS = {
    "users": "SELECT count(*) FROM users WHERE created_at >= $1 AND created_at < $2",
    "shops": "SELECT count(*) FROM shops WHERE created_at >= $1 AND created_at < $2",
    "transactions": (
        f"SELECT count(*) FROM transactions WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2"
    ),
    "revenue": (
        "SELECT COALESCE(sum(final_amount), 0) FROM transactions"
        f" WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2"
    ),
}

_METRIC_DAILY = {
    "users": """
        SELECT created_at::date AS date, count(*) AS value
        FROM users
        WHERE created_at >= $1 AND created_at < $2
        GROUP BY 1
        ORDER BY 1
    """,
    "transactions": f"""
        SELECT transaction_date::date AS date, count(*) AS value
        FROM transactions
        WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2
        GROUP BY 1
        ORDER BY 1
    """,
    "revenue": f"""
        SELECT transaction_date::date AS date, COALESCE(sum(final_amount), 0) AS value
        FROM transactions
        WHERE {_COMPLETED} AND transaction_date >= $1 AND transaction_date < $2
        GROUP BY 1
        ORDER BY 1
    """,
}


async def metric_total(metric: str, start: datetime, end: datetime) -> Any:
    return await db.fetch_val(_METRIC_TOTALS[metric], start, end)


async def metric_per_day(metric: str, start: datetime, end: datetime) -> list[dict[str, Any]]:
    return await db.fetch_all(_METRIC_DAILY[metric], start, end)


async def report_users(start: datetime, end: datetime, *, bucket: str, tier: str | None) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT date_trunc($3, created_at)::date AS period,
               count(*) AS new_users,
               count(*) FILTER (WHERE is_active) AS active_users
        FROM users
        WHERE created_at >= $1 AND created_at < $2
          AND ($4::text IS NULL OR current_tier = $4)
        GROUP BY 1
        ORDER BY 1
        """,
        start,
        end,
        bucket,
        tier,
    )


async def report_shops(start: datetime, end: datetime, *, bucket: str) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT date_trunc($3, created_at)::date AS period,
               count(*) AS new_shops,
               count(*) FILTER (WHERE status = 'approved') AS approved_shops
        FROM shops
        WHERE created_at >= $1 AND created_at < $2
        GROUP BY 1
        ORDER BY 1
        """,
        start,
        end,
        bucket,
    )


async def report_transactions(
    start: datetime,
    end: datetime,
    *,
    bucket: str,
    shop_id: int | None,
    tier: str | None,
) -> list[dict[str, Any]]:
    return await db.fetch_all(
        f"""
        SELECT date_trunc($3, t.transaction_date)::date AS period,
               count(*) AS transactions,
               count(*) FILTER (WHERE t.discount_amount > 0) AS discounted_transactions,
               COALESCE(sum(t.amount), 0) AS gross,
               COALESCE(sum(t.discount_amount), 0) AS discount,
               COALESCE(sum(t.final_amount), 0) AS net
        FROM transactions t
        JOIN users u ON u.id = t.user_id
        WHERE t.{_COMPLETED} AND t.transaction_date >= $1 AND t.transaction_date < $2
          AND ($4::bigint IS NULL OR t.shop_id = $4)
          AND ($5::text IS NULL OR u.current_tier = $5)
        GROUP BY 1
        ORDER BY 1
        """,
        start,
        end,
        bucket,
        shop_id,
        tier,
    )
