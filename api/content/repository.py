"""
CMS persistence: banners, blog posts and FAQs.
"""

from __future__ import annotations

from typing import Any

from core import db

BANNER_FIELDS = (
    "title",
    "description",
    "image",
    "mobile_image",
    "link",
    "link_text",
    "alt_text",
    "is_active",
    "sort_order",
    "start_date",
    "end_date",
    "target_page",
    "banner_type",
    "priority",
    "created_by",
    "updated_by",
)

BLOG_FIELDS = (
    "title",
    "slug",
    "content",
    "excerpt",
    "featured_image",
    "category",
    "tags",
    "meta_title",
    "meta_description",
    "is_published",
    "published_at",
    "reading_time",
    "author_id",
)

FAQ_FIELDS = (
    "question",
    "answer",
    "category",
    "is_active",
    "sort_order",
    "target_audience",
    "created_by",
)

_WRITABLE = {
    "banners": BANNER_FIELDS,
    "blogs": BLOG_FIELDS,
    "faqs": FAQ_FIELDS,
}


async def _insert(table: str, fields: dict[str, Any]) -> dict[str, Any]:
    fields = {k: v for k, v in fields.items() if k in _WRITABLE[table]}
    columns = ", ".join(fields)
    placeholders = ", ".join(f"${i}" for i in range(1, len(fields) + 1))
    row = await db.fetch_one(
        f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING *",
        *fields.values(),
    )
    if row is None:
        raise RuntimeError(f"Failed to insert into {table}.")
    return row


async def _update(table: str, row_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    fields = {k: v for k, v in fields.items() if k in _WRITABLE[table]}
    if not fields:
        return await db.fetch_one(f"SELECT * FROM {table} WHERE id = $1", row_id)
    assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(fields, start=2))
    return await db.fetch_one(
        f"UPDATE {table} SET {assignments}, updated_at = now() WHERE id = $1 RETURNING *",
        row_id,
        *fields.values(),
    )


async def _delete(table: str, row_id: int) -> bool:
    row = await db.fetch_one(f"DELETE FROM {table} WHERE id = $1 RETURNING id", row_id)
    return row is not None


async def _reorder(table: str, items: list[tuple[int, int]]) -> int:
    """Apply (id, sort_order) pairs atomically; returns rows touched."""
    touched = 0
    async with db.transaction() as conn:
        for row_id, sort_order in items:
            status = await conn.execute(
                f"UPDATE {table} SET sort_order = $2, updated_at = now() WHERE id = $1",
                row_id,
                sort_order,
            )
            touched += db.affected_rows(status)
    return touched


async def _page(
    table: str,
    *,
    where: str,
    args: list[Any],
    order_by: str,
    limit: int,
    offset: int,
) -> tuple[list[dict[str, Any]], int]:
    total = await db.fetch_val(f"SELECT count(*) FROM {table} {where}", *args)
    rows = await db.fetch_all(
        f"""
        SELECT *
        FROM {table}
        {where}
        ORDER BY {order_by}
        LIMIT ${len(args) + 1}
        OFFSET ${len(args) + 2}
        """,
        *args,
        limit,
        offset,
    )
    return rows, int(total or 0)


# Banners


async def list_banners(*, is_active: bool | None, limit: int, offset: int) -> tuple[list[dict[str, Any]], int]:
    args: list[Any] = []
    where = ""
    if is_active is not None:
        args.append(is_active)
        where = "WHERE is_active = $1"
    return await _page(
        "banners",
        where=where,
        args=args,
        order_by="sort_order ASC, created_at DESC",
        limit=limit,
        offset=offset,
    )


async def get_banner(banner_id: int) -> dict[str, Any] | None:
    return await db.fetch_one("SELECT * FROM banners WHERE id = $1", banner_id)


async def create_banner(fields: dict[str, Any]) -> dict[str, Any]:
    return await _insert("banners", fields)


async def update_banner(banner_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    return await _update("banners", banner_id, fields)


async def delete_banner(banner_id: int) -> bool:
    return await _delete("banners", banner_id)


async def toggle_banner(banner_id: int, *, admin_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        UPDATE banners
        SET is_active = NOT is_active, updated_by = $2, updated_at = now()
        WHERE id = $1
        RETURNING *
        """,
        banner_id,
        admin_id,
    )


async def reorder_banners(items: list[tuple[int, int]]) -> int:
    return await _reorder("banners", items)


async def public_banners(*, target_page: str | None = None) -> list[dict[str, Any]]:
    return await db.fetch_all(
        """
        SELECT id, title, description, image, mobile_image, link, link_text,
               alt_text, sort_order, target_page, banner_type, priority
        FROM banners
        WHERE is_active = true
          AND (start_date IS NULL OR start_date <= now())
          AND (end_date IS NULL OR end_date >= now())
          AND ($1::text IS NULL OR target_page = $1)
        ORDER BY sort_order ASC, priority DESC, id ASC
        """,
        target_page,
    )


# Blogs


def _blog_filters(
    *,
    search: str | None = None,
    category: str | None = None,
    is_published: bool | None = None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []
    if search:
        args.append(f"%{search}%")
        n = len(args)
        conditions.append(f"(title ILIKE ${n} OR excerpt ILIKE ${n} OR content ILIKE ${n})")
    if category:
        args.append(category)
        conditions.append(f"category = ${len(args)}")
    if is_published is not None:
        args.append(is_published)
        conditions.append(f"is_published = ${len(args)}")
    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    return where, args


async def list_blogs(*, limit: int, offset: int, **filters: Any) -> tuple[list[dict[str, Any]], int]:
    where, args = _blog_filters(**filters)
    return await _page(
        "blogs",
        where=where,
        args=args,
        order_by="created_at DESC, id DESC",
        limit=limit,
        offset=offset,
    )


async def list_published_blogs(
    *,
    limit: int,
    offset: int,
    search: str | None = None,
    category: str | None = None,
) -> tuple[list[dict[str, Any]], int]:
    where, args = _blog_filters(search=search, category=category, is_published=True)
    return await _page(
        "blogs",
        where=where,
        args=args,
        order_by="published_at DESC NULLS LAST, id DESC",
        limit=limit,
        offset=offset,
    )


async def get_blog(blog_id: int) -> dict[str, Any] | None:
    return await db.fetch_one("SELECT * FROM blogs WHERE id = $1", blog_id)


async def slug_taken(slug: str, *, exclude_id: int | None = None) -> bool:
    value = await db.fetch_val(
        "SELECT EXISTS (SELECT 1 FROM blogs WHERE slug = $1 AND ($2::bigint IS NULL OR id <> $2))",
        slug,
        exclude_id,
    )
    return bool(value)


async def create_blog(fields: dict[str, Any]) -> dict[str, Any]:
    return await _insert("blogs", fields)


async def update_blog(blog_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    return await _update("blogs", blog_id, fields)


async def delete_blog(blog_id: int) -> bool:
    return await _delete("blogs", blog_id)


async def view_published_blog(slug: str) -> dict[str, Any] | None:
    return await db.fetch_one(
        """
        UPDATE blogs
        SET views = views + 1
        WHERE slug = $1 AND is_published = true
        RETURNING *
        """,
        slug,
    )


# FAQs


def _faq_filters(
    *,
    category: str | None = None,
    is_active: bool | None = None,
    search: str | None = None,
) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []
    if category:
        args.append(category)
        conditions.append(f"category = ${len(args)}")
    if is_active is not None:
        args.append(is_active)
        conditions.append(f"is_active = ${len(args)}")
    if search:
        args.append(f"%{search}%")
        n = len(args)
        conditions.append(f"(question ILIKE ${n} OR answer ILIKE ${n})")
    where = ("WHERE " + " AND ".join(conditions)) if conditions else ""
    return where, args


async def list_faqs(*, limit: int, offset: int, **filters: Any) -> tuple[list[dict[str, Any]], int]:
    where, args = _faq_filters(**filters)
    return await _page(
        "faqs",
        where=where,
        args=args,
        order_by="sort_order ASC, created_at DESC",
        limit=limit,
        offset=offset,
    )


async def public_faqs(*, category: str | None = None) -> list[dict[str, Any]]:
    where, args = _faq_filters(category=category, is_active=True)
    return await db.fetch_all(
        f"""
        SELECT id, question, answer, category, sort_order, helpful_count, not_helpful_count
        FROM faqs
        {where}
        ORDER BY sort_order ASC, id ASC
        """,
        *args,
    )


async def get_faq(faq_id: int) -> dict[str, Any] | None:
    return await db.fetch_one("SELECT * FROM faqs WHERE id = $1", faq_id)


async def create_faq(fields: dict[str, Any]) -> dict[str, Any]:
    return await _insert("faqs", fields)


async def update_faq(faq_id: int, fields: dict[str, Any]) -> dict[str, Any] | None:
    return await _update("faqs", faq_id, fields)


async def delete_faq(faq_id: int) -> bool:
    return await _delete("faqs", faq_id)


async def toggle_faq(faq_id: int) -> dict[str, Any] | None:
    return await db.fetch_one(
        "UPDATE faqs SET is_active = NOT is_active, updated_at = now() WHERE id = $1 RETURNING *",
        faq_id,
    )


async def reorder_faqs(items: list[tuple[int, int]]) -> int:
    return await _reorder("faqs", items)


async def record_faq_feedback(faq_id: int, *, helpful: bool) -> dict[str, Any] | None:
    column = "helpful_count" if helpful else "not_helpful_count"
    return await db.fetch_one(
        f"""
        UPDATE faqs
        SET {column} = {column} + 1
        WHERE id = $1 AND is_active = true
        RETURNING id, helpful_count, not_helpful_count
        """,
        faq_id,
    )


async def stats() -> dict[str, Any]:
    banners = await db.fetch_one(
        """
        SELECT count(*) AS total,
               count(*) FILTER (WHERE is_active) AS active,
               COALESCE(sum(click_count), 0) AS clicks,
               COALESCE(sum(impression_count), 0) AS impressions
        FROM banners
        """
    )
    blogs = await db.fetch_one(
        """
        SELECT count(*) AS total,
               count(*) FILTER (WHERE is_published) AS published,
               count(*) FILTER (WHERE NOT is_published) AS drafts,
               COALESCE(sum(views), 0) AS views
        FROM blogs
        """
    )
    faqs = await db.fetch_one(
        """
        SELECT count(*) AS total,
               count(*) FILTER (WHERE is_active) AS active,
               COALESCE(sum(helpful_count), 0) AS helpful,
               COALESCE(sum(not_helpful_count), 0) AS not_helpful
        FROM faqs
        """
    )
    blog_categories = await db.fetch_all(
        "SELECT category, count(*) AS count FROM blogs GROUP BY category ORDER BY count DESC"
    )
    faq_categories = await db.fetch_all(
        "SELECT category, count(*) AS count FROM faqs GROUP BY category ORDER BY count DESC"
    )
    return {
        "banners": banners or {},
        "blogs": {**(blogs or {}), "categories": blog_categories},
        "faqs": {**(faqs or {}), "categories": faq_categories},
    }
