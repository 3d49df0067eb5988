"""
CMS business logic for banners, blog posts and FAQs.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, UploadFile, status

from core import responses, uploads
from core.text import slugify

from . import repository, schemas

logger = logging.getLogger(__name__)

WORDS_PER_MINUTE = 200

_TAG_RE = re.compile(r"<[^>]*>")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def reading_time(content: str) -> int:
    words = _TAG_RE.sub(" ", content or "").split()
    return max(1, math.ceil(len(words) / WORDS_PER_MINUTE))


def publish_fields(*, publish: bool, current_published_at: datetime | None, now: datetime) -> dict[str, Any]:
    """
    First publish stamps published_at; unpublishing clears it.
    """
    if publish:
        return {"is_published": True, "published_at": current_published_at or now}
    return {"is_published": False, "published_at": None}


def _not_found(kind: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind} not found")


def _check_window(start_date: datetime | None, end_date: datetime | None) -> None:
    if start_date is not None and end_date is not None and end_date <= start_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date must be after start_date",
        )


# Banners


async def list_banners(*, page: int, limit: int, status_filter: str | None) -> dict:
    is_active = {"active": True, "inactive": False}.get(status_filter or "")
    rows, total = await repository.list_banners(
        is_active=is_active,
        limit=limit,
        offset=responses.page_offset(page, limit),
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Banners retrieved")


async def get_banner(banner_id: int) -> dict:
    banner = await repository.get_banner(banner_id)
    if banner is None:
        raise _not_found("Banner")
    return banner


async def create_banner(
    fields: dict[str, Any],
    *,
    image: UploadFile | None,
    mobile_image: UploadFile | None,
    admin_id: int,
) -> dict:
    if image is None or not image.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Banner image is required")
    if not fields.get("title"):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Banner title is required")
    _check_window(fields.get("start_date"), fields.get("end_date"))

    fields = {k: v for k, v in fields.items() if v is not None}
    fields["image"] = await uploads.save_image(image, subdir="banners")
    if mobile_image is not None and mobile_image.filename:
        fields["mobile_image"] = await uploads.save_image(mobile_image, subdir="banners")
    fields["created_by"] = admin_id
    fields["updated_by"] = admin_id

    banner = await repository.create_banner(fields)
    logger.info("banner_created banner_id=%s admin_id=%s", banner["id"], admin_id)
    return banner


async def update_banner(
    banner_id: int,
    fields: dict[str, Any],
    *,
    image: UploadFile | None,
    mobile_image: UploadFile | None,
    admin_id: int,
) -> dict:
    existing = await get_banner(banner_id)
    changes = {k: v for k, v in fields.items() if v is not None}
    _check_window(
        changes.get("start_date", existing.get("start_date")),
        changes.get("end_date", existing.get("end_date")),
    )
    if image is not None and image.filename:
        changes["image"] = await uploads.save_image(image, subdir="banners")
    if mobile_image is not None and mobile_image.filename:
        changes["mobile_image"] = await uploads.save_image(mobile_image, subdir="banners")
    changes["updated_by"] = admin_id

    banner = await repository.update_banner(banner_id, changes)
    if banner is None:
        raise _not_found("Banner")
    return banner


async def delete_banner(banner_id: int, *, admin_id: int) -> None:
    if not await repository.delete_banner(banner_id):
        raise _not_found("Banner")
    logger.info("banner_deleted banner_id=%s admin_id=%s", banner_id, admin_id)


async def toggle_banner(banner_id: int, *, admin_id: int) -> dict:
    banner = await repository.toggle_banner(banner_id, admin_id=admin_id)
    if banner is None:
        raise _not_found("Banner")
    return banner


async def reorder_banners(payload: schemas.ReorderRequest) -> dict:
    updated = await repository.reorder_banners([(item.id, item.sort_order) for item in payload.items])
    return {"updated": updated}


# Blogs


async def _unique_slug(title: str, *, exclude_id: int | None = None) -> str:
    slug = slugify(title)
    if len(slug) < 3:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Title must contain at least 3 letters or digits",
        )
    if await repository.slug_taken(slug, exclude_id=exclude_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A blog post with this title already exists",
        )
    return slug


async def list_blogs(
    *,
    page: int,
    limit: int,
    search: str | None,
    category: str | None,
    status_filter: str | None,
) -> dict:
    is_published = {"published": True, "draft": False}.get(status_filter or "")
    rows, total = await repository.list_blogs(
        limit=limit,
        offset=responses.page_offset(page, limit),
        search=search,
        category=category,
        is_published=is_published,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Blogs retrieved")


async def get_blog(blog_id: int) -> dict:
    blog = await repository.get_blog(blog_id)
    if blog is None:
        raise _not_found("Blog")
    return blog


async def create_blog(payload: schemas.BlogCreate, *, admin_id: int) -> dict:
    fields = payload.model_dump(exclude={"is_published", "published_at"})
    fields["slug"] = await _unique_slug(payload.title)
    fields["reading_time"] = reading_time(payload.content)
    fields["author_id"] = admin_id
    fields.update(
        publish_fields(
            publish=payload.is_published,
            current_published_at=payload.published_at,
            now=_utc_now(),
        )
    )
    blog = await repository.create_blog(fields)
    logger.info("blog_created blog_id=%s slug=%s admin_id=%s", blog["id"], blog["slug"], admin_id)
    return blog


async def update_blog(blog_id: int, payload: schemas.BlogUpdate, *, admin_id: int) -> dict:
    existing = await get_blog(blog_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"is_published"})

    if payload.title and payload.title != existing["title"]:
        changes["slug"] = await _unique_slug(payload.title, exclude_id=blog_id)
    if payload.content is not None:
        changes["reading_time"] = reading_time(payload.content)
    if payload.is_published is not None and payload.is_published != bool(existing["is_published"]):
        changes.update(
            publish_fields(
                publish=payload.is_published,
                current_published_at=existing.get("published_at"),
                now=_utc_now(),
            )
        )

    blog = await repository.update_blog(blog_id, changes)
    if blog is None:
        raise _not_found("Blog")
    logger.info("blog_updated blog_id=%s admin_id=%s fields=%s", blog_id, admin_id, sorted(changes))
    return blog


async def delete_blog(blog_id: int, *, admin_id: int) -> None:
    if not await repository.delete_blog(blog_id):
        raise _not_found("Blog")
    logger.info("blog_deleted blog_id=%s admin_id=%s", blog_id, admin_id)


async def toggle_blog_publish(blog_id: int, *, admin_id: int) -> dict:
    existing = await get_blog(blog_id)
    changes = publish_fields(
        publish=not bool(existing["is_published"]),
        current_published_at=existing.get("published_at"),
        now=_utc_now(),
    )
    blog = await repository.update_blog(blog_id, changes)
    if blog is None:
        raise _not_found("Blog")
    logger.info("blog_publish_toggled blog_id=%s published=%s admin_id=%s", blog_id, blog["is_published"], admin_id)
    return blog


async def public_blogs(*, page: int, limit: int, search: str | None, category: str | None) -> dict:
    rows, total = await repository.list_published_blogs(
        limit=limit,
        offset=responses.page_offset(page, limit),
        search=search,
        category=category,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="Blogs retrieved")


async def public_blog(slug: str) -> dict:
    blog = await repository.view_published_blog(slug)
    if blog is None:
        raise _not_found("Blog")
    return blog


# FAQs


async def list_faqs(
    *,
    page: int,
    limit: int,
    category: str | None,
    status_filter: str | None,
    search: str | None,
) -> dict:
    is_active = {"active": True, "inactive": False}.get(status_filter or "")
    rows, total = await repository.list_faqs(
        limit=limit,
        offset=responses.page_offset(page, limit),
        category=category,
        is_active=is_active,
        search=search,
    )
    return responses.paginated(rows, page=page, limit=limit, total=total, message="FAQs retrieved")


async def get_faq(faq_id: int) -> dict:
    faq = await repository.get_faq(faq_id)
    if faq is None:
        raise _not_found("FAQ")
    return faq


async def create_faq(payload: schemas.FAQCreate, *, admin_id: int) -> dict:
    faq = await repository.create_faq({**payload.model_dump(), "created_by": admin_id})
    logger.info("faq_created faq_id=%s admin_id=%s", faq["id"], admin_id)
    return faq


async def update_faq(faq_id: int, payload: schemas.FAQUpdate) -> dict:
    faq = await repository.update_faq(faq_id, payload.model_dump(exclude_unset=True, exclude_none=True))
    if faq is None:
        raise _not_found("FAQ")
    return faq


async def delete_faq(faq_id: int, *, admin_id: int) -> None:
    if not await repository.delete_faq(faq_id):
        raise _not_found("FAQ")
    logger.info("faq_deleted faq_id=%s admin_id=%s", faq_id, admin_id)


async def toggle_faq(faq_id: int) -> dict:
    faq = await repository.toggle_faq(faq_id)
    if faq is None:
        raise _not_found("FAQ")
    return faq


async def reorder_faqs(payload: schemas.ReorderRequest) -> dict:
    updated = await repository.reorder_faqs([(item.id, item.sort_order) for item in payload.items])
    return {"updated": updated}


async def faq_feedback(faq_id: int, payload: schemas.FAQFeedbackRequest) -> dict:
    counts = await repository.record_faq_feedback(faq_id, helpful=payload.helpful)
    if counts is None:
        raise _not_found("FAQ")
    return counts


async def upload_image(file: UploadFile, *, admin_id: int) -> dict:
    url = await uploads.save_image(file, subdir="content")
    logger.info("content_image_uploaded url=%s admin_id=%s", url, admin_id)
    return {"url": url, "filename": url.rsplit("/", 1)[-1]}


async def stats() -> dict:
    return await repository.stats()
