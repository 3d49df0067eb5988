"""
CMS endpoints: admin management under /api/admin/content and the public
read side under /api/content.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from auth import dependencies as auth_dependencies
from core import responses

from . import repository, schemas, service

router = APIRouter(prefix="/api/admin/content")
public_router = APIRouter(prefix="/api/content")


def _banner_form(
    title: str | None = Form(default=None, max_length=200),
    description: str | None = Form(default=None, max_length=1000),
    link: str | None = Form(default=None, max_length=500),
    link_text: str | None = Form(default=None, max_length=100),
    alt_text: str | None = Form(default=None, max_length=200),
    sort_order: int | None = Form(default=None, ge=0),
    start_date: datetime | None = Form(default=None),
    end_date: datetime | None = Form(default=None),
    target_page: str | None = Form(default=None, max_length=50),
    banner_type: str | None = Form(default=None, max_length=50),
    priority: int | None = Form(default=None, ge=0),
    is_active: bool | None = Form(default=None),
) -> dict:
    return {
        "title": title,
        "description": description,
        "link": link,
        "link_text": link_text,
        "alt_text": alt_text,
        "sort_order": sort_order,
        "start_date": start_date,
        "end_date": end_date,
        "target_page": target_page,
        "banner_type": banner_type,
        "priority": priority,
        "is_active": is_active,
    }


# Banners


@router.get("/banners")
async def list_banners(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    status: Literal["active", "inactive"] | None = Query(default=None),
    _: dict = Depends(auth_dependencies.require_permission("content.banners.view")),
) -> dict:
    return await service.list_banners(page=page, limit=limit, status_filter=status)


@router.put("/banners/reorder")
async def reorder_banners(
    payload: schemas.ReorderRequest,
    _: dict = Depends(auth_dependencies.require_permission("content.banners.reorder")),
) -> dict:
    return responses.success(await service.reorder_banners(payload), "Banners reordered")


@router.get("/banners/{banner_id}")
async def get_banner(
    banner_id: int,
    _: dict = Depends(auth_dependencies.require_permission("content.banners.view")),
) -> dict:
    return responses.success(await service.get_banner(banner_id))


@router.post("/banners", status_code=201)
async def create_banner(
    fields: dict = Depends(_banner_form),
    image: UploadFile | None = File(default=None),
    mobile_image: UploadFile | None = File(default=None),
    current_admin: dict = Depends(auth_dependencies.require_permission("content.banners.create")),
) -> dict:
    banner = await service.create_banner(
        fields,
        image=image,
        mobile_image=mobile_image,
        admin_id=int(current_admin["id"]),
    )
    return responses.success(banner, "Banner created successfully")


@router.put("/banners/{banner_id}")
async def update_banner(
    banner_id: int,
    fields: dict = Depends(_banner_form),
    image: UploadFile | None = File(default=None),
    mobile_image: UploadFile | None = File(default=None),
    current_admin: dict = Depends(auth_dependencies.require_permission("content.banners.update")),
) -> dict:
    banner = await service.update_banner(
        banner_id,
        fields,
        image=image,
        mobile_image=mobile_image,
        admin_id=int(current_admin["id"]),
    )
    return responses.success(banner, "Banner updated successfully")


@router.put("/banners/{banner_id}/toggle")
async def toggle_banner(
    banner_id: int,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.banners.update")),
) -> dict:
    banner = await service.toggle_banner(banner_id, admin_id=int(current_admin["id"]))
    state = "activated" if banner["is_active"] else "deactivated"
    return responses.success(banner, f"Banner {state} successfully")


@router.delete("/banners/{banner_id}")
async def delete_banner(
    banner_id: int,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.banners.delete")),
) -> dict:
    await service.delete_banner(banner_id, admin_id=int(current_admin["id"]))
    return responses.success(None, "Banner deleted successfully")


# Blogs


@router.get("/blogs")
async def list_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    search: str | None = Query(default=None, max_length=100),
    category: str | None = Query(default=None, max_length=100),
    status: Literal["published", "draft"] | None = Query(default=None),
    _: dict = Depends(auth_dependencies.require_permission("content.blogs.view")),
) -> dict:
    return await service.list_blogs(
        page=page,
        limit=limit,
        search=search,
        category=category,
        status_filter=status,
    )


@router.get("/blogs/{blog_id}")
async def get_blog(
    blog_id: int,
    _: dict = Depends(auth_dependencies.require_permission("content.blogs.view")),
) -> dict:
    return responses.success(await service.get_blog(blog_id))


@router.post("/blogs", status_code=201)
async def create_blog(
    payload: schemas.BlogCreate,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.blogs.create")),
) -> dict:
    blog = await service.create_blog(payload, admin_id=int(current_admin["id"]))
    return responses.success(blog, "Blog created successfully")


@router.put("/blogs/{blog_id}")
async def update_blog(
    blog_id: int,
    payload: schemas.BlogUpdate,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.blogs.update")),
) -> dict:
    blog = await service.update_blog(blog_id, payload, admin_id=int(current_admin["id"]))
    return responses.success(blog, "Blog updated successfully")


@router.put("/blogs/{blog_id}/toggle-publish")
async def toggle_blog_publish(
    blog_id: int,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.blogs.publish")),
) -> dict:
    blog = await service.toggle_blog_publish(blog_id, admin_id=int(current_admin["id"]))
    state = "published" if blog["is_published"] else "unpublished"
    return responses.success(blog, f"Blog {state} successfully")


@router.delete("/blogs/{blog_id}")
async def delete_blog(
    blog_id: int,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.blogs.delete")),
) -> dict:
    await service.delete_blog(blog_id, admin_id=int(current_admin["id"]))
    return responses.success(None, "Blog deleted successfully")


# FAQs


@router.get("/faqs")
async def list_faqs(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    category: str | None = Query(default=None, max_length=100),
    status: Literal["active", "inactive"] | None = Query(default=None),
    search: str | None = Query(default=None, max_length=100),
    _: dict = Depends(auth_dependencies.require_permission("content.faqs.view")),
) -> dict:
    return await service.list_faqs(
        page=page,
        limit=limit,
        category=category,
        status_filter=status,
        search=search,
    )


@router.put("/faqs/reorder")
async def reorder_faqs(
    payload: schemas.ReorderRequest,
    _: dict = Depends(auth_dependencies.require_permission("content.faqs.reorder")),
) -> dict:
    return responses.success(await service.reorder_faqs(payload), "FAQs reordered")


@router.get("/faqs/{faq_id}")
async def get_faq(
    faq_id: int,
    _: dict = Depends(auth_dependencies.require_permission("content.faqs.view")),
) -> dict:
    return responses.success(await service.get_faq(faq_id))


@router.post("/faqs", status_code=201)
async def create_faq(
    payload: schemas.FAQCreate,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.faqs.create")),
) -> dict:
    faq = await service.create_faq(payload, admin_id=int(current_admin["id"]))
    return responses.success(faq, "FAQ created successfully")


@router.put("/faqs/{faq_id}")
async def update_faq(
    faq_id: int,
    payload: schemas.FAQUpdate,
    _: dict = Depends(auth_dependencies.require_permission("content.faqs.update")),
) -> dict:
    return responses.success(await service.update_faq(faq_id, payload), "FAQ updated successfully")


@router.put("/faqs/{faq_id}/toggle")
async def toggle_faq(
    faq_id: int,
    _: dict = Depends(auth_dependencies.require_permission("content.faqs.update")),
) -> dict:
    faq = await service.toggle_faq(faq_id)
    state = "activated" if faq["is_active"] else "deactivated"
    return responses.success(faq, f"FAQ {state} successfully")


@router.delete("/faqs/{faq_id}")
async def delete_faq(
    faq_id: int,
    current_admin: dict = Depends(auth_dependencies.require_permission("content.faqs.delete")),
) -> dict:
    await service.delete_faq(faq_id, admin_id=int(current_admin["id"]))
    return responses.success(None, "FAQ deleted successfully")


@router.post("/upload", status_code=201)
async def upload_image(
    image: UploadFile = File(...),
    current_admin: dict = Depends(auth_dependencies.require_permission("content.upload")),
) -> dict:
    result = await service.upload_image(image, admin_id=int(current_admin["id"]))
    return responses.success(result, "Image uploaded successfully")


@router.get("/stats")
async def content_stats(_: dict = Depends(auth_dependencies.get_current_admin)) -> dict:
    return responses.success(await service.stats())


# Public


@public_router.get("/banners")
async def public_banners(target_page: str | None = Query(default=None, max_length=50)) -> dict:
    return responses.success(await repository.public_banners(target_page=target_page))


@public_router.get("/blogs")
async def public_blogs(
    page: int = Query(1, ge=1),
    limit: int = Query(responses.DEFAULT_PAGE_SIZE, ge=1, le=responses.MAX_PAGE_SIZE),
    search: str | None = Query(default=None, max_length=100),
    category: str | None = Query(default=None, max_length=100),
) -> dict:
    return await service.public_blogs(page=page, limit=limit, search=search, category=category)


@public_router.get("/blogs/{slug}")
async def public_blog(slug: str) -> dict:
    return responses.success(await service.public_blog(slug))


@public_router.get("/faqs")
async def public_faqs(category: str | None = Query(default=None, max_length=100)) -> dict:
    return responses.success(await repository.public_faqs(category=category))


@public_router.post("/faqs/{faq_id}/feedback")
async def faq_feedback(faq_id: int, payload: schemas.FAQFeedbackRequest) -> dict:
    return responses.success(await service.faq_feedback(faq_id, payload), "Thanks for your feedback")
