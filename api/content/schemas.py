"""
CMS request models. Banners are multipart forms and are parsed in the router.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class BlogCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=300)
    content: str = Field(..., min_length=10)
    excerpt: str | None = Field(default=None, max_length=500)
    featured_image: str | None = Field(default=None, max_length=500)
    category: str = Field("General", min_length=1, max_length=100)
    tags: list[str] = Field(default_factory=list, max_length=20)
    meta_title: str | None = Field(default=None, max_length=200)
    meta_description: str | None = Field(default=None, max_length=300)
    is_published: bool = False
    published_at: datetime | None = None


class BlogUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=300)
    content: str | None = Field(default=None, min_length=10)
    excerpt: str | None = Field(default=None, max_length=500)
    featured_image: str | None = Field(default=None, max_length=500)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    tags: list[str] | None = Field(default=None, max_length=20)
    meta_title: str | None = Field(default=None, max_length=200)
    meta_description: str | None = Field(default=None, max_length=300)
    is_published: bool | None = None


class FAQCreate(BaseModel):
    question: str = Field(..., min_length=5, max_length=500)
    answer: str = Field(..., min_length=5, max_length=5000)
    category: str = Field("General", min_length=1, max_length=100)
    sort_order: int = Field(0, ge=0)
    target_audience: str = Field("all", max_length=50)
    is_active: bool = True


class FAQUpdate(BaseModel):
    question: str | None = Field(default=None, min_length=5, max_length=500)
    answer: str | None = Field(default=None, min_length=5, max_length=5000)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    sort_order: int | None = Field(default=None, ge=0)
    target_audience: str | None = Field(default=None, max_length=50)
    is_active: bool | None = None


class ReorderItem(BaseModel):
    id: int
    sort_order: int = Field(..., ge=0)


class ReorderRequest(BaseModel):
    items: list[ReorderItem] = Field(..., min_length=1, max_length=500)


class FAQFeedbackRequest(BaseModel):
    helpful: bool
