"""Tests for CMS helpers and blog/FAQ routes."""

from datetime import datetime, timezone

import pytest

from content import repository, service

NOW = datetime(2026, 7, 1, 10, 0, tzinfo=timezone.utc)


class TestReadingTime:
    def test_minimum_one_minute(self):
        assert service.reading_time("") == 1
        assert service.reading_time("short post") == 1

    def test_rounds_up(self):
        assert service.reading_time("word " * 201) == 2

    def test_ignores_markup(self):
        html = "<p>" + "<b>word</b> " * 200 + "</p>"
        assert service.reading_time(html) == 1


class TestPublishFields:
    def test_first_publish_stamps_now(self):
        assert service.publish_fields(publish=True, current_published_at=None, now=NOW) == {
            "is_published": True,
            "published_at": NOW,
        }

    def test_republish_keeps_original_date(self):
        first = datetime(2026, 1, 1, tzinfo=timezone.utc)
        fields = service.publish_fields(publish=True, current_published_at=first, now=NOW)
        assert fields["published_at"] == first

    def test_unpublish_clears_date(self):
        assert service.publish_fields(publish=False, current_published_at=NOW, now=NOW) == {
            "is_published": False,
            "published_at": None,
        }


class TestBlogRoutes:
    payload = {"title": "Monsoon Savings Week", "content": "Big discounts across partner shops this week."}

    def test_duplicate_title_conflicts(self, client, as_admin, monkeypatch):
        as_admin("admin")

        async def fake_taken(slug, *, exclude_id=None):
            return slug == "monsoon-savings-week"

        monkeypatch.setattr(repository, "slug_taken", fake_taken)
        resp = client.post("/api/admin/content/blogs", json=self.payload)
        assert resp.status_code == 409
        assert resp.json()["message"] == "A blog post with this title already exists"

    def test_create_published_blog(self, client, as_admin, monkeypatch):
        as_admin("admin")
        created = {}

        async def fake_taken(slug, *, exclude_id=None):
            return False

        async def fake_create(fields):
            created.update(fields)
            return {"id": 11, **fields}

        monkeypatch.setattr(repository, "slug_taken", fake_taken)
        monkeypatch.setattr(repository, "create_blog", fake_create)
        resp = client.post("/api/admin/content/blogs", json={**self.payload, "is_published": True})
        assert resp.status_code == 201
        assert created["slug"] == "monsoon-savings-week"
        assert created["reading_time"] == 1
        assert created["author_id"] == 1
        assert created["is_published"] is True
        assert created["published_at"] is not None

    def test_title_without_letters(self, client, as_admin):
        as_admin("admin")
        resp = client.post("/api/admin/content/blogs", json={"title": "!!!", "content": "Some content here."})
        assert resp.status_code == 422


class TestFaqFeedback:
    def test_unknown_faq(self, client, monkeypatch):
        async def fake_feedback(faq_id, *, helpful):
            return None

        monkeypatch.setattr(repository, "record_faq_feedback", fake_feedback)
        resp = client.post("/api/content/faqs/99/feedback", json={"helpful": True})
        assert resp.status_code == 404

    def test_counts_returned(self, client, monkeypatch):
        async def fake_feedback(faq_id, *, helpful):
            return {"id": faq_id, "helpful_count": 4, "not_helpful_count": 1}

        monkeypatch.setattr(repository, "record_faq_feedback", fake_feedback)
        resp = client.post("/api/content/faqs/3/feedback", json={"helpful": True})
        assert resp.status_code == 200
        assert resp.json()["data"]["helpful_count"] == 4


@pytest.mark.asyncio
class TestBlogPublishToggle:
    async def test_publish_draft(self, monkeypatch):
        changes = {}

        async def fake_get(blog_id):
            return {"id": blog_id, "title": "Draft", "is_published": False, "published_at": None}

        async def fake_update(blog_id, fields):
            changes.update(fields)
            return {"id": blog_id, **fields}

        monkeypatch.setattr(repository, "get_blog", fake_get)
        monkeypatch.setattr(repository, "update_blog", fake_update)
        blog = await service.toggle_blog_publish(5, admin_id=1)
        assert blog["is_published"] is True
        assert changes["published_at"] is not None

    async def test_unpublish_clears_date(self, monkeypatch):
        async def fake_get(blog_id):
            return {"id": blog_id, "title": "Live", "is_published": True, "published_at": NOW}

        async def fake_update(blog_id, fields):
            return {"id": blog_id, **fields}

        monkeypatch.setattr(repository, "get_blog", fake_get)
        monkeypatch.setattr(repository, "update_blog", fake_update)
        blog = await service.toggle_blog_publish(5, admin_id=1)
        assert blog == {"id": 5, "is_published": False, "published_at": None}
