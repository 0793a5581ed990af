"""Tests for blog categories, contributors and posts."""

from datetime import timedelta

import pytest

from cms_admin.core.clock import as_utc, utcnow
from cms_admin.core.exceptions import (
    ForbiddenError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from cms_admin.core.text import reading_time, slugify
from cms_admin.models.allowed_domain import AllowedDomain
from cms_admin.models.audit_log import AuditLog
from cms_admin.models.blog import PostStatus
from cms_admin.services.allowed_domain_service import allowed_domain_service
from cms_admin.services.audit_service import AuditActions
from cms_admin.services.blog_service import (
    blog_category_service, blog_contributor_service, blog_post_service,
)

from conftest import auth_headers, login

COVER = "https://cdn.example.com/cover.png"


@pytest.fixture
def category(db, editor):
    return blog_category_service.create_category(db, editor, "Engineering")


@pytest.fixture
def contributor(db, editor):
    return blog_contributor_service.create_contributor(
        db, editor, "Grace Hopper", "Rear Admiral", "Wrote the first compiler.",
        expertise=["Compilers", "COBOL"],
    )


@pytest.fixture
def make_post(db, editor, category, contributor):
    def _make(title="Hello World", content="Some words here", cover_image_url=COVER, **kwargs):
        return blog_post_service.create_post(
            db, editor, title, content, category.id, contributor.id,
            cover_image_url=cover_image_url, **kwargs,
        )
    return _make


def _audit_count(db, action_type):
    return db.query(AuditLog).filter(AuditLog.action_type == action_type).count()


@pytest.mark.parametrize("text,expected", [
    ("Hello World", "hello-world"),
    ("  What's new in 2026?  ", "whats-new-in-2026"),
    ("snake_case -- and   spaces", "snake-case-and-spaces"),
    ("!!!", ""),
])
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_reading_time_rounds_up_and_is_at_least_one():
    assert reading_time("") == 1
    assert reading_time("word " * 200) == 1
    assert reading_time("word " * 450) == 3


# ---- Categories ----

def test_category_names_are_unique(db, editor, category):
    with pytest.raises(ResourceConflictError) as exc:
        blog_category_service.create_category(db, editor, "  Engineering ")
    assert exc.value.message == "A category with this name already exists"


def test_category_name_is_required(db, editor):
    with pytest.raises(ValidationError):
        blog_category_service.create_category(db, editor, "   ")


def test_category_update_audits_the_rename(db, editor, category):
    renamed = blog_category_service.update_category(db, editor, category.id, "Platform")

    assert renamed.name == "Platform"
    entry = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.BLOG_CATEGORY_UPDATED).one()
    assert entry.metadata_json == {"name": {"from": "Engineering", "to": "Platform"}}

    blog_category_service.update_category(db, editor, category.id, "Platform")
    assert _audit_count(db, AuditActions.BLOG_CATEGORY_UPDATED) == 1


def test_viewer_can_read_but_not_write(db, make_actor, category):
    viewer = make_actor("Viewer", email="viewer@example.com")

    assert blog_category_service.list_categories(db, viewer)["total"] == 1
    with pytest.raises(ForbiddenError):
        blog_category_service.create_category(db, viewer, "Design")
    with pytest.raises(ForbiddenError):
        blog_category_service.delete_category(db, viewer, category.id)


def test_category_in_use_cannot_be_deleted(db, editor, category, make_post):
    post = make_post()
    with pytest.raises(ResourceConflictError) as exc:
        blog_category_service.delete_category(db, editor, category.id)
    assert exc.value.message == "This category is used by 1 post. Reassign them before deleting."

    blog_post_service.publish_post(db, editor, post.id)
    with pytest.raises(ResourceConflictError) as exc:
        blog_category_service.delete_category(db, editor, category.id)
    assert exc.value.message == "Cannot delete category with 1 published post"


def test_unused_category_is_deleted(db, editor, category):
    blog_category_service.delete_category(db, editor, category.id)

    with pytest.raises(ResourceNotFoundError):
        blog_category_service.get_category(db, editor, category.id)
    assert _audit_count(db, AuditActions.BLOG_CATEGORY_DELETED) == 1


# ---- Contributors ----

def test_contributor_lists_are_capped_at_three(db, editor):
    with pytest.raises(ValidationError) as exc:
        blog_contributor_service.create_contributor(
            db, editor, "Ada", "Analyst", "Bio", expertise=["a", "b", "c", "d"],
        )
    assert exc.value.message == "Expertise cannot exceed 3 items"


def test_contributor_partial_update(db, editor, contributor):
    updated = blog_contributor_service.update_contributor(
        db, editor, contributor.id, position="Computer Scientist", stats=["1 compiler"],
    )

    assert updated.position == "Computer Scientist"
    assert updated.full_name == "Grace Hopper"
    assert updated.stats == ["1 compiler"]
    entry = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.BLOG_CONTRIBUTOR_UPDATED).one()
    assert set(entry.metadata_json) == {"position", "stats"}


def test_contributor_with_published_post_cannot_be_deleted(db, editor, contributor, make_post):
    blog_post_service.publish_post(db, editor, make_post().id)

    with pytest.raises(ResourceConflictError) as exc:
        blog_contributor_service.delete_contributor(db, editor, contributor.id)
    assert exc.value.message == "Cannot delete contributor with 1 published post"


# ---- Posts ----

def test_new_post_is_a_draft_with_derived_fields(db, editor, make_post):
    post = make_post(content="word " * 450)

    assert post.status == PostStatus.draft
    assert post.slug == "hello-world"
    assert post.reading_time == 3
    assert post.published_date is None
    assert post.category.name == "Engineering"
    assert post.contributor.full_name == "Grace Hopper"
    assert _audit_count(db, AuditActions.BLOG_POST_CREATED) == 1


def test_slugs_stay_unique(db, editor, make_post):
    first = make_post()
    second = make_post()
    third = make_post()

    assert [first.slug, second.slug, third.slug] == ["hello-world", "hello-world-1", "hello-world-2"]


def test_retitling_rederives_the_slug(db, editor, make_post):
    first = make_post()
    second = make_post(title="Another Post")

    same = blog_post_service.update_post(db, editor, first.id, title="Hello World")
    assert same.slug == "hello-world"

    moved = blog_post_service.update_post(db, editor, second.id, title="Hello World")
    assert moved.slug == "hello-world-1"

    freed = blog_post_service.update_post(db, editor, first.id, title="Fresh Start")
    assert freed.slug == "fresh-start"


def test_post_requires_existing_category_and_contributor(db, editor, category, contributor):
    with pytest.raises(ResourceNotFoundError):
        blog_post_service.create_post(db, editor, "T", "C", "missing", contributor.id)
    with pytest.raises(ResourceNotFoundError):
        blog_post_service.create_post(db, editor, "T", "C", category.id, "missing")
    with pytest.raises(ValidationError):
        blog_post_service.create_post(db, editor, "", "C", category.id, contributor.id)


@pytest.mark.parametrize("kwargs,reason", [
    ({"cover_image_url": None}, "Cover image is required for publishing"),
    ({"seo_meta_title": "x" * 61}, "SEO title exceeds 60 characters"),
    ({"seo_meta_description": "x" * 161}, "SEO description exceeds 160 characters"),
])
def test_publish_checks(db, editor, make_post, kwargs, reason):
    post = make_post(**kwargs)

    with pytest.raises(ValidationError) as exc:
        blog_post_service.publish_post(db, editor, post.id)

    assert exc.value.message == reason
    db.refresh(post)
    assert post.status == PostStatus.draft


def test_publish_unpublish_republish_keeps_first_publication_date(db, editor, make_post):
    post = make_post()

    published = blog_post_service.publish_post(db, editor, post.id)
    assert published.status == PostStatus.published
    assert published.published_by == editor.id
    first_date = as_utc(published.published_date)
    assert abs((first_date - utcnow()).total_seconds()) < 60

    unpublished = blog_post_service.unpublish_post(db, editor, post.id)
    assert unpublished.status == PostStatus.unpublished

    again = blog_post_service.publish_post(db, editor, post.id)
    assert as_utc(again.published_date) == first_date
    assert _audit_count(db, AuditActions.BLOG_POST_PUBLISHED) == 2
    assert _audit_count(db, AuditActions.BLOG_POST_UNPUBLISHED) == 1


def test_only_published_posts_can_be_unpublished(db, editor, make_post):
    with pytest.raises(ValidationError):
        blog_post_service.unpublish_post(db, editor, make_post().id)


def test_published_post_cannot_lose_its_cover(db, editor, make_post):
    post = blog_post_service.publish_post(db, editor, make_post().id)

    with pytest.raises(ValidationError):
        blog_post_service.update_post(db, editor, post.id, cover_image_url=None)

    db.refresh(post)
    assert post.cover_image_url == COVER


def test_published_post_must_be_unpublished_before_delete(db, editor, make_post):
    post = blog_post_service.publish_post(db, editor, make_post().id)

    with pytest.raises(ResourceConflictError) as exc:
        blog_post_service.delete_post(db, editor, post.id)
    assert exc.value.message == "Cannot delete published posts. Unpublish first."

    blog_post_service.unpublish_post(db, editor, post.id)
    blog_post_service.delete_post(db, editor, post.id)
    with pytest.raises(ResourceNotFoundError):
        blog_post_service.get_post(db, editor, post.id)


def test_list_posts_filters(db, editor, make_post):
    draft = make_post(title="Draft about Python")
    live = make_post(title="Live one", seo_meta_description="all about python")
    blog_post_service.publish_post(db, editor, live.id)

    by_status = blog_post_service.list_posts(db, editor, status=PostStatus.published)
    assert [p.id for p in by_status["items"]] == [live.id]

    by_search = blog_post_service.list_posts(db, editor, search="python")
    assert {p.id for p in by_search["items"]} == {draft.id, live.id}


def test_public_reads_only_see_published_posts(db, editor, make_post):
    draft = make_post(title="Secret")
    live = make_post(title="Announcement")
    blog_post_service.publish_post(db, editor, live.id)
    live.published_date = utcnow() - timedelta(days=1)
    db.commit()

    assert blog_post_service.get_published_by_slug(db, "announcement").id == live.id
    with pytest.raises(ResourceNotFoundError):
        blog_post_service.get_published_by_slug(db, draft.slug)
    listing = blog_post_service.list_published(db)
    assert [p.id for p in listing["items"]] == [live.id]


# ---- HTTP ----

@pytest.fixture
def allowed_origin(db, super_admin):
    return allowed_domain_service.create_domain(db, super_admin, "https://www.example.com").domain


def _create_published_post(client, headers, title="Launch Day"):
    category = client.post("/api/blog/categories", json={"name": "News"}, headers=headers)
    assert category.status_code == 201, category.text
    contributor = client.post(
        "/api/blog/contributors",
        json={"full_name": "Ada Lovelace", "position": "Analyst", "bio": "First programmer."},
        headers=headers,
    )
    assert contributor.status_code == 201, contributor.text
    post = client.post(
        "/api/blog/posts",
        json={
            "title": title,
            "content": "We shipped it.",
            "category_id": category.json()["data"]["id"],
            "contributor_id": contributor.json()["data"]["id"],
            "cover_image_url": COVER,
        },
        headers=headers,
    )
    assert post.status_code == 201, post.text
    assert post.json()["data"]["status"] == "draft"

    published = client.post(f"/api/blog/posts/{post.json()['data']['id']}/publish", headers=headers)
    assert published.status_code == 200, published.text
    assert published.json()["message"] == "Post published successfully"
    return published.json()["data"]


def test_editor_manages_blog_over_http(client, editor):
    headers = auth_headers(login(client, editor.email))

    post = _create_published_post(client, headers)

    assert post["slug"] == "launch-day"
    assert post["status"] == "published"
    listing = client.get("/api/blog/posts", params={"status": "published"}, headers=headers).json()["data"]
    assert listing["total"] == 1
    assert listing["items"][0]["category"]["name"] == "News"

    resp = client.delete(f"/api/blog/posts/{post['id']}", headers=headers)
    assert resp.status_code == 409
    assert resp.json()["error"] == "Cannot delete published posts. Unpublish first."


def test_viewer_is_read_only_over_http(client, make_actor):
    make_actor("Viewer", email="viewer@example.com")
    headers = auth_headers(login(client, "viewer@example.com"))

    assert client.get("/api/blog/categories", headers=headers).status_code == 200
    assert client.post("/api/blog/categories", json={"name": "News"}, headers=headers).status_code == 403


def test_publish_failure_uses_error_envelope(client, editor):
    headers = auth_headers(login(client, editor.email))
    category = client.post("/api/blog/categories", json={"name": "News"}, headers=headers).json()["data"]
    contributor = client.post(
        "/api/blog/contributors",
        json={"full_name": "Ada", "position": "Analyst", "bio": "Bio"},
        headers=headers,
    ).json()["data"]
    post = client.post(
        "/api/blog/posts",
        json={"title": "No cover", "content": "Text", "category_id": category["id"], "contributor_id": contributor["id"]},
        headers=headers,
    ).json()["data"]

    resp = client.post(f"/api/blog/posts/{post['id']}/publish", headers=headers)

    assert resp.status_code == 422
    assert resp.json()["error"] == "Cover image is required for publishing"


def test_public_blog_requires_an_allowed_origin(client, db, editor):
    _create_published_post(client, auth_headers(login(client, editor.email)))

    assert client.get("/api/public/blog/posts").status_code == 403
    resp = client.get("/api/public/blog/posts", headers={"Origin": "https://unknown.example.org"})

    assert resp.status_code == 403
    assert resp.json()["error"] == "Access denied. Domain not authorized."
    tracked = db.query(AllowedDomain).filter(AllowedDomain.domain == "https://unknown.example.org").one()
    assert tracked.is_active is False
    assert tracked.description.startswith("Auto-tracked")


def test_public_blog_serves_published_posts(client, editor, allowed_origin):
    headers = auth_headers(login(client, editor.email))
    post = _create_published_post(client, headers)
    client.post(
        "/api/blog/posts",
        json={
            "title": "Unreleased",
            "content": "Soon.",
            "category_id": post["category"]["id"],
            "contributor_id": post["contributor"]["id"],
        },
        headers=headers,
    )
    origin = {"Origin": allowed_origin}

    listing = client.get("/api/public/blog/posts", headers=origin).json()["data"]
    assert [p["slug"] for p in listing["items"]] == ["launch-day"]

    single = client.get("/api/public/blog/posts/launch-day", headers=origin)
    assert single.status_code == 200
    assert single.json()["data"]["title"] == "Launch Day"
    assert client.get("/api/public/blog/posts/unreleased", headers=origin).status_code == 404
