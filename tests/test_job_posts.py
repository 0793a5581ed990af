"""Tests for job categories and job posts."""

import pytest

from cms_admin.core.exceptions import (
    ForbiddenError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from cms_admin.models.audit_log import AuditLog
from cms_admin.models.blog import PostStatus
from cms_admin.models.job_post import EmploymentType, ExperienceLevel, JobPost
from cms_admin.services.allowed_domain_service import allowed_domain_service
from cms_admin.services.audit_service import AuditActions
from cms_admin.services.job_post_service import (
    job_category_service, job_post_service, publish_problems, split_lines,
)

from conftest import auth_headers, login

COMPLETE = {
    "overview": "Build the platform.",
    "location": "Remote",
    "employment_type": "full-time",
    "salary_min": 90000,
    "salary_max": 120000,
    "responsibilities": "<ul><li>Ship features</li></ul>",
    "must_have_skills": "<p>Python</p>",
    "preferred_skills": "<p>SQL</p>",
}


@pytest.fixture
def category(db, editor):
    return job_category_service.create_category(db, editor, "Engineering Roles")


@pytest.fixture
def ready_post(db, editor, category):
    return job_post_service.create_post(db, editor, "Backend Engineer", category.id, **COMPLETE)


def test_split_lines():
    assert split_lines("Python\n\n  SQL  \n") == ["Python", "SQL"]
    assert split_lines(["Go", " ", "Rust"]) == ["Go", "Rust"]
    assert split_lines(None) == []


# ---- Categories ----

def test_category_gets_a_slug_and_stays_unique(db, editor, category):
    assert category.slug == "engineering-roles"

    with pytest.raises(ResourceConflictError):
        job_category_service.create_category(db, editor, "Engineering Roles")
    # Different name, same slug
    with pytest.raises(ResourceConflictError):
        job_category_service.create_category(db, editor, "engineering  roles")


def test_category_rename_moves_the_slug(db, editor, category):
    renamed = job_category_service.update_category(db, editor, category.id, "Platform Team")

    assert renamed.slug == "platform-team"
    entry = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.JOB_CATEGORY_UPDATED).one()
    assert entry.metadata_json["slug"] == {"from": "engineering-roles", "to": "platform-team"}


def test_category_listing_counts_posts(db, editor, category):
    other = job_category_service.create_category(db, editor, "Design")
    job_post_service.create_post(db, editor, "One", category.id)
    job_post_service.create_post(db, editor, "Two", category.id)

    result = job_category_service.list_categories(db, editor)

    counts = {c.id: c.post_count for c in result["items"]}
    assert counts == {category.id: 2, other.id: 0}


def test_category_with_published_post_cannot_be_deleted(db, editor, category, ready_post):
    job_post_service.publish_post(db, editor, ready_post.id)

    with pytest.raises(ResourceConflictError) as exc:
        job_category_service.delete_category(db, editor, category.id)
    assert exc.value.message == "Cannot delete category with published job posts"


def test_deleting_category_detaches_draft_posts(db, editor, category):
    draft = job_post_service.create_post(db, editor, "Draft role", category.id)

    job_category_service.delete_category(db, editor, category.id)

    db.expire_all()
    assert db.get(JobPost, draft.id).category_id is None
    entry = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.JOB_CATEGORY_DELETED).one()
    assert entry.metadata_json["detached_posts"] == 1


def test_viewer_cannot_manage_job_posts(db, make_actor, category):
    viewer = make_actor("Viewer", email="viewer@example.com")

    assert job_category_service.get_category(db, viewer, category.id).id == category.id
    with pytest.raises(ForbiddenError):
        job_category_service.create_category(db, viewer, "Sales")
    with pytest.raises(ForbiddenError):
        job_post_service.create_post(db, viewer, "Sneaky")


# ---- Posts ----

def test_job_ids_are_sequential_and_double_as_slugs(db, editor):
    first = job_post_service.create_post(db, editor, "First")
    second = job_post_service.create_post(db, editor, "Second")

    assert (first.job_id, first.slug) == ("JOB-000001", "job-000001")
    assert second.job_id == "JOB-000002"
    assert first.status == PostStatus.draft
    assert first.salary_currency == "USD"
    assert first.salary_period == "yearly"


def test_job_id_sequence_survives_deletes_in_the_middle(db, editor):
    first = job_post_service.create_post(db, editor, "First")
    job_post_service.create_post(db, editor, "Second")
    job_post_service.delete_post(db, editor, first.id)

    assert job_post_service.create_post(db, editor, "Third").job_id == "JOB-000003"


def test_fields_are_normalized(db, editor):
    post = job_post_service.create_post(
        db, editor, "  Data Engineer ",
        employment_type="contract",
        experience_level="senior",
        skills="Python\nAirflow\n",
        department="  ",
        salary_currency="",
    )

    assert post.title == "Data Engineer"
    assert post.employment_type == EmploymentType.contract
    assert post.experience_level == ExperienceLevel.senior
    assert post.skills == ["Python", "Airflow"]
    assert post.department is None
    assert post.salary_currency == "USD"


@pytest.mark.parametrize("fields,message", [
    ({"employment_type": "gig"}, "Unknown employment type 'gig'"),
    ({"experience_level": "wizard"}, "Unknown experience level 'wizard'"),
    ({"salary_min": -1}, "Salary cannot be negative"),
    ({"salary_min": 200, "salary_max": 100}, "Minimum salary cannot exceed maximum salary"),
])
def test_invalid_fields_are_rejected(db, editor, fields, message):
    with pytest.raises(ValidationError) as exc:
        job_post_service.create_post(db, editor, "Role", **fields)

    assert exc.value.message == message
    assert db.query(JobPost).count() == 0


def test_unknown_category_is_rejected(db, editor):
    with pytest.raises(ResourceNotFoundError):
        job_post_service.create_post(db, editor, "Role", "missing")


def test_publish_lists_every_missing_piece(db, editor):
    post = job_post_service.create_post(db, editor, "Bare role", responsibilities="<p> </p>")

    assert post.employment_type == EmploymentType.full_time
    assert publish_problems(post) == [
        "Position overview is required",
        "Location is required",
        "Category is required",
        "Salary information is required",
        "Responsibilities content is required",
        "Must have skills content is required",
        "Preferred skills content is required",
    ]
    with pytest.raises(ValidationError) as exc:
        job_post_service.publish_post(db, editor, post.id)
    assert exc.value.message.startswith("Position overview is required; ")


def test_custom_salary_text_satisfies_publishing(db, editor, category):
    fields = dict(COMPLETE, salary_min=None, salary_max=None, salary_custom_text="Competitive")
    post = job_post_service.create_post(db, editor, "Designer", category.id, **fields)

    assert publish_problems(post) == []


def test_publish_lifecycle(db, editor, ready_post):
    published = job_post_service.publish_post(db, editor, ready_post.id)
    assert published.status == PostStatus.published
    assert published.published_at is not None
    assert published.published_by == editor.id

    assert job_post_service.get_published_by_slug(db, "JOB-000001").id == ready_post.id
    assert job_post_service.get_published_by_slug(db, "job-000001").id == ready_post.id

    with pytest.raises(ResourceConflictError):
        job_post_service.delete_post(db, editor, ready_post.id)

    job_post_service.unpublish_post(db, editor, ready_post.id)
    with pytest.raises(ResourceNotFoundError):
        job_post_service.get_published_by_slug(db, "job-000001")
    with pytest.raises(ValidationError):
        job_post_service.unpublish_post(db, editor, ready_post.id)

    job_post_service.delete_post(db, editor, ready_post.id)
    actions = [a for (a,) in db.query(AuditLog.action_type).filter(AuditLog.target_type == "job_post")]
    assert sorted(actions) == sorted([
        AuditActions.JOB_POST_CREATED,
        AuditActions.JOB_POST_PUBLISHED,
        AuditActions.JOB_POST_UNPUBLISHED,
        AuditActions.JOB_POST_DELETED,
    ])


def test_published_post_keeps_required_fields(db, editor, ready_post):
    job_post_service.publish_post(db, editor, ready_post.id)

    with pytest.raises(ValidationError) as exc:
        job_post_service.update_post(db, editor, ready_post.id, location="")
    assert exc.value.message == "Location is required"

    db.refresh(ready_post)
    assert ready_post.location == "Remote"


def test_update_audits_only_changes(db, editor, ready_post):
    job_post_service.update_post(db, editor, ready_post.id, location="Remote")
    assert db.query(AuditLog).filter(AuditLog.action_type == AuditActions.JOB_POST_UPDATED).count() == 0

    job_post_service.update_post(db, editor, ready_post.id, location="Berlin", title="Senior Backend Engineer")

    entry = db.query(AuditLog).filter(AuditLog.action_type == AuditActions.JOB_POST_UPDATED).one()
    assert entry.metadata_json["job_id"] == "JOB-000001"
    assert entry.metadata_json["changes"]["location"] == {"from": "Remote", "to": "Berlin"}
    # The slug follows the job id, not the title
    assert job_post_service.get_post(db, editor, ready_post.id).slug == "job-000001"


def test_list_posts_filters(db, editor, category, ready_post):
    job_post_service.create_post(db, editor, "Intern", employment_type="internship", location="Lisbon")
    job_post_service.publish_post(db, editor, ready_post.id)

    assert job_post_service.list_posts(db, editor, search="lisbon")["total"] == 1
    assert job_post_service.list_posts(db, editor, search="JOB-000001")["total"] == 1
    assert job_post_service.list_posts(db, editor, employment_type=EmploymentType.internship)["total"] == 1
    assert job_post_service.list_posts(db, editor, category_id=category.id)["total"] == 1
    published = job_post_service.list_published(db)
    assert [p.id for p in published["items"]] == [ready_post.id]


# ---- HTTP ----

def test_editor_manages_job_posts_over_http(client, db, super_admin, editor):
    allowed_domain_service.create_domain(db, super_admin, "https://careers.example.com")
    headers = auth_headers(login(client, editor.email))

    category = client.post("/api/job-posts/categories", json={"name": "Engineering"}, headers=headers)
    assert category.status_code == 201, category.text
    created = client.post(
        "/api/job-posts/posts",
        json=dict(COMPLETE, title="Backend Engineer", category_id=category.json()["data"]["id"]),
        headers=headers,
    )
    assert created.status_code == 201, created.text
    post = created.json()["data"]
    assert post["job_id"] == "JOB-000001"
    assert post["employment_type"] == "full-time"

    resp = client.post(f"/api/job-posts/posts/{post['id']}/publish", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["status"] == "published"

    categories = client.get("/api/job-posts/categories", headers=headers).json()["data"]
    assert categories["items"][0]["post_count"] == 1

    origin = {"Origin": "https://careers.example.com"}
    listing = client.get("/api/public/job-posts", headers=origin).json()["data"]
    assert [p["job_id"] for p in listing["items"]] == ["JOB-000001"]
    single = client.get("/api/public/job-posts/JOB-000001", headers=origin)
    assert single.status_code == 200
    assert single.json()["data"]["title"] == "Backend Engineer"


def test_job_post_validation_over_http(client, editor):
    headers = auth_headers(login(client, editor.email))

    resp = client.post("/api/job-posts/posts", json={"title": "Role", "employment_type": "gig"}, headers=headers)
    assert resp.status_code == 422

    draft = client.post("/api/job-posts/posts", json={"title": "Role"}, headers=headers).json()["data"]
    resp = client.post(f"/api/job-posts/posts/{draft['id']}/publish", headers=headers)
    assert resp.status_code == 422
    assert "Location is required" in resp.json()["error"]


def test_viewer_cannot_create_job_posts_over_http(client, make_actor):
    make_actor("Viewer", email="viewer@example.com")
    headers = auth_headers(login(client, "viewer@example.com"))

    assert client.get("/api/job-posts/posts", headers=headers).status_code == 200
    assert client.post("/api/job-posts/posts", json={"title": "Role"}, headers=headers).status_code == 403
