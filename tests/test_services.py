"""
Direct service-layer tests — exercises business logic without HTTP overhead.

These tests call service functions and the pure helpers directly, covering
the derivations, token handling, pagination maths and the SQLAlchemy query
paths behind the endpoints.
"""
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_platform.cache import CacheManager, cache, listing_key
from blog_platform.config import Settings
from blog_platform.errors import AlreadyDeleted, Forbidden, NotFound, SelfDeletionError, Unauthenticated, UpstreamUnavailable
from blog_platform.images import ImageHost
from blog_platform.models import Blog, Comment, User
from blog_platform.schemas import BlogCreate, BlogUpdate, CommentCreate, Pagination, ProfileUpdate
from blog_platform.security import create_access_token, decode_access_token, hash_password, verify_password
from blog_platform.services import admin_service, auth_service, blog_service, comment_service, listing_service, user_service
from blog_platform.services.admin_service import _trailing_months
from blog_platform.services.blog_service import derive_excerpt, derive_read_time, plain_text
from blog_platform.services.listing_service import escape_like

from conftest import CONTENT, fake_images, make_user, TEST_SETTINGS

DEFAULT_IMAGE = "https://images.example.com/default.jpg"


# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------

def test_plain_text_strips_markup():
    assert plain_text("<p>Hello <b>there</b></p>\n\n  world") == "Hello there world"


def test_derive_excerpt_short_content_unchanged():
    assert derive_excerpt("<p>Short and sweet.</p>") == "Short and sweet."


def test_derive_excerpt_truncates_to_300():
    excerpt = derive_excerpt("a" * 1000)
    assert len(excerpt) == 300
    assert excerpt.endswith("...")


@pytest.mark.parametrize("words,minutes", [(0, 1), (1, 1), (200, 1), (201, 2), (1000, 5)])
def test_derive_read_time(words, minutes):
    assert derive_read_time(" ".join(["w"] * words)) == minutes


def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"


def test_listing_key_ignores_argument_order():
    assert listing_key(page=1, sort="newest") == listing_key(sort="newest", page=1)
    assert listing_key(page=1, sort="newest") == "blogs:list:page=1:sort=newest"


@pytest.mark.asyncio
async def test_cache_without_redis_is_a_no_op():
    manager = CacheManager()
    await manager.set_listing("blogs:list:x", {"items": []})
    assert await manager.get_listing("blogs:list:x") is None
    await manager.invalidate_blogs()
    assert manager.stats == {"hits": 0, "misses": 1, "hit_rate": 0.0}


def test_trailing_months_crosses_year():
    months = _trailing_months(datetime(2026, 2, 15, tzinfo=timezone.utc))
    assert len(months) == 12
    assert months[0] == (2025, 3)
    assert months[-2:] == [(2026, 1), (2026, 2)]


# ---------------------------------------------------------------------------
# Schemas / pagination
# ---------------------------------------------------------------------------

def test_pagination_build():
    p = Pagination.build(page=2, limit=10, total=25)
    assert (p.total_pages, p.has_next, p.has_prev) == (3, True, True)
    last = Pagination.build(page=3, limit=10, total=25)
    assert last.has_next is False


def test_blog_create_defaults_and_tags():
    data = BlogCreate(title="T", content=CONTENT, category="food", tags=" a, b ,a")
    assert data.status == "published"
    assert data.tags == ["a", "b"]


def test_blog_update_rejects_blank_title():
    with pytest.raises(PydanticValidationError):
        BlogUpdate(title="   ")


def test_comment_text_rejects_whitespace():
    with pytest.raises(PydanticValidationError):
        CommentCreate(text=" \n\t ")


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------

def test_password_hash_round_trip():
    hashed = hash_password("secret123", TEST_SETTINGS)
    assert hashed != "secret123"
    assert verify_password("secret123", hashed)
    assert not verify_password("nope", hashed)
    assert not verify_password("secret123", "not-a-bcrypt-hash")


def test_token_round_trip():
    token = create_access_token(42, TEST_SETTINGS)
    assert decode_access_token(token, TEST_SETTINGS) == 42


def test_token_wrong_secret():
    token = create_access_token(42, TEST_SETTINGS)
    other = Settings(JWT_SECRET="another-secret")
    with pytest.raises(Unauthenticated):
        decode_access_token(token, other)


def test_token_expired():
    expired_config = Settings(JWT_SECRET="test-secret", JWT_EXPIRE_DAYS=-1)
    token = create_access_token(42, expired_config)
    with pytest.raises(Unauthenticated, match="expired"):
        decode_access_token(token, TEST_SETTINGS)


# ---------------------------------------------------------------------------
# Image host
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_unconfigured_image_host_rejects_upload():
    host = ImageHost("", "", "")
    assert host.configured is False
    with pytest.raises(UpstreamUnavailable):
        await host.resolve("data:image/png;base64,AAAA")


@pytest.mark.asyncio
async def test_image_host_passes_urls_through():
    host = ImageHost("", "", "")
    assert await host.resolve("https://cdn.example.com/a.png") == "https://cdn.example.com/a.png"


# ---------------------------------------------------------------------------
# blog_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_create_blog_via_service(db_session: AsyncSession):
    author = await make_user(db_session)
    data = BlogCreate(title="Service post", content=CONTENT, category="science", tags=["x", "y"])
    blog = await blog_service.create_blog(db_session, author, data, fake_images, DEFAULT_IMAGE)

    assert blog["image"] == DEFAULT_IMAGE
    assert blog["tags"] == ["x", "y"]
    assert blog["author"]["id"] == author.id
    assert blog["content"] == CONTENT


@pytest.mark.asyncio
async def test_view_blog_read_modify_write_counter(db_session: AsyncSession):
    author = await make_user(db_session)
    data = BlogCreate(title="Counted", content=CONTENT, category="science")
    blog = await blog_service.create_blog(db_session, author, data, fake_images, DEFAULT_IMAGE)

    await blog_service.view_blog(db_session, blog["id"], atomic_counter=False)
    viewed = await blog_service.view_blog(db_session, blog["id"], atomic_counter=False)
    assert viewed["views"] == 2
    assert viewed["comments_count"] == 0


@pytest.mark.asyncio
async def test_update_blog_forbidden_for_stranger(db_session: AsyncSession):
    author = await make_user(db_session, "author")
    stranger = await make_user(db_session, "stranger")
    data = BlogCreate(title="Mine", content=CONTENT, category="science")
    blog = await blog_service.create_blog(db_session, author, data, fake_images, DEFAULT_IMAGE)

    with pytest.raises(Forbidden):
        await blog_service.update_blog(db_session, stranger, blog["id"], BlogUpdate(title="Theirs"), fake_images)


@pytest.mark.asyncio
async def test_toggle_like_missing_blog(db_session: AsyncSession):
    user = await make_user(db_session)
    with pytest.raises(NotFound):
        await blog_service.toggle_like(db_session, user, 12345)


@pytest.mark.asyncio
async def test_delete_blog_cascades_comments(db_session: AsyncSession):
    author = await make_user(db_session, "author")
    reader = await make_user(db_session, "reader")
    blog = await blog_service.create_blog(
        db_session, author, BlogCreate(title="Bye", content=CONTENT, category="food"), fake_images, DEFAULT_IMAGE
    )
    await comment_service.add_comment(db_session, reader, blog["id"], CommentCreate(text="one"))
    await comment_service.add_comment(db_session, reader, blog["id"], CommentCreate(text="two"))

    await blog_service.delete_blog(db_session, author, blog["id"])

    flags = (await db_session.execute(select(Comment.is_active))).scalars().all()
    assert flags == [False, False]


@pytest.mark.asyncio
async def test_author_profile_changes_invalidate_listing_cache(db_session: AsyncSession, monkeypatch):
    calls = []

    async def record():
        calls.append(True)

    monkeypatch.setattr(cache, "invalidate_blogs", record)
    user = await make_user(db_session, "author")

    await auth_service.update_profile(db_session, user, ProfileUpdate(bio="Only the bio"))
    assert calls == []

    await auth_service.update_profile(db_session, user, ProfileUpdate(name="Renamed"))
    await auth_service.set_avatar(db_session, user, "https://cdn.example.com/me.png", fake_images)
    assert len(calls) == 2
    assert user.avatar == "https://cdn.example.com/me.png"


def _fail_comment_updates(monkeypatch, db: AsyncSession) -> None:
    """Make every UPDATE against the comments table raise inside *db*."""
    execute = db.execute

    async def failing_execute(statement, *args, **kwargs):
        if getattr(statement, "is_update", False) and statement.table.name == "comments":
            raise OperationalError("UPDATE comments", {}, Exception("database is locked"))
        return await execute(statement, *args, **kwargs)

    monkeypatch.setattr(db, "execute", failing_execute)


@pytest.mark.asyncio
async def test_failed_comment_cascade_keeps_blog_deleted(db_session: AsyncSession, monkeypatch, caplog):
    author = await make_user(db_session, "author")
    blog = await blog_service.create_blog(
        db_session, author, BlogCreate(title="Stuck", content=CONTENT, category="food"), fake_images, DEFAULT_IMAGE
    )
    await comment_service.add_comment(db_session, author, blog["id"], CommentCreate(text="still here"))

    _fail_comment_updates(monkeypatch, db_session)
    await blog_service.delete_blog(db_session, author, blog["id"])
    await db_session.commit()
    monkeypatch.undo()

    blog_active = (await db_session.execute(select(Blog.is_active).where(Blog.id == blog["id"]))).scalar_one()
    comment_flags = (await db_session.execute(select(Comment.is_active))).scalars().all()
    assert blog_active is False
    assert comment_flags == [True]
    assert "Comment cascade failed" in caplog.text


@pytest.mark.asyncio
async def test_failed_comment_cascade_keeps_user_deactivated(db_session: AsyncSession, monkeypatch, caplog):
    admin = await make_user(db_session, "boss", role="admin")
    author = await make_user(db_session, "author")
    blog = await blog_service.create_blog(
        db_session, author, BlogCreate(title="Theirs", content=CONTENT, category="food"), fake_images, DEFAULT_IMAGE
    )
    await comment_service.add_comment(db_session, author, blog["id"], CommentCreate(text="mine"))

    _fail_comment_updates(monkeypatch, db_session)
    await user_service.deactivate_user(db_session, admin, author.id)
    await db_session.commit()
    monkeypatch.undo()

    user_active = (await db_session.execute(select(User.is_active).where(User.id == author.id))).scalar_one()
    blog_active = (await db_session.execute(select(Blog.is_active).where(Blog.id == blog["id"]))).scalar_one()
    comment_flags = (await db_session.execute(select(Comment.is_active))).scalars().all()
    assert user_active is False
    assert blog_active is False
    assert comment_flags == [True]
    assert "Comment cascade failed" in caplog.text


# ---------------------------------------------------------------------------
# comment_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_comment_already_deleted(db_session: AsyncSession):
    author = await make_user(db_session)
    blog = await blog_service.create_blog(
        db_session, author, BlogCreate(title="C", content=CONTENT, category="food"), fake_images, DEFAULT_IMAGE
    )
    comment = await comment_service.add_comment(db_session, author, blog["id"], CommentCreate(text="hi"))

    await comment_service.delete_comment(db_session, author, comment["id"])
    with pytest.raises(AlreadyDeleted):
        await comment_service.delete_comment(db_session, author, comment["id"])


# ---------------------------------------------------------------------------
# listing_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_blogs_empty(db_session: AsyncSession):
    result = await listing_service.list_blogs(db_session)
    assert result.items == []
    assert result.pagination.total == 0
    assert result.pagination.total_pages == 0


@pytest.mark.asyncio
async def test_get_categories_lists_all(db_session: AsyncSession):
    categories = await listing_service.get_categories(db_session)
    assert len(categories) == 12
    assert all(c["count"] == 0 for c in categories)


# ---------------------------------------------------------------------------
# user_service / admin_service
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_deactivate_user_requires_admin(db_session: AsyncSession):
    reader = await make_user(db_session, "reader")
    target = await make_user(db_session, "target")
    with pytest.raises(Forbidden):
        await user_service.deactivate_user(db_session, reader, target.id)


@pytest.mark.asyncio
async def test_deactivate_self_checked_before_existence(db_session: AsyncSession):
    admin = await make_user(db_session, "boss", role="admin")
    with pytest.raises(SelfDeletionError):
        await user_service.deactivate_user(db_session, admin, admin.id)


@pytest.mark.asyncio
async def test_dashboard_monthly_window(db_session: AsyncSession):
    admin = await make_user(db_session, "boss", role="admin")
    stats = await admin_service.dashboard_stats(
        db_session, admin, now=datetime(2026, 1, 10, tzinfo=timezone.utc)
    )
    months = [(m["year"], m["month"]) for m in stats["monthly_stats"]]
    assert months[0] == (2025, 2)
    assert months[-1] == (2026, 1)
    assert stats["stats"]["total_users"] == 1


@pytest.mark.asyncio
async def test_admin_listing_requires_admin(db_session: AsyncSession):
    reader = await make_user(db_session, "reader")
    with pytest.raises(Forbidden):
        await admin_service.list_users(db_session, reader)
