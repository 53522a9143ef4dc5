"""
Admin service — dashboard rollups, moderation listings and overrides.

Every function checks ``permissions.can_access_admin_area`` itself, so the
service stays safe when called from somewhere other than the admin router.
Status overrides bypass the ownership rule and the "already deleted"
distinction of the author-facing comment delete.
"""
from datetime import datetime, timezone

from sqlalchemy import and_, extract, func, not_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from blog_platform.cache import cache
from blog_platform.errors import Forbidden, NotFound
from blog_platform.models import Blog, Comment, User
from blog_platform.permissions import can_access_admin_area
from blog_platform.schemas import BlogStatusUpdate, CommentStatusUpdate, PaginatedResponse, Pagination
from blog_platform.services.blog_service import blog_options, deactivate_comments, load_blog
from blog_platform.services.listing_service import escape_like, paginate_blogs, text_match
from blog_platform.services.serializers import blog_to_dict, comment_to_dict, user_to_dict

# A comment is visible only while both it and its blog are active.
VISIBLE_COMMENT = and_(Comment.is_active.is_(True), Blog.is_active.is_(True))


def _require_admin(actor: User | None) -> None:
    if not can_access_admin_area(actor):
        raise Forbidden("Access denied. Admin privileges required.")


def _trailing_months(now: datetime, count: int = 12) -> list[tuple[int, int]]:
    """(year, month) pairs for the last *count* months, oldest first, ending with *now*'s month."""
    months = []
    year, month = now.year, now.month
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


async def _count(db: AsyncSession, q) -> int:
    return (await db.execute(q)).scalar_one()


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

async def dashboard_stats(db: AsyncSession, actor: User, *, now: datetime | None = None) -> dict:
    _require_admin(actor)
    now = now or datetime.now(timezone.utc)

    total_users = await _count(db, select(func.count()).select_from(User).where(User.is_active.is_(True)))
    total_blogs = await _count(db, select(func.count()).select_from(Blog).where(Blog.is_active.is_(True)))
    total_comments = await _count(
        db, select(func.count()).select_from(Comment).join(Blog, Blog.id == Comment.blog_id).where(VISIBLE_COMMENT)
    )
    total_views = await _count(
        db, select(func.coalesce(func.sum(Blog.views), 0)).where(Blog.is_active.is_(True))
    )

    recent_blogs = (
        await db.execute(
            select(Blog)
            .where(Blog.is_active.is_(True))
            .options(*blog_options())
            .order_by(Blog.created_at.desc(), Blog.id.desc())
            .limit(5)
        )
    ).scalars().all()
    recent_users = (
        await db.execute(
            select(User)
            .where(User.is_active.is_(True))
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(5)
        )
    ).scalars().all()

    by_category = (
        await db.execute(
            select(Blog.category, func.count().label("count"))
            .where(Blog.is_active.is_(True), Blog.status == "published")
            .group_by(Blog.category)
            .order_by(func.count().desc(), Blog.category)
        )
    ).all()

    months = _trailing_months(now)
    first_year, first_month = months[0]
    since = datetime(first_year, first_month, 1, tzinfo=timezone.utc)
    year_col = extract("year", Blog.created_at)
    month_col = extract("month", Blog.created_at)
    monthly_rows = (
        await db.execute(
            select(year_col, month_col, func.count())
            .where(Blog.is_active.is_(True), Blog.created_at >= since)
            .group_by(year_col, month_col)
        )
    ).all()
    monthly_counts = {(int(y), int(m)): c for y, m, c in monthly_rows}

    return {
        "stats": {
            "total_users": total_users,
            "total_blogs": total_blogs,
            "total_comments": total_comments,
            "total_views": total_views,
        },
        "recent_blogs": [blog_to_dict(b) for b in recent_blogs],
        "recent_users": [user_to_dict(u) for u in recent_users],
        "blogs_by_category": [{"category": c, "count": n} for c, n in by_category],
        "monthly_stats": [
            {"year": y, "month": m, "count": monthly_counts.get((y, m), 0)} for y, m in months
        ],
    }


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

async def list_users(
    db: AsyncSession,
    actor: User,
    *,
    search: str | None = None,
    role: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PaginatedResponse:
    _require_admin(actor)

    criteria = []
    if search and search.strip():
        pattern = f"%{escape_like(search.strip())}%"
        criteria.append(or_(User.name.ilike(pattern, escape="\\"), User.email.ilike(pattern, escape="\\")))
    if role:
        criteria.append(User.role == role)
    if status in ("active", "inactive"):
        criteria.append(User.is_active.is_(status == "active"))

    total = await _count(db, select(func.count()).select_from(User).where(*criteria))
    users = (
        await db.execute(
            select(User)
            .where(*criteria)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()

    return PaginatedResponse(
        items=[user_to_dict(u) for u in users],
        pagination=Pagination.build(page, limit, total),
    )


async def list_blogs(
    db: AsyncSession,
    actor: User,
    *,
    search: str | None = None,
    category: str | None = None,
    status: str | None = None,
    author_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> PaginatedResponse:
    """
    All blogs, no forced predicate.  *status* is one of ``active``,
    ``inactive`` (the soft-delete flag) or a lifecycle status.
    """
    _require_admin(actor)

    criteria = []
    if search and search.strip():
        criteria.append(text_match(search.strip()))
    if category and category != "all":
        criteria.append(Blog.category == category)
    if status == "active":
        criteria.append(Blog.is_active.is_(True))
    elif status == "inactive":
        criteria.append(Blog.is_active.is_(False))
    elif status:
        criteria.append(Blog.status == status)
    if author_id is not None:
        criteria.append(Blog.author_id == author_id)

    return await paginate_blogs(db, criteria, page=page, limit=limit, author_email=True)


async def list_comments(
    db: AsyncSession,
    actor: User,
    *,
    status: str | None = None,
    blog_id: int | None = None,
    page: int = 1,
    limit: int = 10,
) -> PaginatedResponse:
    """Comments with their author and parent blog title, newest first."""
    _require_admin(actor)

    criteria = []
    if status == "active":
        criteria.append(VISIBLE_COMMENT)
    elif status == "inactive":
        criteria.append(not_(VISIBLE_COMMENT))
    if blog_id is not None:
        criteria.append(Comment.blog_id == blog_id)

    base = select(Comment).join(Blog, Blog.id == Comment.blog_id).where(*criteria)
    total = await _count(db, select(func.count()).select_from(base.subquery()))
    rows = (
        await db.execute(
            base.add_columns(Blog.title)
            .options(joinedload(Comment.user))
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).all()

    return PaginatedResponse(
        items=[comment_to_dict(comment, blog_title=title) for comment, title in rows],
        pagination=Pagination.build(page, limit, total),
    )


# ---------------------------------------------------------------------------
# Moderation overrides
# ---------------------------------------------------------------------------

async def update_blog_status(db: AsyncSession, actor: User, blog_id: int, data: BlogStatusUpdate) -> dict:
    """
    Set status and/or the active flag regardless of ownership.
    Deactivating cascades to comments like the author-facing delete.
    """
    _require_admin(actor)

    blog = (await db.execute(select(Blog).where(Blog.id == blog_id))).scalar_one_or_none()
    if blog is None:
        raise NotFound("Blog not found")

    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    was_active = blog.is_active
    for field, value in fields.items():
        setattr(blog, field, value)
    await db.flush()

    if was_active and fields.get("is_active") is False:
        await deactivate_comments(db, Comment.blog_id == blog.id)

    await cache.invalidate_blogs()
    return blog_to_dict(await load_blog(db, blog.id))


async def update_comment_status(db: AsyncSession, actor: User, comment_id: int, data: CommentStatusUpdate) -> dict:
    """Flip a comment's active flag directly; no already-deleted check."""
    _require_admin(actor)

    q = (
        select(Comment, Blog.title)
        .join(Blog, Blog.id == Comment.blog_id)
        .where(Comment.id == comment_id)
        .options(joinedload(Comment.user))
    )
    row = (await db.execute(q)).first()
    if row is None:
        raise NotFound("Comment not found")

    comment, title = row
    comment.is_active = data.is_active
    await db.flush()
    return comment_to_dict(comment, blog_title=title)
