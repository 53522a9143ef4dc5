"""
Listing service — paginated, filtered reads over blogs.

Design notes
------------
- Every public listing starts from ``PUBLIC_PREDICATE`` (active AND
  published); filters only narrow it.  "My blogs" swaps it for
  author + active so drafts show up.  Admin listings build their own
  criteria and call ``paginate_blogs`` directly.
- Text matching is a case-insensitive substring match on title OR
  content.  The user's term is LIKE-escaped first so ``%``/``_`` in a
  query match literally instead of acting as wildcards.
- The public list and the category counts go through
  the Redis cache-aside layer; every blog write calls
  ``cache.invalidate_blogs()``.  Profile name and avatar changes
  invalidate too, since listing items embed the author summary.  Views
  are the exception: counting a view does not invalidate, so cached
  pages show view counts and the ``popular`` order as of their fill,
  at most ``CACHE_TTL_LIST`` seconds old.
"""
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_platform.cache import cache, listing_key
from blog_platform.models import CATEGORIES, Blog, Tag, User, blog_likes
from blog_platform.schemas import PaginatedResponse, Pagination
from blog_platform.services.serializers import blog_to_dict

PUBLIC_PREDICATE = (Blog.is_active.is_(True), Blog.status == "published")

SORTS = ("newest", "popular", "oldest")

_LIKE_ESCAPE = "\\"


def escape_like(term: str) -> str:
    """Escape LIKE metacharacters so *term* matches literally."""
    return (
        term.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def text_match(term: str):
    pattern = f"%{escape_like(term)}%"
    return or_(
        Blog.title.ilike(pattern, escape=_LIKE_ESCAPE),
        Blog.content.ilike(pattern, escape=_LIKE_ESCAPE),
    )


def likes_count_expr():
    return (
        select(func.count())
        .select_from(blog_likes)
        .where(blog_likes.c.blog_id == Blog.id)
        .correlate(Blog)
        .scalar_subquery()
    )


def _order_by(sort: str) -> tuple:
    if sort == "popular":
        return (Blog.views.desc(), likes_count_expr().desc(), Blog.created_at.desc())
    if sort == "oldest":
        return (Blog.created_at.asc(), Blog.id.asc())
    return (Blog.created_at.desc(), Blog.id.desc())


def _public_filters(
    category: str | None = None,
    author_id: int | None = None,
    tag: str | None = None,
    search: str | None = None,
) -> list:
    criteria = list(PUBLIC_PREDICATE)
    if category and category != "all":
        criteria.append(Blog.category == category)
    if author_id is not None:
        criteria.append(Blog.author_id == author_id)
    if tag:
        criteria.append(Blog.tags.any(Tag.name == tag))
    if search and search.strip():
        criteria.append(text_match(search.strip()))
    return criteria


async def paginate_blogs(
    db: AsyncSession,
    criteria: list,
    *,
    page: int = 1,
    limit: int = 10,
    sort: str = "newest",
    author_email: bool = False,
) -> PaginatedResponse:
    """
    Two statements: a COUNT over *criteria* and the page itself with the
    author joined and tags/likes loaded.
    """
    total: int = (
        await db.execute(select(func.count()).select_from(Blog).where(*criteria))
    ).scalar_one()

    q = (
        select(Blog)
        .where(*criteria)
        .options(joinedload(Blog.author), selectinload(Blog.tags), selectinload(Blog.likes))
        .order_by(*_order_by(sort))
        .offset((page - 1) * limit)
        .limit(limit)
    )
    blogs = (await db.execute(q)).unique().scalars().all()

    return PaginatedResponse(
        items=[blog_to_dict(b, author_email=author_email) for b in blogs],
        pagination=Pagination.build(page, limit, total),
    )


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def list_blogs(
    db: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    category: str | None = None,
    author_id: int | None = None,
    tag: str | None = None,
    search: str | None = None,
    sort: str = "newest",
) -> PaginatedResponse:
    """Public listing: active + published blogs, newest first by default."""
    if sort not in SORTS:
        sort = "newest"

    cache_key = listing_key(
        page=page, limit=limit, category=category, author=author_id, tag=tag, search=search, sort=sort
    )
    cached = await cache.get_listing(cache_key)
    if cached:
        return PaginatedResponse(**cached)

    response = await paginate_blogs(
        db,
        _public_filters(category=category, author_id=author_id, tag=tag, search=search),
        page=page,
        limit=limit,
        sort=sort,
    )
    await cache.set_listing(cache_key, response.model_dump())
    return response


async def search_blogs(
    db: AsyncSession,
    query: str | None,
    *,
    category: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PaginatedResponse:
    """
    Substring search on title or content.  An empty query returns the
    plain public listing (optionally narrowed by category).
    """
    return await paginate_blogs(
        db,
        _public_filters(category=category, search=query),
        page=page,
        limit=limit,
    )


async def list_user_blogs(db: AsyncSession, author_id: int, *, page: int = 1, limit: int = 10) -> PaginatedResponse:
    return await paginate_blogs(db, _public_filters(author_id=author_id), page=page, limit=limit)


async def list_my_blogs(
    db: AsyncSession,
    actor: User,
    *,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> PaginatedResponse:
    """The actor's own active blogs, drafts and archived included."""
    criteria = [Blog.author_id == actor.id, Blog.is_active.is_(True)]
    if status:
        criteria.append(Blog.status == status)
    return await paginate_blogs(db, criteria, page=page, limit=limit)


async def get_categories(db: AsyncSession) -> list[dict]:
    """Every category with its count of active + published blogs (zeros included)."""
    cached = await cache.get_categories()
    if cached:
        return cached

    q = (
        select(Blog.category, func.count())
        .where(*PUBLIC_PREDICATE)
        .group_by(Blog.category)
    )
    counts = dict((await db.execute(q)).all())
    categories = [{"name": name, "count": counts.get(name, 0)} for name in CATEGORIES]

    await cache.set_categories(categories)
    return categories
