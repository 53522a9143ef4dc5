"""
Blog service — lifecycle of the Blog aggregate.

Design notes
------------
- Excerpt and read time are derived by the pure functions
  ``derive_excerpt`` / ``derive_read_time`` before anything is written.
- Ownership decisions go through ``permissions.can_modify_blog``; a
  ``False`` becomes ``Forbidden`` here.
- Soft delete flips ``is_active`` and then deactivates the blog's
  comments inside a SAVEPOINT.  If the cascade fails it is logged and the
  primary soft delete still commits; read paths never show comments of an
  inactive blog, so the leftover flags are invisible.
- Status is validated for enum membership only.  Any of draft, published
  and archived may be set from any other.
- Likes live in ``blog_likes``.  A toggle is a read-then-write on that
  table with no lock, so two concurrent toggles by the same user resolve
  last-write-wins.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import logging
import math
import re

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from blog_platform.cache import cache
from blog_platform.errors import Forbidden, NotFound
from blog_platform.images import COVER_OPTIONS, ImageHost
from blog_platform.models import Blog, Comment, Tag, User, blog_likes, blog_tags
from blog_platform.permissions import can_modify_blog
from blog_platform.schemas import BlogCreate, BlogUpdate
from blog_platform.services.serializers import blog_to_dict, comment_to_dict, user_summary

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Derivations
# ---------------------------------------------------------------------------

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 300

_TAG_RE = re.compile(r"<[^>]*>")
_SPACE_RE = re.compile(r"\s+")


def plain_text(content: str) -> str:
    """Strip HTML tags (the editor stores rich text) and collapse whitespace."""
    return _SPACE_RE.sub(" ", _TAG_RE.sub(" ", content)).strip()


def derive_excerpt(content: str) -> str:
    text = plain_text(content)
    if len(text) <= EXCERPT_LENGTH:
        return text
    return text[: EXCERPT_LENGTH - 3].rstrip() + "..."


def derive_read_time(content: str) -> int:
    """Minutes to read at 200 words per minute, never less than 1."""
    words = len(plain_text(content).split())
    return max(1, math.ceil(words / WORDS_PER_MINUTE))


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

def blog_options():
    return (
        joinedload(Blog.author),
        selectinload(Blog.tags),
        selectinload(Blog.likes),
    )


async def load_blog(db: AsyncSession, blog_id: int, *, active_only: bool = False) -> Blog:
    """
    Return the blog with author, tags and likes resolved, re-reading rows
    already in the identity map.  Raises ``NotFound``.
    """
    q = (
        select(Blog)
        .where(Blog.id == blog_id)
        .options(*blog_options())
        .execution_options(populate_existing=True)
    )
    blog = (await db.execute(q)).unique().scalar_one_or_none()
    if blog is None or (active_only and not blog.is_active):
        raise NotFound("Blog not found")
    return blog


async def _get_blog_row(db: AsyncSession, blog_id: int) -> Blog:
    blog = (await db.execute(select(Blog).where(Blog.id == blog_id))).scalar_one_or_none()
    if blog is None:
        raise NotFound("Blog not found")
    return blog


async def _write_tags(db: AsyncSession, blog_id: int, tag_names: list[str]) -> None:
    """Replace the blog's tags, creating missing Tag rows and keeping input order."""
    await db.execute(delete(blog_tags).where(blog_tags.c.blog_id == blog_id))
    rows = []
    for position, name in enumerate(tag_names):
        tag = (await db.execute(select(Tag).where(Tag.name == name))).scalar_one_or_none()
        if tag is None:
            tag = Tag(name=name)
            db.add(tag)
            await db.flush()
        rows.append({"blog_id": blog_id, "tag_id": tag.id, "position": position})
    if rows:
        await db.execute(insert(blog_tags), rows)


async def deactivate_comments(db: AsyncSession, *criteria) -> None:
    """
    Best-effort cascade: mark every comment matching *criteria* inactive.

    Runs in a SAVEPOINT so a failure here rolls back only the cascade,
    never the caller's primary change.
    """
    try:
        async with db.begin_nested():
            result = await db.execute(
                update(Comment)
                .where(*criteria, Comment.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
        logger.info("Cascade deactivated %d comment(s)", result.rowcount)
    except SQLAlchemyError:
        logger.exception("Comment cascade failed; primary soft delete kept")


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def create_blog(db: AsyncSession, author: User, data: BlogCreate, images: ImageHost, default_image: str) -> dict:
    """
    Create a blog owned by *author* and return it with the author resolved.

    ``image`` may be a data URI (uploaded), an existing URL (stored as is)
    or absent (*default_image*).
    """
    image = await images.resolve(data.image, **COVER_OPTIONS) if data.image else default_image

    blog = Blog(
        title=data.title,
        content=data.content,
        category=data.category,
        excerpt=data.excerpt or derive_excerpt(data.content),
        read_time=derive_read_time(data.content),
        image=image,
        status=data.status,
        is_active=True,
        author_id=author.id,
    )
    db.add(blog)
    await db.flush()
    if data.tags:
        await _write_tags(db, blog.id, data.tags)

    await cache.invalidate_blogs()
    return blog_to_dict(await load_blog(db, blog.id), with_content=True)


async def update_blog(db: AsyncSession, actor: User, blog_id: int, data: BlogUpdate, images: ImageHost) -> dict:
    """
    Apply a partial update.  Only fields present in the request are
    touched; the author can never be changed.
    """
    blog = await _get_blog_row(db, blog_id)
    if not can_modify_blog(actor, blog):
        raise Forbidden("Not authorized to update this blog")

    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    tag_names: list[str] | None = fields.pop("tags", None)

    if "image" in fields:
        fields["image"] = await images.resolve(fields["image"], **COVER_OPTIONS)

    if "content" in fields:
        # Keep a hand-written excerpt; refresh one that was derived.
        if "excerpt" not in fields and blog.excerpt == derive_excerpt(blog.content):
            fields["excerpt"] = derive_excerpt(fields["content"])
        fields["read_time"] = derive_read_time(fields["content"])

    for field, value in fields.items():
        setattr(blog, field, value)
    await db.flush()

    if tag_names is not None:
        await _write_tags(db, blog.id, tag_names)

    await cache.invalidate_blogs()
    return blog_to_dict(await load_blog(db, blog.id), with_content=True)


async def delete_blog(db: AsyncSession, actor: User, blog_id: int) -> None:
    """Soft delete the blog and cascade to its comments."""
    blog = await _get_blog_row(db, blog_id)
    if not can_modify_blog(actor, blog):
        raise Forbidden("Not authorized to delete this blog")

    blog.is_active = False
    await db.flush()
    await deactivate_comments(db, Comment.blog_id == blog.id)
    await cache.invalidate_blogs()


async def view_blog(db: AsyncSession, blog_id: int, *, atomic_counter: bool = True) -> dict:
    """
    Return the blog detail and count the view.

    Every call adds exactly one view, whoever the viewer is.  With
    *atomic_counter* the increment is a single ``views = views + 1``
    UPDATE, otherwise an ORM read-modify-write.
    """
    blog = await load_blog(db, blog_id, active_only=True)

    if atomic_counter:
        await db.execute(
            update(Blog)
            .where(Blog.id == blog.id)
            .values(views=Blog.views + 1)
            .execution_options(synchronize_session=False)
        )
        await db.refresh(blog, ["views"])
    else:
        blog.views += 1
        await db.flush()

    comments_q = (
        select(Comment)
        .where(Comment.blog_id == blog.id, Comment.is_active.is_(True))
        .options(joinedload(Comment.user))
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    comments = (await db.execute(comments_q)).scalars().all()

    data = blog_to_dict(blog, with_content=True)
    data["author"] = user_summary(blog.author, with_bio=True)
    data["comments"] = [comment_to_dict(c) for c in comments]
    data["comments_count"] = len(comments)
    return data


async def toggle_like(db: AsyncSession, actor: User, blog_id: int) -> dict:
    """Like the blog if *actor* has not liked it yet, otherwise unlike it."""
    blog = await _get_blog_row(db, blog_id)
    if not blog.is_active:
        raise NotFound("Blog not found")

    membership = (blog_likes.c.blog_id == blog.id) & (blog_likes.c.user_id == actor.id)
    already_liked = (await db.execute(select(func.count()).select_from(blog_likes).where(membership))).scalar_one() > 0

    if already_liked:
        await db.execute(delete(blog_likes).where(membership))
    else:
        await db.execute(insert(blog_likes).values(blog_id=blog.id, user_id=actor.id))

    likes = (
        await db.execute(select(func.count()).select_from(blog_likes).where(blog_likes.c.blog_id == blog.id))
    ).scalar_one()

    await cache.invalidate_blogs()
    return {"likes": likes, "is_liked": not already_liked}
