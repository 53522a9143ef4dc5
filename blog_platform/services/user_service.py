"""
User service — admin-side account management.

Accounts are never hard-deleted.  Deactivation flips ``is_active`` on the
user and then, best-effort, on everything they authored: their blogs,
their comments, and the comments left by others on their blogs.
"""
import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from blog_platform.cache import cache
from blog_platform.errors import Forbidden, NotFound, SelfDeletionError
from blog_platform.models import Blog, Comment, User, blog_likes
from blog_platform.permissions import can_access_admin_area, can_delete_self
from blog_platform.schemas import AdminUserUpdate
from blog_platform.services.auth_service import ensure_email_available, normalize_email
from blog_platform.services.blog_service import blog_options, deactivate_comments
from blog_platform.services.serializers import blog_to_dict, user_to_dict

logger = logging.getLogger(__name__)


async def _get_user(db: AsyncSession, user_id: int) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")
    return user


async def _cascade_user_content(db: AsyncSession, user_id: int) -> None:
    authored_blogs = select(Blog.id).where(Blog.author_id == user_id)
    try:
        async with db.begin_nested():
            result = await db.execute(
                update(Blog)
                .where(Blog.author_id == user_id, Blog.is_active.is_(True))
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
        logger.info("Cascade deactivated %d blog(s) of user %s", result.rowcount, user_id)
    except SQLAlchemyError:
        logger.exception("Blog cascade failed for user %s; account deactivation kept", user_id)

    await deactivate_comments(db, Comment.user_id == user_id)
    await deactivate_comments(db, Comment.blog_id.in_(authored_blogs))


def _check_deactivation(actor: User, target_user_id: int) -> None:
    if not can_access_admin_area(actor):
        raise Forbidden("Access denied. Admin privileges required.")
    if not can_delete_self(actor, target_user_id):
        raise SelfDeletionError()


async def deactivate_user(db: AsyncSession, actor: User, target_user_id: int) -> None:
    """
    Deactivate *target_user_id* as admin *actor* and cascade to their
    content.  Check order: admin, self-deletion guard, existence.
    """
    _check_deactivation(actor, target_user_id)
    user = await _get_user(db, target_user_id)

    user.is_active = False
    await db.flush()
    await _cascade_user_content(db, user.id)
    await cache.invalidate_blogs()


async def update_user(db: AsyncSession, actor: User, user_id: int, data: AdminUserUpdate) -> dict:
    """
    Admin edit of name, email, role, active flag and bio.  Setting
    ``is_active`` to false takes the same path as ``deactivate_user``.
    """
    if not can_access_admin_area(actor):
        raise Forbidden("Access denied. Admin privileges required.")

    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    deactivating = fields.get("is_active") is False
    if deactivating:
        _check_deactivation(actor, user_id)

    user = await _get_user(db, user_id)
    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
        if fields["email"] != user.email:
            await ensure_email_available(db, fields["email"], exclude_user_id=user.id)

    was_active = user.is_active
    for field, value in fields.items():
        setattr(user, field, value)
    await db.flush()

    if deactivating and was_active:
        await _cascade_user_content(db, user.id)
        await cache.invalidate_blogs()
    return user_to_dict(user)


async def get_user_detail(db: AsyncSession, user_id: int) -> dict:
    """User plus blog totals (active blogs, views, likes) and five most recent active blogs."""
    user = await _get_user(db, user_id)

    own_active = (Blog.author_id == user.id, Blog.is_active.is_(True))
    total_blogs, total_views = (
        await db.execute(select(func.count(), func.coalesce(func.sum(Blog.views), 0)).where(*own_active))
    ).one()
    total_likes = (
        await db.execute(
            select(func.count())
            .select_from(blog_likes)
            .join(Blog, Blog.id == blog_likes.c.blog_id)
            .where(*own_active)
        )
    ).scalar_one()

    recent = (
        await db.execute(
            select(Blog)
            .where(*own_active)
            .options(*blog_options())
            .order_by(Blog.created_at.desc(), Blog.id.desc())
            .limit(5)
        )
    ).scalars().all()

    return {
        "user": user_to_dict(user),
        "stats": {
            "total_blogs": total_blogs,
            "total_views": total_views,
            "total_likes": total_likes,
        },
        "recent_blogs": [blog_to_dict(b) for b in recent],
    }
